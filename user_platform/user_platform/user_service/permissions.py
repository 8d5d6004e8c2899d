"""
Role definitions and the rights each role grants.
"""
from typing import Iterable

ROLES = ("user", "admin")

ROLE_RIGHTS = {
    "user": frozenset(),
    "admin": frozenset({"getUsers", "manageUsers"}),
}


def has_rights(role: str, required: Iterable[str]) -> bool:
    granted = ROLE_RIGHTS.get(role, frozenset())
    return all(right in granted for right in required)
