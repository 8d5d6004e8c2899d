"""
User service: persistence rules for creating, listing, updating and
deleting users. Routes call these functions; they raise HTTPException for
conditions the client caused.
"""
import logging
from typing import Any, Dict, Mapping, Optional, Union

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .auth import hash_password
from .config import settings
from .models import Token, User
from .pagination import PageParams, SqlAlchemyRecordStore, resolve
from .schemas import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

# Public name -> model attribute; the only user fields ever returned
USER_FIELDS = {
    "id": "id",
    "name": "name",
    "email": "email",
    "role": "role",
    "isEmailVerified": "is_email_verified",
}

# Sortable and filterable, never returned
USER_QUERY_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def user_store(db: Session) -> SqlAlchemyRecordStore:
    return SqlAlchemyRecordStore(db, User, USER_FIELDS, USER_QUERY_FIELDS)


def is_email_taken(db: Session, email: str, exclude_user_id: Optional[int] = None) -> bool:
    query = db.query(User).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def create_user(db: Session, payload: UserCreate) -> User:
    if is_email_taken(db, payload.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already taken")

    user = User(
        name=payload.name,
        email=payload.email,
        password=hash_password(payload.password),
        role=payload.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User created: user_id=%s role=%s", user.id, user.role)
    return user


def query_users(db: Session, params: Union[PageParams, Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Return one page of users.

    Args:
        db: Database session
        params: raw page/limit/sortBy/filterBy parameters

    Returns:
        Page envelope whose results carry only the public user fields
    """
    return resolve(params, user_store(db), default_limit=settings.DEFAULT_PAGE_LIMIT)


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def update_user_by_id(db: Session, user_id: int, payload: UserUpdate) -> User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes and is_email_taken(db, changes["email"], exclude_user_id=user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already taken")
    if "password" in changes:
        changes["password"] = hash_password(changes["password"])

    for field, value in changes.items():
        setattr(user, field, value)
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User updated: user_id=%s fields=%s", user.id, sorted(changes))
    return user


def delete_user_by_id(db: Session, user_id: int) -> None:
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    db.query(Token).filter(Token.user_id == user_id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()

    logger.info("User deleted: user_id=%s", user_id)
