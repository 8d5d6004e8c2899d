"""
Request dependencies for bearer authentication and role-based authorization.
"""
import logging
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from .auth import decode_token
from .db import get_db
from .models import User
from .permissions import has_rights

logger = logging.getLogger(__name__)


def get_current_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate")
    token = authorization.split(" ", 1)[1].strip()
    try:
        user_id = decode_token(token)
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate") from exc

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Please authenticate")
    return user


def require_rights(*rights: str):
    """
    Build a dependency that admits the current user when their role grants
    every right in ``rights``, or when the route's ``user_id`` path parameter
    is their own id.
    """
    def dependency(request: Request, user: User = Depends(get_current_user)) -> User:
        if has_rights(user.role, rights):
            return user

        target = request.path_params.get("user_id")
        try:
            is_self = target is not None and int(target) == user.id
        except ValueError:
            is_self = False
        if is_self:
            return user

        logger.warning(
            "Forbidden: user_id=%s role=%s path=%s required=%s",
            user.id, user.role, request.url.path, list(rights)
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    return dependency
