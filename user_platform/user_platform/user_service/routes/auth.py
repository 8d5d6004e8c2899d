"""
Registration, login and logout.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..auth import REFRESH, generate_auth_tokens, verify_password
from ..db import get_db
from ..models import Token
from ..schemas import AuthResponse, LoginRequest, LogoutRequest, RegisterRequest, UserCreate
from .. import users as user_service

router = APIRouter(prefix="/v1/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    # Self-registration always yields the "user" role
    user = user_service.create_user(
        db,
        UserCreate(name=payload.name, email=payload.email, password=payload.password, role="user"),
    )
    tokens = generate_auth_tokens(user.id, db)
    return {"user": user.to_dict(), "tokens": tokens}


@router.post("/login", response_model=AuthResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    user = user_service.get_user_by_email(db, credentials.email)
    if not user or not verify_password(credentials.password, user.password):
        logger.info("Login failure: email=%s", credentials.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password")

    logger.info("Login success: user_id=%s", user.id)
    tokens = generate_auth_tokens(user.id, db)
    return {"user": user.to_dict(), "tokens": tokens}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(payload: LogoutRequest, db: Session = Depends(get_db)):
    token = (
        db.query(Token)
        .filter(Token.token == payload.refreshToken, Token.type == REFRESH, Token.blacklisted.is_(False))
        .first()
    )
    if not token:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    user_id = token.user_id
    db.delete(token)
    db.commit()
    logger.info("Logout: user_id=%s", user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
