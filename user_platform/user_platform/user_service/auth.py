from passlib.context import CryptContext
from datetime import datetime, timedelta
import jwt
import uuid
from sqlalchemy.orm import Session

from .config import settings

ACCESS = "access"
REFRESH = "refresh"

# Use pbkdf2_sha256 to avoid external bcrypt backend issues in some environments
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def generate_token(user_id: int, expires: datetime, token_type: str) -> str:
    payload = {
        "sub": str(user_id),
        "iat": datetime.utcnow(),
        "exp": expires,
        "type": token_type,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def create_access_token(user_id: int) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.JWT_ACCESS_EXPIRATION_MINUTES)
    return generate_token(user_id, expire, ACCESS)

def decode_token(token: str, token_type: str = ACCESS) -> int:
    """
    Decode a signed token and return the user id it was issued for.

    Raises:
        jwt.InvalidTokenError: if the signature, expiry or token type is wrong
    """
    data = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    if data.get("type") != token_type:
        raise jwt.InvalidTokenError(f"Expected a {token_type} token")
    try:
        return int(data["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token subject is not a user id") from exc

def generate_auth_tokens(user_id: int, db: Session) -> dict:
    """
    Issue an access token and a persisted refresh token for a user.

    Args:
        user_id: The user's ID
        db: Database session

    Returns:
        Dictionary with ``access`` and ``refresh`` entries, each holding
        ``token`` and ``expires``
    """
    from .models import Token

    access_expires = datetime.utcnow() + timedelta(minutes=settings.JWT_ACCESS_EXPIRATION_MINUTES)
    refresh_expires = datetime.utcnow() + timedelta(days=settings.JWT_REFRESH_EXPIRATION_DAYS)
    access_token = generate_token(user_id, access_expires, ACCESS)
    refresh_token = generate_token(user_id, refresh_expires, REFRESH)

    db.add(Token(token=refresh_token, user_id=user_id, type=REFRESH, expires=refresh_expires))
    db.commit()

    return {
        "access": {"token": access_token, "expires": access_expires},
        "refresh": {"token": refresh_token, "expires": refresh_expires},
    }
