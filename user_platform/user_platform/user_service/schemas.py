from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from datetime import datetime
from typing import List, Literal, Optional


def _check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("password must be at least 8 characters")
    if not any(c.isalpha() for c in value) or not any(c.isdigit() for c in value):
        raise ValueError("password must contain at least 1 letter and 1 number")
    return value


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str
    role: Literal["user", "admin"]

    @field_validator("password")
    @classmethod
    def validate_password(cls, value):
        return _check_password(value)


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    password: Optional[str] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, value):
        return None if value is None else _check_password(value)

    @model_validator(mode="after")
    def at_least_one_field(self):
        if all(getattr(self, field) is None for field in self.model_fields_set):
            raise ValueError("at least one field must be provided")
        return self


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    isEmailVerified: bool


class UserPage(BaseModel):
    page: int
    limit: int
    totalPages: int
    totalResults: int
    results: List[UserOut]


# Auth
class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def validate_password(cls, value):
        return _check_password(value)


class LoginRequest(BaseModel):
    email: str
    password: str


class LogoutRequest(BaseModel):
    refreshToken: str


class TokenOut(BaseModel):
    token: str
    expires: datetime


class AuthTokens(BaseModel):
    access: TokenOut
    refresh: TokenOut


class AuthResponse(BaseModel):
    user: UserOut
    tokens: AuthTokens
