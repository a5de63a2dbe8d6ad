"""Pydantic schemas for authentication."""

from pydantic import BaseModel, field_validator

from users_api.schemas.base import CamelModel
from users_api.schemas.user import (
    UserProfileFields,
    UserResponse,
    check_password,
    clean_name,
    normalize_email,
)


class RegisterRequest(UserProfileFields):
    """Schema for user registration."""

    email: str
    password: str
    first_name: str
    last_name: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def check_password_field(cls, v: str) -> str:
        return check_password(v)

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: str) -> str:
        return clean_name(v, "First name", "First name is required")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: str) -> str:
        return clean_name(v, "Last name", "Last name is required")


class LoginRequest(CamelModel):
    """Schema for user login."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def check_password_field(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        return v


class AuthResponse(BaseModel):
    """Schema for auth response - returns public user info and JWT token."""

    message: str
    user: UserResponse
    token: str
