from users_api.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from users_api.schemas.base import ErrorResponse, FieldError, ValidationErrorResponse
from users_api.schemas.user import (
    DeletedUser,
    UserDeleteResponse,
    UserDetailResponse,
    UserListResponse,
    UserResponse,
    UserUpdate,
)

__all__ = [
    "AuthResponse",
    "DeletedUser",
    "ErrorResponse",
    "FieldError",
    "LoginRequest",
    "RegisterRequest",
    "UserDeleteResponse",
    "UserDetailResponse",
    "UserListResponse",
    "UserResponse",
    "UserUpdate",
    "ValidationErrorResponse",
]
