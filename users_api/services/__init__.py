"""Business services."""

from users_api.services import user_service
from users_api.services.user_service import (
    EmailAlreadyRegisteredError,
    NoFieldsToUpdateError,
    UserNotFoundError,
    UserServiceError,
)

__all__ = [
    "EmailAlreadyRegisteredError",
    "NoFieldsToUpdateError",
    "UserNotFoundError",
    "UserServiceError",
    "user_service",
]
