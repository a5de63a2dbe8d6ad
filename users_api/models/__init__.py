"""SQLAlchemy models package."""

from users_api.models.user import Gender, User

__all__ = [
    "Gender",
    "User",
]
