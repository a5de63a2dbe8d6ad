"""API routers package."""

from users_api.routers import auth, users

__all__ = [
    "auth",
    "users",
]
