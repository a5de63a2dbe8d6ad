"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from users_api.deps import CurrentUser, DbSession

    async def my_endpoint(db: DbSession, current_user: CurrentUser):
        # db is AsyncSession with get_db dependency injected
        # current_user is the authenticated User
        ...
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from users_api.auth import get_current_user
from users_api.database import get_db
from users_api.models import User

DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]

__all__ = ["CurrentUser", "DbSession"]
