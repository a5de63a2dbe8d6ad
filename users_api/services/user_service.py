"""User persistence service.

Every function takes the request-scoped ``AsyncSession``. Functions that
write commit their own transaction and translate unique-constraint
violations on ``users.email`` into ``EmailAlreadyRegisteredError``.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from users_api.logger import get_logger
from users_api.models import User
from users_api.schemas.auth import RegisterRequest
from users_api.security import hash_password

logger = get_logger(__name__)


class UserServiceError(Exception):
    """Base exception for user service errors."""


class UserNotFoundError(UserServiceError):
    """User not found error."""

    def __init__(self, user_id: int) -> None:
        super().__init__("User not found")
        self.user_id = user_id


class EmailAlreadyRegisteredError(UserServiceError):
    """Email belongs to another user."""


class NoFieldsToUpdateError(UserServiceError):
    """Update request carried no recognised fields."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def email_in_use(db: AsyncSession, email: str, *, exclude_user_id: int | None = None) -> bool:
    """Check whether ``email`` is registered, optionally ignoring one user."""
    query = select(User.id).where(User.email == normalize_email(email))
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none() is not None


async def list_users(db: AsyncSession) -> list[User]:
    """All users, newest first."""
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return list(result.scalars().all())


async def _commit_or_conflict(db: AsyncSession, email: str) -> None:
    try:
        await db.commit()
    except IntegrityError as exc:
        # Another request claimed the email between our check and commit
        await db.rollback()
        logger.warning("Email uniqueness violated at commit", error_type=type(exc).__name__)
        raise EmailAlreadyRegisteredError(email) from exc


async def create_user(db: AsyncSession, data: RegisterRequest) -> User:
    """Persist a new user with a hashed password."""
    email = normalize_email(data.email)
    if await email_in_use(db, email):
        raise EmailAlreadyRegisteredError(email)

    user = User(
        email=email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        address=data.address or None,
        country=data.country or None,
        gender=data.gender,
        birthday=data.birthday,
    )
    db.add(user)
    await _commit_or_conflict(db, email)
    await db.refresh(user)

    logger.info("User created", user_id=user.id)
    return user


async def update_user(db: AsyncSession, user_id: int, changes: dict[str, Any]) -> User:
    """Apply a partial update.

    Only keys present in ``changes`` are written; ``updated_at`` is always
    refreshed. A ``password`` key is hashed into ``password_hash``.
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    if not changes:
        raise NoFieldsToUpdateError("No fields to update")

    values = dict(changes)
    if "email" in values:
        values["email"] = normalize_email(values["email"])
        if await email_in_use(db, values["email"], exclude_user_id=user_id):
            raise EmailAlreadyRegisteredError(values["email"])

    if "password" in values:
        values["password_hash"] = hash_password(values.pop("password"))

    for attribute, value in values.items():
        setattr(user, attribute, value)
    user.updated_at = datetime.now(UTC)

    await _commit_or_conflict(db, user.email)
    await db.refresh(user)

    logger.info("User updated", user_id=user.id, fields=sorted(changes))
    return user


async def delete_user(db: AsyncSession, user_id: int) -> User:
    """Delete a user and return the removed record."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    await db.delete(user)
    await db.commit()

    logger.info("User deleted", user_id=user_id)
    return user
