"""Security utilities for JWT and password hashing."""

from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

import bcrypt
import jwt

from users_api.config import settings
from users_api.logger import get_logger, log_timing

logger = get_logger(__name__)

# bcrypt only considers the first 72 bytes of input
BCRYPT_MAX_BYTES = 72

REQUIRED_CLAIMS = ["id", "email", "iat", "exp"]


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with the configured cost factor."""
    with log_timing("hash_password", logger=logger, level="debug", rounds=settings.bcrypt_rounds):
        salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


@lru_cache(maxsize=1)
def dummy_password_hash() -> str:
    """Hash checked against when no user matches, so both login failures cost one bcrypt check."""
    return hash_password("no-such-user-placeholder")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash.

    A malformed stored hash fails closed.
    """
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as exc:
        logger.warning("Password verification failed on malformed hash", error_type=type(exc).__name__)
        return False


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a new JWT access token with iat/exp claims."""
    to_encode = data.copy()
    issued_at = datetime.now(UTC)
    if expires_delta is None:
        expires_delta = timedelta(days=settings.access_token_expire_days)

    to_encode.update({"iat": issued_at, "exp": issued_at + expires_delta})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT access token."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("JWT token expired")
        return None
    except jwt.PyJWTError as exc:
        logger.warning(
            "JWT decode failed",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return None

    if not isinstance(payload["id"], int) or isinstance(payload["id"], bool):
        logger.warning("JWT decode failed", error="Invalid id claim", error_type="InvalidClaim")
        return None
    return payload
