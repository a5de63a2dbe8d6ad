"""Authentication helpers for request-scoped user context."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from users_api.config import settings
from users_api.database import get_db
from users_api.logger import get_logger, log_exception
from users_api.models import User
from users_api.security import decode_access_token
from users_api.services import user_service
from users_api.utils import raise_internal_error, raise_unauthorized

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Shared by every rejection so callers cannot tell expired, forged and stale tokens apart
UNAUTHORIZED_DETAIL = {"error": "Unauthorized", "message": "Invalid or expired token"}


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to the user it was issued for."""
    if credentials is None:
        raise_unauthorized(UNAUTHORIZED_DETAIL)

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise_unauthorized(UNAUTHORIZED_DETAIL)

    try:
        user = await user_service.get_user_by_id(db, payload["id"])
    except SQLAlchemyError as exc:
        log_exception(logger, exc, "Authentication lookup failed", user_id=payload["id"])
        detail = {"error": "Authentication error"}
        if settings.debug:
            detail["details"] = str(exc)
        raise_internal_error(detail, cause=exc)

    if user is None:
        logger.info("Token references a user that no longer exists", user_id=payload["id"])
        raise_unauthorized(UNAUTHORIZED_DETAIL)

    return user
