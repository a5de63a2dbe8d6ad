"""User management API router.

All routes require a bearer token. Update and delete are self-only: the
authenticated user may only act on their own id, and that check runs before
the target is looked up.
"""

from typing import Annotated

from fastapi import APIRouter, Path
from sqlalchemy.exc import SQLAlchemyError

from users_api.deps import CurrentUser, DbSession
from users_api.logger import async_log_timing, get_logger, log_exception
from users_api.schemas import (
    DeletedUser,
    ErrorResponse,
    UserDeleteResponse,
    UserDetailResponse,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from users_api.services import (
    EmailAlreadyRegisteredError,
    NoFieldsToUpdateError,
    UserNotFoundError,
    user_service,
)
from users_api.utils import (
    raise_bad_request,
    raise_forbidden,
    raise_internal_error,
    raise_not_found,
)

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
logger = get_logger(__name__)

# Range of the 32-bit Integer primary key
MAX_USER_ID = 2_147_483_647
UserId = Annotated[int, Path(ge=1, le=MAX_USER_ID)]


@router.get("", response_model=UserListResponse)
async def list_users(db: DbSession, current_user: CurrentUser) -> UserListResponse:
    """List all users, newest first."""
    try:
        async with async_log_timing("list_users", logger=logger, level="debug") as timing:
            users = await user_service.list_users(db)
            timing["count"] = len(users)
    except SQLAlchemyError as exc:
        log_exception(logger, exc, "Get users error")
        raise_internal_error("Server error while fetching users", cause=exc)

    return UserListResponse(
        message="Users retrieved successfully",
        count=len(users),
        users=[UserResponse.model_validate(user) for user in users],
    )


@router.get("/{user_id}", response_model=UserDetailResponse, responses={404: {"model": ErrorResponse}})
async def get_user(user_id: UserId, db: DbSession, current_user: CurrentUser) -> UserDetailResponse:
    """Get user by ID."""
    try:
        user = await user_service.get_user_by_id(db, user_id)
    except SQLAlchemyError as exc:
        log_exception(logger, exc, "Get user error", user_id=user_id)
        raise_internal_error("Server error while fetching user", cause=exc)

    if user is None:
        raise_not_found("User")

    return UserDetailResponse(
        message="User retrieved successfully",
        user=UserResponse.model_validate(user),
    )


@router.put(
    "/{user_id}",
    response_model=UserDetailResponse,
    responses={
        400: {"description": "Validation failed, email in use, or empty update"},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def update_user(
    user_id: UserId,
    user_data: UserUpdate,
    db: DbSession,
    current_user: CurrentUser,
) -> UserDetailResponse:
    """Update the authenticated user's own profile with the fields provided."""
    if current_user.id != user_id:
        logger.warning("Forbidden profile update", user_id=current_user.id, target_id=user_id)
        raise_forbidden("You can only update your own profile")

    try:
        user = await user_service.update_user(db, user_id, user_data.changes())
    except UserNotFoundError:
        raise_not_found("User")
    except NoFieldsToUpdateError:
        raise_bad_request("No fields to update")
    except EmailAlreadyRegisteredError:
        raise_bad_request("Email already in use")
    except SQLAlchemyError as exc:
        log_exception(logger, exc, "Update user error", user_id=user_id)
        raise_internal_error("Server error while updating user", cause=exc)

    return UserDetailResponse(
        message="User updated successfully",
        user=UserResponse.model_validate(user),
    )


@router.delete(
    "/{user_id}",
    response_model=UserDeleteResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_user(user_id: UserId, db: DbSession, current_user: CurrentUser) -> UserDeleteResponse:
    """Delete the authenticated user's own account."""
    if current_user.id != user_id:
        logger.warning("Forbidden profile delete", user_id=current_user.id, target_id=user_id)
        raise_forbidden("You can only delete your own profile")

    try:
        user = await user_service.delete_user(db, user_id)
    except UserNotFoundError:
        raise_not_found("User")
    except SQLAlchemyError as exc:
        log_exception(logger, exc, "Delete user error", user_id=user_id)
        raise_internal_error("Server error while deleting user", cause=exc)

    return UserDeleteResponse(
        message="User deleted successfully",
        deleted_user=DeletedUser(id=user.id, email=user.email),
    )
