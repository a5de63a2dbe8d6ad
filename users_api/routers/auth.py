"""Authentication API router."""

from fastapi import APIRouter, status
from sqlalchemy.exc import SQLAlchemyError

from users_api.deps import DbSession
from users_api.logger import get_logger, log_exception
from users_api.schemas import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    RegisterRequest,
    UserResponse,
    ValidationErrorResponse,
)
from users_api.security import create_access_token, dummy_password_hash, verify_password
from users_api.services import EmailAlreadyRegisteredError, user_service
from users_api.utils import raise_bad_request, raise_internal_error, raise_unauthorized

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = get_logger(__name__)

# Same message for unknown email and wrong password
INVALID_CREDENTIALS = "Invalid email or password"


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Validation failed or email already registered"},
        500: {"model": ErrorResponse},
    },
)
async def register(data: RegisterRequest, db: DbSession) -> AuthResponse:
    """Register a new user and return a token for it."""
    try:
        user = await user_service.create_user(db, data)
    except EmailAlreadyRegisteredError:
        raise_bad_request("User already exists with this email")
    except SQLAlchemyError as exc:
        log_exception(logger, exc, "Register error")
        raise_internal_error("Server error during registration", cause=exc)

    token = create_access_token(data={"id": user.id, "email": user.email})

    return AuthResponse(
        message="User registered successfully",
        user=UserResponse.model_validate(user),
        token=token,
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={
        400: {"model": ValidationErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def login(data: LoginRequest, db: DbSession) -> AuthResponse:
    """Login with email and password."""
    try:
        user = await user_service.get_user_by_email(db, data.email)
    except SQLAlchemyError as exc:
        log_exception(logger, exc, "Login error")
        raise_internal_error("Server error during login", cause=exc)

    stored_hash = user.password_hash if user is not None else dummy_password_hash()
    password_ok = verify_password(data.password, stored_hash)
    if user is None or not password_ok:
        logger.warning("Failed login attempt")
        raise_unauthorized(INVALID_CREDENTIALS)

    logger.info("Successful login", user_id=user.id)

    token = create_access_token(data={"id": user.id, "email": user.email})

    return AuthResponse(
        message="Login successful",
        user=UserResponse.model_validate(user),
        token=token,
    )
