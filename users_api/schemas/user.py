"""Pydantic schemas for users."""

from datetime import UTC, date, datetime

from pydantic import BaseModel, field_validator
from pydantic_core import PydanticCustomError
from pydantic.networks import validate_email

from users_api.models import Gender
from users_api.schemas.base import CamelModel

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_BYTES = 72
NAME_MAX_LENGTH = 100
COUNTRY_MAX_LENGTH = 100
ADDRESS_MAX_LENGTH = 500


def normalize_email(value: str) -> str:
    """Trim and lower-case an email, then check its format.

    Only a bare address is accepted; ``"Name <addr>"`` is rejected.
    """
    value = value.strip().lower()
    try:
        _, email = validate_email(value)
    except PydanticCustomError as exc:
        raise ValueError("Valid email is required") from exc
    if email != value:
        raise ValueError("Valid email is required")
    return email


def check_password(value: str) -> str:
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return value


def clean_name(value: str, label: str, message: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(message)
    if len(value) > NAME_MAX_LENGTH:
        raise ValueError(f"{label} must be at most {NAME_MAX_LENGTH} characters")
    return value


def clean_optional_text(value: str | None, label: str, max_length: int) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if len(value) > max_length:
        raise ValueError(f"{label} must be at most {max_length} characters")
    return value


class UserProfileFields(CamelModel):
    """Optional profile columns shared by registration and update."""

    address: str | None = None
    country: str | None = None
    gender: Gender | None = None
    birthday: date | None = None

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str | None) -> str | None:
        return clean_optional_text(v, "Address", ADDRESS_MAX_LENGTH)

    @field_validator("country")
    @classmethod
    def validate_country(cls, v: str | None) -> str | None:
        return clean_optional_text(v, "Country", COUNTRY_MAX_LENGTH)


class UserUpdate(UserProfileFields):
    """Partial update; only keys present in the request body are applied.

    ``None`` clears an optional column but is rejected for the required ones.
    """

    email: str | None = None
    password: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Valid email is required")
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def check_password_field(cls, v: str | None) -> str:
        if v is None:
            raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        return check_password(v)

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("First name cannot be empty")
        return clean_name(v, "First name", "First name cannot be empty")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Last name cannot be empty")
        return clean_name(v, "Last name", "Last name cannot be empty")

    def changes(self) -> dict:
        """Fields explicitly sent by the client, keyed by model attribute."""
        return self.model_dump(exclude_unset=True)


class UserResponse(CamelModel):
    """Public user record. There is deliberately no password field."""

    id: int
    email: str
    first_name: str
    last_name: str
    address: str | None = None
    country: str | None = None
    gender: Gender | None = None
    birthday: date | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def ensure_timezone_aware(cls, v: datetime) -> datetime:
        """Ensure datetime fields are timezone-aware."""
        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class UserListResponse(BaseModel):
    message: str
    count: int
    users: list[UserResponse]


class UserDetailResponse(BaseModel):
    message: str
    user: UserResponse


class DeletedUser(BaseModel):
    id: int
    email: str


class UserDeleteResponse(CamelModel):
    message: str
    deleted_user: DeletedUser
