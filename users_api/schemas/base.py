"""Base schema classes shared by request and response models."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase JSON keys for snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class FieldError(BaseModel):
    """A single request validation failure."""

    field: str
    message: str


class ValidationErrorResponse(BaseModel):
    errors: list[FieldError]


class ErrorResponse(BaseModel):
    """Body of every non-validation error response."""

    error: str
    message: str | None = None
