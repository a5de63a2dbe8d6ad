"""Utility functions and helpers."""

from .exceptions import (
    raise_bad_request,
    raise_forbidden,
    raise_internal_error,
    raise_not_found,
    raise_unauthorized,
)

__all__ = [
    "raise_bad_request",
    "raise_forbidden",
    "raise_internal_error",
    "raise_not_found",
    "raise_unauthorized",
]
