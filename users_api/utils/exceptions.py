"""Common exception utilities for FastAPI routers.

Each helper raises an ``HTTPException`` whose ``detail`` becomes the
``error`` field of the JSON body (see ``users_api.main``). A dict detail is
sent as the body unchanged.
"""

from typing import Any, NoReturn

from fastapi import HTTPException, status

ErrorDetail = str | dict[str, Any]


def raise_bad_request(detail: ErrorDetail, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    ) from cause


def raise_unauthorized(detail: ErrorDetail, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    ) from cause


def raise_forbidden(detail: ErrorDetail, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=detail,
    ) from cause


def raise_not_found(resource_name: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{resource_name} not found",
    ) from cause


def raise_internal_error(detail: ErrorDetail, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail,
    ) from cause
