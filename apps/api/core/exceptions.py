"""
Custom exception classes and error handling.

Provides consistent error responses across the API. Every error a form can
trigger maps to one of these, and main.py renders them as
{"error": ..., "error_code": ...}.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class UnauthorizedError(APIException):
    """No resolvable principal."""

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(APIException):
    """Principal lacks the role or participation a write requires."""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN",
        )


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )
        self.field = field


class ConflictError(APIException):
    """A write collided with a uniqueness constraint."""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code,
        )


class DuplicateResultError(ConflictError):
    """A result already exists for this (event occurrence, athlete) pair."""

    MESSAGE = (
        "This athlete already has a result recorded for this event. "
        "If you need to change it, delete the existing result and then "
        "re-enter the updated mark."
    )

    def __init__(self):
        super().__init__(detail=self.MESSAGE, error_code="DUPLICATE_RESULT")


class UpstreamError(APIException):
    """Identity provider, store or model service failed.

    The upstream message is logged by the caller, never returned.
    """

    def __init__(self, detail: str = "The request could not be completed. Please try again."):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code="UPSTREAM_FAILURE",
        )
