"""Application error taxonomy.

``SeedIntegrityError`` covers data-integrity failures in the seed workflow;
it is never caught internally and terminates the run. ``AppError`` and its
subclasses carry an HTTP status and a machine-readable code that the API
exception handler renders as ``ErrorResponse``.
"""
from __future__ import annotations

from typing import Any, Optional


class SeedIntegrityError(RuntimeError):
    """A referenced row is missing or an invariant cannot be restored."""


class AppError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationAppError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class ProfileIncompleteError(ConflictError):
    code = "PROFILE_INCOMPLETE"


class BusinessRuleError(AppError):
    status_code = 422
    code = "BUSINESS_RULE_VIOLATION"
