"""Typed error hierarchy for the core.

The Flask error handler maps these to HTTP status codes; the worker treats
them as ordinary item failures.
"""

from __future__ import annotations


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal server error", status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str = "Validation failed") -> None:
        super().__init__(message)


class ConflictError(AppError):
    status_code = 409

    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(message)


class InternalError(AppError):
    status_code = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


__all__ = [
    "AppError",
    "ConflictError",
    "ForbiddenError",
    "InternalError",
    "NotFoundError",
    "ValidationError",
]
