"""
Domain exceptions for the data-access layer.

Only failures the repository itself detects are modelled here.  Errors
raised by SQLAlchemy (connectivity, constraint violations, ...) propagate
to the caller unchanged so each caller can decide how to translate them.
"""

from typing import Any


class AppException(Exception):
    """Base exception for all library-level errors."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """No row matched the requested primary key (404)."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )
