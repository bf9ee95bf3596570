"""Errors raised by the assignment service client."""

from typing import Optional


class AssignmentServiceError(Exception):
    """Base class for failures reported by the assignment service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AssignmentNotFoundError(AssignmentServiceError):
    """The course or lesson does not exist."""


class AssignmentAccessError(AssignmentServiceError):
    """The service refused the request (401, 403 or 422)."""


class InvalidTokenError(AssignmentServiceError):
    """The token is unknown to the service."""
