"""
Domain error taxonomy.

Every error carries the HTTP status it maps to so route handlers can stay
thin: the exception handlers in app.main turn these into
``{"message": ..., "error": ...}`` bodies.
"""

from typing import Optional


class AlertoError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(AlertoError):
    """Malformed or missing input."""
    status_code = 400


class AuthenticationError(AlertoError):
    """Missing, invalid or expired credential."""
    status_code = 401


class AuthorizationError(AlertoError):
    """Role or ownership guard failed."""
    status_code = 403


class NotFoundError(AlertoError):
    """Entity does not exist."""
    status_code = 404


class ConflictError(AlertoError):
    """Transition guard failed or the entity changed underneath us."""
    status_code = 400


class UnexpectedError(AlertoError):
    """Collaborator failure."""
    status_code = 500
