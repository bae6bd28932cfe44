"""Application error taxonomy.

Every failure a route can report maps to exactly one of these classes. The
exception handlers in ``ensogrow.main`` render them as
``{"message": ..., "error": ...}`` with the class's status code.
"""
from typing import Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Something went wrong!"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None):
        self.message = message or self.default_message
        self.error = error
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(AppError):
    """Missing or malformed request fields."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class PlantRejected(AppError):
    """The generator explicitly refused the requested plant."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid plant name"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication failed"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have access to this plant"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Plant not found"


class UpstreamAuthError(AppError):
    """The AI provider rejected our credentials.

    401 when the key itself is invalid, 403 when the key is valid but not
    permitted to use the model.
    """

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Authentication failed. Please check the AI provider API key."

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, error)
        if status_code is not None:
            self.status_code = status_code


class UpstreamParseError(AppError):
    """The AI response could not be understood."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Failed to parse AI response. The response format was invalid."


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
