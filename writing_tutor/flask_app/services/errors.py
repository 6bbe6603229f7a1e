"""Error kinds raised by the writing services and mapped to HTTP responses."""
from __future__ import annotations


class WritingTutorError(Exception):
    """Base exception for all writing-tutor errors."""
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {'error': self.message, 'kind': self.__class__.__name__}


class ValidationError(WritingTutorError):
    """Raised when a required field is empty or a step guard fails."""
    status_code = 400


class AuthorizationError(WritingTutorError):
    """Raised when a user lacks the role an operation needs."""
    status_code = 403


class NotFoundError(WritingTutorError):
    """Raised when a session, paragraph or save code does not resolve."""
    status_code = 404


class ExternalServiceError(WritingTutorError):
    """Raised when a scoring/model call fails or times out."""
    status_code = 502


class MalformedResponseError(ExternalServiceError):
    """Raised when model output fails schema validation."""
