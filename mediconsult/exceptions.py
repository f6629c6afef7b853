"""
Error taxonomy for the consultation workflow.

Every error carries the HTTP status it maps to so the application factory can
render it with the usual ``{"success": False, "error": ...}`` envelope.
"""
from typing import Optional


class ConsultationError(Exception):
    """Base class for all errors surfaced to the doctor."""

    status_code = 500
    code = 'consultation_error'

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {
            'success': False,
            'error': self.message,
            'code': self.code,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class AuthRequired(ConsultationError):
    status_code = 401
    code = 'auth_required'

    def __init__(self, message: str = 'Authentication required', details: Optional[dict] = None):
        super().__init__(message, details)


class AuthError(ConsultationError):
    """Bad credentials or a deactivated account."""
    status_code = 401
    code = 'auth_error'


class Forbidden(ConsultationError):
    status_code = 403
    code = 'forbidden'

    def __init__(self, message: str = 'forbidden — doctor role required', details: Optional[dict] = None):
        super().__init__(message, details)


class ValidationFailed(ConsultationError):
    status_code = 400
    code = 'validation_failed'


class InvalidTransition(ValidationFailed):
    """Operation not legal in the workflow's current state."""
    status_code = 409
    code = 'invalid_transition'


class NotFound(ConsultationError):
    status_code = 404
    code = 'not_found'


class ExtractionFailed(ConsultationError):
    status_code = 502
    code = 'extraction_failed'


class PersistenceFailed(ConsultationError):
    """A store write failed; ``step`` is one of patient, appointment, medications."""
    status_code = 500
    code = 'persistence_failed'

    def __init__(self, message: str, step: str, details: Optional[dict] = None):
        details = dict(details or {})
        details.setdefault('step', step)
        super().__init__(message, details)
        self.step = step
