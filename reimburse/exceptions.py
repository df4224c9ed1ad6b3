"""
Typed errors raised by the service layer.

Every error has a machine-readable ``code`` and the HTTP status the API
returns for it. The blueprints never build error responses themselves; the
handler registered in ``create_app`` turns these into JSON.
"""


class ReimburseError(Exception):
    code = 'SERVER_ERROR'
    status_code = 500

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'message': self.message, 'error': self.code}
        payload.update(self.details)
        return payload


class NotFoundError(ReimburseError):
    code = 'NOT_FOUND'
    status_code = 404


class ForbiddenError(ReimburseError):
    """Actor's role does not authorize the action (carries the denied level)."""
    code = 'FORBIDDEN'
    status_code = 403


class ValidationError(ReimburseError):
    code = 'VALIDATION_ERROR'
    status_code = 400


class InvalidStateError(ReimburseError):
    code = 'INVALID_STATE'
    status_code = 400


class ConflictError(ReimburseError):
    """Concurrent modification or stale level/version supplied by the caller."""
    code = 'CONFLICT'
    status_code = 409
