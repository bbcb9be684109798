"""
Typed, user-facing errors raised by the service layer.

Routes render them as {"error": ..., "code": ...} with the matching status.
"""


class GrowthError(Exception):
    code = 'ERROR'
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class NotFoundError(GrowthError):
    """Entity missing or outside the caller's organization."""
    code = 'NOT_FOUND'
    status_code = 404


class ConflictError(GrowthError):
    """Duplicate active assignment or a request repeated inside its cooldown."""
    code = 'CONFLICT'
    status_code = 409


class BadRequestError(GrowthError):
    """Invalid input or an invalid state transition."""
    code = 'BAD_REQUEST'
    status_code = 400
