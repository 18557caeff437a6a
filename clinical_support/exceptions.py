"""
Error kinds raised by the clinical decision support services.

The API layer maps each kind to an HTTP status; services never build HTTP
responses themselves.
"""


class ClinicalSupportError(Exception):
    """Base class for all service-level failures"""
    status_code = 500
    default_message = "Clinical support error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ForbiddenError(ClinicalSupportError):
    """Caller's role is not permitted for the operation"""
    status_code = 403
    default_message = "Access denied"


class NotFoundError(ClinicalSupportError):
    """Alert, patient or medication could not be resolved"""
    status_code = 404
    default_message = "Resource not found"


class InvalidInputError(ClinicalSupportError):
    """Request data rejected before anything was persisted"""
    status_code = 400
    default_message = "Invalid input"


class ConflictError(ClinicalSupportError):
    """Concurrent write lost against the active NEWS2 alert constraint"""
    status_code = 409
    default_message = "Conflicting update"
