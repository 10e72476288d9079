"""
Error taxonomy for the resource services.

"Not found" is not an exception: services return None / False for it and the
routers translate that into a 404.
"""


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 500
    default_detail = "Operation failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailed(ServiceError, ValueError):
    status_code = 400
    default_detail = "Invalid request"


class InvalidTagError(ValidationFailed):
    default_detail = "Tag names must not be empty"


class InvalidDecisionError(ValidationFailed):
    default_detail = 'Status must be "approved" or "rejected"'


class InvalidVoteError(ValidationFailed):
    default_detail = 'Vote type must be "up" or "down"'


class InvalidTransitionError(ValidationFailed):
    default_detail = "A reviewed resource cannot be returned to pending"


class AuthorizationError(ServiceError):
    status_code = 403
    default_detail = "Moderator privileges required"


class ConflictError(ServiceError):
    status_code = 409
    default_detail = "Conflicts with existing data"


class PersistenceError(ServiceError):
    """The transaction could not complete and was rolled back."""

    status_code = 500
    default_detail = "Operation failed"
