"""
Error taxonomy for authorization checks.

Callers see three outcomes from the guard: success, forbidden, or an
internal permission-check error. Identity-missing is reported separately
so the transport can answer 401 instead of 403. Messages are generic and
never contain rule contents.
"""

ERROR_MESSAGES = {
    "USER_NOT_IN_CONTEXT": "Authenticated user not found in request context.",
    "FORBIDDEN": "You do not have permission to perform this action.",
    "PERMISSION_CHECK_ERROR": "Error while checking permissions.",
    "PERMISSION_NOT_FOUND": "Permission not found.",
    "DATABASE_ERROR": "Database error.",
}


class AccessControlError(Exception):
    """Base class for access control failures."""

    status_code = 500
    default_message = ERROR_MESSAGES["PERMISSION_CHECK_ERROR"]

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class IdentityMissingError(AccessControlError):
    """No principal could be resolved from the request context."""

    status_code = 401
    default_message = ERROR_MESSAGES["USER_NOT_IN_CONTEXT"]


class ForbiddenError(AccessControlError):
    """Principal resolved, but a required rule is not satisfied."""

    status_code = 403
    default_message = ERROR_MESSAGES["FORBIDDEN"]


class PermissionCheckError(AccessControlError):
    """The system could not decide (ability build or evaluation failed)."""

    status_code = 500
    default_message = ERROR_MESSAGES["PERMISSION_CHECK_ERROR"]


class DataAccessError(AccessControlError):
    """Permission storage failed."""

    status_code = 500
    default_message = ERROR_MESSAGES["DATABASE_ERROR"]


class PermissionNotFoundError(AccessControlError):
    status_code = 404
    default_message = ERROR_MESSAGES["PERMISSION_NOT_FOUND"]
