"""
Service Errors

Typed failures raised by the core package. Each error carries a short machine
`code` and a `user_message` that is safe to show in the UI, kept apart from the
technical message used in logs.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for all student services errors."""
    code = "service_error"
    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.default_user_message)
        self.user_message = user_message or self.default_user_message


class AuthenticationRequired(ServiceError):
    """A mutating operation was attempted without a signed-in user."""
    code = "auth_required"
    default_user_message = "You must sign in first."


class PermissionDenied(ServiceError):
    code = "forbidden"
    default_user_message = "You do not have access to this action."


class NotFound(ServiceError):
    """A required document does not exist."""
    code = "not_found"
    default_user_message = "The requested item could not be found."


class InvalidTransition(ServiceError):
    """A change would break the consultation state machine or its invariants."""
    code = "invalid_transition"
    default_user_message = "This consultation cannot be changed that way."


class ValidationError(ServiceError):
    code = "validation_error"
    default_user_message = "Some of the submitted values are invalid."


class StoreFailure(ServiceError):
    """Any failure reported by the underlying document store."""
    code = "store_failure"
    default_user_message = "We could not reach the server. Please try again."

    def __init__(self, message: str = "", user_message: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, user_message)
        self.cause = cause


class ConfigurationError(ServiceError):
    code = "configuration_error"
    default_user_message = "The service is not configured correctly."
