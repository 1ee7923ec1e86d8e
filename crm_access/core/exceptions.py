"""Exception classes for the CRM access boundary."""

from fastapi import status


class CRMAccessError(Exception):
    """Base exception for the access boundary.

    Each subclass carries the HTTP status the route layer translates it to.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "An error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(CRMAccessError):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication failed"


class Unauthenticated(AuthenticationError):
    """Missing, invalid or expired session token."""
    default_message = "Not authenticated"


class InvalidCredentials(AuthenticationError):
    """Unknown identifier or wrong password (deliberately indistinguishable)."""
    default_message = "Invalid credentials"


class AccountInactive(AuthenticationError):
    """Identifier matched an account whose status is not active."""
    default_message = "Account is inactive"


class AuthorizationError(CRMAccessError):
    """Raised when user lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class Forbidden(AuthorizationError):
    """Role, capability, department or branch mismatch."""
    pass


class InvalidOrExpiredToken(CRMAccessError):
    """Password reset token is unknown, consumed or expired."""
    default_message = "Invalid or expired reset link. Please request a new one."


class MailUnavailable(CRMAccessError):
    """Mail dispatcher is not configured or could not deliver."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = (
        "Email service is not configured. Contact your administrator to set up SMTP."
    )


class ResourceNotFoundError(CRMAccessError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ResourceConflictError(CRMAccessError):
    """Raised when a resource already exists or is still referenced."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource conflict"


class ValidationError(CRMAccessError):
    """Raised when input validation fails."""
    pass
