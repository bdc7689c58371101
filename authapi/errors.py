"""
Error taxonomy for the authentication API.

Every error a client may see derives from ServiceError and carries the HTTP
status and the message that is safe to return. ConfigurationError is kept
apart: it is raised while the process boots and is never turned into a
response.
"""
import math
from typing import Optional


class ConfigurationError(Exception):
    """Required configuration is missing or invalid. Fatal at startup."""


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Client input is malformed or violates a policy rule."""
    status_code = 400
    default_message = "Invalid request"


class MissingFieldsError(ValidationError):
    default_message = "Username and password are required"


class AuthenticationError(ServiceError):
    """Bad credentials. Never says which factor failed."""
    status_code = 401
    default_message = "Authentication failed"


class InvalidCredentialsError(AuthenticationError):
    default_message = "Invalid username or password"


class ConflictError(ServiceError):
    status_code = 409
    default_message = "Conflict"


class UsernameTakenError(ConflictError):
    default_message = "Username already exists"


class RateLimitError(ServiceError):
    """
    A rate limit policy rejected the request.

    Attributes:
        policy: Name of the policy that tripped
        retry_after: Seconds until the current window closes
    """
    status_code = 429
    default_message = "Too many requests, please try again later"

    def __init__(self, policy: str, retry_after: float, message: Optional[str] = None):
        super().__init__(message)
        self.policy = policy
        self.retry_after = retry_after

    @property
    def retry_after_minutes(self) -> int:
        """Remaining window in whole minutes, rounded up (never below one)."""
        return max(1, math.ceil(self.retry_after / 60))
