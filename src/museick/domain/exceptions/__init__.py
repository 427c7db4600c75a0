"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message is kept as an attribute so code can inspect it without
    # parsing str(exception).
    # This is your base class - DON'T raise it directly! Always use a specific subclass so callers
    # (mostly the ShortlistWorkflow error boundary) can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    Example:
        raise ValidationError("Invalid period key: 2024-13")
    """

    pass


class InvalidArgumentError(ValidationError):
    """Caller-side contract violation, raised BEFORE any network call.

    Example:
        raise InvalidArgumentError("update requires 'role' or 'notes'")
    """

    pass


class ConfigurationError(DomainException):
    """Client misconfiguration.

    Example:
        raise ConfigurationError("SPOTIFY_CLIENT_ID is not configured")
    """

    pass


class AuthenticationError(DomainException):
    """Base for both token failures (session and catalog)."""

    pass


class AuthMissingError(AuthenticationError):
    """No session token obtainable - fatal to the call, never retried.

    The session token belongs to the external identity provider, so there is
    nothing this layer can do except fail fast.
    """

    def __init__(
        self, message: str = "Authentication token is missing. Cannot call backend API."
    ) -> None:
        super().__init__(message)


class AuthInvalidError(AuthenticationError):
    """Token rejected after at most one refresh attempt.

    Hey future me - when this escapes the API client the credential store is
    already cleared and AUTH_EXPIRED was broadcast. The UI should show a
    "reconnect Spotify" affordance, NOT a generic error.
    """

    def __init__(
        self,
        message: str = "Authorization rejected. Please reconnect your Spotify account.",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExternalServiceError(DomainException):
    """Backend or catalog service call failed."""

    pass


class RequestFailedError(ExternalServiceError):
    """Non-2xx, non-auth HTTP status.

    Carries the status code plus the best message we could dig out of the body
    (backend: {"error": "..."}, Spotify: {"error": {"message": "..."}}).
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.message} (status {self.status_code})"


class NetworkError(ExternalServiceError):
    """Transport failure - no response received (DNS, refused, timeout)."""

    pass


__all__ = [
    "AuthInvalidError",
    "AuthMissingError",
    "AuthenticationError",
    "ConfigurationError",
    "DomainException",
    "ExternalServiceError",
    "InvalidArgumentError",
    "NetworkError",
    "RequestFailedError",
    "ValidationError",
]
