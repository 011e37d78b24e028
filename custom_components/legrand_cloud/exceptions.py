"""Exceptions for the Legrand Cloud integration."""

from __future__ import annotations


class LegrandError(Exception):
    """Base exception for Legrand Cloud integration."""


class NetworkError(LegrandError):
    """Connection, DNS, TLS or timeout failure."""


class AuthenticationError(LegrandError):
    """Error during authentication."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthConfigError(AuthenticationError):
    """The login page no longer carries the markers the flow relies on."""


class InvalidCredentialsError(AuthenticationError):
    """The identity provider rejected the email or password."""


class LoginConfirmationError(AuthenticationError):
    """No authorization code could be obtained after login."""


class TokenExchangeError(AuthenticationError):
    """The token endpoint returned an error or an unreadable response."""


class NoCredentialsError(AuthenticationError):
    """No password and no valid manual token are available."""


class RateLimitError(LegrandError):
    """API rate limit exceeded."""


class ApiError(LegrandError):
    """General API communication error."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
