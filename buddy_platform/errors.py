"""Error taxonomy for platform calls.

Remote failures are classified once into one of three kinds:

- ``NO_INTERNET``  -- the transport never reached the service (status 0).
- ``UNAUTHORIZED`` -- 401/403, subtyped by the server error code.
- ``SERVICE_ERROR`` -- any other failed call.

Malformed caller input is rejected locally with ``ValueError``/``TypeError``
before any request is made and never enters the pipeline.
"""

from __future__ import annotations

from enum import Enum

from .config import INTERNET_CONNECTION_ERROR, UNKNOWN_SERVICE_ERROR


class ErrorKind(str, Enum):
    NO_INTERNET = "no_internet"
    UNAUTHORIZED = "unauthorized"
    SERVICE_ERROR = "service_error"


class AuthErrorCode(str, Enum):
    """Server error codes that drive authorization recovery."""

    APP_CREDENTIALS_INVALID = "AppCredentialsInvalid"
    ACCESS_TOKEN_INVALID = "AccessTokenInvalid"
    USER_ACCESS_TOKEN_REQUIRED = "UserAccessTokenRequired"

    @classmethod
    def parse(cls, error: str | None) -> "AuthErrorCode | None":
        """Map a wire error string (``AuthAccessTokenInvalid`` or bare) to a code."""
        if not error:
            return None
        name = error[len("Auth"):] if error.startswith("Auth") else error
        for code in cls:
            if code.value == name:
                return code
        return None


class BuddyClientError(Exception):
    """Base exception for client-side failures outside the call taxonomy."""


class ServiceException(BuddyClientError):
    """A classified remote failure."""

    kind = ErrorKind.SERVICE_ERROR

    def __init__(
        self,
        error: str,
        message: str | None = None,
        error_number: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message or error)
        self.error = error
        self.message = message
        self.error_number = error_number
        self.status_code = status_code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error={self.error!r}, status_code={self.status_code!r}, "
            f"error_number={self.error_number!r})"
        )


class NoInternetError(ServiceException):
    """Raised when the service could not be reached."""

    kind = ErrorKind.NO_INTERNET


class UnauthorizedError(ServiceException):
    """Raised for 401/403 responses."""

    kind = ErrorKind.UNAUTHORIZED

    @property
    def auth_code(self) -> AuthErrorCode | None:
        return AuthErrorCode.parse(self.error)


def classify(
    *,
    status_code: int,
    error: str | None,
    message: str | None = None,
    error_number: int | None = None,
) -> ServiceException | None:
    """Classify a raw call outcome. Returns None for a successful call."""
    if error is None:
        if status_code == 0:
            error = INTERNET_CONNECTION_ERROR
        elif status_code >= 400:
            error = UNKNOWN_SERVICE_ERROR
        else:
            return None
    if status_code == 0:
        cls = NoInternetError
    elif status_code in (401, 403):
        cls = UnauthorizedError
    else:
        cls = ServiceException
    return cls(error, message, error_number, status_code)
