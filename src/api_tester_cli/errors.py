"""Error taxonomy for the API console.

Maps HTTP status codes and transport failures to console errors that carry
a user-facing message. Storage errors never leave the session store; every
other error is caught at the command that triggered it.
"""

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

GENERIC_API_MESSAGE = "Request failed"


@dataclass
class ConsoleError(Exception):
    """Base error class for console errors."""

    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


@dataclass
class ConfigurationError(ConsoleError):
    """A required context id is missing; raised before any network call."""

    message: str = "Missing configuration"
    missing: list[str] = field(default_factory=list)


@dataclass
class StorageError(ConsoleError):
    """Session slot could not be read, written or removed."""

    message: str = "Session storage unavailable"


@dataclass
class BusyError(ConsoleError):
    """A login or refresh is already in flight."""

    message: str = "Another authentication request is in progress"


@dataclass
class ApiError(ConsoleError):
    """HTTP or transport failure talking to either API surface."""

    message: str = GENERIC_API_MESSAGE
    status_code: int | None = None
    response_data: Any = None

    @property
    def has_response(self) -> bool:
        """Whether the server answered at all."""
        return self.status_code is not None

    def server_message(self) -> str | None:
        """Message provided by the server payload, if any."""
        body = self.response_data
        if isinstance(body, dict):
            for key in ("message", "detail", "error"):
                value = body.get(key)
                if isinstance(value, str) and value:
                    return value
        return None

    def user_message(self, fallback: str) -> str:
        """Server-provided message when available, else the fallback."""
        return self.server_message() or fallback


@dataclass
class AuthError(ApiError):
    """Login or refresh failed."""

    message: str = "Authentication failed"


def map_http_error(status_code: int, body: Any, url: str | None = None) -> ApiError:
    """Map HTTP status code to ApiError.

    Args:
        status_code: HTTP status code
        body: Decoded response body (JSON or text)
        url: URL that was being accessed

    Returns:
        ApiError with the status and server payload attached
    """
    if status_code in (401, 403):
        summary = "Not authorized"
    elif status_code == 404:
        summary = "Not found"
    elif status_code in (408, 504):
        summary = "Request timeout"
    elif status_code >= 500:
        summary = "Server error"
    else:
        summary = f"HTTP error {status_code}"

    error = ApiError(
        message=summary,
        status_code=status_code,
        response_data=body,
        data={"http_status": status_code, "url": url} if url else {"http_status": status_code},
    )
    detail = error.server_message()
    if detail:
        error.message = f"{summary}: {detail}"
    return error


def map_transport_error(error_message: str, url: str, is_timeout: bool = False) -> ApiError:
    """Map connection error to ApiError.

    Args:
        error_message: Error message from exception
        url: URL that was being accessed
        is_timeout: Whether this was a timeout error

    Returns:
        ApiError without a status code (no server response)
    """
    if is_timeout:
        return ApiError(
            message=f"Request timeout connecting to {url}",
            data={"url": url, "original_error": error_message},
        )

    parsed = urlparse(url)
    host_port = f"{parsed.hostname}:{parsed.port}" if parsed.port else parsed.hostname
    return ApiError(
        message=f"Cannot reach {host_port}",
        data={"url": url, "original_error": error_message},
    )


def as_auth_error(error: ApiError, fallback: str) -> AuthError:
    """Re-label an ApiError raised during login/refresh."""
    return AuthError(
        message=error.user_message(fallback),
        status_code=error.status_code,
        response_data=error.response_data,
        data=dict(error.data),
    )
