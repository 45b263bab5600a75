"""Auth lifecycle: login, refresh, logout and expiry polling.

State machine over ``unauthenticated`` / ``authenticated``:

- login succeeds -> authenticated (token pair stored via ``set_token``)
- refresh succeeds -> authenticated (new pair)
- logout or detected expiry -> unauthenticated (same clearing action)

Login and refresh hold a busy flag for the whole request, error handling
included, so overlapping calls are rejected instead of racing two
``set_token`` writes. Failures never touch the stored auth fields.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from .client import ApiClient
from .errors import ApiError, AuthError, BusyError, as_auth_error
from .pipeline import Surface
from .session import SessionStore, TokenPair, now_ms

logger = logging.getLogger(__name__)

LOGIN_PATH = "/v1/auth"
REFRESH_PATH = "/v1/refresh"

DEFAULT_PLATFORM = 8
DEFAULT_EXPIRY_CHECK_INTERVAL = 60.0

# User-facing notices
LOGIN_SUCCESS = "Authentication successful"
LOGIN_FAILED = "Authentication failed"
REFRESH_SUCCESS = "Token refreshed"
REFRESH_FAILED = "Token refresh failed"
REFRESH_UNAVAILABLE = "Refresh token not available"
REFRESH_SUPERSEDED = "Session changed during refresh; refreshed token discarded"
LOGOUT_NOTICE = "Session cleared"
EXPIRED_NOTICE = "Token expired. Please log in again."

# Keys an identity response may use for an absolute expiry instead of a duration
ABSOLUTE_EXPIRY_KEYS = ("expiresAt", "expiration", "expires", "expiresOn")


class AuthState(Enum):
    """Authentication states."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass
class LoginCredentials:
    """Input of the login form."""

    login: str
    password: str
    platform: int = DEFAULT_PLATFORM
    authtoken: bool = True
    stay_connected: bool = True
    expire_current_session: bool = False

    def to_form(self) -> dict[str, Any]:
        return {
            "login": self.login,
            "password": self.password,
            "platform": self.platform,
            "authtoken": self.authtoken,
            "stayConnected": self.stay_connected,
            "expireCurrentSession": self.expire_current_session,
        }


# =============================================================================
# Response normalization
# =============================================================================


def _parse_absolute(value: Any) -> int | None:
    """Absolute timestamp (ISO-8601 or epoch s/ms) to epoch milliseconds."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Heuristic: epoch seconds are < 1e12 until the year 33658
        return int(value if value >= 1e12 else value * 1000)
    if isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return int(moment.timestamp() * 1000)
    return None


def _as_duration(value: Any) -> int | None:
    """Relative duration in seconds, or None if value is not a plain number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


def _seconds_until(epoch_ms: int, now: int) -> int:
    return max(0, (epoch_ms - now) // 1000)


def _resolve_expiry(duration: Any, token_obj: Any, now: int) -> int | None:
    seconds = _as_duration(duration)
    if seconds is not None:
        return seconds
    # A non-numeric "duration" is an absolute timestamp in disguise
    absolute = _parse_absolute(duration)
    if absolute is not None:
        return _seconds_until(absolute, now)
    if isinstance(token_obj, dict):
        for key in ABSOLUTE_EXPIRY_KEYS:
            absolute = _parse_absolute(token_obj.get(key))
            if absolute is not None:
                return _seconds_until(absolute, now)
    return None


def _token_value(obj: Any) -> str | None:
    if isinstance(obj, dict):
        value = obj.get("token")
        return value if isinstance(value, str) and value else None
    if isinstance(obj, str) and obj:
        return obj
    return None


def normalize_token_response(data: Any, now: int | None = None) -> TokenPair:
    """Turn an identity response into a ``TokenPair`` with relative expiries.

    Accepts ``{"authToken": {"token": ...}, "refreshToken": {"token": ...},
    "expiresIn": 3600, "refreshExpiresIn": 7200}`` as well as flat token
    strings. Absolute expiry timestamps are converted to seconds from ``now``.

    Raises:
        AuthError: The response carries no token
    """
    if not isinstance(data, dict):
        raise AuthError(message="Unexpected identity response", response_data=data)
    now = now_ms() if now is None else now

    auth_obj = data.get("authToken", data.get("token"))
    refresh_obj = data.get("refreshToken")

    token = _token_value(auth_obj)
    if not token:
        raise AuthError(message="Identity response did not include a token", response_data=data)

    return TokenPair(
        token=token,
        refresh_token=_token_value(refresh_obj),
        expires_in=_resolve_expiry(data.get("expiresIn"), auth_obj, now),
        refresh_expires_in=_resolve_expiry(data.get("refreshExpiresIn"), refresh_obj, now),
    )


# =============================================================================
# Controller
# =============================================================================


def expire_if_needed(store: SessionStore) -> bool:
    """Clear the session if it holds auth data that is no longer usable.

    An empty session is left alone so its environment snapshot survives.

    Returns:
        True if the session was cleared
    """
    state = store.state
    holds_auth = any((state.token, state.refresh_token, state.token_set_at, state.expires_in))
    if holds_auth and store.is_token_expired():
        logger.info("Token expired, clearing session")
        store.logout()
        return True
    return False


class AuthController:
    """Orchestrates the auth transitions against a session store."""

    def __init__(
        self,
        store: SessionStore,
        client: ApiClient,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.client = client
        self._clock = clock
        self._busy = False

    @property
    def busy(self) -> bool:
        """Whether a login or refresh is in flight."""
        return self._busy

    @property
    def state(self) -> AuthState:
        if self.store.state.token:
            return AuthState.AUTHENTICATED
        return AuthState.UNAUTHENTICATED

    def _acquire(self) -> None:
        if self._busy:
            raise BusyError()
        self._busy = True

    async def login(self, credentials: LoginCredentials) -> TokenPair:
        """Authenticate and store the issued token pair.

        Raises:
            BusyError: Another login/refresh is in flight
            AuthError: Network, HTTP or response-shape failure
        """
        self._acquire()
        try:
            try:
                response = await self.client.post_form_urlencoded(LOGIN_PATH, credentials.to_form())
            except ApiError as e:
                logger.warning(f"Login failed: {e.message}")
                raise as_auth_error(e, LOGIN_FAILED) from e
            pair = normalize_token_response(response.data, now=self._clock())
            self.store.set_token(pair)
            logger.info("Login succeeded")
            return pair
        finally:
            self._busy = False

    async def refresh(self) -> TokenPair:
        """Exchange the stored refresh token for a new pair.

        The new pair is applied only if the store still holds the token the
        refresh started from; a logout or login in the meantime wins.

        Raises:
            AuthError: No refresh token, failure, or superseded session
            BusyError: Another login/refresh is in flight
        """
        refresh_token = self.store.state.refresh_token
        if not refresh_token:
            raise AuthError(message=REFRESH_UNAVAILABLE)

        self._acquire()
        try:
            started_from = self.store.state.token
            try:
                response = await self.client.post_json(
                    REFRESH_PATH, {"refreshToken": refresh_token}, surface=Surface.AUTH
                )
            except ApiError as e:
                logger.warning(f"Refresh failed: {e.message}")
                raise as_auth_error(e, REFRESH_FAILED) from e
            pair = normalize_token_response(response.data, now=self._clock())
            if self.store.state.token != started_from:
                logger.warning("Discarding refresh response for a superseded session")
                raise AuthError(message=REFRESH_SUPERSEDED)
            self.store.set_token(pair)
            logger.info("Token refreshed")
            return pair
        finally:
            self._busy = False

    def logout(self) -> None:
        """Clear the session (idempotent)."""
        self.store.logout()

    def check_expiry(self) -> bool:
        """Same clearing action as logout, taken when the token has expired."""
        return expire_if_needed(self.store)


class ExpiryWatcher:
    """Cancellable periodic expiry check tied to a console session."""

    def __init__(
        self,
        controller: AuthController,
        interval: float = DEFAULT_EXPIRY_CHECK_INTERVAL,
        on_expired: Callable[[], None] | None = None,
    ):
        """Initialize ExpiryWatcher.

        Args:
            controller: Controller whose session is checked
            interval: Seconds between checks
            on_expired: Called after an expiry cleared the session
        """
        self.controller = controller
        self.interval = interval
        self.on_expired = on_expired
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def __aenter__(self) -> "ExpiryWatcher":
        self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.controller.check_expiry() and self.on_expired:
                self.on_expired()
