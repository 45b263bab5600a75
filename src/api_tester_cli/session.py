"""Session store: environment, token pair and expiry bookkeeping.

The store is an explicit object owned by the command that created it and
shared by reference with the HTTP pipeline (read-only) and the auth
controller (writer). Every mutation replaces the whole ``SessionState`` in
one assignment.

Persistence follows a browser session-storage model: the full snapshot is
written to a single key of a ``SessionStorage`` slot after each mutation,
and logout deletes that key. Storage failures are logged and swallowed.
"""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable
from urllib.parse import urlparse

from .errors import ConfigurationError, StorageError
from .storage import SessionStorage

logger = logging.getLogger(__name__)

SESSION_KEY = "leankeep_api_tester_session"

DEFAULT_AUTH_HOST = "https://auth.lkp.app.br"
DEFAULT_API_HOST = "https://api.lkp.app.br"

# Persisted JSON field name -> SessionState attribute
PERSISTED_FIELDS = {
    "authHost": "auth_host",
    "apiHost": "api_host",
    "empresaId": "empresa_id",
    "unidadeId": "unidade_id",
    "siteId": "site_id",
    "xTransactionId": "x_transaction_id",
    "token": "token",
    "refreshToken": "refresh_token",
    "expiresIn": "expires_in",
    "refreshExpiresIn": "refresh_expires_in",
    "tokenSetAt": "token_set_at",
    "redactMode": "redact_mode",
}

ENV_FIELDS = (
    "auth_host",
    "api_host",
    "empresa_id",
    "unidade_id",
    "site_id",
    "x_transaction_id",
)

AUTH_FIELDS = (
    "token",
    "refresh_token",
    "expires_in",
    "refresh_expires_in",
    "token_set_at",
)

HOST_FIELDS = ("auth_host", "api_host")

NUMERIC_FIELDS = ("expires_in", "refresh_expires_in", "token_set_at")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class TokenPair:
    """Credentials issued by the identity surface.

    Durations are seconds relative to the moment the pair is stored.
    """

    token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    refresh_expires_in: int | None = None


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the console session."""

    # Environment
    auth_host: str = DEFAULT_AUTH_HOST
    api_host: str = DEFAULT_API_HOST
    empresa_id: str = ""
    unidade_id: str = ""
    site_id: str = ""
    x_transaction_id: str = ""

    # Auth
    token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    refresh_expires_in: int | None = None
    token_set_at: int | None = None

    # Settings
    redact_mode: bool = True

    def to_storage_dict(self) -> dict[str, Any]:
        """Persisted snapshot keyed by the storage field names."""
        values = asdict(self)
        return {name: values[attr] for name, attr in PERSISTED_FIELDS.items()}

    @classmethod
    def from_storage_dict(cls, data: dict[str, Any], base: SessionState | None = None) -> SessionState:
        """Merge a persisted snapshot over ``base``; unknown keys are ignored.

        Raises:
            ValueError: A known field holds a value of the wrong type
        """
        known = {f.name for f in fields(cls)}
        updates: dict[str, Any] = {}
        for name, attr in PERSISTED_FIELDS.items():
            if name not in data or attr not in known:
                continue
            value = data[name]
            if not _valid_field_value(attr, value):
                raise ValueError(f"persisted field {name} has the wrong type ({type(value).__name__})")
            updates[attr] = value
        return replace(base or cls(), **updates)


def _valid_field_value(attr: str, value: Any) -> bool:
    if attr == "redact_mode":
        return isinstance(value, bool)
    if attr in NUMERIC_FIELDS:
        if value is None:
            return True
        return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
    if attr in ("token", "refresh_token"):
        return value is None or isinstance(value, str)
    # Hosts and context ids
    return isinstance(value, str)


class SessionStore:
    """Holds the single authoritative ``SessionState``."""

    def __init__(
        self,
        storage: SessionStorage,
        defaults: SessionState | None = None,
        clock: Callable[[], int] = now_ms,
        storage_key: str = SESSION_KEY,
    ):
        """Initialize the store.

        Args:
            storage: Slot the snapshot is persisted to
            defaults: State used on first load and after storage failures
            clock: Returns the current time in epoch milliseconds
            storage_key: Namespace key inside the slot
        """
        self._storage = storage
        self._defaults = defaults or SessionState()
        self._clock = clock
        self._storage_key = storage_key
        self._state = self._defaults

    @property
    def state(self) -> SessionState:
        """Current state snapshot."""
        return self._state

    @property
    def storage_key(self) -> str:
        return self._storage_key

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def set_env_vars(self, **values: Any) -> None:
        """Merge environment fields; unspecified fields keep their values.

        Raises:
            ConfigurationError: Unknown field or a host that is not an absolute URL
        """
        unknown = sorted(set(values) - set(ENV_FIELDS))
        if unknown:
            raise ConfigurationError(message=f"Unknown environment field(s): {', '.join(unknown)}")
        for host_field in HOST_FIELDS:
            host = values.get(host_field)
            if host is not None and not is_absolute_url(host):
                raise ConfigurationError(message=f"Invalid URL for {host_field}: {host}")

        updates: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                # Hosts are required; a None host means "leave as is"
                if key in HOST_FIELDS:
                    continue
                value = ""
            updates[key] = value
        self._state = replace(self._state, **updates)
        self.persist_to_storage()

    def set_token(self, pair: TokenPair) -> None:
        """Store a freshly issued token pair and stamp ``token_set_at``.

        Expiry values must already be relative durations in seconds.
        """
        self._state = replace(
            self._state,
            token=pair.token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
            refresh_expires_in=pair.refresh_expires_in,
            token_set_at=self._clock(),
        )
        self.persist_to_storage()

    def logout(self) -> None:
        """Clear every auth field and delete the persisted record.

        Idempotent: clearing an already-cleared session only re-issues the
        storage delete.
        """
        self._state = replace(self._state, **{name: None for name in AUTH_FIELDS})
        self.clear_storage()

    def toggle_redact(self) -> bool:
        """Flip ``redact_mode`` without persisting.

        Returns:
            The new redact mode
        """
        self._state = replace(self._state, redact_mode=not self._state.redact_mode)
        return self._state.redact_mode

    # -------------------------------------------------------------------------
    # Expiry
    # -------------------------------------------------------------------------

    def expires_at(self) -> int | None:
        """Absolute expiry in epoch milliseconds, if computable."""
        state = self._state
        if not state.token_set_at or not state.expires_in:
            return None
        return state.token_set_at + state.expires_in * 1000

    def is_token_expired(self) -> bool:
        """True unless a token, its issuance time and a lifetime are all present
        and the lifetime has not elapsed. The boundary instant counts as expired.
        """
        state = self._state
        if not state.token or not state.token_set_at or not state.expires_in:
            return True
        return self._clock() >= state.token_set_at + state.expires_in * 1000

    def seconds_remaining(self) -> int:
        """Whole seconds until expiry (0 when expired or unknown)."""
        expires_at = self.expires_at()
        if expires_at is None or not self._state.token:
            return 0
        return max(0, (expires_at - self._clock()) // 1000)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def restore_from_storage(self) -> bool:
        """Load the persisted snapshot over the defaults.

        Returns:
            True if a snapshot was found and applied
        """
        try:
            raw = self._storage.get_item(self._storage_key)
            if raw is None:
                return False
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("persisted session is not a JSON object")
            self._state = SessionState.from_storage_dict(data, base=self._defaults)
            return True
        except (StorageError, ValueError, TypeError) as e:
            logger.error(f"Failed to load session from storage: {e}")
            self._state = self._defaults
            return False

    def persist_to_storage(self) -> None:
        """Write the full snapshot (read-modify-write, never incremental)."""
        try:
            payload = json.dumps(self._state.to_storage_dict())
            self._storage.set_item(self._storage_key, payload)
        except (StorageError, TypeError, ValueError) as e:
            logger.error(f"Failed to save session to storage: {e}")

    def clear_storage(self) -> None:
        """Delete the persisted snapshot."""
        try:
            self._storage.remove_item(self._storage_key)
        except StorageError as e:
            logger.error(f"Failed to clear session storage: {e}")
