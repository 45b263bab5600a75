"""Session storage slots.

A slot behaves like a browser's session storage: string values under string
keys, scoped to one terminal session. Backends raise ``StorageError``; the
session store is the only caller and never lets those errors escape.
"""

import json
import logging
import os
from pathlib import Path
from typing import Protocol

from .errors import StorageError
from .shared.paths import default_session_id, get_session_file

logger = logging.getLogger(__name__)


class SessionStorage(Protocol):
    """Key/value slot for a single session."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemorySessionStorage:
    """In-process storage slot."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class FileSessionStorage:
    """Storage slot backed by one JSON file per terminal session.

    Stores items in ~/.api-tester/sessions/<session_id>.json with owner-only
    permissions.
    """

    def __init__(self, session_id: str | None = None, path: Path | None = None):
        """Initialize file storage.

        Args:
            session_id: Session identifier (default: current terminal session)
            path: Optional explicit slot file path (overrides session_id)
        """
        self._session_id = session_id or default_session_id()
        self._path = path or get_session_file(self._session_id)

    @property
    def path(self) -> Path:
        """Get the slot file path."""
        return self._path

    @property
    def session_id(self) -> str:
        return self._session_id

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                items = json.load(f)
        except OSError as e:
            raise StorageError(
                message=f"Cannot read session slot {self._path}: {e}",
                data={"path": str(self._path)},
            ) from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StorageError(
                message=f"Session slot {self._path} is not valid JSON: {e}",
                data={"path": str(self._path), "corrupt": True},
            ) from e
        if not isinstance(items, dict):
            raise StorageError(
                message=f"Session slot {self._path} is not a JSON object",
                data={"path": str(self._path), "corrupt": True},
            )
        return items

    def _read_for_update(self) -> dict[str, str] | None:
        """Current items, or None when the slot is corrupt and will be replaced."""
        try:
            return self._read()
        except StorageError as e:
            if not e.data.get("corrupt"):
                raise
            logger.warning(f"Discarding corrupt session slot: {e.message}")
            return None

    def _write(self, items: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            # Owner-only (600) before any data is written, new file or not
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "w") as f:
                json.dump(items, f, indent=2)
        except OSError as e:
            raise StorageError(
                message=f"Cannot write session slot {self._path}: {e}",
                data={"path": str(self._path)},
            ) from e

    def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_for_update() or {}
        items[key] = value
        self._write(items)
        logger.debug(f"Saved {key} to {self._path}")

    def remove_item(self, key: str) -> None:
        items = self._read_for_update()
        if items is not None:
            if key not in items:
                return
            del items[key]
            if items:
                self._write(items)
                return
        try:
            self._path.unlink()
            logger.debug(f"Deleted session slot: {self._path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(
                message=f"Cannot delete session slot {self._path}: {e}",
                data={"path": str(self._path)},
            ) from e
