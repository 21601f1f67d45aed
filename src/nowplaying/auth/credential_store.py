"""Persistent credential store for the signed-in session.

The session is a single record of four string slots -- PKCE verifier, access
token, refresh token and absolute expiry (epoch milliseconds) -- kept in a
:class:`KeyValueStorage`. Business logic only ever talks to
:class:`CredentialStore`; the storage behind it is injected, so tests use
:class:`MemoryStorage` and the CLI uses :class:`JsonFileStorage`.

:class:`JsonFileStorage` keeps every key in one JSON object on disk
(typically ``~/.local/share/nowplaying/credentials.json``). Files are written
atomically via :func:`~nowplaying.config.atomic_write` with ``0o600``
permissions so that tokens are never world-readable, even momentarily.

See Also:
    :class:`~nowplaying.auth.flow.AuthFlowController` -- the only writer.
"""

from __future__ import annotations

import enum
import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from nowplaying.config import atomic_write

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def wall_clock_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


class CredentialField(str, enum.Enum):
    """The four slots of the credential record and their storage keys."""

    VERIFIER = "np_pkce_verifier"
    ACCESS = "np_access_token"
    REFRESH = "np_refresh_token"
    EXPIRES_AT = "np_expires_at"


# ------------------------------------------------------------------ #
# Storage backends
# ------------------------------------------------------------------ #


class KeyValueStorage(ABC):
    """Durable string-keyed storage.

    Implementations must be read-after-write consistent within a process.
    :meth:`remove` takes several keys so that clearing a session is a single
    operation from the caller's point of view.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, *keys: str) -> None:
        """Delete *keys*; missing keys are ignored."""
        ...


class MemoryStorage(KeyValueStorage):
    """In-process storage backed by a dict. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of everything stored."""
        return dict(self._data)


class JsonFileStorage(KeyValueStorage):
    """Storage kept in a single ``0o600`` JSON file.

    Every mutation rewrites the whole file atomically. A missing or corrupt
    file reads as empty.

    Args:
        path: The JSON file to use. Parent directories are created on write.

    Example::

        storage = JsonFileStorage(get_credentials_path())
        storage.set("np_access_token", "tok123")
        assert JsonFileStorage(storage.path).get("np_access_token") == "tok123"
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """The filesystem path of the backing file."""
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError):
            logger.warning("Ignoring unreadable credential file %s", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, *keys: str) -> None:
        data = self._read()
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._write(data)


# ------------------------------------------------------------------ #
# Credential store
# ------------------------------------------------------------------ #


class CredentialStore:
    """Read/write the session credential record.

    Args:
        storage: Where the four slots live.
        clock: Returns the current time in epoch milliseconds. Defaults to
            the wall clock; tests pass a fixed clock.

    Example::

        store = CredentialStore(MemoryStorage())
        store.set_access("AT1", 3600)
        assert store.is_logged_in()
    """

    def __init__(self, storage: KeyValueStorage, clock: Optional[Clock] = None) -> None:
        self._storage = storage
        self._clock = clock or wall_clock_ms

    def now(self) -> float:
        """The store's notion of the current time, in epoch milliseconds."""
        return self._clock()

    def is_logged_in(self) -> bool:
        return bool(self._storage.get(CredentialField.ACCESS.value))

    def get(self, field: CredentialField) -> Optional[str]:
        return self._storage.get(CredentialField(field).value)

    @property
    def access_token(self) -> Optional[str]:
        return self.get(CredentialField.ACCESS)

    @property
    def refresh_token(self) -> Optional[str]:
        return self.get(CredentialField.REFRESH)

    def expires_at(self) -> int:
        """Absolute expiry in epoch ms, or ``0`` when unknown."""
        raw = self.get(CredentialField.EXPIRES_AT)
        if not raw:
            return 0
        try:
            return int(float(raw))
        except ValueError:
            return 0

    def set_access(self, token: str, expires_in_seconds: float) -> None:
        """Store an access token and its expiry (now + lifetime)."""
        expires_at = int(self._clock() + float(expires_in_seconds) * 1000)
        self._storage.set(CredentialField.ACCESS.value, token)
        self._storage.set(CredentialField.EXPIRES_AT.value, str(expires_at))

    def set_refresh(self, token: str) -> None:
        self._storage.set(CredentialField.REFRESH.value, token)

    def set_verifier(self, verifier: str) -> None:
        self._storage.set(CredentialField.VERIFIER.value, verifier)

    def get_verifier(self) -> Optional[str]:
        return self.get(CredentialField.VERIFIER)

    def clear_verifier(self) -> None:
        self._storage.remove(CredentialField.VERIFIER.value)

    def clear_all(self) -> None:
        """Remove every slot. A no-op when nothing is stored."""
        self._storage.remove(*(f.value for f in CredentialField))
