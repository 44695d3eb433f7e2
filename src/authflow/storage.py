"""Key/value storage for pending flow state.

The engine only needs ``get`` / ``set`` by key: the issued ``state`` and
``nonce`` for a flow live under ``{name}_state`` and ``{name}_nonce`` and
are read back once the provider redirects. The identity token kept by
:class:`~authflow.id_token.TokenAuthentication` uses the same interface.

Two implementations are provided:

- :class:`MemoryStorage` -- a process-local dict, used by tests and by
  callers that complete the flow in a single process.
- :class:`FileStorage` -- one JSON file under the data directory, written
  atomically with ``0o600`` permissions so a flow started by one command
  (``authflow url``) can be completed by another (``authflow redirect``).
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from authflow.config import atomic_write, get_data_dir
from authflow.exceptions import ConfigError

logger = logging.getLogger(__name__)

_DEFAULT_FILENAME = "pending_flows.json"


class Storage(ABC):
    """Synchronous, single-process associative storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under *key*, or ``None``."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*. A missing key is not an error."""
        ...


class MemoryStorage(Storage):
    """In-memory :class:`Storage` backed by a dict."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class FileStorage(Storage):
    """JSON-file :class:`Storage` shared between CLI invocations.

    Every :meth:`set` rewrites the whole file atomically; the file is small
    (two entries per provider) so this stays cheap.

    Args:
        path: File to use. Defaults to ``<data_dir>/pending_flows.json``.

    Example::

        storage = FileStorage()
        storage.set("google_state", "abc")
        assert FileStorage().get("google_state") == "abc"
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path or (get_data_dir() / _DEFAULT_FILENAME)

    @property
    def path(self) -> Path:
        """The JSON file backing this storage."""
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise ConfigError(f"Invalid flow storage at {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid flow storage at {self._path}: expected an object")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)
        logger.debug("Stored '%s' in %s", key, self._path)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
