from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """On-device key-value storage holding the auth token and the current user."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete_item(self, key: str) -> None:
        raise NotImplementedError


class JsonFileSessionStore:
    """Session store backed by a single JSON file of string values.

    Note: We re-read the file on every access so a sign-in performed by another
    process is picked up on the next mount.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning("session file is not valid JSON, ignoring", extra={"path": str(self._path)})
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def delete_item(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)
