"""JSON-file store — markers survive a process restart."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from lawdesk.storage.interface import KeyValueStore

logger = logging.getLogger(__name__)


class JSONFileKeyValueStore(KeyValueStore):
    """Keeps all keys in one JSON object on disk.

    The file is the only state: reads load it fresh, and writes merge the
    change into what is on disk at that moment, so several stores (or
    processes) sharing one path see each other's keys. Every write goes
    through a temp file + ``os.replace`` so a crash mid-write never leaves
    a truncated file behind.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._write(data)

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable marker file %s", self._path)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _write(self, data: dict[str, str]) -> None:
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
