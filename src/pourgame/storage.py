"""Key-value persistence for the best-score record."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol
import logging

from .utils import RECORDS_FILE, load_json, save_json

logger = logging.getLogger(__name__)

BEST_SCORE_KEY = "bestScore"
BEST_SCORE_TIME_KEY = "bestScoreTime"


class RecordStore(Protocol):
    """Narrow storage contract used by the round engine.

    Implementations must not raise on I/O failure: reads report a missing
    value as None and writes are best effort.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryRecordStore:
    """Process-local store for tests and headless runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = str(value)

    def remove(self, key: str) -> None:
        self.values.pop(key, None)


class JsonRecordStore:
    """Stores values as one flat JSON object on disk."""

    def __init__(self, path: Path = RECORDS_FILE) -> None:
        self.path = path

    def _read(self) -> dict[str, str]:
        payload = load_json(self.path, {})
        if not isinstance(payload, dict):
            logger.warning("Ignoring malformed record file %s", self.path)
            return {}
        return {str(k): str(v) for k, v in payload.items()}

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        payload = self._read()
        payload[key] = str(value)
        self._write(payload)

    def remove(self, key: str) -> None:
        payload = self._read()
        if payload.pop(key, None) is not None:
            self._write(payload)

    def _write(self, payload: dict[str, str]) -> None:
        try:
            save_json(self.path, payload)
        except OSError as exc:
            logger.warning("Could not write %s: %s", self.path, exc)
