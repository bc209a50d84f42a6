"""Durable storage for the current live video id and the two lease/throttle timestamps."""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

VIDEO_ID_KEY = "videoId"
EXPIRES_KEY = "pshbExpires"
LAST_FLUSH_KEY = "lastFlush"


@dataclass(frozen=True)
class StoredState:
    video_id: Optional[str] = None
    pshb_expires: Optional[int] = None
    last_flush: Optional[int] = None


def _coerce_ms(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


class StateStore:
    """JSON-file backed store of three independent scalar values.

    Each write rewrites the whole document through a temporary file and
    ``os.replace`` so a crash never leaves a half-written state file behind.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._values: Dict[str, Any] = {}
        self._load_from_disk()

    @property
    def path(self) -> Path:
        return self._path

    def _load_from_disk(self) -> None:
        if not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("ignoring unreadable state file %s", self._path)
            return
        if not isinstance(payload, dict):
            return
        video_id = payload.get(VIDEO_ID_KEY)
        if isinstance(video_id, str) and video_id:
            self._values[VIDEO_ID_KEY] = video_id
        for key in (EXPIRES_KEY, LAST_FLUSH_KEY):
            value = _coerce_ms(payload.get(key))
            if value is not None:
                self._values[key] = value

    def _flush_to_disk(self) -> None:
        tmp_dir = self._path.parent
        tmp_dir.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile("w", dir=tmp_dir, delete=False, encoding="utf-8") as tmp:
            json.dump(self._values, tmp)
            tmp.flush()
            os.fsync(tmp.fileno())
            temp_name = tmp.name
        os.replace(temp_name, self._path)

    def snapshot(self) -> StoredState:
        with self._lock:
            return StoredState(
                video_id=self._values.get(VIDEO_ID_KEY),
                pshb_expires=self._values.get(EXPIRES_KEY),
                last_flush=self._values.get(LAST_FLUSH_KEY),
            )

    def get_video_id(self) -> Optional[str]:
        with self._lock:
            return self._values.get(VIDEO_ID_KEY)

    def put_video_id(self, video_id: Optional[str]) -> None:
        with self._lock:
            if video_id:
                self._values[VIDEO_ID_KEY] = video_id
            else:
                self._values.pop(VIDEO_ID_KEY, None)
            self._flush_to_disk()

    def get_expires(self) -> Optional[int]:
        with self._lock:
            return self._values.get(EXPIRES_KEY)

    def put_expires(self, expires_at_ms: int) -> None:
        with self._lock:
            self._values[EXPIRES_KEY] = int(expires_at_ms)
            self._flush_to_disk()

    def get_last_flush(self) -> Optional[int]:
        with self._lock:
            return self._values.get(LAST_FLUSH_KEY)

    def put_last_flush(self, flushed_at_ms: int) -> None:
        with self._lock:
            self._values[LAST_FLUSH_KEY] = int(flushed_at_ms)
            self._flush_to_disk()


__all__ = [
    "EXPIRES_KEY",
    "LAST_FLUSH_KEY",
    "StateStore",
    "StoredState",
    "VIDEO_ID_KEY",
]
