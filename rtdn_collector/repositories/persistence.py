"""Snapshot persistence backends for record stores.

A backend loads and saves the complete list of records of one collection.
There is no incremental format: every save rewrites the whole snapshot.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from rtdn_collector.logging_config import get_logger

logger = get_logger(__name__)


class SnapshotLoadError(Exception):
    """Raised when a snapshot exists but cannot be read."""

    pass


class SnapshotBackend(Protocol):
    """Loads and saves a full collection snapshot."""

    def load(self) -> list[dict[str, Any]]: ...

    def save(self, records: list[dict[str, Any]]) -> None: ...


class MemoryBackend:
    """Keeps the last saved snapshot in memory. Used in tests."""

    def __init__(self, initial: Optional[list[dict[str, Any]]] = None):
        self._snapshot: list[dict[str, Any]] = list(initial or [])
        self._lock = threading.Lock()
        self.save_count = 0

    def load(self) -> list[dict[str, Any]]:
        with self._lock:
            return json.loads(json.dumps(self._snapshot))

    def save(self, records: list[dict[str, Any]]) -> None:
        with self._lock:
            # Round-trip through JSON so unserializable values fail like the file backend.
            self._snapshot = json.loads(json.dumps(records))
            self.save_count += 1

    def __repr__(self) -> str:
        return f"MemoryBackend(records={len(self._snapshot)})"


class JsonFileBackend:
    """Pretty-printed JSON array in a single file.

    Saves go through a temporary file in the same directory followed by an
    atomic replace, so readers never see a half-written snapshot.
    """

    def __init__(self, path: Union[Path, str]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []

        try:
            with open(self._path, encoding="utf-8") as f:
                content = json.load(f)
        except (OSError, ValueError) as e:
            raise SnapshotLoadError(f"Failed to read snapshot {self._path}: {e}")

        if not isinstance(content, list):
            raise SnapshotLoadError(f"Snapshot {self._path} does not contain a JSON array")

        logger.debug("snapshot_loaded", path=str(self._path), records=len(content))
        return content

    def save(self, records: list[dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug("snapshot_saved", path=str(self._path), records=len(records))

    def __repr__(self) -> str:
        return f"JsonFileBackend(path={str(self._path)!r})"
