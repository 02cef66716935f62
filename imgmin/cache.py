from __future__ import annotations

from pathlib import Path
from threading import Lock
import time


class MtimeCache:
    """Last successful processing time per file path.

    Entries live as long as the cache object. A file whose modification
    time is not newer than its entry is considered up to date.
    """

    def __init__(self) -> None:
        self._entries: dict[Path, float] = {}
        self._lock = Lock()

    def get(self, path: Path) -> float | None:
        with self._lock:
            return self._entries.get(path)

    def should_process(self, path: Path, mtime: float) -> bool:
        cached = self.get(path)
        if cached is None:
            return True
        return mtime > cached

    def mark_processed(self, path: Path, timestamp: float | None = None) -> float:
        if timestamp is None:
            timestamp = time.time()
        with self._lock:
            previous = self._entries.get(path)
            if previous is None or timestamp > previous:
                self._entries[path] = timestamp
            return self._entries[path]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries


PROCESS_CACHE = MtimeCache()
