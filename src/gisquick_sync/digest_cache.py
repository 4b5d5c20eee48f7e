"""Checksum caching for repeated scans."""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class CacheEntry:
    """Last computed checksum of a file with the stat info it was computed at."""

    checksum: str
    size: int
    mtime: int


class ChecksumCache:
    """Cache file checksums keyed by absolute path.

    An entry is valid while the file's size and mtime are unchanged; a change
    in either is taken as a content change without re-reading the file. A
    rewrite that keeps both (same size, same second) is not detected.

    Entries live as long as the cache object. Thread-safe.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def lookup(self, path: str, size: int, mtime: int) -> Optional[str]:
        """Return the cached checksum if size and mtime both match.

        Args:
            path: Absolute file path
            size: Current size in bytes
            mtime: Current modification time in seconds

        Returns:
            Cached checksum or None on a miss
        """
        with self._lock:
            entry = self._entries.get(path)
        if entry is None or entry.size != size or entry.mtime != mtime:
            return None
        return entry.checksum

    def store(self, path: str, checksum: str, size: int, mtime: int) -> None:
        """Insert or overwrite the entry for a path."""
        with self._lock:
            self._entries[path] = CacheEntry(checksum=checksum, size=size, mtime=mtime)

    def get_or_compute(
        self,
        path: str,
        size: int,
        mtime: int,
        compute: Callable[[str], str],
    ) -> str:
        """Get cached checksum or compute and store it.

        Errors from ``compute`` propagate and leave the cache untouched.
        """
        cached = self.lookup(path, size, mtime)
        if cached is not None:
            return cached
        checksum = compute(path)
        self.store(path, checksum, size, mtime)
        return checksum

    def get(self, path: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(path)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries
