"""Bounded scrollback buffer for terminal output replay."""

from __future__ import annotations

import threading


class OutputBuffer:
    """Append-only byte buffer that evicts its oldest bytes past ``limit``."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError(f"Invalid scrollback limit: {limit}")
        self.limit = limit
        self._data = bytearray()
        self._total = 0
        self._lock = threading.Lock()

    def append(self, chunk: bytes) -> int:
        """Append ``chunk`` and return how many bytes were evicted."""
        with self._lock:
            self._data.extend(chunk)
            self._total += len(chunk)
            overflow = len(self._data) - self.limit
            if overflow <= 0:
                return 0
            del self._data[:overflow]
            return overflow

    def snapshot(self) -> bytes:
        with self._lock:
            return bytes(self._data)

    @property
    def total_bytes(self) -> int:
        return self._total

    @property
    def evicted_bytes(self) -> int:
        with self._lock:
            return self._total - len(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
