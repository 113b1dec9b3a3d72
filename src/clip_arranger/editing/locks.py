"""Per-track serialization of edit operations."""

from __future__ import annotations

import threading


class TrackLockRegistry:
    """Hands out one lock per track; distinct tracks never block each other."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def lock_for(self, track: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(track)
            if lock is None:
                lock = threading.Lock()
                self._locks[track] = lock
            return lock
