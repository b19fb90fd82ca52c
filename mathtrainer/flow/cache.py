"""Read-through progress cache. The server record is authoritative; entries only ever
come from backend responses and expire after a short TTL."""
from __future__ import annotations

import time
from typing import Callable

from mathtrainer.trainers.progress import Progress


class ProgressCache:
    def __init__(self, ttl_sec: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._entries: dict[str, tuple[float, Progress]] = {}

    def get(self, trainer_id: str) -> Progress | None:
        entry = self._entries.get(trainer_id)
        if entry is None:
            return None
        stored_at, progress = entry
        if self._clock() - stored_at > self.ttl_sec:
            del self._entries[trainer_id]
            return None
        return progress

    def put(self, trainer_id: str, progress: Progress) -> None:
        self._entries[trainer_id] = (self._clock(), progress)

    def invalidate(self, trainer_id: str | None = None) -> None:
        if trainer_id is None:
            self._entries.clear()
        else:
            self._entries.pop(trainer_id, None)

    def __len__(self) -> int:
        return len(self._entries)
