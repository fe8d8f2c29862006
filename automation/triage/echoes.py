"""Labels we are about to add ourselves, so their webhook echo can be absorbed.

A key is marked just before the add-label call goes out and consumed by the
first matching ``labeled`` event. Keys whose echo never arrives expire after
``ttl_sec`` seconds when a ttl is set.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class PendingEchoes:
    def __init__(self, ttl_sec: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_sec = ttl_sec if ttl_sec and ttl_sec > 0 else None
        self._clock = clock
        self._marked: dict[tuple[int, str], float] = {}
        self._lock = threading.Lock()

    def mark_pending(self, issue_number: int, label: str) -> None:
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._marked[(int(issue_number), label)] = now

    def consume_if_pending(self, issue_number: int, label: str) -> bool:
        with self._lock:
            self._prune(self._clock())
            return self._marked.pop((int(issue_number), label), None) is not None

    def __contains__(self, key: tuple[int, str]) -> bool:
        with self._lock:
            return key in self._marked

    def __len__(self) -> int:
        with self._lock:
            return len(self._marked)

    def _prune(self, now: float) -> None:
        if self._ttl_sec is None:
            return
        expired = [key for key, marked_at in self._marked.items() if now - marked_at > self._ttl_sec]
        for key in expired:
            del self._marked[key]
