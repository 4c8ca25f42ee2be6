"""
Rate-limited progress reporting.

The inserter calls `ProgressReporter.update()` from several puller threads
after every completed batch; the reporter forwards at most one
`ProgressUpdate` per `interval` seconds to the callback, plus a final one on
`complete()`.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class ProgressUpdate:
    processed: int
    total: Optional[int]
    rate: float
    elapsed_seconds: float
    final: bool = False

    @property
    def fraction(self) -> Optional[float]:
        if not self.total:
            return None
        return min(self.processed / self.total, 1.0)


ProgressCallback = Callable[[ProgressUpdate], None]


class ProgressReporter:
    def __init__(
        self,
        callback: Optional[ProgressCallback],
        total: Optional[int] = None,
        interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self._total = total
        self._interval = interval
        self._clock = clock
        self._lock = threading.Lock()
        self._processed = 0
        self._started = clock()
        self._last_emit: Optional[float] = None
        self.emissions = 0

    @property
    def processed(self) -> int:
        return self._processed

    def update(self, increment: int) -> None:
        """Add `increment` processed records and emit if the interval elapsed."""
        with self._lock:
            self._processed += increment
            now = self._clock()
            if self._last_emit is not None and now - self._last_emit < self._interval:
                return
            self._last_emit = now
            update = self._snapshot(now, final=False)
        self._emit(update)

    def complete(self) -> None:
        with self._lock:
            update = self._snapshot(self._clock(), final=True)
        self._emit(update)

    def _snapshot(self, now: float, final: bool) -> ProgressUpdate:
        elapsed = now - self._started
        rate = self._processed / elapsed if elapsed > 0 else 0.0
        return ProgressUpdate(
            processed=self._processed,
            total=self._total,
            rate=rate,
            elapsed_seconds=elapsed,
            final=final,
        )

    def _emit(self, update: ProgressUpdate) -> None:
        if self._callback is None:
            return
        self.emissions += 1
        self._callback(update)


__all__ = ["ProgressCallback", "ProgressReporter", "ProgressUpdate"]
