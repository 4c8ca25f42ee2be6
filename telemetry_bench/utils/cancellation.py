"""
Cooperative cancellation.

A CancellationToken is checked by long-running loops at chunk (inserter) or
iteration (performance tester) boundaries only, so cancellation latency is
bounded by one chunk or one iteration.
"""

from __future__ import annotations

import contextlib
import signal
import threading
from typing import Generator, Optional

from telemetry_bench.utils.logging import get_logger

log = get_logger(__name__)


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancel requested") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


@contextlib.contextmanager
def install_signal_handlers(
    token: CancellationToken,
) -> Generator[CancellationToken, None, None]:
    """
    Route SIGINT/SIGTERM to `token` for the duration of the block.

    Previous handlers are restored on exit. Outside the main thread signal
    handlers cannot be installed, and the token is yielded unchanged.
    """
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _handler(signum: int, frame: object) -> None:
        del frame
        if not token.cancelled:
            log.warning("Shutdown requested. Finishing current operations...")
        token.cancel(f"signal {signal.Signals(signum).name}")

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


__all__ = ["CancellationToken", "install_signal_handlers"]
