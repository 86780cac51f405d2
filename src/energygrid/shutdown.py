"""Cooperative shutdown handling for long aggregation runs."""

from __future__ import annotations

import signal
import threading

import structlog

logger = structlog.get_logger()


class ShutdownFlag:
    """Set once a stop is requested; checked between batches and retries."""

    def __init__(self) -> None:
        self.event = threading.Event()
        self.reason: str | None = None

    @property
    def requested(self) -> bool:
        return self.event.is_set()

    def request(self, reason: str = "requested") -> None:
        if not self.event.is_set():
            self.reason = reason
            logger.warning("Shutdown requested, finishing current batch", reason=reason)
        self.event.set()

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds``, waking early if shutdown is requested."""
        if seconds > 0:
            self.event.wait(seconds)

    def install_signal_handlers(self) -> None:
        def _handler(signum, frame) -> None:
            self.request(signal.Signals(signum).name)

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
