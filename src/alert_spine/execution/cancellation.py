"""Cooperative shutdown for a reconciliation run.

A single ``ShutdownToken`` is created per run and handed explicitly to every
phase (source reading, evaluation, fetch, sync). SIGTERM/SIGINT set it; the
phases poll it at their checkpoints and stop starting new work while in-flight
provider calls run to completion.
"""

from __future__ import annotations

import signal
import threading
from typing import Any

from alert_spine.core.logging import get_logger

logger = get_logger(__name__)


class ShutdownToken:
    """Thread-safe, one-way shutdown flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def request(self, reason: str = "requested") -> None:
        """Ask every phase to stop at its next checkpoint."""
        if not self._event.is_set():
            self.reason = reason
            logger.info("shutdown_requested", reason=reason)
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until shutdown is requested or ``timeout`` elapses."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"ShutdownToken(requested={self.requested})"


def install_signal_handlers(
    token: ShutdownToken,
    signals: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT),
) -> bool:
    """Route termination signals to ``token``.

    Returns False when handlers cannot be installed (not on the main thread).
    """

    def _handle_signal(signum: int, frame: Any) -> None:
        token.request(reason=signal.Signals(signum).name)

    try:
        for sig in signals:
            signal.signal(sig, _handle_signal)
    except (ValueError, OSError):
        # Not in main thread
        return False
    return True


__all__ = ["ShutdownToken", "install_signal_handlers"]
