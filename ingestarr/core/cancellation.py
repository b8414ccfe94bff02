# ingestarr/core/cancellation.py
# Explicit cancellation token handed from the CLI to the batch driver, the
# per-file pipeline and every external tool invocation.

from __future__ import annotations

import signal
import threading
from typing import Optional

from .errors import OperationCancelled


class CancellationToken:
    """Cooperative stop flag. Set once, never cleared."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self.reason or "cancelled")


def install_sigint_handler(token: CancellationToken) -> None:
    """Route Ctrl-C to the token: finish (or roll back) the current file, then stop."""

    def _sigint(signum, frame):
        token.cancel("interrupted")

    signal.signal(signal.SIGINT, _sigint)
