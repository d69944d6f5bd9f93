"""
Scholar cancellation helpers.

Harvesting operations are long chains of paced network calls. Callers that
impose a timeout pass a cancel_event (anything with ``is_set()``); every
sleep and every fetch attempt checks it so the chain stops promptly.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Optional


class HarvestCancelled(Exception):
    pass


def cancelled(cancel_event: Optional[Any]) -> bool:
    return bool(cancel_event) and getattr(cancel_event, "is_set", lambda: False)()


def raise_if_cancelled(cancel_event: Optional[Any]) -> None:
    if cancelled(cancel_event):
        raise HarvestCancelled("Canceled")


def sleep_with_cancel(seconds: float, cancel_event: Optional[Any]) -> None:
    if seconds <= 0:
        return
    end = time.monotonic() + seconds
    while True:
        raise_if_cancelled(cancel_event)
        remaining = end - time.monotonic()
        if remaining <= 0:
            return
        time.sleep(min(0.2, remaining))


class DeadlineEvent(threading.Event):
    """Event set by a daemon timer; cancel() (or leaving the with-block) stops the timer."""

    def __init__(self, seconds: float):
        super().__init__()
        self._timer = threading.Timer(max(0.0, float(seconds)), self.set)
        self._timer.daemon = True

    def start(self) -> "DeadlineEvent":
        self._timer.start()
        return self

    def cancel(self) -> None:
        self._timer.cancel()

    def __enter__(self) -> "DeadlineEvent":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.cancel()


def deadline_event(seconds: float) -> DeadlineEvent:
    """
    Return an event that becomes set after ``seconds``.

    This is how a caller imposes a timeout on a whole operation:

        with deadline_event(20) as deadline:
            service.search_publications(..., cancel_event=deadline)
    """
    return DeadlineEvent(seconds).start()
