"""
Request pacing for the primary source.

One Pacer instance is shared by every operation of a service so all requests
to Google Scholar are spaced out, whichever thread issues them.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any, Optional

from scholar_harvester.services.scholar.cancel import sleep_with_cancel

logger = logging.getLogger('scholar_harvester.services.scholar.pacer')

# Backoff never grows past this many max delays.
BACKOFF_CAP_FACTOR = 10


class Pacer:
    def __init__(
        self,
        *,
        min_delay_seconds: float = 1.0,
        max_delay_seconds: float = 5.0,
        backoff_multiplier: float = 2.0,
        rng: Optional[random.Random] = None,
    ):
        self._min_delay = max(0.0, float(min_delay_seconds))
        self._max_delay = max(self._min_delay, float(max_delay_seconds))
        self._multiplier = max(1.0, float(backoff_multiplier))
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._last_request_at: Optional[float] = None

    @classmethod
    def from_settings(cls, settings: Any) -> "Pacer":
        return cls(
            min_delay_seconds=settings.min_delay_seconds,
            max_delay_seconds=settings.max_delay_seconds,
            backoff_multiplier=settings.backoff_multiplier,
        )

    @property
    def min_delay(self) -> float:
        return self._min_delay

    @property
    def max_delay(self) -> float:
        return self._max_delay

    def acquire(self, cancel_event: Optional[Any] = None) -> float:
        """
        Block until the next request may be issued and return the time slept.

        The delay is drawn from [min_delay, max_delay] and only the part not yet
        elapsed since the previous request is slept. The slot is reserved under
        the lock, so a cancelled wait leaves the slot spent rather than reused.
        """
        with self._lock:
            now = time.monotonic()
            if self._last_request_at is None:
                sleep_for = 0.0
                self._last_request_at = now
            else:
                delay = self._rng.uniform(self._min_delay, self._max_delay)
                target = self._last_request_at + delay
                sleep_for = max(0.0, target - now)
                self._last_request_at = max(target, now)

        if sleep_for > 0:
            logger.debug("Pacing primary request, sleeping %.2fs", sleep_for)
        sleep_with_cancel(sleep_for, cancel_event)
        return sleep_for

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        delay = self._min_delay * (self._multiplier ** max(0, int(attempt)))
        return min(delay, BACKOFF_CAP_FACTOR * self._max_delay)
