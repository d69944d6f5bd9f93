"""
Primary/alternate provider selection.

The harvester starts against Google Scholar directly. The first rate-limit or
block signal switches the process to the alternate provider for good; there
is no automatic way back.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

from scholar_harvester.services.scholar.errors import BLOCKING_ERRORS

logger = logging.getLogger('scholar_harvester.services.scholar.provider_selector')


class ProviderState(str, Enum):
    PRIMARY = "PRIMARY"
    ALTERNATE = "ALTERNATE"


class ProviderSelector:
    def __init__(self, *, alternate_enabled: bool = False):
        self._alternate_enabled = bool(alternate_enabled)
        self._lock = threading.Lock()
        self._state = ProviderState.PRIMARY
        self._transitions = 0

    @property
    def state(self) -> ProviderState:
        with self._lock:
            return self._state

    @property
    def transitions(self) -> int:
        with self._lock:
            return self._transitions

    @property
    def alternate_enabled(self) -> bool:
        return self._alternate_enabled

    def trip(self, reason: str = "") -> bool:
        """Move to ALTERNATE. Returns True only for the call that made the move."""
        if not self._alternate_enabled:
            return False
        with self._lock:
            if self._state is ProviderState.ALTERNATE:
                return False
            self._state = ProviderState.ALTERNATE
            self._transitions += 1
        logger.warning("Switching to alternate provider for the rest of the process: %s", reason or "blocked")
        return True

    def run(
        self,
        operation: str,
        primary: Callable[[], Any],
        alternate: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """
        Run ``operation`` against the current provider.

        ``alternate`` is None for operations the alternate provider cannot
        serve; those always go to the primary and its errors propagate.
        """
        use_alternate = alternate is not None and self._alternate_enabled
        if use_alternate and self.state is ProviderState.ALTERNATE:
            logger.info("Running %s against alternate provider", operation)
            return alternate()

        try:
            return primary()
        except BLOCKING_ERRORS as exc:
            if not use_alternate:
                raise
            self.trip(f"{operation}: {exc}")
            logger.warning("Retrying %s against alternate provider after %s", operation, exc.kind.value)
            return alternate()
