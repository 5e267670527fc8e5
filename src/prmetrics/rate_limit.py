"""Anticipatory rate limiting based on GitHub ``X-RateLimit-*`` headers."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Mapping, Optional

from .models import RateLimitState

logger = logging.getLogger(__name__)


class RateLimiter:
    """Tracks the remaining request quota and pauses before it runs out.

    This is a conservative heuristic, not an authoritative limiter: it may
    pause when the server would still have accepted the call. State is only
    read or written under ``_lock`` so worker threads share one estimate.
    """

    LOW_WATERMARK = 10
    RESET_MARGIN_SECONDS = 5

    def __init__(
        self,
        state: Optional[RateLimitState] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], object]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._state = state or RateLimitState()
        self._clock = clock or time.time
        if sleep is None:
            # A set cancel event ends the pause early.
            sleep = cancel_event.wait if cancel_event is not None else time.sleep
        self._sleep = sleep
        self._lock = threading.Lock()

    @property
    def state(self) -> RateLimitState:
        return self._state

    def wait_if_needed(self) -> float:
        """Block until the quota resets when it is nearly exhausted.

        Returns:
            Seconds slept, ``0.0`` when no pause was needed.
        """
        with self._lock:
            now = self._clock()
            waited = 0.0
            if self._state.remaining < self.LOW_WATERMARK and now < self._state.reset_at:
                waited = (self._state.reset_at - now) + self.RESET_MARGIN_SECONDS
                logger.warning(
                    "Rate limit nearly exhausted (remaining=%s); pausing %.0fs until reset",
                    self._state.remaining,
                    waited,
                    extra={"remaining": self._state.remaining, "wait_seconds": waited},
                )
                self._sleep(waited)
            if self._state.remaining > 0:
                self._state.remaining -= 1
            return waited

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """Overwrite the estimate from response headers when both are present."""
        remaining = headers.get("X-RateLimit-Remaining")
        reset = headers.get("X-RateLimit-Reset")
        if remaining is None or reset is None:
            return

        try:
            remaining_value = int(remaining)
            reset_value = float(reset)
        except (TypeError, ValueError):
            logger.debug(
                "Ignoring malformed rate limit headers",
                extra={"remaining": remaining, "reset": reset},
            )
            return

        with self._lock:
            self._state.remaining = max(0, remaining_value)
            self._state.reset_at = reset_value
