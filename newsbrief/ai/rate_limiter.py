"""Fixed-interval throttle between upstream LLM calls."""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Enforce a minimum interval between consecutive calls.

    The pipeline is strictly sequential, so this is a plain "wait until
    min_interval has passed since the last call" gate. Clock and sleep are
    injectable so tests never wait on the wall clock.
    """

    def __init__(
        self,
        min_interval_seconds: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ts: float | None = None

    def wait(self) -> None:
        """Block until the next call is allowed, then mark the call."""
        with self._lock:
            now = self._clock()
            if self._last_ts is not None:
                wait_s = self.min_interval_seconds - (now - self._last_ts)
                if wait_s > 0:
                    logger.debug("[RATE-LIMIT] sleeping %.2fs", wait_s)
                    self._sleep(wait_s)
                    now = self._clock()
            self._last_ts = now


class NoopRateLimiter(RateLimiter):
    """Limiter that never sleeps (tests, one-off CLI checks)."""

    def __init__(self):
        super().__init__(0.0)
