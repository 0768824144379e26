"""
Rate Limiter
------------
Global minimum-interval limiter shared by every outbound HTTP request.

One admission permit serializes callers; inside it the limiter waits out
whatever is left of the interval since the last request start, records the
new start and releases. Token-endpoint calls, API calls and image downloads
all share one clock.
"""

from threading import Condition, Lock
from typing import Callable, Optional
import logging
import time

DEFAULT_INTERVAL_MS = 500


class RateLimiter:
    """
    Minimum-interval rate limiter.

    Thread-safe. Clock and sleep are injectable for tests; the default sleep
    waits on a condition so `interrupt()` can wake blocked callers.
    """

    def __init__(
        self,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], bool]] = None,
    ):
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self._interval_ms = interval_ms
        self._clock = clock
        self._wake = Condition()
        self._generation = 0          # Bumped by interrupt()
        self._sleep_generation = 0
        self._sleep = sleep or self._interruptible_sleep
        self._permit = Lock()          # Capacity-1 admission permit
        self._config_lock = Lock()
        self._last_start: Optional[float] = None
        self._logger = logging.getLogger("mangadex.api.ratelimit")

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def last_start(self) -> Optional[float]:
        return self._last_start

    def configure(self, interval_ms: int) -> bool:
        """
        Change the minimum interval. Applies from the next acquisition.

        Non-positive values are rejected and the current value is kept.
        """
        with self._config_lock:
            if interval_ms > 0:
                self._interval_ms = interval_ms
                self._logger.info(f"Global request interval set to {interval_ms} ms")
                return True
            self._logger.warning(
                f"Rejected non-positive request interval {interval_ms} ms; "
                f"keeping {self._interval_ms} ms"
            )
            return False

    def acquire_slot(self, timeout: Optional[float] = None) -> bool:
        """
        Block until a new request may start, then record its start time.

        Returns False if interrupt() was called while this acquisition was
        waiting (for the permit or for the interval), or if the permit could
        not be obtained within `timeout` seconds. Callers treat False as a
        failed request. Acquisitions that begin after an interrupt are not
        affected by it.
        """
        generation = self._current_generation()

        acquired = self._permit.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            self._logger.warning("Timed out waiting for request permit")
            return False

        try:
            if self._current_generation() != generation:
                self._logger.warning("Request slot wait interrupted")
                return False
            interval = self._interval_ms / 1000.0
            if self._last_start is not None:
                elapsed = self._clock() - self._last_start
                remaining = interval - elapsed
                if remaining > 0:
                    self._logger.debug(
                        f"Rate limiting: sleeping {remaining * 1000:.0f} ms",
                        extra={"wait_ms": round(remaining * 1000)},
                    )
                    self._sleep_generation = generation
                    if not self._sleep(remaining):
                        self._logger.warning("Request slot wait interrupted")
                        return False
            self._last_start = self._clock()
            return True
        finally:
            self._permit.release()

    def interrupt(self) -> None:
        """Wake and fail every acquisition currently waiting; later ones proceed normally."""
        with self._wake:
            self._generation += 1
            self._wake.notify_all()

    def reset(self) -> None:
        """Forget the last start so the next acquisition does not wait."""
        with self._permit:
            self._last_start = None

    def _current_generation(self) -> int:
        with self._wake:
            return self._generation

    def _interruptible_sleep(self, seconds: float) -> bool:
        # wait_for returns the predicate: True when interrupted
        with self._wake:
            return not self._wake.wait_for(lambda: self._generation != self._sleep_generation, timeout=seconds)


# Process-wide default limiter, shared by every client that is not handed one
_global_limiter: Optional[RateLimiter] = None
_global_lock = Lock()


def get_global_limiter() -> RateLimiter:
    """Get (or lazily create) the process-wide limiter."""
    global _global_limiter
    with _global_lock:
        if _global_limiter is None:
            _global_limiter = RateLimiter()
        return _global_limiter
