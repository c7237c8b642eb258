import time
import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class RatePacer:
    """Gate that keeps at least `min_interval_sec` between the end of one unit of work and the start of the next.

    Callers bracket each unit with `wait()` before it and `release()` after it.
    The first `wait()` never blocks. Without a `release()` the interval is
    measured from the previous `wait()`.
    """

    def __init__(self,
                 min_interval_sec: float = 0.1,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize the pacer.

        Args:
            min_interval_sec: Minimum gap between consecutive units of work
            clock: Monotonic clock returning seconds
            sleep: Function used to block for a number of seconds
        """
        if min_interval_sec < 0:
            raise ValueError("min_interval_sec must not be negative")
        self.min_interval_sec = min_interval_sec
        self._clock = clock
        self._sleep = sleep
        self._last_release: Optional[float] = None
        self.total_wait_sec = 0.0

    def wait(self) -> float:
        """Block until the interval since the previous release has elapsed.

        Returns:
            Seconds actually slept
        """
        waited = 0.0
        if self._last_release is not None:
            remaining = self.min_interval_sec - (self._clock() - self._last_release)
            if remaining > 0:
                self._sleep(remaining)
                waited = remaining
        self._last_release = self._clock()
        self.total_wait_sec += waited
        return waited

    def release(self) -> None:
        """Mark the end of the current unit of work; the next interval starts now."""
        self._last_release = self._clock()

    def reset(self) -> None:
        """Forget the previous release so the next `wait()` returns immediately."""
        self._last_release = None
        self.total_wait_sec = 0.0
