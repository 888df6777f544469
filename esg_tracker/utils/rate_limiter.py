"""
Fixed-interval rate limiter for the ESG score API.
Pads every request cycle to a minimum duration so that a fixed request
budget is spread evenly over one minute.
"""

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class FixedIntervalRateLimiter:
    """
    Request pacer with a constant per-request interval.

    Usage mirrors the extractor call protocol:
        limiter.start_request()
        ... fetch, parse, load ...
        elapsed = limiter.finish_request()

    finish_request() sleeps for whatever remains of the interval. It does not
    react to server back-off signals and adds no jitter.
    """

    def __init__(self, max_requests_per_minute: int,
                 clock: Callable[[], float] = time.perf_counter,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Args:
            max_requests_per_minute: Request budget; the interval is 60s divided by it
            clock: Monotonic time source in seconds
            sleep: Sleep function taking seconds
        """
        if max_requests_per_minute <= 0:
            raise ValueError("max_requests_per_minute must be positive")

        self.max_requests_per_minute = max_requests_per_minute
        self.interval_seconds = 60.0 / max_requests_per_minute
        self._clock = clock
        self._sleep = sleep

        self._request_start: Optional[float] = None

        # Performance tracking
        self.total_requests = 0
        self.total_request_time = 0.0
        self.total_sleep_time = 0.0
        self.overrun_count = 0

    def start_request(self) -> None:
        """Mark the start of a request cycle."""
        self._request_start = self._clock()

    def elapsed(self) -> float:
        """Seconds since start_request() for the cycle in progress."""
        if self._request_start is None:
            raise RuntimeError("No request cycle in progress")
        return self._clock() - self._request_start

    def finish_request(self) -> float:
        """
        Close the current request cycle and wait out the rest of the interval.

        Returns:
            Seconds spent in the cycle before any padding sleep.
        """
        if self._request_start is None:
            raise RuntimeError("finish_request() called before start_request()")

        elapsed = self._clock() - self._request_start
        self._request_start = None

        self.total_requests += 1
        self.total_request_time += elapsed

        remaining = self.interval_seconds - elapsed
        if remaining > 0:
            self._sleep(remaining)
            self.total_sleep_time += remaining
        else:
            self.overrun_count += 1
            logger.debug(
                f"Request took {elapsed * 1000:.1f} ms, over the "
                f"{self.interval_seconds * 1000:.0f} ms interval"
            )

        return elapsed

    def get_performance_summary(self) -> dict:
        """Get performance summary and statistics."""
        if self.total_requests == 0:
            return {"message": "No API calls made yet"}

        avg_request_time = self.total_request_time / self.total_requests

        return {
            "total_requests": self.total_requests,
            "interval": f"{self.interval_seconds * 1000:.0f}ms",
            "avg_request_time": f"{avg_request_time * 1000:.1f}ms",
            "total_sleep_time": f"{self.total_sleep_time:.2f}s",
            "overruns": self.overrun_count,
        }
