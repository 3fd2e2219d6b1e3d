"""
Rate Limiting for Spotify API Work

Spotify allows roughly 180 requests per minute on search. The limiter here
shapes how fast work reaches the API:
- at most max_concurrent work items run at once
- dispatches are spaced at least min_time seconds apart
- a reservoir of permits is consumed per dispatch and reset to
  reservoir_refresh_amount every reservoir_refresh_interval seconds;
  when it is empty, work waits for the next refresh

Callers only depend on RequestLimiter.schedule()/admit(), so a deterministic
stand-in (ImmediateLimiter) can replace the real limiter.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 3
DEFAULT_MIN_TIME = 0.1
DEFAULT_RESERVOIR = 30
DEFAULT_RESERVOIR_REFRESH_INTERVAL = 10.0
DEFAULT_RESERVOIR_REFRESH_AMOUNT = 30


class RequestLimiter:
    """Capability to run work under a throughput policy"""

    def schedule(self, work: Callable, *args, **kwargs) -> Future:
        """Queue work; the returned future settles with its result or exception"""
        raise NotImplementedError

    def admit(self, work: Callable, *args, **kwargs) -> Any:
        """Run work under the policy and wait for its result"""
        return self.schedule(work, *args, **kwargs).result()

    def stop(self, wait: bool = True) -> None:
        """Release resources held by the limiter"""


class ImmediateLimiter(RequestLimiter):
    """Runs work inline in the calling thread, in submission order"""

    def __init__(self):
        self.calls = 0

    def schedule(self, work: Callable, *args, **kwargs) -> Future:
        future = Future()
        self.calls += 1
        try:
            future.set_result(work(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class SpotifyRateLimiter(RequestLimiter):
    """
    Token bucket limiter with a refilling reservoir.

    Work runs on a thread pool of max_concurrent workers; each worker takes
    a permit (respecting spacing and reservoir) before calling the work.
    """

    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT,
                 min_time: float = DEFAULT_MIN_TIME,
                 reservoir: Optional[int] = DEFAULT_RESERVOIR,
                 reservoir_refresh_interval: float = DEFAULT_RESERVOIR_REFRESH_INTERVAL,
                 reservoir_refresh_amount: Optional[int] = DEFAULT_RESERVOIR_REFRESH_AMOUNT,
                 logger: Optional[logging.Logger] = None):
        """
        Args:
            max_concurrent: Maximum number of work items running at once
            min_time: Minimum seconds between two dispatches
            reservoir: Initial permits; None disables the reservoir
            reservoir_refresh_interval: Seconds between reservoir refreshes
            reservoir_refresh_amount: Permits after each refresh
                (defaults to the initial reservoir)
            logger: Optional logger instance (uses module logger if not provided)
        """
        if not isinstance(max_concurrent, int) or max_concurrent <= 0:
            raise ValueError("max_concurrent must be a positive integer")
        if min_time < 0:
            raise ValueError("min_time must not be negative")
        if reservoir is not None and reservoir_refresh_interval <= 0:
            raise ValueError("reservoir_refresh_interval must be positive")

        self.max_concurrent = max_concurrent
        self.min_time = min_time
        self.reservoir = reservoir
        self.reservoir_refresh_interval = reservoir_refresh_interval
        self.reservoir_refresh_amount = (
            reservoir_refresh_amount if reservoir_refresh_amount is not None else reservoir
        )
        self.logger = logger or logging.getLogger(__name__)

        self._executor = ThreadPoolExecutor(max_workers=max_concurrent,
                                            thread_name_prefix='spotify-limiter')
        self._lock = threading.Lock()
        self._next_dispatch = 0.0
        self._reservoir_refreshed_at = time.monotonic()
        self._stopped = False

        self.total_dispatched = 0
        self.total_wait_time = 0.0

    # ========================================================================
    # PERMITS
    # ========================================================================

    def _refresh_reservoir(self, now: float) -> None:
        """Reset the reservoir if one or more refresh intervals have passed"""
        elapsed = now - self._reservoir_refreshed_at
        if elapsed >= self.reservoir_refresh_interval:
            intervals = int(elapsed // self.reservoir_refresh_interval)
            self._reservoir_refreshed_at += intervals * self.reservoir_refresh_interval
            self.reservoir = self.reservoir_refresh_amount

    def _reserve_slot(self) -> float:
        """
        Take a permit, waiting for the reservoir if needed.

        Returns:
            Seconds waited before dispatch
        """
        waited = 0.0
        while True:
            with self._lock:
                now = time.monotonic()
                if self.reservoir is not None:
                    self._refresh_reservoir(now)

                if self.reservoir is None or self.reservoir > 0:
                    if self.reservoir is not None:
                        self.reservoir -= 1
                    dispatch_at = max(now, self._next_dispatch)
                    self._next_dispatch = dispatch_at + self.min_time
                    self.total_dispatched += 1
                    delay = dispatch_at - now
                    break

                delay = self._reservoir_refreshed_at + self.reservoir_refresh_interval - now

            self.logger.debug(f"Reservoir empty, waiting {delay:.3f}s for refresh")
            time.sleep(max(delay, 0))
            waited += max(delay, 0)

        if delay > 0:
            time.sleep(delay)
            waited += delay
        return waited

    def _run(self, work: Callable, args, kwargs):
        waited = self._reserve_slot()
        with self._lock:
            self.total_wait_time += waited
        return work(*args, **kwargs)

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    def schedule(self, work: Callable, *args, **kwargs) -> Future:
        if self._stopped:
            raise RuntimeError("Rate limiter has been stopped")
        return self._executor.submit(self._run, work, args, kwargs)

    def stop(self, wait: bool = True) -> None:
        """Stop accepting work; optionally wait for queued work to finish"""
        self._stopped = True
        self._executor.shutdown(wait=wait)

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about rate limiter usage"""
        with self._lock:
            return {
                'total_dispatched': self.total_dispatched,
                'total_wait_time': self.total_wait_time,
                'avg_wait_time': self.total_wait_time / max(1, self.total_dispatched),
                'reservoir': self.reservoir,
                'max_concurrent': self.max_concurrent,
            }


# ============================================================================
# DEFAULT LIMITER
# ============================================================================

_default_limiter: Optional[RequestLimiter] = None
_default_limiter_lock = threading.Lock()


def create_spotify_limiter(**options) -> SpotifyRateLimiter:
    """
    Create a limiter configured for the Spotify API.

    Defaults: 3 concurrent requests, 100ms between requests,
    at most 30 requests per 10 seconds.
    """
    return SpotifyRateLimiter(**options)


def get_default_limiter() -> RequestLimiter:
    """Gets or creates the module-wide default limiter"""
    global _default_limiter
    with _default_limiter_lock:
        if _default_limiter is None:
            _default_limiter = create_spotify_limiter()
        return _default_limiter


def reset_default_limiter() -> None:
    """Stop and discard the default limiter; the next call creates a fresh one"""
    global _default_limiter
    with _default_limiter_lock:
        if _default_limiter is not None:
            _default_limiter.stop(wait=False)
            _default_limiter = None
