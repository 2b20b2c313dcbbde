"""Rate tracking: count outbound calls in a trailing sliding window."""
import time
from collections import deque
from typing import Callable, Deque, Optional


class RateTracker:
    """Record outbound call times and report volume in the trailing window.

    Process-local and reset on restart. The market allows a fixed number of
    calls per minute, so the window defaults to 60 seconds.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        time_provider: Optional[Callable[[], float]] = None,
    ):
        self.window_seconds = window_seconds
        self._time_provider = time_provider or time.time
        self._call_times: Deque[float] = deque()

    def record_call(self) -> None:
        """Record one outbound call at the current time."""
        self._call_times.append(self._time_provider())

    def _discard_stale(self) -> None:
        cutoff = self._time_provider() - self.window_seconds
        while self._call_times and self._call_times[0] <= cutoff:
            self._call_times.popleft()

    def count_recent_calls(self) -> int:
        """Return the number of calls made within the trailing window."""
        self._discard_stale()
        return len(self._call_times)

    def is_near_limit(self, max_calls: int, margin: int) -> bool:
        """True when recent volume is within ``margin`` calls of ``max_calls``."""
        return self.count_recent_calls() >= max_calls - margin
