import threading
import time
from typing import Dict, List, Tuple

from ...application.ports.rate_limiter import RateLimiter


class InMemoryRateLimiter(RateLimiter):
    """Sliding-window limiter keyed by caller-supplied strings.

    Keys whose window has emptied are dropped, on access and by a full prune
    that runs at most once per ``prune_interval_seconds``.
    """

    def __init__(self, prune_interval_seconds: float = 60.0) -> None:
        self._store: Dict[str, Tuple[int, List[float]]] = {}
        self._lock = threading.Lock()
        self.prune_interval_seconds = prune_interval_seconds
        self._last_prune = time.time()

    def _prune(self, now: float) -> None:
        stale = [
            key for key, (window, times) in self._store.items()
            if not times or times[-1] <= now - window
        ]
        for key in stale:
            del self._store[key]
        self._last_prune = now

    def allow(self, key: str, max_requests: int, window_seconds: int) -> bool:
        now = time.time()
        window_start = now - window_seconds
        with self._lock:
            if now - self._last_prune >= self.prune_interval_seconds:
                self._prune(now)

            _, previous = self._store.get(key, (window_seconds, []))
            times = [t for t in previous if t > window_start]
            if len(times) >= max_requests:
                self._store[key] = (window_seconds, times)
                return False
            times.append(now)
            self._store[key] = (window_seconds, times)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
