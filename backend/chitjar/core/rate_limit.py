from collections import deque
import time


class SlidingWindowLimiter:
    """In-process request limiter keyed by client and path.

    A key is dropped as soon as its window empties, so the table only holds
    clients that were active within the last window.
    """

    def __init__(self, max_requests: int, window_seconds: float) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._buckets: dict[str, deque[float]] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def _prune(self, key: str, now: float) -> deque[float] | None:
        bucket = self._buckets.get(key)
        if bucket is None:
            return None
        while bucket and now - bucket[0] > self.window_seconds:
            bucket.popleft()
        if not bucket:
            del self._buckets[key]
            return None
        return bucket

    def sweep(self, now: float | None = None) -> None:
        now = time.time() if now is None else now
        for key in list(self._buckets):
            self._prune(key, now)

    def allow(self, key: str, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        bucket = self._prune(key, now)
        if bucket is None:
            self._buckets[key] = deque([now])
            return True
        if len(bucket) >= self.max_requests:
            return False
        bucket.append(now)
        return True

    def reset(self) -> None:
        self._buckets.clear()
