from __future__ import annotations
import threading
import time
from typing import Callable, Dict, Tuple
from fastapi import HTTPException, Request

# Simple in-memory fixed-window limiter (per-IP, per-route). Not suitable for multi-process.


def get_client_ip(request: Request) -> str:
    # Try common forwarding headers first
    xff = request.headers.get("x-forwarded-for")
    if xff:
        # Take the first IP
        return xff.split(",")[0].strip()
    # Fallback to client host
    return request.client.host if request.client else "unknown"


class RateLimiter:
    def __init__(self, limit: int = 30, window_seconds: int = 60, clock: Callable[[], float] = time.time) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # key: (ip, route) -> (window_start_epoch, count)
        self._buckets: Dict[Tuple[str, str], Tuple[float, int]] = {}

    def hit(self, key: Tuple[str, str]) -> int:
        """Count a request; return seconds to wait, 0 when allowed."""
        now = self._clock()
        with self._lock:
            window_start, count = self._buckets.get(key, (now, 0))
            if now - window_start >= self.window_seconds:
                window_start, count = now, 0
            count += 1
            self._buckets[key] = (window_start, count)
        if count > self.limit:
            return max(1, int(self.window_seconds - (now - window_start)))
        return 0

    def enforce(self, request: Request) -> None:
        if self.limit <= 0:
            return
        retry_after = self.hit((get_client_ip(request), request.url.path))
        if retry_after:
            raise HTTPException(status_code=429, detail="Rate limit exceeded", headers={"Retry-After": str(retry_after)})
