"""In-memory rate limiting for the login and password reset routes."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque

from fastapi import HTTPException, Request


class InMemoryRateLimiter:
    """Fixed-window limiter keyed by an arbitrary string (client + path)."""

    def __init__(self):
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Record a hit for `key`; return `(allowed, retry_after_seconds)`."""
        now = time.monotonic()
        with self._lock:
            hits = self._hits[key]
            cutoff = now - window_seconds
            while hits and hits[0] < cutoff:
                hits.popleft()
            if len(hits) >= max_requests:
                return False, max(1, int(window_seconds - (now - hits[0])))
            hits.append(now)
        return True, 0

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def enforce(self, request: Request, max_requests: int, window_seconds: int = 60) -> None:
        """Raise HTTP 429 with `Retry-After` once the client exhausts its window."""
        client = request.client.host if request.client else "unknown"
        allowed, retry_after = self.allow(f"{client}:{request.url.path}", max_requests, window_seconds)
        if not allowed:
            raise HTTPException(
                status_code=429,
                detail=f"rate limit exceeded; retry after {retry_after}s",
                headers={"Retry-After": str(retry_after)},
            )


auth_rate_limiter = InMemoryRateLimiter()
