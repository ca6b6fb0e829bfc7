"""
Edge rate limiting.
Fixed request-count-per-window counters held in process memory, keyed by client address.
"""

import logging
import threading
import time
from typing import Dict, Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


class FixedWindowLimiter:
    """Allow at most `max_requests` per `window_seconds` for each key"""

    def __init__(self, name: str, max_requests: int, window_seconds: int, message: str, enabled: bool = True):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.message = message
        self.enabled = enabled
        self._windows: Dict[str, list] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, now: Optional[float] = None) -> bool:
        """Count one request for `key`; False once the ceiling is passed"""
        if not self.enabled:
            return True

        now = time.time() if now is None else now
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window[0] >= self.window_seconds:
                self._windows[key] = [now, 1]
                return True

            window[1] += 1
            return window[1] <= self.max_requests

    def retry_after(self, key: str, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        window = self._windows.get(key)
        if not window:
            return 0
        return max(0, int(window[0] + self.window_seconds - now))

    def reset(self):
        with self._lock:
            self._windows.clear()


def build_limiters(settings) -> Dict[str, FixedWindowLimiter]:
    enabled = settings.rate_limit_enabled
    return {
        "login": FixedWindowLimiter(
            "login", *settings.login_limit,
            message="Too many login attempts, please try again later",
            enabled=enabled
        ),
        "api": FixedWindowLimiter(
            "api", *settings.api_limit,
            message="Too many requests, please try again later",
            enabled=enabled
        ),
        "ai": FixedWindowLimiter(
            "ai", *settings.ai_limit,
            message="Too many AI requests, please try again later",
            enabled=enabled
        ),
    }


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit(name: str):
    """Dependency factory: reject with 429 once the named limiter is exhausted"""

    async def _check(request: Request):
        limiter = request.app.state.services.limiters[name]
        key = client_key(request)
        if not limiter.hit(key):
            logger.warning("Rate limit '%s' exceeded for %s", name, key)
            raise HTTPException(
                status_code=429,
                detail=limiter.message,
                headers={"Retry-After": str(limiter.retry_after(key))}
            )

    return _check
