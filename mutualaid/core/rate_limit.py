import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from fastapi import HTTPException, Request, status

from ..config import settings

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """In-process sliding window counter keyed by scope and client address."""

    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._attempts: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    async def retry_after(self, key: str) -> Optional[int]:
        """Record an attempt; returns seconds to wait when the key is over its budget."""
        now = time.monotonic()
        async with self._lock:
            self._evict_idle(now)
            attempts = self._attempts.setdefault(key, deque())
            while attempts and now - attempts[0] > self.window_seconds:
                attempts.popleft()
            if len(attempts) >= self.limit:
                return max(1, int(self.window_seconds - (now - attempts[0])))
            attempts.append(now)
            return None

    def _evict_idle(self, now: float) -> None:
        idle = [key for key, attempts in self._attempts.items() if not attempts or now - attempts[-1] > self.window_seconds]
        for key in idle:
            del self._attempts[key]

    def reset(self) -> None:
        self._attempts.clear()


login_limiter = SlidingWindowLimiter(settings.login_rate_limit, settings.login_rate_window_seconds)


def limit_requests(scope: str, limiter: SlidingWindowLimiter = login_limiter) -> Callable[[Request], None]:
    async def dependency(request: Request) -> None:
        client = request.client.host if request.client else "anonymous"
        wait = await limiter.retry_after(f"{scope}:{client}")
        if wait is not None:
            logger.warning("Rate limit hit for %s from %s", scope, client)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many attempts; try again later.",
                headers={"Retry-After": str(wait)},
            )

    return dependency
