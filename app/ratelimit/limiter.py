"""Fixed-window admission control keyed by caller identity.

Windows are aligned to multiples of the window length since the epoch, so
every caller's counter resets at the same instant. A caller without an
identity (no ``X-Real-IP`` header) shares the empty-string bucket with every
other anonymous caller.

If the counter backend is unavailable the limiter admits the request
(fail-open): availability of the generate endpoint wins over strictness.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admission:
    allowed: bool
    limit: int
    remaining: int


class RateLimiter(ABC):
    """Abstract admission gate."""

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: int = 1440 * 60,
        clock: Callable[[], float] = time.time,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    def _window(self) -> int:
        return int(self._clock() // self.window_seconds)

    def _admission(self, count: int) -> Admission:
        return Admission(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
        )

    def _open(self) -> Admission:
        return Admission(allowed=True, limit=self.max_requests, remaining=self.max_requests)

    @abstractmethod
    async def admit(self, identity: Optional[str]) -> Admission:
        """Count one request against ``identity`` and decide admission."""
        ...


class NoopRateLimiter(RateLimiter):
    """Admits everything. Used when no backend is configured or limiting is off."""

    async def admit(self, identity: Optional[str]) -> Admission:
        return self._open()


class InMemoryRateLimiter(RateLimiter):
    """Process-local fixed-window counter."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._counts: Dict[Tuple[str, int], int] = {}

    async def admit(self, identity: Optional[str]) -> Admission:
        window = self._window()
        key = (identity or "", window)
        # Drop counters from earlier windows
        for stale in [k for k in self._counts if k[1] < window]:
            del self._counts[stale]
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._admission(self._counts[key])


class RedisRateLimiter(RateLimiter):
    """Fixed-window counter stored in Redis (INCR, then EXPIRE NX)."""

    def __init__(self, client, *args, key_prefix: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self._client = client
        self._prefix = key_prefix

    async def admit(self, identity: Optional[str]) -> Admission:
        window = self._window()
        key = f"{self._prefix}ratelimit:{identity or ''}:{window}"
        try:
            count = int(await self._client.incr(key))
            # NX on every hit: a key whose first EXPIRE was lost still gets a TTL
            await self._client.expire(key, self.window_seconds, nx=True)
        except Exception as exc:
            logger.warning("Rate limiter unavailable, admitting request: %s", exc)
            return self._open()
        return self._admission(count)
