############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# rate_limits.py: Per-caller sliding-window and concurrency limiting
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Rate limiting implementation."""

import asyncio
import math
import time
from collections import defaultdict, deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Deque, Dict, Optional

from backend.app.core.errors import RateLimited
from backend.app.core.schemas import TierPolicy
from backend.app.logging_config import get_logger
from backend.app.settings import get_settings

logger = get_logger(__name__)


@dataclass
class RateLimitState:
    """Rate limit state for a single caller."""

    # Request tracking for the trailing window, oldest first
    request_timestamps: Deque[float] = field(default_factory=deque)

    # Concurrent request tracking
    active_requests: int = 0

    # Last admission or release
    last_seen: float = 0.0


class RatePermit:
    """Admission granted to one request. Release exactly once."""

    def __init__(self, limiter: "RateLimiter", key: str):
        self._limiter = limiter
        self._key = key
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Give the concurrency slot back. Further calls are no-ops."""
        if self._released:
            return
        self._released = True
        self._limiter._release(self._key)


class RateLimiter:
    """
    In-memory rate limiter.

    Tracks per caller:
    - Requests in the trailing window (per-minute ceiling)
    - Concurrent in-flight requests

    Rejections are immediate; callers are never queued.
    """

    def __init__(
        self,
        window_seconds: Optional[int] = None,
        idle_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self._window = float(window_seconds or settings.rate_limit_window_seconds)
        self._idle = float(idle_seconds or settings.rate_limit_idle_seconds)
        self._clock = clock
        self._states: Dict[str, RateLimitState] = defaultdict(RateLimitState)
        self._lock = asyncio.Lock()

    def _prune(self, state: RateLimitState, now: float) -> None:
        cutoff = now - self._window
        while state.request_timestamps and state.request_timestamps[0] <= cutoff:
            state.request_timestamps.popleft()

    async def acquire(self, key: str, policy: TierPolicy) -> RatePermit:
        """
        Admit a request or reject it immediately.

        A per-minute rejection computes retry_after from the oldest timestamp
        in the trailing window. A concurrency rejection has no timestamp to
        go by (slots free up when in-flight requests finish), so it hints 1s.

        Args:
            key: Caller identifier
            policy: The caller's tier policy (ceilings)

        Returns:
            RatePermit to release when the request finishes

        Raises:
            RateLimited: If either ceiling is reached
        """
        async with self._lock:
            state = self._states[key]
            now = self._clock()
            self._prune(state, now)

            if state.active_requests >= policy.max_concurrent:
                logger.info(
                    "rate_limited",
                    caller_id=key,
                    tier=policy.tier.value,
                    reason="concurrency",
                    active=state.active_requests,
                )
                raise RateLimited(
                    f"Too many concurrent requests (max {policy.max_concurrent} "
                    f"for {policy.tier.value} tier)",
                    retry_after=1,
                )

            if len(state.request_timestamps) >= policy.requests_per_minute:
                oldest = state.request_timestamps[0]
                retry_after = max(0, math.ceil(oldest + self._window - now))
                logger.info(
                    "rate_limited",
                    caller_id=key,
                    tier=policy.tier.value,
                    reason="requests_per_minute",
                    retry_after=retry_after,
                )
                raise RateLimited(
                    f"Rate limit exceeded ({policy.requests_per_minute}/min for "
                    f"{policy.tier.value} tier). Retry after {retry_after}s",
                    retry_after=retry_after,
                )

            state.request_timestamps.append(now)
            state.active_requests += 1
            state.last_seen = now
            return RatePermit(self, key)

    def _release(self, key: str) -> None:
        # No await between read and write, so this is atomic on the event loop.
        state = self._states.get(key)
        if state is None:
            return
        state.active_requests = max(0, state.active_requests - 1)
        state.last_seen = self._clock()

    @asynccontextmanager
    async def admit(self, key: str, policy: TierPolicy) -> AsyncIterator[RatePermit]:
        """Scoped admission: the slot is released on every exit path."""
        permit = await self.acquire(key, policy)
        try:
            yield permit
        finally:
            permit.release()

    async def get_state(self, key: str) -> Dict:
        """Get rate limit state for a caller."""
        async with self._lock:
            state = self._states.get(key)
            if state is None:
                return {"requests_last_minute": 0, "active_requests": 0}
            self._prune(state, self._clock())
            return {
                "requests_last_minute": len(state.request_timestamps),
                "active_requests": state.active_requests,
            }

    async def cleanup(self) -> int:
        """Drop state for callers idle longer than the idle window."""
        async with self._lock:
            now = self._clock()
            keys_to_remove = []
            for key, state in self._states.items():
                self._prune(state, now)
                if (
                    state.active_requests == 0
                    and not state.request_timestamps
                    and now - state.last_seen > self._idle
                ):
                    keys_to_remove.append(key)

            for key in keys_to_remove:
                del self._states[key]
            return len(keys_to_remove)

    def __len__(self) -> int:
        return len(self._states)
