############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# latency_tracker.py: Per-backend latency EMA tracker
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Per-backend latency tracking using Exponential Moving Average (EMA).

EMA formula: ema_new = alpha * observation + (1 - alpha) * ema_old

Backends are keyed as "provider:model".
"""

import asyncio
from typing import Dict, Optional


def backend_key(provider: str, model: str) -> str:
    return f"{provider}:{model}"


class LatencyTracker:
    """Tracks per-backend latency and failures."""

    def __init__(self, alpha: float = 0.3):
        self._alpha = alpha
        self._lock = asyncio.Lock()
        self._latency_ema: Dict[str, float] = {}
        self._observation_count: Dict[str, int] = {}
        self._failure_count: Dict[str, int] = {}

    async def record_latency(self, key: str, latency_ms: float) -> float:
        """Record a successful call's latency, return updated EMA."""
        async with self._lock:
            if key not in self._latency_ema:
                self._latency_ema[key] = latency_ms
                self._observation_count[key] = 1
            else:
                old = self._latency_ema[key]
                self._latency_ema[key] = self._alpha * latency_ms + (1 - self._alpha) * old
                self._observation_count[key] += 1
            return self._latency_ema[key]

    async def record_failure(self, key: str) -> int:
        """Count a failed attempt, return the running total."""
        async with self._lock:
            self._failure_count[key] = self._failure_count.get(key, 0) + 1
            return self._failure_count[key]

    async def get_latency_ema(self, key: str) -> Optional[float]:
        async with self._lock:
            return self._latency_ema.get(key)

    async def snapshot(self) -> Dict[str, Dict[str, float]]:
        """Latency EMA, successes and failures per backend."""
        async with self._lock:
            keys = set(self._latency_ema) | set(self._failure_count)
            return {
                key: {
                    "latency_ema_ms": round(self._latency_ema.get(key, 0.0), 2),
                    "successes": self._observation_count.get(key, 0),
                    "failures": self._failure_count.get(key, 0),
                }
                for key in sorted(keys)
            }
