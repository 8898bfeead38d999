############################################################
#
# errorwise - Tiered LLM Analysis Orchestrator
#
# cache.py: Content-addressed response cache with TTL and bounded size
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Response cache.

Entries are keyed by a digest of the tier, the classifiers and a normalized
form of the request text. Expired entries are misses and are evicted when
seen; occupancy is bounded with oldest-first eviction.
"""

import asyncio
import hashlib
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from backend.app.core.schemas import AnalysisResult, RequestContext
from backend.app.logging_config import get_logger
from backend.app.settings import get_settings

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_for_key(text: Optional[str]) -> str:
    """Case-fold and collapse whitespace."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.casefold()).strip()


def make_cache_key(context: RequestContext) -> str:
    """Deterministic key for a request."""
    parts = [
        context.tier.value,
        context.language or "",
        context.category or "",
        normalize_for_key(context.text),
        normalize_for_key(context.code_snippet),
    ]
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    """A cached result and when it was stored."""

    key: str
    value: AnalysisResult
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class ResponseCache:
    """In-memory TTL cache with insertion-ordered eviction."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self._ttl = float(ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds)
        self._max_entries = max_entries if max_entries is not None else settings.cache_max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def max_entries(self) -> int:
        return self._max_entries

    async def get(self, key: str) -> Optional[AnalysisResult]:
        """Return the cached result, or None on miss/expiry."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                logger.debug("cache_expired", key=key[:16])
                return None
            self._hits += 1
            logger.debug("cache_hit", key=key[:16])
            return entry.value

    async def put(self, key: str, value: AnalysisResult) -> None:
        """Store a result, evicting the oldest entries past capacity."""
        async with self._lock:
            # Re-insert so a refreshed key counts as newest
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                key=key, value=value, created_at=self._clock(), ttl=self._ttl
            )
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("cache_evicted", key=evicted[:16])

    async def purge_expired(self) -> int:
        """Remove every expired entry."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("cache_purged", removed=len(expired))
        return len(expired)

    async def clear(self) -> int:
        """Drop everything, return how many entries were removed."""
        async with self._lock:
            size = len(self._entries)
            self._entries.clear()
        logger.info("cache_cleared", removed=size)
        return size

    def stats(self) -> Dict[str, float]:
        return {
            "size": len(self._entries),
            "max_size": self._max_entries,
            "ttl_seconds": self._ttl,
            "hits": self._hits,
            "misses": self._misses,
        }

    def __len__(self) -> int:
        return len(self._entries)
