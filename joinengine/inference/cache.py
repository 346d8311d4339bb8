"""
Suggestion Cache

Memoises inference results per (data source, schema).

- Entries are immutable; a recompute replaces the whole entry in one dict
  assignment, so readers see either the complete old or the complete new value.
- Concurrent misses for one key share a single in-flight computation.
- Invalidation bumps a per-key generation: a computation started before the
  invalidation still answers its waiters but is not stored.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

from loguru import logger

from joinengine.config.settings import settings
from joinengine.inference.models import InferenceResult
from joinengine.schema.models import SchemaSnapshot


def cache_key(data_source_id: int, schema_name: str) -> str:
    return f"join-suggestions:ds{data_source_id}:{schema_name}"


@dataclass(frozen=True)
class CacheEntry:
    schema: SchemaSnapshot
    result: InferenceResult
    created_at: float
    generation: int = 0

    @property
    def suggestions(self):
        return self.result.suggestions


Computation = Callable[[], Awaitable[Tuple[SchemaSnapshot, InferenceResult]]]


class SuggestionCache:
    """
    Usage:
        cache = SuggestionCache(ttl_seconds=86400)
        entry, hit = await cache.get_or_compute(2, "public", compute)
        cache.invalidate(2, "public")
    """

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.suggestion_cache_ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._generations: Dict[str, int] = {}
        self.computations = 0

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return (self._clock() - entry.created_at) < self.ttl_seconds

    def get(self, data_source_id: int, schema_name: str) -> Optional[CacheEntry]:
        """Return the cached entry when present and within TTL"""
        key = cache_key(data_source_id, schema_name)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self._is_fresh(entry):
            logger.debug(f"Cache entry expired: {key}")
            return None
        return entry

    async def get_or_compute(
        self,
        data_source_id: int,
        schema_name: str,
        compute: Computation,
        force_refresh: bool = False,
    ) -> Tuple[CacheEntry, bool]:
        """
        Return (entry, cache_hit), computing the entry on a miss.

        Concurrent callers for the same key await the same computation.
        """
        key = cache_key(data_source_id, schema_name)

        if not force_refresh:
            entry = self.get(data_source_id, schema_name)
            if entry is not None:
                logger.debug(f"Cache hit: {key}")
                return entry, True

        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(self._recompute(key, compute))
            self._inflight[key] = task
        else:
            logger.debug(f"Joining in-flight computation: {key}")

        entry = await asyncio.shield(task)
        return entry, False

    async def _recompute(self, key: str, compute: Computation) -> CacheEntry:
        generation = self._generations.get(key, 0)
        self.computations += 1
        logger.info(f"Computing join suggestions: {key}")
        try:
            schema, result = await compute()
            entry = CacheEntry(
                schema=schema,
                result=result,
                created_at=self._clock(),
                generation=generation,
            )
            if self._generations.get(key, 0) == generation:
                self._entries[key] = entry
            else:
                logger.info(f"Discarding stale computation for {key} (invalidated while running)")
            return entry
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def invalidate(self, data_source_id: int, schema_name: Optional[str] = None) -> int:
        """
        Drop cached entries for a data source (one schema, or all of them).

        Returns:
            Number of cache keys invalidated
        """
        if schema_name is not None:
            keys = [cache_key(data_source_id, schema_name)]
        else:
            prefix = f"join-suggestions:ds{data_source_id}:"
            keys = [k for k in set(self._entries) | set(self._inflight) if k.startswith(prefix)]

        removed = 0
        for key in keys:
            self._generations[key] = self._generations.get(key, 0) + 1
            if self._entries.pop(key, None) is not None:
                removed += 1
            self._inflight.pop(key, None)

        logger.info(f"Invalidated {removed} join suggestion cache entries for ds{data_source_id}")
        return removed

    def __len__(self) -> int:
        return len(self._entries)
