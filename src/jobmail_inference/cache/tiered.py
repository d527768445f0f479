"""
Tiered in-memory cache.

Five logical namespaces, each with its own TTL and entry cap. Entries carry
the RecordSource they were derived from, which can shorten (or zero) the
TTL, and a set of tags (normalized company/title strings) used for broad
invalidation when the user edits a record.

All mutations are plain synchronous code on the event loop thread, so no
locking is needed; callers that want single-flight semantics per key hold
a KeyedLock around lookup + compute + store.
"""

import asyncio
import contextlib
import copy
import re
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional

import structlog

from jobmail_inference.config import Settings
from jobmail_inference.models.enums import RecordSource
from jobmail_inference.monitoring.metrics import cache_evictions_total, cache_requests_total

logger = structlog.get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


class CacheNamespace(str, Enum):
    CLASSIFICATION = "classification"
    PARSE = "parse"
    MANUAL_RECORD = "manual_record"
    CONFLICT_CHECK = "conflict_check"
    DUPLICATE_CHECK = "duplicate_check"


@dataclass(frozen=True)
class NamespacePolicy:
    ttl_seconds: float
    max_entries: int


@dataclass
class CacheEntry:
    """One cached value. Visible only while ``now - created_at < ttl``."""

    key: str
    value: Any
    created_at: float
    ttl: float
    source: RecordSource
    last_access: float
    tags: frozenset[str] = field(default_factory=frozenset)

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


@dataclass
class _NamespaceStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0


def normalize_tag(value: Optional[str]) -> str:
    return _WHITESPACE.sub(" ", (value or "").lower()).strip()


def policies_from_settings(settings: Settings) -> dict[CacheNamespace, NamespacePolicy]:
    return {
        CacheNamespace.CLASSIFICATION: NamespacePolicy(
            settings.CACHE_CLASSIFICATION_TTL_SECONDS, settings.CACHE_CLASSIFICATION_MAX_ENTRIES
        ),
        CacheNamespace.PARSE: NamespacePolicy(settings.CACHE_PARSE_TTL_SECONDS, settings.CACHE_PARSE_MAX_ENTRIES),
        CacheNamespace.MANUAL_RECORD: NamespacePolicy(
            settings.CACHE_MANUAL_RECORD_TTL_SECONDS, settings.CACHE_MANUAL_RECORD_MAX_ENTRIES
        ),
        CacheNamespace.CONFLICT_CHECK: NamespacePolicy(
            settings.CACHE_CONFLICT_CHECK_TTL_SECONDS, settings.CACHE_CONFLICT_CHECK_MAX_ENTRIES
        ),
        CacheNamespace.DUPLICATE_CHECK: NamespacePolicy(
            settings.CACHE_DUPLICATE_CHECK_TTL_SECONDS, settings.CACHE_DUPLICATE_CHECK_MAX_ENTRIES
        ),
    }


class TieredCache:
    """
    Namespaced LRU cache with source-aware TTLs.

    Values are deep-copied on the way in and on the way out, so callers can
    mutate what they get back without corrupting the cache.
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            settings: Application settings (TTLs, caps, sweep interval)
            clock: Seconds-valued clock; injectable for tests
        """
        self.settings = settings
        self.clock = clock
        self.policies = policies_from_settings(settings)
        self._source_ttl = {
            RecordSource.MANUAL_CREATED: 0,
            RecordSource.MANUAL_EDITED: settings.CACHE_MANUAL_EDITED_TTL_SECONDS,
            RecordSource.HYBRID: settings.CACHE_HYBRID_TTL_SECONDS,
        }
        self._entries: dict[CacheNamespace, OrderedDict[str, CacheEntry]] = {
            ns: OrderedDict() for ns in CacheNamespace
        }
        self._stats = {ns: _NamespaceStats() for ns in CacheNamespace}
        self._sweeper: Optional[asyncio.Task] = None

    def ttl_for(self, namespace: CacheNamespace, source: RecordSource) -> float:
        """TTL for a value of ``source`` provenance; AUTO_INFERRED gets the namespace default."""
        namespace_ttl = self.policies[namespace].ttl_seconds
        if source in self._source_ttl:
            return min(self._source_ttl[source], namespace_ttl)
        return namespace_ttl

    def get(self, namespace: CacheNamespace, key: str) -> Optional[Any]:
        """Return a copy of the cached value, or None when absent or expired."""
        entries = self._entries[namespace]
        stats = self._stats[namespace]
        now = self.clock()

        entry = entries.get(key)
        if entry is not None and entry.is_expired(now):
            del entries[key]
            stats.expirations += 1
            cache_evictions_total.labels(namespace=namespace.value, cause="expired").inc()
            entry = None

        if entry is None:
            stats.misses += 1
            cache_requests_total.labels(namespace=namespace.value, result="miss").inc()
            return None

        entry.last_access = now
        entries.move_to_end(key)
        stats.hits += 1
        cache_requests_total.labels(namespace=namespace.value, result="hit").inc()
        return copy.deepcopy(entry.value)

    def set(
        self,
        namespace: CacheNamespace,
        key: str,
        value: Any,
        source: RecordSource = RecordSource.AUTO_INFERRED,
        tags: Iterable[Optional[str]] = (),
    ) -> bool:
        """
        Store ``value`` under ``key``.

        Returns:
            False when the source TTL is zero (value not stored)
        """
        ttl = self.ttl_for(namespace, source)
        if ttl <= 0:
            logger.debug("Not caching zero-TTL value", namespace=namespace.value, source=source.value)
            return False

        now = self.clock()
        entries = self._entries[namespace]
        entries[key] = CacheEntry(
            key=key,
            value=copy.deepcopy(value),
            created_at=now,
            ttl=ttl,
            source=source,
            last_access=now,
            tags=frozenset(t for t in (normalize_tag(tag) for tag in tags) if t),
        )
        entries.move_to_end(key)
        self._evict_over_cap(namespace)
        return True

    def delete(self, namespace: CacheNamespace, key: str) -> bool:
        return self._entries[namespace].pop(key, None) is not None

    def _evict_over_cap(self, namespace: CacheNamespace) -> None:
        entries = self._entries[namespace]
        cap = self.policies[namespace].max_entries
        while len(entries) > cap:
            evicted_key, _ = entries.popitem(last=False)
            self._stats[namespace].evictions += 1
            cache_evictions_total.labels(namespace=namespace.value, cause="lru").inc()
            logger.debug("LRU eviction", namespace=namespace.value, key=evicted_key[:12])

    def invalidate_record(self, company: Optional[str] = None, title: Optional[str] = None) -> int:
        """
        Drop everything that may depend on a record's company or title.

        Removes every entry in any namespace tagged with either normalized
        value, and empties the manual_record namespace outright.

        Returns:
            Number of entries removed
        """
        targets = {t for t in (normalize_tag(company), normalize_tag(title)) if t}
        removed = 0
        for namespace, entries in self._entries.items():
            if namespace is CacheNamespace.MANUAL_RECORD:
                doomed = list(entries)
            else:
                doomed = [key for key, entry in entries.items() if entry.tags & targets]
            for key in doomed:
                del entries[key]
            if doomed:
                self._stats[namespace].invalidations += len(doomed)
                cache_evictions_total.labels(namespace=namespace.value, cause="invalidated").inc(len(doomed))
            removed += len(doomed)

        logger.info("Invalidated record caches", company=company, title=title, removed=removed)
        return removed

    def sweep(self) -> int:
        """Remove every expired entry in every namespace. Returns the count removed."""
        now = self.clock()
        removed = 0
        for namespace, entries in self._entries.items():
            expired = [key for key, entry in entries.items() if entry.is_expired(now)]
            for key in expired:
                del entries[key]
            if expired:
                self._stats[namespace].expirations += len(expired)
                cache_evictions_total.labels(namespace=namespace.value, cause="expired").inc(len(expired))
            removed += len(expired)
        if removed:
            logger.info("Cache sweep removed expired entries", removed=removed)
        return removed

    def start_sweeper(self, interval: Optional[float] = None) -> asyncio.Task:
        """Start the periodic sweep on the running loop (idempotent)."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        interval = interval or self.settings.CACHE_SWEEP_INTERVAL_SECONDS
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever(interval))
        logger.info("Cache sweeper started", interval_seconds=interval)
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None
        logger.info("Cache sweeper stopped")

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def clear(self, namespace: Optional[CacheNamespace] = None) -> None:
        for ns in ([namespace] if namespace else list(CacheNamespace)):
            self._entries[ns].clear()

    def size(self, namespace: CacheNamespace) -> int:
        return len(self._entries[namespace])

    def keys(self, namespace: CacheNamespace) -> list[str]:
        """Keys in LRU order (least recently used first)."""
        return list(self._entries[namespace])

    def stats(self) -> dict[str, dict[str, Any]]:
        return {
            ns.value: {
                "size": len(self._entries[ns]),
                "max_entries": self.policies[ns].max_entries,
                "ttl_seconds": self.policies[ns].ttl_seconds,
                "hits": self._stats[ns].hits,
                "misses": self._stats[ns].misses,
                "evictions": self._stats[ns].evictions,
                "expirations": self._stats[ns].expirations,
                "invalidations": self._stats[ns].invalidations,
            }
            for ns in CacheNamespace
        }
