"""
In-memory caches for the context pipeline.

Every cache is an explicit object with an injected clock and explicit
capacity/TTL parameters, owned by one ContextService. Nothing is persisted.

- TTLCache: timestamped entries, expiry on read, oldest-first trimming
- GlobPatternCache / SearchCache / RecentFilesCache: TTLCache presets
- ContentCache: file bodies validated against the file's current mtime

Entries are only ever values computed in-process. Populating an entry may
await (glob resolution, reads) so two identical requests can both compute
and both store; the last write wins and the stored value is equally valid.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

import anyio
from loguru import logger

from .schemas import SearchResult

Clock = Callable[[], float]
V = TypeVar("V")


@dataclass
class CacheStats:
    name: str
    entries: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    # ContentCache only
    disk_reads: int = 0
    overlay_hits: int = 0


@dataclass
class _Timestamped(Generic[V]):
    value: V
    timestamp: float


def _evict_oldest(store: Dict, count: int) -> int:
    # dict preserves insertion order; the first keys are the oldest.
    victims = list(store.keys())[:count]
    for key in victims:
        del store[key]
    return len(victims)


# =============================================================================
# TTL CACHES
# =============================================================================


class TTLCache(Generic[V]):
    """
    Timestamped key/value cache.

    An entry is served only while ``now - timestamp < ttl_seconds``. When the
    entry count exceeds ``max_entries`` the oldest ``ceil(size * evict_fraction)``
    entries (insertion order) are dropped.

    Usage:
        cache = TTLCache("glob", ttl_seconds=300, clock=fake_clock)
        cache.set("key", ["a.ts"])
        cache.get("key")
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        max_entries: int = 100,
        evict_fraction: float = 0.2,
        clock: Optional[Clock] = None,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.evict_fraction = evict_fraction
        self._clock: Clock = clock or time.time
        self._store: Dict[str, _Timestamped[V]] = {}
        self._stats = CacheStats(name=name)

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> Optional[V]:
        entry = self._store.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        if self._clock() - entry.timestamp >= self.ttl_seconds:
            del self._store[key]
            self._stats.misses += 1
            return None

        self._stats.hits += 1
        return entry.value

    def set(self, key: str, value: V, *, timestamp: Optional[float] = None) -> None:
        stamp = self._clock() if timestamp is None else timestamp
        self._store[key] = _Timestamped(value=value, timestamp=stamp)

        if len(self._store) > self.max_entries:
            count = math.ceil(len(self._store) * self.evict_fraction)
            self._stats.evictions += _evict_oldest(self._store, count)

    def clear(self) -> None:
        self._store.clear()
        logger.debug(f"Cache cleared: {self.name}")

    def stats(self) -> CacheStats:
        self._stats.entries = len(self._store)
        return CacheStats(**vars(self._stats))

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store


class GlobPatternCache(TTLCache[List[str]]):
    """Results of selective glob collection, 5 minute TTL."""

    def __init__(self, clock: Optional[Clock] = None, ttl_seconds: float = 5 * 60, max_entries: int = 100) -> None:
        super().__init__("glob_patterns", ttl_seconds=ttl_seconds, max_entries=max_entries, clock=clock)

    @staticmethod
    def make_key(app_path: str, patterns: Iterable[str]) -> str:
        return f"{app_path}:{','.join(sorted(patterns))}"


class SearchCache(TTLCache[List[SearchResult]]):
    """Intelligent search results, 10 minute TTL."""

    def __init__(self, clock: Optional[Clock] = None, ttl_seconds: float = 10 * 60, max_entries: int = 100) -> None:
        super().__init__("search", ttl_seconds=ttl_seconds, max_entries=max_entries, clock=clock)

    @staticmethod
    def make_key(app_path: str, query: str, max_results: int) -> str:
        return f"{app_path}:{query}:{max_results}"


class RecentFilesCache(TTLCache[List[str]]):
    """Recently modified files per (app, days), 5 minute TTL."""

    def __init__(self, clock: Optional[Clock] = None, ttl_seconds: float = 5 * 60, max_entries: int = 100) -> None:
        super().__init__("recent_files", ttl_seconds=ttl_seconds, max_entries=max_entries, clock=clock)

    @staticmethod
    def make_key(app_path: str, days: int) -> str:
        return f"{app_path}:{days}"


# =============================================================================
# CONTENT CACHE
# =============================================================================


@dataclass(frozen=True)
class CachedContent:
    path: str
    content: str
    mtime_ns: int


class ContentCache:
    """
    File bodies keyed by absolute path and validated by mtime.

    A hit requires the stored mtime to equal the current stat exactly; a stale
    entry is replaced, never merged. Above ``max_entries`` the oldest
    ``ceil(max_entries * evict_fraction)`` entries are dropped.
    """

    def __init__(self, max_entries: int = 500, evict_fraction: float = 0.25) -> None:
        self.max_entries = max_entries
        self.evict_fraction = evict_fraction
        self._store: Dict[str, CachedContent] = {}
        self._stats = CacheStats(name="content")

    async def read(self, path: str, overlay=None) -> Optional[str]:
        """
        Return the text of ``path``.

        Args:
            path: Absolute file path
            overlay: Optional VirtualFileSystem consulted before the disk

        Returns:
            The content, or None when the file cannot be read
        """
        try:
            if overlay is not None:
                virtual_content = await overlay.read_file(path)
                if virtual_content is not None:
                    self._stats.overlay_hits += 1
                    return virtual_content

            apath = anyio.Path(path)
            current_mtime = (await apath.stat()).st_mtime_ns

            cached = self._store.get(path)
            if cached is not None and cached.mtime_ns == current_mtime:
                self._stats.hits += 1
                return cached.content

            self._stats.misses += 1
            content = await apath.read_text(encoding="utf-8", errors="replace")
            self._stats.disk_reads += 1
            self._store[path] = CachedContent(path=path, content=content, mtime_ns=current_mtime)

            if len(self._store) > self.max_entries:
                count = math.ceil(self.max_entries * self.evict_fraction)
                self._stats.evictions += _evict_oldest(self._store, count)

            return content
        except Exception as e:
            logger.error(f"Error reading file: {path}: {e}")
            return None

    def get_cached(self, path: str) -> Optional[CachedContent]:
        return self._store.get(path)

    def clear(self) -> None:
        self._store.clear()
        logger.debug("Cache cleared: content")

    def stats(self) -> CacheStats:
        self._stats.entries = len(self._store)
        return CacheStats(**vars(self._stats))

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store
