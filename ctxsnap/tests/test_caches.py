"""
Tests for the in-memory caches: TTL expiry, oldest-first trimming and
mtime-validated file content.
"""

import os

import pytest

from ctxsnap.modules.caches import (
    ContentCache,
    GlobPatternCache,
    RecentFilesCache,
    SearchCache,
    TTLCache,
)
from ctxsnap.modules.virtual_fs import InMemoryVirtualFileSystem


class TestTTLCache:
    """Expiry and eviction of timestamped entries."""

    def test_entry_served_until_ttl_elapses(self, fake_clock):
        cache = GlobPatternCache(clock=fake_clock)
        cache.set("k", ["a.ts"])

        fake_clock.advance(299)
        assert cache.get("k") == ["a.ts"]

        fake_clock.advance(1)
        assert cache.get("k") is None
        assert "k" not in cache

        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1

    def test_explicit_timestamp_ages_entry(self, fake_clock):
        cache = SearchCache(clock=fake_clock)
        cache.set("q", [], timestamp=fake_clock() - 599)
        assert cache.get("q") == []

        fake_clock.advance(1)
        assert cache.get("q") is None

    def test_oldest_entries_trimmed_over_capacity(self, fake_clock):
        cache = TTLCache("t", ttl_seconds=100, max_entries=10, evict_fraction=0.2, clock=fake_clock)
        for i in range(11):
            cache.set(f"k{i}", i)

        # ceil(11 * 0.2) == 3 oldest removed
        assert len(cache) == 8
        assert "k0" not in cache and "k1" not in cache and "k2" not in cache
        assert cache.get("k3") == 3
        assert cache.stats().evictions == 3

    def test_clear(self, fake_clock):
        cache = RecentFilesCache(clock=fake_clock)
        cache.set("a", ["x"])
        cache.clear()
        assert len(cache) == 0
        assert cache.stats().entries == 0

    def test_keys(self):
        assert GlobPatternCache.make_key("/app", ["src/*.ts", "lib/*.ts"]) == "/app:lib/*.ts,src/*.ts"
        assert SearchCache.make_key("/app", "auth", 10) == "/app:auth:10"
        assert RecentFilesCache.make_key("/app", 7) == "/app:7"

    def test_presets_have_expected_ttls(self):
        assert GlobPatternCache().ttl_seconds == 300
        assert SearchCache().ttl_seconds == 600
        assert RecentFilesCache().ttl_seconds == 300


class TestContentCache:
    """File bodies validated against the current mtime."""

    @pytest.mark.anyio
    async def test_hit_when_unchanged(self, tmp_path):
        target = tmp_path / "a.ts"
        target.write_text("one", encoding="utf-8")
        cache = ContentCache()

        assert await cache.read(str(target)) == "one"
        assert await cache.read(str(target)) == "one"

        stats = cache.stats()
        assert stats.misses == 1
        assert stats.hits == 1
        assert stats.disk_reads == 1

    @pytest.mark.anyio
    async def test_reload_when_mtime_changes(self, tmp_path):
        target = tmp_path / "a.ts"
        target.write_text("one", encoding="utf-8")
        cache = ContentCache()
        await cache.read(str(target))

        target.write_text("two", encoding="utf-8")
        later = os.stat(target).st_mtime_ns + 5_000_000_000
        os.utime(target, ns=(later, later))

        assert await cache.read(str(target)) == "two"
        assert cache.stats().disk_reads == 2
        assert cache.get_cached(str(target)).mtime_ns == later

    @pytest.mark.anyio
    async def test_overlay_consulted_first(self, tmp_path):
        vfs = InMemoryVirtualFileSystem(str(tmp_path), files={"new.ts": "virtual"})
        cache = ContentCache()

        assert await cache.read(str(tmp_path / "new.ts"), vfs) == "virtual"
        stats = cache.stats()
        assert stats.overlay_hits == 1
        assert stats.disk_reads == 0

    @pytest.mark.anyio
    async def test_missing_file_returns_none(self, tmp_path):
        cache = ContentCache()
        assert await cache.read(str(tmp_path / "missing.ts")) is None

    @pytest.mark.anyio
    async def test_eviction_over_bound(self, tmp_path):
        cache = ContentCache(max_entries=4, evict_fraction=0.25)
        paths = []
        for i in range(5):
            p = tmp_path / f"f{i}.ts"
            p.write_text(str(i), encoding="utf-8")
            paths.append(str(p))
            await cache.read(str(p))

        assert len(cache) == 4
        assert paths[0] not in cache
        assert paths[4] in cache
        assert cache.stats().evictions == 1
