"""
Tests for the ContextService facade and its adaptive switch.
"""

import pytest

from ctxsnap.modules.context_service import ContextService
from ctxsnap.modules.settings import ContextSettings
from ctxsnap.modules.token_utils import estimate_tokens


class TestBuildCodebaseContext:
    """Full extraction unless adaptive context says the codebase is too large."""

    @pytest.mark.anyio
    async def test_full_extraction_by_default(self, make_tree, fake_clock):
        root = make_tree({"src/a.ts": "x" * 200})
        service = ContextService(clock=fake_clock)

        extraction = await service.extract_codebase(str(root))
        ctx = await service.build_codebase_context(str(root))

        assert ctx.using_minimal_context is False
        assert ctx.minimal_context is None
        assert ctx.formatted_output == extraction.formatted_output
        assert ctx.codebase_tokens == estimate_tokens(extraction.formatted_output)

    @pytest.mark.anyio
    async def test_switches_to_minimal_above_threshold(self, make_tree):
        root = make_tree({"src/a.ts": "x" * 200, "src/b.ts": "y" * 200})
        service = ContextService()
        settings = ContextSettings(adaptive_context_enabled=True, minimal_context_threshold_tokens=10)

        ctx = await service.build_codebase_context(str(root), settings=settings, query="fix b")

        assert ctx.using_minimal_context is True
        assert ctx.minimal_context is not None
        assert ctx.minimal_context.files
        assert ctx.formatted_output.startswith('<dyad-file path="src/')
        assert "</dyad-file>\n\n<dyad-file" in ctx.formatted_output
        # The structured view still reflects the full extraction.
        assert sorted(f.path for f in ctx.files) == ["src/a.ts", "src/b.ts"]

    @pytest.mark.anyio
    async def test_stays_full_below_threshold(self, make_tree, fake_clock):
        root = make_tree({"src/a.ts": "x"})
        service = ContextService(clock=fake_clock)
        settings = ContextSettings(adaptive_context_enabled=True, minimal_context_threshold_tokens=10_000)

        ctx = await service.build_codebase_context(str(root), settings=settings)
        assert ctx.using_minimal_context is False

    @pytest.mark.anyio
    async def test_custom_token_estimator(self, make_tree, fake_clock):
        root = make_tree({"src/a.ts": "x"})
        service = ContextService(clock=fake_clock, token_estimator=lambda text: 7)

        ctx = await service.build_codebase_context(str(root))
        assert ctx.codebase_tokens == 7


class TestCacheManagement:
    @pytest.mark.anyio
    async def test_stats_and_clear(self, make_tree, fake_clock):
        root = make_tree({"src/auth.ts": "x", ".gitignore": "*.log\n"})
        service = ContextService(clock=fake_clock)

        await service.extract_codebase(str(root))
        await service.search(str(root), "auth")

        stats = service.cache_stats()
        assert set(stats) == {"glob_patterns", "search", "recent_files", "content", "gitignore"}
        assert stats["content"].entries == 2
        assert stats["search"].entries == 1
        assert service.search_cache_stats().entries == 1

        service.clear_search_cache()
        assert service.search_cache_stats().entries == 0

        service.clear_caches()
        assert all(s.entries == 0 for s in service.cache_stats().values())

    @pytest.mark.anyio
    async def test_services_do_not_share_state(self, make_tree, fake_clock):
        root = make_tree({"src/auth.ts": "x"})
        first = ContextService(clock=fake_clock)
        second = ContextService(clock=fake_clock)

        await first.search(str(root), "auth")
        assert second.search_cache_stats().entries == 0
