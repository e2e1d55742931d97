"""
Tests for query-driven ranking, its cache and the glob fallback.
"""

import pytest

from ctxsnap.modules.caches import SearchCache
from ctxsnap.modules.intelligent_search import IntelligentSearch
from ctxsnap.modules.relevance import RelevanceScorer


@pytest.fixture
def auth_project(make_tree):
    return make_tree(
        {
            "src/authController.ts": "export function login(user) { return user }",
            "src/index.ts": "import app from './app'\napp.render()",
            "README.md": "# readme\ninstall steps",
            "node_modules/auth/index.js": "module.exports = auth",
            "dist/auth.js": "auth",
        }
    )


@pytest.fixture
def search(fake_clock):
    return IntelligentSearch(RelevanceScorer(), SearchCache(clock=fake_clock))


class TestSearch:
    """Ranking over the project tree."""

    @pytest.mark.anyio
    async def test_ranks_matching_file_only(self, auth_project, search):
        results = await search.search(str(auth_project), "auth")

        assert [r.path for r in results] == ["src/authController.ts"]
        top = results[0]
        assert top.relevance_score > 0
        assert top.matched_keywords == ["auth"]
        assert top.file_type == "typescript"
        assert top.size > 0

    @pytest.mark.anyio
    async def test_max_results_truncates(self, make_tree, search):
        root = make_tree({f"src/cart{i}.ts": "x" for i in range(5)})
        results = await search.search(str(root), "cart", max_results=3)
        assert len(results) == 3
        # Equal scores fall back to path order.
        assert [r.path for r in results] == ["src/cart0.ts", "src/cart1.ts", "src/cart2.ts"]

    @pytest.mark.anyio
    async def test_cache_hit_and_clear(self, auth_project, search):
        root = str(auth_project)
        first = await search.search(root, "auth")

        (auth_project / "src" / "authService.ts").write_text("export {}", encoding="utf-8")
        second = await search.search(root, "auth")
        assert [r.path for r in second] == [r.path for r in first]
        assert search.cache_stats().hits == 1

        search.clear_cache()
        third = await search.search(root, "auth")
        assert sorted(r.path for r in third) == ["src/authController.ts", "src/authService.ts"]

    @pytest.mark.anyio
    async def test_cache_expires(self, auth_project, search, fake_clock):
        root = str(auth_project)
        await search.search(root, "auth")
        (auth_project / "src" / "authService.ts").write_text("export {}", encoding="utf-8")

        fake_clock.advance(600)
        results = await search.search(root, "auth")
        assert len(results) == 2

    @pytest.mark.anyio
    async def test_no_matches(self, auth_project, search):
        assert await search.search(str(auth_project), "zebra") == []


class TestBuildIntelligentContext:
    @pytest.mark.anyio
    async def test_intelligent_path_reads_content(self, auth_project, search):
        result = await search.build_intelligent_context(str(auth_project), "auth")

        assert result.search_method == "intelligent"
        assert result.total_files == 1
        assert result.files[0].content.startswith("export function login")
        assert result.files[0].matched_keywords == ["auth"]

    @pytest.mark.anyio
    async def test_glob_fallback(self, make_tree, search):
        # .txt is outside the ranked extensions, so only the fallback finds it.
        root = make_tree({"notes/widget.txt": "widget notes", "src/app.ts": "x"})
        result = await search.build_intelligent_context(str(root), "widget")

        assert result.search_method == "fallback"
        assert [f.path for f in result.files] == ["notes/widget.txt"]
        assert result.files[0].relevance_score == 10
        assert result.files[0].content == "widget notes"
