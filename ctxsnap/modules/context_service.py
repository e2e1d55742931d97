"""
ContextService: the single owner of every cache in the pipeline.

Wires the gitignore resolver, file collector, content cache, extractor,
intelligent search and minimal reducer together and exposes the operations a
prompt builder needs. Two services never share state.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from loguru import logger

from .caches import (
    CacheStats,
    Clock,
    ContentCache,
    GlobPatternCache,
    RecentFilesCache,
    SearchCache,
)
from .context_extractor import ContextExtractor
from .file_collector import FileCollector
from .gitignore import GitIgnoreResolver
from .intelligent_search import IntelligentSearch
from .minimal_context import MinimalContextReducer, render_minimal_context
from .relevance import RelevanceScorer
from .schemas import (
    ChatContext,
    CodebaseContext,
    ExtractionResult,
    IntelligentContextResult,
    MinimalContextResult,
    SearchResult,
)
from .settings import ContextSettings
from .token_utils import TokenEstimator, estimate_tokens
from .virtual_fs import VirtualFileSystem

DEFAULT_CONTEXT_QUERY = "context analysis"


class ContextService:
    """
    Facade over extraction, search and reduction.

    Usage:
        service = ContextService()
        ctx = await service.build_codebase_context("/repo", ChatContext(), ContextSettings())
        prompt_block = ctx.formatted_output
    """

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        token_estimator: TokenEstimator = estimate_tokens,
        max_concurrency: Optional[int] = None,
        max_file_size: Optional[int] = None,
    ) -> None:
        self.token_estimator = token_estimator

        self.glob_cache = GlobPatternCache(clock=clock)
        self.search_cache = SearchCache(clock=clock)
        self.recent_cache = RecentFilesCache(clock=clock)
        self.content_cache = ContentCache()
        self.gitignore = GitIgnoreResolver()

        collector_kwargs = {"max_concurrency": max_concurrency}
        if max_file_size is not None:
            collector_kwargs["max_file_size"] = max_file_size
        self.collector = FileCollector(self.gitignore, self.glob_cache, **collector_kwargs)

        self.extractor = ContextExtractor(self.collector, self.content_cache)
        self.intelligent_search = IntelligentSearch(RelevanceScorer(), self.search_cache)
        self.reducer = MinimalContextReducer(self.recent_cache, token_estimator)

    # -------------------------------------------------------------------------
    # operations
    # -------------------------------------------------------------------------

    async def extract_codebase(
        self,
        app_path: str,
        chat_context: Optional[ChatContext] = None,
        settings: Optional[ContextSettings] = None,
        virtual_fs: Optional[VirtualFileSystem] = None,
    ) -> ExtractionResult:
        return await self.extractor.extract(
            app_path,
            chat_context or ChatContext(),
            settings or ContextSettings(),
            virtual_fs,
        )

    async def search(self, app_path: str, query: str, max_results: int = 10) -> List[SearchResult]:
        return await self.intelligent_search.search(app_path, query, max_results)

    async def build_intelligent_context(
        self,
        app_path: str,
        query: str,
        max_files: int = 15,
    ) -> IntelligentContextResult:
        return await self.intelligent_search.build_intelligent_context(app_path, query, max_files)

    async def build_minimal_context(
        self,
        app_path: str,
        query: str,
        settings: Optional[ContextSettings] = None,
    ) -> MinimalContextResult:
        return await self.reducer.build(app_path, query, settings or ContextSettings())

    async def build_codebase_context(
        self,
        app_path: str,
        chat_context: Optional[ChatContext] = None,
        settings: Optional[ContextSettings] = None,
        query: str = DEFAULT_CONTEXT_QUERY,
        virtual_fs: Optional[VirtualFileSystem] = None,
    ) -> CodebaseContext:
        """
        Extract the codebase and, when adaptive context is on and the
        estimate exceeds the threshold, replace it with minimal context.

        Args:
            app_path: Project root
            chat_context: Include/exclude/auto-include globs
            settings: Feature flags and reducer bounds
            query: Query driving the minimal reducer
            virtual_fs: Optional in-memory overlay

        Returns:
            CodebaseContext with the formatted block actually used
        """
        settings = settings or ContextSettings()
        extraction = await self.extract_codebase(app_path, chat_context, settings, virtual_fs)
        codebase_tokens = self.token_estimator(extraction.formatted_output)

        if settings.adaptive_context_enabled and codebase_tokens > settings.minimal_context_threshold_tokens:
            logger.info(
                f"Codebase estimate {codebase_tokens} tokens exceeds "
                f"{settings.minimal_context_threshold_tokens}; using minimal context"
            )
            minimal = await self.build_minimal_context(app_path, query, settings)
            return CodebaseContext(
                formatted_output=render_minimal_context(minimal),
                files=extraction.files,
                codebase_tokens=codebase_tokens,
                using_minimal_context=True,
                minimal_context=minimal,
            )

        return CodebaseContext(
            formatted_output=extraction.formatted_output,
            files=extraction.files,
            codebase_tokens=codebase_tokens,
        )

    # -------------------------------------------------------------------------
    # cache management
    # -------------------------------------------------------------------------

    def clear_search_cache(self) -> None:
        self.intelligent_search.clear_cache()

    def search_cache_stats(self) -> CacheStats:
        return self.intelligent_search.cache_stats()

    def clear_caches(self) -> None:
        self.glob_cache.clear()
        self.search_cache.clear()
        self.recent_cache.clear()
        self.content_cache.clear()
        self.gitignore.clear()
        logger.info("All context caches cleared")

    def cache_stats(self) -> Dict[str, CacheStats]:
        gitignore_stats = CacheStats(
            name="gitignore",
            entries=len(self.gitignore),
            hits=self.gitignore.hits,
            misses=self.gitignore.misses,
            evictions=self.gitignore.invalidations,
        )
        return {
            stats.name: stats
            for stats in (
                self.glob_cache.stats(),
                self.search_cache.stats(),
                self.recent_cache.stats(),
                self.content_cache.stats(),
                gitignore_stats,
            )
        }
