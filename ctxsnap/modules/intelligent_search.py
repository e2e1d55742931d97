"""
Intelligent search: query-driven ranking of a whole project tree.

Independent of extraction. Collects source files through a fixed extension
glob, samples each file's head for identifiers, scores every file with the
RelevanceScorer and caches the ranking for 10 minutes per
(app path, query, max results).
"""

from __future__ import annotations

import asyncio
import os
from typing import List, Optional, Sequence

import anyio
from loguru import logger

from .caches import CacheStats, SearchCache
from .globbing import GlobFilter, resolve_glob
from .relevance import (
    RelevanceScorer,
    ScoredFile,
    extract_content_keywords,
    extract_keywords,
    get_file_type,
)
from .schemas import IntelligentContextFile, IntelligentContextResult, SearchResult

SEARCH_GLOB = "**/*.{ts,tsx,js,jsx,py,java,cs,go,rs,php,rb,kt,swift,css,html,vue,svelte,json,md}"
SEARCH_FILTER = GlobFilter(
    ignore_dirs=frozenset({"node_modules", ".git", "dist", "build", ".next", "venv"}),
    ignore_names=("*.min.js", "*.min.css", "package-lock.json", "pnpm-lock.yaml"),
)

FALLBACK_CODE_GLOB = "**/*.{ts,tsx,js,jsx,py,java,cs}"
FALLBACK_FILTER = GlobFilter(ignore_dirs=frozenset({"node_modules", ".git", "dist", "build"}))
FALLBACK_MATCHES_PER_PATTERN = 20
FALLBACK_KEYWORD_WEIGHT = 10

BATCH_SIZE = 100
MAX_SEARCH_FILE_SIZE = 500 * 1024  # 500KB


class IntelligentSearch:
    """
    Ranks project files against a free-text query.

    Usage:
        search = IntelligentSearch(RelevanceScorer(), SearchCache())
        results = await search.search("/repo", "auth login", max_results=10)
    """

    def __init__(self, scorer: RelevanceScorer, cache: SearchCache) -> None:
        self.scorer = scorer
        self.cache = cache

    async def search(self, app_path: str, query: str, max_results: int = 10) -> List[SearchResult]:
        app_path = os.path.abspath(app_path)
        cache_key = SearchCache.make_key(app_path, query, max_results)
        started_at = self.cache.now()

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f'Cache hit for intelligent search: "{query}"')
            return list(cached)

        try:
            logger.debug(f'Running intelligent search for: "{query}"')
            query_keywords = extract_keywords(query)
            candidates = await self._collect_scored_files(app_path, query_keywords)

            ranked = sorted(
                (c for c in candidates if c.score > 0),
                key=lambda c: (-c.score, c.path),
            )[:max_results]

            results = [
                SearchResult(
                    path=c.path,
                    relevance_score=c.score,
                    file_type=c.file_type,
                    size=c.size,
                    matched_keywords=list(c.matched_keywords),
                )
                for c in ranked
            ]
        except Exception as e:
            logger.error(f"Intelligent search failed for {app_path}: {e}")
            return []

        self.cache.set(cache_key, results, timestamp=started_at)
        logger.info(f"Intelligent search found {len(results)} relevant files")
        return list(results)

    async def _collect_scored_files(self, app_path: str, query_keywords: Sequence[str]) -> List[ScoredFile]:
        try:
            all_files = sorted(await resolve_glob(app_path, SEARCH_GLOB, SEARCH_FILTER))
        except Exception as e:
            logger.error(f"Error collecting files for search: {e}")
            return []

        scored: List[ScoredFile] = []
        for i in range(0, len(all_files), BATCH_SIZE):
            batch = all_files[i : i + BATCH_SIZE]
            results = await asyncio.gather(
                *(self._score_one(app_path, path, query_keywords) for path in batch)
            )
            scored.extend(r for r in results if r is not None)
        return scored

    async def _score_one(self, app_path: str, file_path: str, query_keywords: Sequence[str]) -> Optional[ScoredFile]:
        apath = anyio.Path(file_path)
        try:
            stat = await apath.stat()
            if stat.st_size > MAX_SEARCH_FILE_SIZE:
                return None
            content = await apath.read_text(encoding="utf-8", errors="replace")
        except OSError:
            # Unreadable files simply drop out of the ranking.
            return None

        rel = os.path.relpath(file_path, app_path).replace(os.sep, "/")
        candidate = ScoredFile(
            path=rel,
            name=os.path.basename(file_path),
            file_type=get_file_type(file_path),
            size=stat.st_size,
        )
        return self.scorer.score_file(candidate, extract_content_keywords(content), query_keywords)

    # -------------------------------------------------------------------------
    # context building
    # -------------------------------------------------------------------------

    async def build_intelligent_context(
        self,
        app_path: str,
        query: str,
        max_files: int = 15,
    ) -> IntelligentContextResult:
        """Read the top ranked files; fall back to a glob search when nothing ranks."""
        app_path = os.path.abspath(app_path)
        try:
            search_results = await self.search(app_path, query, max_files)
            if not search_results:
                fallback = await self._fallback_glob_search(app_path, query, max_files)
                return IntelligentContextResult(files=fallback, search_method="fallback", total_files=len(fallback))

            context_files: List[IntelligentContextFile] = []
            for result in search_results:
                full_path = os.path.join(app_path, result.path)
                try:
                    content = await anyio.Path(full_path).read_text(encoding="utf-8", errors="replace")
                except OSError as e:
                    logger.warning(f"Error reading file {result.path}: {e}")
                    continue
                context_files.append(
                    IntelligentContextFile(
                        path=result.path,
                        content=content,
                        relevance_score=result.relevance_score,
                        matched_keywords=result.matched_keywords,
                    )
                )

            return IntelligentContextResult(
                files=context_files,
                search_method="intelligent",
                total_files=len(search_results),
            )
        except Exception as e:
            logger.error(f"Error building intelligent context: {e}")
            fallback = await self._fallback_glob_search(app_path, query, max_files)
            return IntelligentContextResult(files=fallback, search_method="fallback", total_files=len(fallback))

    async def _fallback_glob_search(self, app_path: str, query: str, max_files: int) -> List[IntelligentContextFile]:
        keywords = extract_keywords(query)
        if not keywords:
            return []

        results: List[IntelligentContextFile] = []
        seen = set()
        patterns = [f"**/*{keywords[0]}*", FALLBACK_CODE_GLOB]

        for pattern in patterns:
            try:
                matches = sorted(await resolve_glob(app_path, pattern, FALLBACK_FILTER))
            except Exception as e:
                logger.warning(f"Error in fallback glob search for {pattern}: {e}")
                continue

            for file_path in matches[:FALLBACK_MATCHES_PER_PATTERN]:
                rel = os.path.relpath(file_path, app_path).replace(os.sep, "/")
                if rel in seen:
                    continue

                matched = [k for k in keywords if k in rel.lower()]
                if not matched:
                    continue

                try:
                    content = await anyio.Path(file_path).read_text(encoding="utf-8", errors="replace")
                except OSError:
                    continue

                seen.add(rel)
                results.append(
                    IntelligentContextFile(
                        path=rel,
                        content=content,
                        relevance_score=len(matched) * FALLBACK_KEYWORD_WEIGHT,
                        matched_keywords=matched,
                    )
                )

        results.sort(key=lambda r: (-r.relevance_score, r.path))
        return results[:max_files]

    # -------------------------------------------------------------------------
    # cache management
    # -------------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Intelligent search cache cleared")

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()
