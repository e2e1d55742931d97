"""
Minimal Context Reducer.

Builds a small, token-budgeted file set for a query when the full codebase
would not fit a prompt. Candidates come from two sources:
- recently modified files (cached per app path and day window)
- files whose name or path matches query keywords

Both are merged into a single priority order and admitted greedily until
either the file count or the token budget would be exceeded.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Dict, List, Sequence

import anyio
from loguru import logger

from .caches import CacheStats, RecentFilesCache
from .globbing import GlobFilter, resolve_glob
from .relevance import extract_keywords
from .schemas import MinimalContextFile, MinimalContextResult
from .settings import ContextSettings
from .token_utils import TokenEstimator, estimate_tokens

SECONDS_PER_DAY = 24 * 60 * 60

RECENT_PATTERNS = (
    "**/*.{ts,tsx,js,jsx}",
    "**/*.{css,scss}",
    "**/*.json",
    "**/*.md",
)

CANDIDATE_PATTERNS = (
    "**/*.{ts,tsx,js,jsx}",
    "**/package.json",
    "**/tsconfig.json",
    "**/*.config.*",
)

REDUCER_FILTER = GlobFilter(
    ignore_dirs=frozenset({"node_modules", ".git", "dist", "build"}),
    ignore_names=("*.test.*", "*.spec.*"),
)

MAIN_FILE_INDICATORS = ("main", "index", "app", "component", "service", "utils")
JS_TS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")

# Query keywords are bounded on both sides here (3..19 chars).
MAX_KEYWORD_LENGTH = 20

RECENT_BONUS = 50


@dataclass
class PriorityFile:
    path: str  # absolute
    priority: int = 0
    is_recent: bool = False
    relevance_score: int = 0


def candidate_score(file_path: str, app_path: str, keywords: Sequence[str]) -> int:
    """Score used to decide whether a glob candidate is relevant at all."""
    file_name = os.path.basename(file_path).lower()
    rel = os.path.relpath(file_path, app_path).replace(os.sep, "/").lower()

    score = 0
    for keyword in keywords:
        if keyword in file_name:
            score += 20
    for keyword in keywords:
        if keyword in rel:
            score += 10

    if any(indicator in file_name for indicator in MAIN_FILE_INDICATORS):
        score += 15
    if file_name.endswith((".ts", ".tsx")):
        score += 5
    return score


def priority_relevance(file_path: str, app_path: str, keywords: Sequence[str]) -> int:
    """Relevance contribution to a candidate's admission priority."""
    file_name = os.path.basename(file_path).lower()
    rel_dir = os.path.dirname(os.path.relpath(file_path, app_path)).replace(os.sep, "/").lower()
    is_js_ts = os.path.splitext(file_name)[1] in JS_TS_EXTENSIONS

    score = 0
    for keyword in keywords:
        if keyword in file_name:
            score += 25
        if keyword in rel_dir:
            score += 15
        if is_js_ts and "component" in keyword:
            score += 10
    return score


def render_minimal_context(result: MinimalContextResult) -> str:
    return "\n\n".join(
        f'<dyad-file path="{f.path}">{f.content}</dyad-file>' for f in result.files
    )


class MinimalContextReducer:
    """
    Token-budgeted file selection for a query.

    Usage:
        reducer = MinimalContextReducer(RecentFilesCache())
        result = await reducer.build("/repo", "fix login form", ContextSettings())
        for f in result.files:
            print(f.path, f.token_count)
    """

    def __init__(
        self,
        recent_cache: RecentFilesCache,
        token_estimator: TokenEstimator = estimate_tokens,
    ) -> None:
        self.recent_cache = recent_cache
        self.token_estimator = token_estimator

    async def build(self, app_path: str, query: str, settings: ContextSettings) -> MinimalContextResult:
        app_path = os.path.abspath(app_path)
        start_time = time.perf_counter()

        try:
            logger.debug(f'Building minimal context for: "{query}"')

            recent = (
                await self.get_recent_files(app_path, settings.recent_days)
                if settings.include_recent_files
                else []
            )
            relevant = (
                await self.get_relevant_files(app_path, query, settings.relevance_threshold)
                if settings.include_relevant_files
                else []
            )

            candidates = self.prioritize(app_path, recent, relevant, query)
            files = await self._admit(app_path, candidates, settings)
        except Exception as e:
            logger.error(f"Error building minimal context: {e}")
            return MinimalContextResult(files=[], total_tokens=0, excluded_files=0, reason=f"Error: {e}")

        total_tokens = sum(f.token_count for f in files)
        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(f"Minimal context built in {elapsed_ms}ms: {len(files)} files, {total_tokens} tokens")

        return MinimalContextResult(
            files=files,
            total_tokens=total_tokens,
            excluded_files=len(candidates) - len(files),
            reason=f"Minimal context: {len(files)} files, {total_tokens} tokens",
        )

    # -------------------------------------------------------------------------
    # candidate sources
    # -------------------------------------------------------------------------

    async def get_recent_files(self, app_path: str, days: int) -> List[str]:
        cache_key = RecentFilesCache.make_key(app_path, days)
        now = self.recent_cache.now()

        cached = self.recent_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Recent files cache hit: {len(cached)} files")
            return list(cached)

        cutoff = now - days * SECONDS_PER_DAY
        files: List[str] = []
        seen = set()

        for pattern in RECENT_PATTERNS:
            try:
                matches = sorted(await resolve_glob(app_path, pattern, REDUCER_FILTER))
            except Exception as e:
                logger.warning(f"Error matching pattern {pattern}: {e}")
                continue

            for file_path in matches:
                if file_path in seen:
                    continue
                try:
                    stat = await anyio.Path(file_path).stat()
                except OSError:
                    continue
                if stat.st_mtime > cutoff:
                    seen.add(file_path)
                    files.append(file_path)

        self.recent_cache.set(cache_key, files, timestamp=now)
        logger.debug(f"Recent files ({days} days): {len(files)} files")
        return list(files)

    async def get_relevant_files(self, app_path: str, query: str, threshold: int) -> List[str]:
        keywords = extract_keywords(query, max_length=MAX_KEYWORD_LENGTH)
        if not keywords:
            return []

        logger.debug(f"Searching relevant files for: [{', '.join(keywords)}]")
        patterns = [f"**/*{keyword}*" for keyword in keywords] + list(CANDIDATE_PATTERNS)

        scores: Dict[str, int] = {}
        for pattern in patterns:
            try:
                matches = sorted(await resolve_glob(app_path, pattern, REDUCER_FILTER))
            except Exception as e:
                logger.warning(f"Error matching pattern {pattern}: {e}")
                continue

            for file_path in matches:
                if file_path in scores:
                    continue
                score = candidate_score(file_path, app_path, keywords)
                if score >= threshold:
                    scores[file_path] = score

        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        logger.debug(f"Relevant files found: {len(ranked)} files")
        return [path for path, _ in ranked]

    def prioritize(
        self,
        app_path: str,
        recent: Sequence[str],
        relevant: Sequence[str],
        query: str,
    ) -> List[PriorityFile]:
        keywords = extract_keywords(query, max_length=MAX_KEYWORD_LENGTH)
        combined: Dict[str, PriorityFile] = {}

        for path in recent:
            entry = combined.setdefault(path, PriorityFile(path=path))
            if not entry.is_recent:
                entry.is_recent = True
                entry.priority += RECENT_BONUS

        for path in relevant:
            entry = combined.setdefault(path, PriorityFile(path=path))
            entry.relevance_score = priority_relevance(path, app_path, keywords)
            entry.priority += entry.relevance_score

        return sorted(combined.values(), key=lambda p: (-p.priority, p.path))

    # -------------------------------------------------------------------------
    # admission
    # -------------------------------------------------------------------------

    async def _admit(
        self,
        app_path: str,
        candidates: Sequence[PriorityFile],
        settings: ContextSettings,
    ) -> List[MinimalContextFile]:
        admitted: List[MinimalContextFile] = []
        current_tokens = 0

        for candidate in candidates:
            try:
                content = await anyio.Path(candidate.path).read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning(f"Error reading file {candidate.path}: {e}")
                continue

            tokens = self.token_estimator(content)
            if len(admitted) >= settings.max_files or current_tokens + tokens > settings.max_tokens:
                break

            admitted.append(
                MinimalContextFile(
                    path=os.path.relpath(candidate.path, app_path).replace(os.sep, "/"),
                    content=content,
                    token_count=tokens,
                    relevance_score=candidate.relevance_score,
                    is_recent=candidate.is_recent,
                )
            )
            current_tokens += tokens

        logger.debug(f"Selected {len(admitted)} files: {current_tokens} tokens")
        return admitted

    # -------------------------------------------------------------------------
    # cache management
    # -------------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.recent_cache.clear()
        logger.info("Recent files cache cleared")

    def cache_stats(self) -> CacheStats:
        return self.recent_cache.stats()
