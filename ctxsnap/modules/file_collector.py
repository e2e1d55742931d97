"""File collection for context extraction.

Implements:
- full-tree traversal with directory/lockfile denylists, size cap and
  .gitignore filtering (concurrent fan-out per directory level)
- glob-selective collection for explicit include patterns, cached per
  (app path, sorted patterns)
- mtime stats for the candidate set

Nothing here raises on access problems: unreadable directories and files are
logged and contribute nothing.
"""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

import anyio
from loguru import logger

from .caches import GlobPatternCache
from .gitignore import GitIgnoreResolver
from .globbing import DEFAULT_GLOB_FILTER, GlobFilter, resolve_glob

# Never include these even when a project's .gitignore is missing or wrong.
EXCLUDED_DIRS: Tuple[str, ...] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    ".next",
    ".venv",
    "venv",
)

EXCLUDED_FILES: Tuple[str, ...] = ("pnpm-lock.yaml", "package-lock.json")

MAX_FILE_SIZE = 1000 * 1024  # 1MB


@dataclass(frozen=True)
class CandidateFile:
    path: str  # absolute
    mtime: float
    size: int


def _scan_dir(directory: str) -> List[Tuple[str, bool, bool]]:
    # Symlinks count as neither file nor directory, so linked trees are never walked.
    with os.scandir(directory) as it:
        return [
            (entry.name, entry.is_dir(follow_symlinks=False), entry.is_file(follow_symlinks=False))
            for entry in it
        ]


class FileCollector:
    """
    Produces candidate file lists for a project tree.

    Usage:
        collector = FileCollector(GitIgnoreResolver(), GlobPatternCache())
        files = await collector.collect_files("/repo", "/repo")
        selected = await collector.collect_files_selective("/repo", ["src/**/*.ts"])
    """

    def __init__(
        self,
        gitignore: GitIgnoreResolver,
        glob_cache: GlobPatternCache,
        *,
        max_file_size: int = MAX_FILE_SIZE,
        max_concurrency: Optional[int] = None,
        glob_filter: GlobFilter = DEFAULT_GLOB_FILTER,
    ) -> None:
        self.gitignore = gitignore
        self.glob_cache = glob_cache
        self.max_file_size = max_file_size
        self.glob_filter = glob_filter
        # Bounds in-flight filesystem calls only; never held across recursion.
        self._semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def _fs(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        if self._semaphore is None:
            return await fn(*args)
        async with self._semaphore:
            return await fn(*args)

    # -------------------------------------------------------------------------
    # full traversal
    # -------------------------------------------------------------------------

    async def collect_files(self, directory: str, base_dir: str) -> List[str]:
        """Recursively collect every relevant file below ``directory``."""
        try:
            entries = await self._fs(anyio.to_thread.run_sync, _scan_dir, directory)
        except FileNotFoundError:
            logger.debug(f"Directory not found: {directory}")
            return []
        except OSError as e:
            logger.error(f"Error reading directory {directory}: {e}")
            return []

        results = await asyncio.gather(
            *(self._visit(directory, base_dir, name, is_dir, is_file) for name, is_dir, is_file in entries)
        )

        files: List[str] = []
        for sub in results:
            files.extend(sub)
        return files

    async def _visit(self, directory: str, base_dir: str, name: str, is_dir: bool, is_file: bool) -> List[str]:
        full_path = os.path.join(directory, name)

        if is_dir and name in EXCLUDED_DIRS:
            return []

        if await self.gitignore.is_ignored(full_path, base_dir):
            return []

        if is_dir:
            return await self.collect_files(full_path, base_dir)

        if not is_file or name in EXCLUDED_FILES:
            return []

        try:
            stat = await self._fs(anyio.Path(full_path).stat)
        except OSError as e:
            logger.error(f"Error checking file size: {full_path}: {e}")
            return []

        if stat.st_size > self.max_file_size:
            return []
        return [full_path]

    # -------------------------------------------------------------------------
    # selective collection
    # -------------------------------------------------------------------------

    async def collect_files_selective(self, app_path: str, glob_patterns: Sequence[str]) -> List[str]:
        """Resolve ``glob_patterns`` directly instead of walking the whole tree."""
        cache_key = GlobPatternCache.make_key(app_path, glob_patterns)
        started_at = self.glob_cache.now()

        cached = self.glob_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit for glob pattern: {cache_key}")
            return list(cached)

        all_files: List[str] = []
        seen = set()
        for pattern in glob_patterns:
            try:
                matches = await resolve_glob(app_path, pattern, self.glob_filter)
            except Exception as e:
                logger.warning(f"Error matching pattern {pattern}: {e}")
                continue

            for file in matches:
                if os.path.basename(file) in EXCLUDED_FILES or file in seen:
                    continue
                seen.add(file)
                all_files.append(file)

        self.glob_cache.set(cache_key, all_files, timestamp=started_at)
        return list(all_files)

    # -------------------------------------------------------------------------
    # stats
    # -------------------------------------------------------------------------

    async def stat_candidates(self, paths: Sequence[str]) -> List[CandidateFile]:
        """mtime/size for each path; unstatable paths (virtual files) count as new."""

        # unstatable paths share one timestamp and tie-break on path
        now = time.time()

        async def _one(path: str) -> CandidateFile:
            try:
                stat = await self._fs(anyio.Path(path).stat)
                return CandidateFile(path=path, mtime=stat.st_mtime, size=stat.st_size)
            except OSError as e:
                logger.warning(f"Error getting file stats for {path}: {e}")
                return CandidateFile(path=path, mtime=now, size=0)

        return list(await asyncio.gather(*(_one(p) for p in paths)))
