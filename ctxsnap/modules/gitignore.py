"""
Gitignore-aware path filtering.

GitIgnoreResolver answers "is this path ignored?" for paths below a project
root, honouring every .gitignore from the root down to the path's parent plus
the repository's .git/info/exclude. Decisions are cached per
``base_dir:path``. Any .gitignore whose mtime advanced since it was last seen
clears the whole decision cache before the next answer.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import anyio
from loguru import logger
from pathspec import GitIgnoreSpec

GITIGNORE_NAME = ".gitignore"


class GitIgnoreResolver:
    """
    Cached .gitignore evaluation with coarse mtime invalidation.

    Usage:
        resolver = GitIgnoreResolver()
        if await resolver.is_ignored("/repo/dist/app.js", "/repo"):
            ...
    """

    def __init__(self) -> None:
        self._decisions: Dict[str, bool] = {}
        self._gitignore_mtimes: Dict[str, int] = {}
        self._specs: Dict[str, Tuple[int, GitIgnoreSpec]] = {}
        self.invalidations = 0
        self.hits = 0
        self.misses = 0

    async def is_ignored(self, path: str, base_dir: str) -> bool:
        try:
            sources = await self._refresh_gitignores(path, base_dir)

            cache_key = f"{base_dir}:{path}"
            cached = self._decisions.get(cache_key)
            if cached is not None:
                self.hits += 1
                return cached

            self.misses += 1
            is_dir = await anyio.Path(path).is_dir()
            result = await self._evaluate(path, base_dir, sources, is_dir=is_dir)
            self._decisions[cache_key] = result
            return result
        except Exception as e:
            logger.error(f"Error checking if path is git ignored: {path}: {e}")
            return False

    def clear(self) -> None:
        self._decisions.clear()
        self._gitignore_mtimes.clear()
        self._specs.clear()

    def __len__(self) -> int:
        return len(self._decisions)

    # -------------------------------------------------------------------------
    # internals
    # -------------------------------------------------------------------------

    async def _refresh_gitignores(self, path: str, base_dir: str) -> List[Tuple[str, str, int]]:
        """Stat every relevant .gitignore; clear decisions if any advanced.

        Returns (directory, gitignore_path, mtime_ns) for the files that exist,
        shallowest first.
        """
        parts = Path(os.path.relpath(path, base_dir)).parts
        directories = [base_dir]
        current = base_dir
        for part in parts[:-1]:
            current = os.path.join(current, part)
            directories.append(current)

        should_clear = False
        sources: List[Tuple[str, str, int]] = []
        for directory in directories:
            gitignore_path = os.path.join(directory, GITIGNORE_NAME)
            try:
                stat = await anyio.Path(gitignore_path).stat()
            except OSError:
                # No .gitignore at this level.
                continue

            mtime = stat.st_mtime_ns
            if mtime > self._gitignore_mtimes.get(gitignore_path, 0):
                self._gitignore_mtimes[gitignore_path] = mtime
                should_clear = True
            sources.append((directory, gitignore_path, mtime))

        if should_clear and self._decisions:
            self._decisions.clear()
            self.invalidations += 1
            logger.debug(f"Gitignore changed under {base_dir}; ignore cache cleared")

        return sources

    async def _evaluate(
        self,
        path: str,
        base_dir: str,
        sources: List[Tuple[str, str, int]],
        *,
        is_dir: bool,
    ) -> bool:
        decision: Optional[bool] = None

        info_exclude = os.path.join(base_dir, ".git", "info", "exclude")
        try:
            stat = await anyio.Path(info_exclude).stat()
            layers = [(base_dir, info_exclude, stat.st_mtime_ns)] + sources
        except OSError:
            layers = sources

        # Deeper files override shallower ones.
        for directory, gitignore_path, mtime in layers:
            spec = await self._load_spec(gitignore_path, mtime)
            rel = Path(os.path.relpath(path, directory)).as_posix()
            if is_dir:
                rel += "/"
            result = spec.check_file(rel)
            if result.include is not None:
                decision = result.include

        return bool(decision)

    async def _load_spec(self, gitignore_path: str, mtime: int) -> GitIgnoreSpec:
        cached = self._specs.get(gitignore_path)
        if cached is not None and cached[0] == mtime:
            return cached[1]

        try:
            text = await anyio.Path(gitignore_path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Could not read {gitignore_path}: {e}")
            text = ""

        spec = GitIgnoreSpec.from_lines(text.splitlines())
        self._specs[gitignore_path] = (mtime, spec)
        return spec
