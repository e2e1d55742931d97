"""
Glob resolution for include/exclude selections.

This is the one glob engine of the package. Patterns are relative to a
project root, support ``**``, ``*``, ``?``, ``[...]`` and ``{a,b}`` braces,
and are matched with pathspec gitignore-style patterns anchored at the root.
The walk starts at the pattern's static prefix and prunes ignored
directories instead of descending into them.

Blocking directory walks run in a worker thread via anyio so the event loop
is never blocked.
"""

from __future__ import annotations

import fnmatch
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, List, Sequence, Set, Tuple

import anyio
from loguru import logger
from pathspec import GitIgnoreSpec

_WILDCARD_CHARS = ("*", "?", "[")
_BRACE_RE = re.compile(r"\{([^{}]*)\}")


class GlobPatternError(ValueError):
    """A glob pattern that cannot be compiled or points outside the root."""


@dataclass(frozen=True)
class GlobFilter:
    """Directories pruned during the walk and file names dropped from results."""

    ignore_dirs: FrozenSet[str] = frozenset({"node_modules"})
    ignore_names: Tuple[str, ...] = ()

    def skips_dir(self, name: str) -> bool:
        return name in self.ignore_dirs

    def skips_file(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pat) for pat in self.ignore_names)


DEFAULT_GLOB_FILTER = GlobFilter()


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternatives, innermost first.

    >>> expand_braces("**/*.{ts,tsx}")
    ['**/*.ts', '**/*.tsx']
    """
    match = _BRACE_RE.search(pattern)
    if not match:
        return [pattern]

    out: List[str] = []
    seen: Set[str] = set()
    for alternative in match.group(1).split(","):
        candidate = pattern[: match.start()] + alternative + pattern[match.end() :]
        for expanded in expand_braces(candidate):
            if expanded not in seen:
                seen.add(expanded)
                out.append(expanded)
    return out


def _normalize(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.lstrip("/")
    if not normalized:
        raise GlobPatternError(f"Empty glob pattern: {pattern!r}")
    if ".." in normalized.split("/"):
        raise GlobPatternError(f"Glob pattern escapes the project root: {pattern!r}")
    return normalized


def compile_glob(pattern: str) -> Tuple[GitIgnoreSpec, str]:
    """Compile one glob into an anchored pathspec.

    Returns:
        (spec, static_prefix) where static_prefix is the leading directory
        part that contains no wildcard (may be "")
    """
    normalized = _normalize(pattern)
    try:
        spec = GitIgnoreSpec.from_lines(["/" + normalized])
    except ValueError as e:
        raise GlobPatternError(f"Invalid glob pattern {pattern!r}: {e}") from e

    segments = normalized.split("/")
    prefix: List[str] = []
    for segment in segments[:-1]:
        if any(ch in segment for ch in _WILDCARD_CHARS):
            break
        prefix.append(segment)
    return spec, "/".join(prefix)


def resolve_glob_sync(
    root: str,
    pattern: str,
    glob_filter: GlobFilter = DEFAULT_GLOB_FILTER,
) -> List[str]:
    """Absolute, normalized paths of files under ``root`` matching ``pattern``."""
    matches: List[str] = []
    seen: Set[str] = set()

    for expanded in expand_braces(pattern):
        spec, prefix = compile_glob(expanded)
        start = os.path.join(root, prefix) if prefix else root
        if not os.path.isdir(start):
            continue

        for dirpath, dirnames, filenames in os.walk(start):
            dirnames[:] = [d for d in dirnames if not glob_filter.skips_dir(d)]
            for name in filenames:
                if glob_filter.skips_file(name):
                    continue
                full = os.path.join(dirpath, name)
                rel = Path(os.path.relpath(full, root)).as_posix()
                if not spec.match_file(rel):
                    continue
                normalized = os.path.normpath(full)
                if normalized not in seen and os.path.isfile(normalized):
                    seen.add(normalized)
                    matches.append(normalized)

    return matches


async def resolve_glob(
    root: str,
    pattern: str,
    glob_filter: GlobFilter = DEFAULT_GLOB_FILTER,
) -> List[str]:
    return await anyio.to_thread.run_sync(resolve_glob_sync, root, pattern, glob_filter)


def compile_globs(patterns: Sequence[str]) -> List[GitIgnoreSpec]:
    """Compile patterns (braces expanded) for matching relative paths.

    Patterns that fail to compile are logged and dropped.
    """
    specs: List[GitIgnoreSpec] = []
    for pattern in patterns:
        try:
            specs.extend(compile_glob(expanded)[0] for expanded in expand_braces(pattern))
        except GlobPatternError as e:
            logger.warning(f"Error matching pattern {pattern}: {e}")
    return specs


def match_globs(rel_path: str, specs: Sequence[GitIgnoreSpec]) -> bool:
    """True when the root-relative posix path matches any compiled pattern."""
    return any(spec.match_file(rel_path) for spec in specs)
