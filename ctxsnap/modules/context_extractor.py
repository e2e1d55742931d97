"""
Codebase extraction for prompt construction.

One call produces both views of the project:
- a formatted block of ``<dyad-file path="...">`` sections for the prompt
- a structured file list used by smart context consumers

Both are built from the same deduplicated candidate set, sorted oldest
modification first so successive prompts share the longest possible prefix.
"""

from __future__ import annotations

import asyncio
import fnmatch
import os
import time
from pathlib import Path
from typing import Optional, Set, Tuple

import anyio
from loguru import logger

from .caches import ContentCache
from .file_collector import FileCollector
from .globbing import compile_globs, match_globs
from .schemas import ChatContext, CodebaseFile, ExtractionResult
from .settings import ContextSettings
from .virtual_fs import VirtualFileSystem

ALLOWED_EXTENSIONS = frozenset(
    {
        ".ts",
        ".tsx",
        ".js",
        ".jsx",
        ".mjs",
        ".cjs",
        ".mts",
        ".cts",
        ".css",
        ".html",
        ".md",
        ".astro",
        ".vue",
        ".svelte",
        ".scss",
        ".sass",
        ".less",
        # config (package.json, vercel.json) and data files (translations)
        ".json",
        # GitHub Actions
        ".yml",
        ".yaml",
        # Capacitor projects
        ".xml",
        ".plist",
        ".entitlements",
        ".kt",
        ".java",
        ".gradle",
        ".swift",
        ".py",
        ".php",
    }
)

# Included regardless of extension.
ALWAYS_INCLUDE_FILES = frozenset({".gitignore"})

# File-name globs whose contents never reach the model (secrets).
ALWAYS_OMITTED_FILES = (".env*",)

# Low-signal paths, omitted from the formatted block only.
OMITTED_PATH_FRAGMENTS = (
    "src/components/ui",
    "eslint.config",
    "tsconfig.json",
    "tsconfig.app.json",
    "tsconfig.node.json",
    "tsconfig.base.json",
    "components.json",
)

OMITTED_FILE_CONTENT = "// File contents excluded from context"
READ_ERROR_CONTENT = "// Error reading file"


def _is_always_omitted(file_name: str) -> bool:
    return any(fnmatch.fnmatch(file_name, pat) for pat in ALWAYS_OMITTED_FILES)


def _is_allowed(file_path: str) -> bool:
    name = os.path.basename(file_path)
    return Path(file_path).suffix.lower() in ALLOWED_EXTENSIONS or name in ALWAYS_INCLUDE_FILES


def should_read_file_contents(file_path: str, normalized_relative_path: str) -> bool:
    """Rule for the formatted (human/prompt) block."""
    if _is_always_omitted(os.path.basename(file_path)):
        return False
    if any(fragment in normalized_relative_path for fragment in OMITTED_PATH_FRAGMENTS):
        return False
    return _is_allowed(file_path)


def should_read_file_contents_for_smart_context(file_path: str, normalized_relative_path: str) -> bool:
    """Rule for the structured smart context view; only secrets are omitted."""
    if _is_always_omitted(os.path.basename(file_path)):
        return False
    return _is_allowed(file_path)


def format_file_block(normalized_relative_path: str, content: str) -> str:
    return f'<dyad-file path="{normalized_relative_path}">\n{content}\n</dyad-file>\n\n'


def normalize_relative_path(app_path: str, file_path: str) -> str:
    # Forward slashes on every platform.
    return os.path.relpath(file_path, app_path).replace(os.sep, "/")


class ContextExtractor:
    """
    Orchestrates collection, overlay, include/exclude resolution and
    formatting.

    Usage:
        extractor = ContextExtractor(collector, content_cache)
        result = await extractor.extract("/repo", ChatContext(), ContextSettings())
        prompt_block = result.formatted_output
    """

    def __init__(self, collector: FileCollector, content_cache: ContentCache) -> None:
        self.collector = collector
        self.content_cache = content_cache

    async def extract(
        self,
        app_path: str,
        chat_context: ChatContext,
        settings: ContextSettings,
        virtual_fs: Optional[VirtualFileSystem] = None,
    ) -> ExtractionResult:
        app_path = os.path.abspath(app_path)
        smart = settings.smart_context_enabled

        if not await anyio.Path(app_path).is_dir():
            return ExtractionResult(
                formatted_output=f"# Error: Directory {app_path} does not exist or is not accessible",
                files=[],
            )

        start_time = time.perf_counter()
        context_globs = chat_context.context_globs
        auto_include_globs = chat_context.auto_include_globs
        exclude_globs = chat_context.exclude_globs

        # 1) traversal strategy
        if context_globs:
            files = await self.collector.collect_files_selective(app_path, context_globs)
        elif smart and auto_include_globs:
            files = await self.collector.collect_files_selective(app_path, auto_include_globs)
        else:
            files = await self.collector.collect_files(app_path, app_path)

        # 2) virtual filesystem overlay
        if virtual_fs is not None:
            deleted = {os.path.normpath(os.path.join(app_path, rel)) for rel in virtual_fs.get_deleted_files()}
            files = [f for f in files if os.path.normpath(f) not in deleted]

            present = {os.path.normpath(f) for f in files}
            for virtual_file in virtual_fs.get_virtual_files():
                absolute = os.path.normpath(os.path.join(app_path, virtual_file.path))
                if absolute not in present:
                    present.add(absolute)
                    files.append(absolute)

        # 3) exclusions win over every inclusion path
        # matched on relative paths so overlay-only files are covered too
        if exclude_globs:
            exclude_specs = compile_globs(exclude_globs)
            files = [f for f in files if not match_globs(normalize_relative_path(app_path, f), exclude_specs)]

        # 4) smart context auto-includes are forced
        auto_included: Set[str] = set()
        if smart and auto_include_globs and not context_globs:
            auto_files = await self.collector.collect_files_selective(app_path, auto_include_globs)
            auto_included = {os.path.normpath(f) for f in auto_files}

        # 5) dedupe + oldest first
        unique = list(dict.fromkeys(os.path.normpath(f) for f in files))
        candidates = await self.collector.stat_candidates(unique)
        candidates.sort(key=lambda c: (c.mtime, c.path))
        sorted_files = [c.path for c in candidates]

        # 6/7) both views from the same ordered set
        rendered = await asyncio.gather(
            *(self._render(app_path, f, f in auto_included, virtual_fs) for f in sorted_files)
        )
        formatted_output = "".join(block for block, _ in rendered)
        files_array = [codebase_file for _, codebase_file in rendered]

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(f"extract: {len(files_array)} files from {app_path} in {elapsed_ms}ms")
        return ExtractionResult(formatted_output=formatted_output, files=files_array)

    async def _render(
        self,
        app_path: str,
        file_path: str,
        forced: bool,
        virtual_fs: Optional[VirtualFileSystem],
    ) -> Tuple[str, CodebaseFile]:
        rel = normalize_relative_path(app_path, file_path)

        # Read at most once; both views share the result.
        needs_block = should_read_file_contents(file_path, rel)
        needs_structured = should_read_file_contents_for_smart_context(file_path, rel)
        content: Optional[str] = None
        if needs_block or needs_structured:
            content = await self.content_cache.read(file_path, virtual_fs)

        if not needs_block:
            block = format_file_block(rel, OMITTED_FILE_CONTENT)
        elif content is None:
            block = format_file_block(rel, READ_ERROR_CONTENT)
        else:
            block = format_file_block(rel, content)

        if not needs_structured:
            structured = OMITTED_FILE_CONTENT
        else:
            structured = content if content is not None else READ_ERROR_CONTENT

        return block, CodebaseFile(path=rel, content=structured, force=forced)
