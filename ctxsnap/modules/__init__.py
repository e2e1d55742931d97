# ctxsnap modules
# Codebase context extraction, intelligent search and minimal context

# Pydantic schemas
from .schemas import (
    ChatContext,
    CodebaseContext,
    CodebaseFile,
    ExtractionResult,
    GlobPath,
    IntelligentContextFile,
    IntelligentContextResult,
    MinimalContextFile,
    MinimalContextResult,
    SearchResult,
    validate_chat_context,
)

# Configuration
from .settings import ConfigError, ContextSettings, load_config, settings_from_config

# Caches
from .caches import (
    CacheStats,
    ContentCache,
    GlobPatternCache,
    RecentFilesCache,
    SearchCache,
    TTLCache,
)

# Filesystem layer
from .gitignore import GitIgnoreResolver
from .globbing import (
    GlobFilter,
    GlobPatternError,
    compile_globs,
    expand_braces,
    match_globs,
    resolve_glob,
)
from .virtual_fs import InMemoryVirtualFileSystem, VirtualFile, VirtualFileSystem
from .file_collector import FileCollector

# Extraction, ranking and reduction
from .context_extractor import ContextExtractor
from .relevance import RelevanceScorer, extract_content_keywords, extract_keywords
from .intelligent_search import IntelligentSearch
from .minimal_context import MinimalContextReducer, render_minimal_context
from .token_utils import estimate_tokens

# Facade
from .context_service import ContextService

__all__ = [
    "ChatContext",
    "CodebaseContext",
    "CodebaseFile",
    "ExtractionResult",
    "GlobPath",
    "IntelligentContextFile",
    "IntelligentContextResult",
    "MinimalContextFile",
    "MinimalContextResult",
    "SearchResult",
    "validate_chat_context",
    "ConfigError",
    "ContextSettings",
    "load_config",
    "settings_from_config",
    "CacheStats",
    "ContentCache",
    "GlobPatternCache",
    "RecentFilesCache",
    "SearchCache",
    "TTLCache",
    "GitIgnoreResolver",
    "GlobFilter",
    "GlobPatternError",
    "compile_globs",
    "expand_braces",
    "match_globs",
    "resolve_glob",
    "InMemoryVirtualFileSystem",
    "VirtualFile",
    "VirtualFileSystem",
    "FileCollector",
    "ContextExtractor",
    "RelevanceScorer",
    "extract_content_keywords",
    "extract_keywords",
    "IntelligentSearch",
    "MinimalContextReducer",
    "render_minimal_context",
    "estimate_tokens",
    "ContextService",
]
