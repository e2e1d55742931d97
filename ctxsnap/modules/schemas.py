"""
ctxsnap - Core Data Structures (Pydantic Schemas)

Defines the data models exchanged by the context pipeline:
- ChatContext: include/exclude/auto-include glob selections for one chat
- CodebaseFile: one file of the structured extraction view
- SearchResult: one ranked hit of the intelligent search
- MinimalContextResult: the token-budgeted fallback context
- CodebaseContext: what a caller embeds into a prompt
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError


# =============================================================================
# CHAT CONTEXT (supplied by the caller)
# =============================================================================


class GlobPath(BaseModel):
    """A single glob selection, relative to the project root."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    glob_path: str = Field(..., alias="globPath", min_length=1)


class ChatContext(BaseModel):
    """
    Which parts of the tree a chat wants in its prompt.

    Accepts both the snake_case field names and the camelCase names used on
    the wire (``contextPaths``, ``excludePaths``, ``smartContextAutoIncludes``).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    context_paths: List[GlobPath] = Field(default_factory=list, alias="contextPaths")
    exclude_paths: List[GlobPath] = Field(default_factory=list, alias="excludePaths")
    smart_context_auto_includes: List[GlobPath] = Field(
        default_factory=list, alias="smartContextAutoIncludes"
    )

    @property
    def context_globs(self) -> List[str]:
        return [p.glob_path for p in self.context_paths]

    @property
    def exclude_globs(self) -> List[str]:
        return [p.glob_path for p in self.exclude_paths]

    @property
    def auto_include_globs(self) -> List[str]:
        return [p.glob_path for p in self.smart_context_auto_includes]


def validate_chat_context(raw: Any) -> ChatContext:
    """Coerce an untrusted payload into a ChatContext.

    Invalid or missing payloads fall back to an empty context (full-tree
    extraction) instead of failing prompt construction.
    """
    if raw is None:
        return ChatContext()
    if isinstance(raw, ChatContext):
        return raw
    try:
        return ChatContext.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Invalid chat context, using defaults: {e.error_count()} error(s)")
        return ChatContext()


# =============================================================================
# EXTRACTION OUTPUT
# =============================================================================


class CodebaseFile(BaseModel):
    path: str
    content: str
    force: bool = False
    focused: Optional[bool] = None


class ExtractionResult(BaseModel):
    formatted_output: str
    files: List[CodebaseFile] = Field(default_factory=list)


# =============================================================================
# INTELLIGENT SEARCH
# =============================================================================


class SearchResult(BaseModel):
    path: str
    relevance_score: int = Field(..., ge=0)
    file_type: str
    size: int = Field(..., ge=0)
    matched_keywords: List[str] = Field(default_factory=list)


class IntelligentContextFile(BaseModel):
    path: str
    content: str
    relevance_score: int = Field(..., ge=0)
    matched_keywords: List[str] = Field(default_factory=list)


class IntelligentContextResult(BaseModel):
    files: List[IntelligentContextFile] = Field(default_factory=list)
    search_method: Literal["intelligent", "fallback"]
    total_files: int = Field(..., ge=0)


# =============================================================================
# MINIMAL CONTEXT
# =============================================================================


class MinimalContextFile(BaseModel):
    path: str
    content: str
    token_count: int = Field(..., ge=0)
    relevance_score: int = Field(..., ge=0)
    is_recent: bool = False


class MinimalContextResult(BaseModel):
    files: List[MinimalContextFile] = Field(default_factory=list)
    total_tokens: int = Field(default=0, ge=0)
    excluded_files: int = Field(default=0, ge=0)
    reason: str = ""


# =============================================================================
# PROMPT-LEVEL RESULT
# =============================================================================


class CodebaseContext(BaseModel):
    """Codebase section of a prompt, plus how it was produced."""

    formatted_output: str
    files: List[CodebaseFile] = Field(default_factory=list)
    codebase_tokens: int = Field(default=0, ge=0)
    using_minimal_context: bool = False
    minimal_context: Optional[MinimalContextResult] = None
