"""
Relevance Scorer for query-driven file selection.

Scores a file against a free-text query using plain keyword heuristics:
file name, relative path, a small technical vocabulary and the most
frequent identifiers of the file's head. Weights are additive and
unnormalized; there is no stemming and no index.

This layer determines WHICH files a query is about.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

# Query keywords that indicate a technical concept.
TECHNICAL_KEYWORDS = frozenset(
    {
        "api", "endpoint", "function", "class", "interface", "component",
        "hook", "usestate", "useeffect", "async", "await", "promise",
        "router", "context", "provider", "store", "action", "reducer",
        "database", "schema", "model", "service", "controller", "route",
        "middleware", "auth", "login", "register", "validation", "error",
        "http", "request", "response", "json", "xml", "websocket",
    }
)

# File names that say little about their content.
GENERIC_TERMS = ("test", "spec", "index", "main")

FILE_TYPES = {
    ".ts": "typescript",
    ".tsx": "typescript-react",
    ".js": "javascript",
    ".jsx": "javascript-react",
    ".py": "python",
    ".java": "java",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
    ".php": "php",
    ".rb": "ruby",
    ".kt": "kotlin",
    ".swift": "swift",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".html": "html",
    ".vue": "vue",
    ".svelte": "svelte",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
}

CONTENT_SAMPLE_CHARS = 5000
MAX_QUERY_KEYWORDS = 10
MAX_CONTENT_KEYWORDS = 30

_NON_WORD_RE = re.compile(r"[^\w\s]")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_STRING_RES = (
    re.compile(r'"[^"]*"'),
    re.compile(r"'[^']*'"),
    re.compile(r"`[^`]*`"),
)
_IDENTIFIER_RE = re.compile(r"[a-zA-Z_$][a-zA-Z0-9_$]*")


def extract_keywords(
    text: str,
    *,
    max_keywords: int = MAX_QUERY_KEYWORDS,
    max_length: Optional[int] = None,
) -> List[str]:
    """Normalize free text into lowercase keywords longer than 2 chars."""
    words = _NON_WORD_RE.sub(" ", (text or "").lower()).split()
    keywords = [
        w for w in words
        if len(w) > 2 and (max_length is None or len(w) < max_length)
    ]
    return keywords[:max_keywords]


def extract_content_keywords(
    content: str,
    *,
    sample_chars: int = CONTENT_SAMPLE_CHARS,
    max_keywords: int = MAX_CONTENT_KEYWORDS,
) -> List[str]:
    """Most frequent identifiers of the file head, comments and strings removed."""
    clean = (content or "")[:sample_chars]
    clean = _BLOCK_COMMENT_RE.sub("", clean)
    clean = _LINE_COMMENT_RE.sub("", clean)
    for string_re in _STRING_RES:
        clean = string_re.sub(" ", clean)

    counts: Counter = Counter(
        ident.lower() for ident in _IDENTIFIER_RE.findall(clean) if len(ident) > 2
    )
    return [word for word, _ in counts.most_common(max_keywords)]


def get_file_type(file_path: str) -> str:
    return FILE_TYPES.get(Path(file_path).suffix.lower(), "unknown")


@dataclass
class ScoredFile:
    """A candidate file with its relevance to one query."""
    path: str                    # relative, forward slashes
    name: str
    file_type: str
    size: int
    score: int = 0
    matched_keywords: List[str] = field(default_factory=list)


class RelevanceScorer:
    """
    Additive keyword scoring of files against a query.

    Usage:
        scorer = RelevanceScorer()
        score, matched = scorer.score(
            name="authController.ts",
            rel_path="src/authController.ts",
            content_keywords=["login", "user"],
            query_keywords=["auth"],
        )
    """

    WEIGHT_FILENAME = 25
    WEIGHT_PATH = 15
    WEIGHT_TECHNICAL = 20
    WEIGHT_CONTENT = 10
    WEIGHT_MULTI_MATCH = 5

    def __init__(
        self,
        technical_keywords: Iterable[str] = TECHNICAL_KEYWORDS,
        generic_terms: Sequence[str] = GENERIC_TERMS,
    ) -> None:
        self.technical_keywords = frozenset(k.lower() for k in technical_keywords)
        self.generic_terms = tuple(generic_terms)

    def score(
        self,
        name: str,
        rel_path: str,
        content_keywords: Sequence[str],
        query_keywords: Sequence[str],
    ) -> Tuple[int, List[str]]:
        """
        Score one file.

        Args:
            name: File name
            rel_path: Path relative to the project root
            content_keywords: Identifiers extracted from the file head
            query_keywords: Normalized query keywords

        Returns:
            (score, matched keywords in match order)
        """
        score = 0
        matched: List[str] = []
        name_lower = name.lower()
        path_lower = rel_path.lower()

        # File name (high weight)
        for keyword in query_keywords:
            if keyword in name_lower:
                score += self.WEIGHT_FILENAME
                if keyword not in matched:
                    matched.append(keyword)

        # Directory part of the path; a file-name match is not counted twice.
        for keyword in query_keywords:
            if keyword in path_lower and keyword not in matched:
                score += self.WEIGHT_PATH
                matched.append(keyword)

        # Content identifiers, substring either way
        for keyword in query_keywords:
            if any(keyword in token or token in keyword for token in content_keywords):
                score += self.WEIGHT_CONTENT
                if keyword not in matched:
                    matched.append(keyword)

        # Technical vocabulary only boosts keywords the file actually matched.
        for keyword in matched:
            if keyword in self.technical_keywords:
                score += self.WEIGHT_TECHNICAL

        if len(matched) > 1:
            score += len(matched) * self.WEIGHT_MULTI_MATCH

        if not matched and any(term in name_lower for term in self.generic_terms):
            score = 0

        return score, matched

    def score_file(self, scored: ScoredFile, content_keywords: Sequence[str], query_keywords: Sequence[str]) -> ScoredFile:
        scored.score, scored.matched_keywords = self.score(
            scored.name, scored.path, content_keywords, query_keywords
        )
        return scored
