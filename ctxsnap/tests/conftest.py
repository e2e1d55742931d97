# Pytest configuration for the ctxsnap test suite
#
# Timeout strategy:
# - FAST tests: 10s (pure unit tests, no I/O)
# - MEDIUM tests: 30s (tmp_path trees, concurrent traversal)

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

import pytest

# ---------------------------------------------------------------------------
# Timeout configuration by test file
# ---------------------------------------------------------------------------
# Maps test file patterns to timeout values (seconds)
# More specific patterns should come first

TIMEOUT_MAP = {
    # MEDIUM tests (30s) - filesystem trees
    "test_context_service": 30,
    "test_context_extractor": 30,
    "test_file_collector": 30,
    "test_intelligent_search": 30,
    "test_minimal_context": 30,
    "test_gitignore": 30,
    "test_cli": 30,

    # FAST tests (10s) - pure unit tests
    "test_caches": 10,
    "test_globbing": 10,
    "test_relevance": 10,
    "test_settings": 10,
}


def pytest_collection_modifyitems(config, items):
    """Apply timeout markers based on test file names."""
    for item in items:
        test_file = item.fspath.basename if hasattr(item.fspath, 'basename') else str(item.fspath).split('/')[-1]
        test_name = test_file.replace('.py', '')

        timeout = 30  # default
        for pattern, t in TIMEOUT_MAP.items():
            if pattern in test_name:
                timeout = t
                break

        existing_timeout = item.get_closest_marker('timeout')
        if existing_timeout is None:
            item.add_marker(pytest.mark.timeout(timeout))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def anyio_backend():
    """Run anyio-marked tests on asyncio only."""
    return "asyncio"


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_tree(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative path: content}`` below tmp_path and return the root."""

    def _make(files: Dict[str, str]) -> Path:
        for rel, content in files.items():
            target = tmp_path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return tmp_path

    return _make
