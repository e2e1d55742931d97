"""
Virtual filesystem overlay.

Pending edits and deletions that must be applied on top of the real disk
state before a context is extracted. The pipeline only depends on the
VirtualFileSystem protocol; InMemoryVirtualFileSystem is the stock
implementation used by the CLI and tests.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Set, runtime_checkable


@dataclass(frozen=True)
class VirtualFile:
    path: str  # relative to the project root
    content: str


@runtime_checkable
class VirtualFileSystem(Protocol):
    async def read_file(self, path: str) -> Optional[str]:
        """Content for an absolute path, or None when the overlay has no claim."""
        ...

    def get_deleted_files(self) -> List[str]:
        """Relative paths deleted in the overlay."""
        ...

    def get_virtual_files(self) -> List[VirtualFile]:
        """Files written in the overlay (relative paths)."""
        ...


class InMemoryVirtualFileSystem:
    """
    Overlay held in memory, rooted at ``app_path``.

    Usage:
        vfs = InMemoryVirtualFileSystem("/repo")
        vfs.write_file("src/new.ts", "export {}")
        vfs.delete_file("src/old.ts")
    """

    def __init__(
        self,
        app_path: str,
        files: Optional[Dict[str, str]] = None,
        deleted: Optional[Iterable[str]] = None,
    ) -> None:
        self.app_path = os.path.abspath(app_path)
        self._files: Dict[str, str] = {}
        self._deleted: Set[str] = set()
        for rel, content in (files or {}).items():
            self.write_file(rel, content)
        for rel in deleted or ():
            self.delete_file(rel)

    def _relative(self, path: str) -> str:
        absolute = os.path.normpath(os.path.join(self.app_path, path))
        return os.path.relpath(absolute, self.app_path).replace(os.sep, "/")

    def write_file(self, path: str, content: str) -> None:
        rel = self._relative(path)
        self._files[rel] = content
        self._deleted.discard(rel)

    def delete_file(self, path: str) -> None:
        rel = self._relative(path)
        self._files.pop(rel, None)
        self._deleted.add(rel)

    async def read_file(self, path: str) -> Optional[str]:
        rel = self._relative(path)
        if rel in self._deleted:
            return None
        return self._files.get(rel)

    def get_deleted_files(self) -> List[str]:
        return sorted(self._deleted)

    def get_virtual_files(self) -> List[VirtualFile]:
        return [VirtualFile(path=rel, content=content) for rel, content in self._files.items()]
