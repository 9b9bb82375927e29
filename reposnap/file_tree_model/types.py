"""Domain datatypes for workspace file trees."""

from __future__ import annotations

import locale
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FileNode:
    """Leaf entry. ``token_count`` stays ``None`` until counts are attached."""

    name: str
    path: Path
    token_count: int | None = None
    file_size: int | None = None

    @property
    def is_directory(self) -> bool:
        return False


@dataclass(frozen=True)
class DirectoryNode:
    """Directory entry with recursively nested, sorted children."""

    name: str
    path: Path
    children: tuple["TreeNode", ...] = ()

    @property
    def is_directory(self) -> bool:
        return True


TreeNode = DirectoryNode | FileNode


def node_sort_key(name: str, is_dir: bool) -> tuple[bool, str, str]:
    """Directories first, then locale-aware case-insensitive name, then raw name."""
    return (not is_dir, locale.strxfrm(name.casefold()), name)


def sort_nodes(nodes: Iterable[TreeNode]) -> tuple[TreeNode, ...]:
    return tuple(sorted(nodes, key=lambda node: node_sort_key(node.name, node.is_directory)))


@dataclass(frozen=True)
class EnumerationLimits:
    """Host-imposed ceilings on how much a single load may enumerate."""

    max_files: int | None = None
    max_bytes: int | None = None


__all__ = [
    "FileNode",
    "DirectoryNode",
    "TreeNode",
    "EnumerationLimits",
    "node_sort_key",
    "sort_nodes",
]
