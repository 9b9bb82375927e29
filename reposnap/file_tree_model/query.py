"""Read-only queries and immutable rewrites over built trees."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace
from pathlib import Path

from .types import DirectoryNode, FileNode, TreeNode


def iter_nodes(node: TreeNode) -> Iterator[TreeNode]:
    """Yield ``node`` and every descendant in pre-order (display order)."""
    stack: list[TreeNode] = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, DirectoryNode):
            stack.extend(reversed(current.children))


def iter_file_nodes(node: TreeNode) -> Iterator[FileNode]:
    for current in iter_nodes(node):
        if isinstance(current, FileNode):
            yield current


def iter_directory_nodes(node: TreeNode) -> Iterator[DirectoryNode]:
    for current in iter_nodes(node):
        if isinstance(current, DirectoryNode):
            yield current


def file_paths(node: TreeNode) -> list[Path]:
    return [file_node.path for file_node in iter_file_nodes(node)]


def descendant_file_paths(node: TreeNode) -> frozenset[Path]:
    """Return every file path at or under ``node``."""
    return frozenset(file_paths(node))


def find_node(tree: TreeNode, path: Path) -> TreeNode | None:
    """Locate the node for ``path``, descending only through its ancestors."""
    current = tree
    while True:
        if current.path == path:
            return current
        if not isinstance(current, DirectoryNode):
            return None
        next_node: TreeNode | None = None
        for child in current.children:
            if child.path == path or (isinstance(child, DirectoryNode) and path.is_relative_to(child.path)):
                next_node = child
                break
        if next_node is None:
            return None
        current = next_node


def relative_posix(path: Path, root: Path) -> str:
    """Return ``path`` relative to ``root`` in POSIX form (``""`` for root itself)."""
    rel = path.relative_to(root).as_posix()
    return "" if rel == "." else rel


def with_token_counts(node: TreeNode, counts: Mapping[Path, int]) -> TreeNode:
    """Return a copy of ``node`` with ``token_count`` filled from ``counts``.

    Files absent from ``counts`` keep their existing value.
    """
    if isinstance(node, FileNode):
        if node.path in counts:
            return replace(node, token_count=int(counts[node.path]))
        return node
    return replace(node, children=tuple(with_token_counts(child, counts) for child in node.children))


def filter_tree_to_paths(tree: DirectoryNode, paths: Iterable[Path]) -> DirectoryNode:
    """Keep only files in ``paths`` plus their ancestor directories.

    Directories left without children are dropped; the root is always kept.
    """
    wanted = frozenset(paths)

    def prune(node: DirectoryNode) -> DirectoryNode | None:
        kept: list[TreeNode] = []
        for child in node.children:
            if isinstance(child, DirectoryNode):
                pruned = prune(child)
                if pruned is not None:
                    kept.append(pruned)
            elif child.path in wanted:
                kept.append(child)
        if not kept:
            return None
        return replace(node, children=tuple(kept))

    return prune(tree) or replace(tree, children=())


__all__ = [
    "iter_nodes",
    "iter_file_nodes",
    "iter_directory_nodes",
    "file_paths",
    "descendant_file_paths",
    "find_node",
    "relative_posix",
    "with_token_counts",
    "filter_tree_to_paths",
]
