"""Domain model for ignore-aware workspace file trees.

This package contains non-UI tree primitives:
- file/directory node datatypes with sorted nested children
- filesystem walking and flat-listing builders
- read-only tree queries and immutable rewrites
- workspace snapshots tagged with root and load generation
"""

from __future__ import annotations

from .types import DirectoryNode, EnumerationLimits, FileNode, TreeNode, node_sort_key, sort_nodes
from .fs import (
    EnumerationBudget,
    attach_token_counts,
    build_file_tree,
    resolve_workspace_root,
    safe_file_size,
    safe_mtime_ns,
)
from .entries import FlatEntry, build_file_tree_from_entries
from .query import (
    descendant_file_paths,
    file_paths,
    filter_tree_to_paths,
    find_node,
    iter_directory_nodes,
    iter_file_nodes,
    iter_nodes,
    relative_posix,
    with_token_counts,
)
from .snapshot import WorkspaceSnapshot, build_workspace_snapshot, refresh_workspace_snapshot

__all__ = [
    "DirectoryNode",
    "FileNode",
    "TreeNode",
    "EnumerationLimits",
    "node_sort_key",
    "sort_nodes",
    "EnumerationBudget",
    "attach_token_counts",
    "build_file_tree",
    "resolve_workspace_root",
    "safe_file_size",
    "safe_mtime_ns",
    "FlatEntry",
    "build_file_tree_from_entries",
    "descendant_file_paths",
    "file_paths",
    "filter_tree_to_paths",
    "find_node",
    "iter_directory_nodes",
    "iter_file_nodes",
    "iter_nodes",
    "relative_posix",
    "with_token_counts",
    "WorkspaceSnapshot",
    "build_workspace_snapshot",
    "refresh_workspace_snapshot",
]
