"""Workspace snapshots: one built tree tagged with its root and load generation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .fs import build_file_tree
from .query import file_paths
from .types import DirectoryNode, EnumerationLimits


@dataclass(frozen=True)
class WorkspaceSnapshot:
    """Tree for ``root_path`` as observed by load number ``generation``.

    Background results are only applied to the snapshot whose
    ``(root_path, generation)`` they were computed for.
    """

    root_path: Path
    generation: int
    tree: DirectoryNode
    extra_patterns: tuple[str, ...] = ()
    limits: EnumerationLimits | None = None

    @property
    def identity(self) -> tuple[Path, int]:
        return (self.root_path, self.generation)

    def file_paths(self) -> list[Path]:
        return file_paths(self.tree)


def build_workspace_snapshot(
    root: Path | str,
    *,
    generation: int = 0,
    extra_patterns: Iterable[str] = (),
    limits: EnumerationLimits | None = None,
) -> WorkspaceSnapshot:
    """Walk ``root`` and wrap the fresh tree in a snapshot."""
    patterns = tuple(extra_patterns)
    tree = build_file_tree(root, extra_patterns=patterns, limits=limits)
    return WorkspaceSnapshot(
        root_path=tree.path,
        generation=generation,
        tree=tree,
        extra_patterns=patterns,
        limits=limits,
    )


def refresh_workspace_snapshot(
    previous: WorkspaceSnapshot,
    *,
    force: bool = False,
) -> tuple[WorkspaceSnapshot, bool]:
    """Rebuild ``previous`` from disk.

    Returns ``(snapshot, tree_changed)``. An unchanged tree keeps the previous
    snapshot (and generation) unless ``force`` is set.
    """
    tree = build_file_tree(
        previous.root_path,
        extra_patterns=previous.extra_patterns,
        limits=previous.limits,
    )
    tree_changed = tree != previous.tree
    if not tree_changed and not force:
        return previous, False
    refreshed = WorkspaceSnapshot(
        root_path=previous.root_path,
        generation=previous.generation + 1,
        tree=tree,
        extra_patterns=previous.extra_patterns,
        limits=previous.limits,
    )
    return refreshed, tree_changed


__all__ = [
    "WorkspaceSnapshot",
    "build_workspace_snapshot",
    "refresh_workspace_snapshot",
]
