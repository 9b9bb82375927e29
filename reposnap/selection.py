"""Tri-state selection over workspace trees.

Only file paths are ever stored. A directory's status is derived from the
current tree plus the selection each time it is asked for; the tree and the
selection are linked by path alone.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from .file_tree_model import (
    DirectoryNode,
    FileNode,
    TreeNode,
    descendant_file_paths,
    file_paths,
    find_node,
    iter_file_nodes,
)

logger = logging.getLogger(__name__)


class SelectionStatus(str, enum.Enum):
    NONE = "none"
    PARTIAL = "partial"
    ALL = "all"


def _status_for(selected: int, total: int) -> SelectionStatus:
    if total == 0 or selected == 0:
        return SelectionStatus.NONE
    if selected == total:
        return SelectionStatus.ALL
    return SelectionStatus.PARTIAL


def directory_status(directory: DirectoryNode, selection: frozenset[Path] | set[Path]) -> SelectionStatus:
    """Derive ``none``/``partial``/``all`` for one directory."""
    descendants = descendant_file_paths(directory)
    return _status_for(len(descendants & selection), len(descendants))


def node_status(node: TreeNode, selection: frozenset[Path] | set[Path]) -> SelectionStatus:
    """Status for any node; files are ``all`` when selected, else ``none``."""
    if isinstance(node, FileNode):
        return SelectionStatus.ALL if node.path in selection else SelectionStatus.NONE
    return directory_status(node, selection)


def selection_statuses(
    tree: DirectoryNode,
    selection: frozenset[Path] | set[Path],
) -> dict[Path, SelectionStatus]:
    """Derive the status of every directory in ``tree`` bottom-up in one pass."""
    statuses: dict[Path, SelectionStatus] = {}

    def visit(directory: DirectoryNode) -> tuple[int, int]:
        selected = 0
        total = 0
        for child in directory.children:
            if isinstance(child, DirectoryNode):
                child_selected, child_total = visit(child)
                selected += child_selected
                total += child_total
            else:
                total += 1
                if child.path in selection:
                    selected += 1
        statuses[directory.path] = _status_for(selected, total)
        return selected, total

    visit(tree)
    return statuses


def toggle_selection(
    target: TreeNode | Path,
    tree: DirectoryNode,
    selection: frozenset[Path] | set[Path],
) -> frozenset[Path]:
    """Return the selection after toggling ``target`` against the current ``tree``.

    ``target`` is re-resolved in ``tree`` so a stale node never decides the
    outcome. A file flips membership. A directory that is not fully selected
    gains every descendant file; a fully selected one loses them all. Paths
    not present in ``tree`` leave the selection unchanged.
    """
    current = frozenset(selection)
    path = target if isinstance(target, Path) else target.path
    node = find_node(tree, path)
    if node is None:
        logger.debug("Toggle ignored for path not in tree: %s", path)
        return current

    if isinstance(node, FileNode):
        if node.path in current:
            return current - {node.path}
        return current | {node.path}

    descendants = descendant_file_paths(node)
    fully_selected = bool(descendants) and descendants <= current
    if fully_selected:
        return current - descendants
    return current | descendants


def reconcile_selection(
    tree: DirectoryNode,
    selection: Iterable[Path],
) -> frozenset[Path]:
    """Drop selected paths that are no longer files in ``tree``."""
    leaves = frozenset(file_paths(tree))
    return frozenset(path for path in selection if path in leaves)


def selected_file_nodes(tree: DirectoryNode, selection: frozenset[Path] | set[Path]) -> list[FileNode]:
    """Selected files in display order."""
    return [node for node in iter_file_nodes(tree) if node.path in selection]


TokenFetcher = Callable[[list[Path]], Mapping[Path, int]]


@dataclass(frozen=True)
class SelectionState:
    """Immutable view handed to presentation code after each change."""

    tree: DirectoryNode
    selection: frozenset[Path]
    token_counts: dict[Path, int]
    expanded: frozenset[Path]


class SelectionModel:
    """Holds the selection for one loaded tree.

    Each toggle is one read-modify-write under a lock, so two toggles never
    act on the same snapshot. Expansion state lives beside the selection and
    never changes it.
    """

    def __init__(
        self,
        tree: DirectoryNode,
        *,
        fetch_token_counts: TokenFetcher | None = None,
        selection: Iterable[Path] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._fetch_token_counts = fetch_token_counts
        self._tree = tree
        self._selection = reconcile_selection(tree, selection)
        self._token_counts: dict[Path, int] = {
            node.path: node.token_count for node in iter_file_nodes(tree) if node.token_count is not None
        }
        self._expanded: frozenset[Path] = frozenset({tree.path})

    @property
    def tree(self) -> DirectoryNode:
        return self._tree

    @property
    def selection(self) -> frozenset[Path]:
        return self._selection

    @property
    def token_counts(self) -> dict[Path, int]:
        return dict(self._token_counts)

    @property
    def expanded(self) -> frozenset[Path]:
        return self._expanded

    def state(self) -> SelectionState:
        with self._lock:
            return SelectionState(
                tree=self._tree,
                selection=self._selection,
                token_counts=dict(self._token_counts),
                expanded=self._expanded,
            )

    def status(self, path: Path) -> SelectionStatus:
        node = find_node(self._tree, path)
        if node is None:
            return SelectionStatus.NONE
        return node_status(node, self._selection)

    def statuses(self) -> dict[Path, SelectionStatus]:
        return selection_statuses(self._tree, self._selection)

    def toggle(self, target: TreeNode | Path) -> frozenset[Path]:
        """Toggle ``target`` and lazily fetch counts for newly selected files.

        A failing fetch keeps the new selection; those files simply stay
        without a count until the next batch pass.
        """
        with self._lock:
            previous = self._selection
            updated = toggle_selection(target, self._tree, previous)
            self._selection = updated
            missing = sorted(path for path in updated - previous if path not in self._token_counts)
            if missing and self._fetch_token_counts is not None:
                try:
                    fetched = self._fetch_token_counts(missing)
                except Exception as exc:
                    logger.warning("Token fetch failed for %d newly selected files: %s", len(missing), exc)
                else:
                    merged = dict(self._token_counts)
                    merged.update({path: int(count) for path, count in fetched.items() if path in updated})
                    self._token_counts = merged
            return updated

    def select_paths(self, paths: Iterable[Path]) -> frozenset[Path]:
        """Add the given files and every file under the given directories."""
        with self._lock:
            added: set[Path] = set()
            for path in paths:
                node = find_node(self._tree, path)
                if node is not None:
                    added |= descendant_file_paths(node)
            self._selection = self._selection | added
            return self._selection

    def select_all(self) -> frozenset[Path]:
        with self._lock:
            self._selection = frozenset(file_paths(self._tree))
            return self._selection

    def clear(self) -> frozenset[Path]:
        with self._lock:
            self._selection = frozenset()
            return self._selection

    def merge_token_counts(self, counts: Mapping[Path, int]) -> None:
        """Record counts for files still present in the tree."""
        leaves = frozenset(file_paths(self._tree))
        with self._lock:
            merged = dict(self._token_counts)
            merged.update({path: int(count) for path, count in counts.items() if path in leaves})
            self._token_counts = merged

    def replace_tree(self, tree: DirectoryNode) -> frozenset[Path]:
        """Swap in a reloaded tree.

        Selection and expansion keep the paths that still exist. Token counts
        are replaced wholesale by the counts the new tree carries, so files
        edited since the last load are counted again.
        """
        with self._lock:
            self._tree = tree
            self._selection = reconcile_selection(tree, self._selection)
            self._token_counts = {
                node.path: node.token_count for node in iter_file_nodes(tree) if node.token_count is not None
            }
            self._expanded = frozenset(
                path for path in self._expanded if isinstance(find_node(tree, path), DirectoryNode)
            ) | {tree.path}
            return self._selection

    def set_expanded(self, path: Path, expanded: bool) -> frozenset[Path]:
        with self._lock:
            if expanded:
                self._expanded = self._expanded | {path}
            else:
                self._expanded = self._expanded - {path}
            return self._expanded

    def toggle_expanded(self, path: Path) -> frozenset[Path]:
        with self._lock:
            self._expanded = self._expanded ^ {path}
            return self._expanded

    def collapse_all(self) -> frozenset[Path]:
        with self._lock:
            self._expanded = frozenset({self._tree.path})
            return self._expanded

    def unknown_count_paths(self) -> list[Path]:
        """Selected files that still lack a token count."""
        return sorted(path for path in self._selection if path not in self._token_counts)


__all__ = [
    "SelectionStatus",
    "SelectionState",
    "SelectionModel",
    "TokenFetcher",
    "directory_status",
    "node_status",
    "reconcile_selection",
    "selected_file_nodes",
    "selection_statuses",
    "toggle_selection",
]
