"""Filesystem scanning and domain-tree construction for workspace roots."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, cast

from ..errors import InvalidRootError, RepoSizeCapError
from ..ignore import GITIGNORE_FILENAME, IgnoreMatcher, matcher_for_root
from .query import file_paths, with_token_counts
from .types import DirectoryNode, EnumerationLimits, FileNode, TreeNode, sort_nodes

if TYPE_CHECKING:
    from ..tokens import TokenAccountant

logger = logging.getLogger(__name__)


def safe_file_size(path: Path) -> int | None:
    """Return file size or ``None`` on stat failure."""
    try:
        return int(path.stat().st_size)
    except OSError:
        return None


def safe_mtime_ns(path: Path) -> int | None:
    """Return ``st_mtime_ns`` for ``path`` or ``None`` on stat failure."""
    try:
        return int(path.stat().st_mtime_ns)
    except OSError:
        return None


def resolve_workspace_root(root: Path | str) -> Path:
    """Resolve ``root`` and require an existing directory."""
    try:
        resolved = Path(root).resolve()
    except (OSError, RuntimeError) as exc:
        raise InvalidRootError(Path(root), f"could not resolve path: {exc}") from exc
    if not resolved.exists():
        raise InvalidRootError(resolved, "does not exist")
    if not resolved.is_dir():
        raise InvalidRootError(resolved, "is not a directory")
    return resolved


class EnumerationBudget:
    """Running file/byte totals checked against optional limits."""

    def __init__(self, limits: EnumerationLimits | None) -> None:
        self.limits = limits or EnumerationLimits()
        self.files = 0
        self.bytes = 0

    def add_file(self, size: int) -> None:
        """Account one file; raises ``RepoSizeCapError`` once a ceiling is crossed."""
        self.files += 1
        self.bytes += max(0, size)
        max_files = self.limits.max_files
        max_bytes = self.limits.max_bytes
        if (max_files is not None and self.files > max_files) or (
            max_bytes is not None and self.bytes > max_bytes
        ):
            raise RepoSizeCapError(
                self.files,
                self.bytes,
                max_files=max_files,
                max_bytes=max_bytes,
            )


def attach_token_counts(
    tree: DirectoryNode,
    accountant: "TokenAccountant",
) -> DirectoryNode:
    """Count every file in ``tree`` and return a tree carrying the counts."""
    result = accountant.count_many(file_paths(tree))
    return cast(DirectoryNode, with_token_counts(tree, result.counts))


def build_file_tree(
    root: Path | str,
    *,
    matcher: IgnoreMatcher | None = None,
    extra_patterns: Iterable[str] = (),
    with_tokens: bool = False,
    accountant: "TokenAccountant | None" = None,
    limits: EnumerationLimits | None = None,
    include_empty_dirs: bool = False,
) -> DirectoryNode:
    """Walk ``root`` and build an ignore-aware, sorted domain tree.

    Ignored directories are never entered. Symlinks and non-regular files are
    skipped; entries that fail with ``OSError`` are dropped and the walk goes
    on. ``RepoSizeCapError`` aborts the whole build once ``limits`` are
    exceeded.
    """
    root_path = resolve_workspace_root(root)
    if matcher is None:
        matcher = matcher_for_root(root_path, extra_patterns)
    budget = EnumerationBudget(limits)

    def build_children(directory: Path, rel_prefix: str) -> tuple[TreeNode, ...]:
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", directory, exc)
            return ()

        nodes: list[TreeNode] = []
        for entry in entries:
            rel = f"{rel_prefix}{entry.name}"
            try:
                if entry.is_symlink():
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
                if not is_dir and not entry.is_file(follow_symlinks=False):
                    continue
            except OSError as exc:
                logger.debug("Skipping %s: %s", entry.path, exc)
                continue

            if not is_dir and not rel_prefix and entry.name == GITIGNORE_FILENAME:
                continue
            if matcher.ignores(rel, is_dir):
                continue

            child_path = Path(entry.path)
            if is_dir:
                children = build_children(child_path, f"{rel}/")
                if not children and not include_empty_dirs:
                    continue
                nodes.append(DirectoryNode(name=entry.name, path=child_path, children=children))
                continue

            try:
                file_size = int(entry.stat(follow_symlinks=False).st_size)
            except OSError as exc:
                logger.debug("Skipping vanished file %s: %s", entry.path, exc)
                continue
            budget.add_file(file_size)
            nodes.append(FileNode(name=entry.name, path=child_path, file_size=file_size))
        return sort_nodes(nodes)

    tree = DirectoryNode(
        name=root_path.name or str(root_path),
        path=root_path,
        children=build_children(root_path, ""),
    )
    logger.info("Built tree for %s: %d files, %d bytes", root_path, budget.files, budget.bytes)

    if with_tokens:
        if accountant is None:
            from ..tokens import TokenAccountant

            accountant = TokenAccountant()
        tree = attach_token_counts(tree, accountant)
    return tree


__all__ = [
    "EnumerationBudget",
    "attach_token_counts",
    "build_file_tree",
    "resolve_workspace_root",
    "safe_file_size",
    "safe_mtime_ns",
]
