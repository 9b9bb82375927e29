"""Tree construction from a pre-enumerated flat file listing.

Used when the filesystem cannot be walked directly: callers hand over
``(absolute_path, text_or_size)`` pairs and the nesting is synthesized by
inserting path segments one at a time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path, PurePath
from typing import TYPE_CHECKING

from ..ignore import GITIGNORE_FILENAME, IgnoreMatcher, compile_ignore_matcher
from ..sources import MemorySource
from .fs import EnumerationBudget, attach_token_counts
from .types import DirectoryNode, EnumerationLimits, FileNode, TreeNode, sort_nodes

if TYPE_CHECKING:
    from ..tokens import TokenAccountant

logger = logging.getLogger(__name__)

FlatEntry = tuple[Path | str, str | int]


class _DirectoryDraft:
    """Mutable directory used only while inserting entries."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.dirs: dict[str, _DirectoryDraft] = {}
        self.files: dict[str, int] = {}

    def _accepts(self, parts: tuple[str, ...]) -> bool:
        current: _DirectoryDraft | None = self
        for part in parts[:-1]:
            if current is None:
                return True
            if part in current.files:
                return False
            current = current.dirs.get(part)
        if current is None:
            return True
        name = parts[-1]
        return name not in current.dirs and name not in current.files

    def insert(self, parts: tuple[str, ...], size: int) -> bool:
        """Insert a file at ``parts`` below this directory.

        Returns ``False`` and leaves the draft untouched when the path is
        already taken, either by a file of the same path or by a node of the
        other kind.
        """
        if not self._accepts(parts):
            return False
        current = self
        for part in parts[:-1]:
            child = current.dirs.get(part)
            if child is None:
                child = _DirectoryDraft(current.path / part)
                current.dirs[part] = child
            current = child
        current.files[parts[-1]] = size
        return True

    def freeze(self, name: str) -> DirectoryNode:
        nodes: list[TreeNode] = [draft.freeze(dir_name) for dir_name, draft in self.dirs.items()]
        nodes.extend(
            FileNode(name=file_name, path=self.path / file_name, file_size=size)
            for file_name, size in self.files.items()
        )
        return DirectoryNode(name=name, path=self.path, children=sort_nodes(nodes))


def _entry_size(value: str | int) -> int:
    if isinstance(value, str):
        return len(value.encode("utf-8", errors="replace"))
    return max(0, int(value))


def build_file_tree_from_entries(
    root: Path | str,
    entries: Iterable[FlatEntry],
    *,
    matcher: IgnoreMatcher | None = None,
    extra_patterns: Iterable[str] = (),
    with_tokens: bool = False,
    accountant: "TokenAccountant | None" = None,
    limits: EnumerationLimits | None = None,
) -> DirectoryNode:
    """Build a sorted domain tree from a flat ``(path, text_or_size)`` listing.

    When no ``matcher`` is given, a root ``.gitignore`` found among the text
    entries is compiled on top of the defaults. Entries outside ``root`` are
    skipped. A directory-level ignore on any ancestor hides the entry.
    """
    root_path = Path(root)
    normalized: list[tuple[Path, PurePath, str | int]] = []
    gitignore_text: str | None = None
    for raw_path, value in entries:
        path = Path(raw_path)
        try:
            rel = path.relative_to(root_path)
        except ValueError:
            logger.debug("Skipping entry outside root %s: %s", root_path, path)
            continue
        if not rel.parts:
            continue
        if rel.as_posix() == GITIGNORE_FILENAME:
            if isinstance(value, str):
                gitignore_text = value
            continue
        normalized.append((path, rel, value))

    if matcher is None:
        matcher = compile_ignore_matcher(gitignore_text=gitignore_text, extra_patterns=extra_patterns)

    budget = EnumerationBudget(limits)
    draft = _DirectoryDraft(root_path)
    texts: dict[Path, str] = {}
    for path, rel, value in normalized:
        rel_posix = rel.as_posix()
        if matcher.ignores_ancestor(rel_posix) or matcher.ignores(rel_posix, False):
            continue
        size = _entry_size(value)
        if not draft.insert(rel.parts, size):
            logger.debug("Skipping entry clashing with an existing node: %s", path)
            continue
        budget.add_file(size)
        if isinstance(value, str):
            texts[root_path.joinpath(*rel.parts)] = value

    tree = draft.freeze(root_path.name or str(root_path))
    if with_tokens:
        if accountant is None:
            from ..tokens import TokenAccountant

            accountant = TokenAccountant(source=MemorySource(texts))
        tree = attach_token_counts(tree, accountant)
    return tree


__all__ = ["FlatEntry", "build_file_tree_from_entries"]
