"""Export composition: optional ASCII repo map plus fenced file blocks.

Artifact layout::

    <repo_map>
    <ascii tree>
    </repo_map>

    <selected_files>
    File: <relative/path>

    ```<extension>
    <content>
    ```
    ---
    File: <next path>
    ...
    </selected_files>

``<repo_map>`` is left out entirely in ``no-tree`` mode.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from pathlib import Path

from .binary import file_extension, is_binary_path
from .file_tree_model import DirectoryNode, build_file_tree, file_paths, relative_posix
from .ignore import IgnoreMatcher
from .sources import ContentSource, LocalFileSource

logger = logging.getLogger(__name__)

BINARY_PLACEHOLDER = "[Binary file]"
READ_ERROR_PLACEHOLDER = "[Could not read content]"
BLOCK_SEPARATOR = "---"


class TreeRenderMode(str, enum.Enum):
    FULL_TREE = "full-tree"
    SELECTED_ONLY_TREE = "selected-only-tree"
    NO_TREE = "no-tree"

    @classmethod
    def parse(cls, value: "str | TreeRenderMode") -> "TreeRenderMode":
        """Accept a mode or its string value; raises ``ValueError`` otherwise."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(mode.value for mode in cls)
            raise ValueError(f"invalid tree mode {value!r} (expected one of: {valid})") from None


def render_ascii_tree(relative_paths: Iterable[str], root_label: str) -> str:
    """Render POSIX relative file paths as a ``tree``-style listing.

    Entries sort alphabetically (case-insensitive) at each level; directories
    carry a trailing ``/``.
    """
    nested: dict[str, dict | None] = {}
    for rel in relative_paths:
        parts = [part for part in rel.split("/") if part]
        if not parts:
            continue
        current = nested
        for part in parts[:-1]:
            child = current.get(part)
            if child is None:
                child = {}
                current[part] = child
            current = child
        current.setdefault(parts[-1], None)

    lines: list[str] = [root_label]

    def walk(node: dict[str, dict | None], prefix: str) -> None:
        names = sorted(node, key=lambda name: (name.casefold(), name))
        for idx, name in enumerate(names):
            last = idx == len(names) - 1
            child = node[name]
            connector = "└── " if last else "├── "
            lines.append(f"{prefix}{connector}{name}{'/' if child is not None else ''}")
            if child is not None:
                walk(child, prefix + ("    " if last else "│   "))

    walk(nested, "")
    return "\n".join(lines)


def _relative_label(path: Path, root: Path) -> str:
    try:
        return relative_posix(path, root)
    except ValueError:
        return path.as_posix()


def render_file_block(path: Path, root: Path, source: ContentSource) -> str:
    """Render one ``File:`` block; failures degrade to an inline placeholder."""
    label = _relative_label(path, root)
    extension = file_extension(path)
    if is_binary_path(path):
        body = BINARY_PLACEHOLDER
    else:
        try:
            body = source.read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s for export: %s", path, exc)
            body = READ_ERROR_PLACEHOLDER
    if not body.endswith("\n"):
        body += "\n"
    return f"File: {label}\n\n```{extension}\n{body}```"


def compose_export(
    selected_files: Iterable[Path],
    root: Path | str,
    mode: TreeRenderMode | str = TreeRenderMode.FULL_TREE,
    *,
    source: ContentSource | None = None,
    tree: DirectoryNode | None = None,
    matcher: IgnoreMatcher | None = None,
    extra_patterns: Iterable[str] = (),
) -> str:
    """Compose the export artifact for ``selected_files`` under ``root``.

    ``full-tree`` maps every non-ignored file: ``tree`` is used when given,
    otherwise ``root`` is walked. ``selected-only-tree`` maps just the
    selection.
    """
    root_path = Path(root)
    render_mode = TreeRenderMode.parse(mode)
    content_source = source if source is not None else LocalFileSource()
    selected = list(dict.fromkeys(selected_files))

    sections: list[str] = []
    if render_mode is not TreeRenderMode.NO_TREE:
        if render_mode is TreeRenderMode.FULL_TREE:
            map_tree = tree
            if map_tree is None:
                map_tree = build_file_tree(root_path, matcher=matcher, extra_patterns=extra_patterns)
            mapped = [_relative_label(path, root_path) for path in file_paths(map_tree)]
        else:
            mapped = [_relative_label(path, root_path) for path in selected]
        root_label = tree.name if tree is not None else (root_path.name or str(root_path))
        sections.append(f"<repo_map>\n{render_ascii_tree(mapped, root_label)}\n</repo_map>\n")

    blocks = [render_file_block(path, root_path, content_source) for path in selected]
    if blocks:
        body = f"\n{BLOCK_SEPARATOR}\n".join(blocks)
        sections.append(f"<selected_files>\n{body}\n</selected_files>\n")
    else:
        sections.append("<selected_files>\n</selected_files>\n")
    return "\n".join(sections)


__all__ = [
    "BINARY_PLACEHOLDER",
    "BLOCK_SEPARATOR",
    "READ_ERROR_PLACEHOLDER",
    "TreeRenderMode",
    "compose_export",
    "render_ascii_tree",
    "render_file_block",
]
