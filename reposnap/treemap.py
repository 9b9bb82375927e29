"""Proportional-subdivision treemap layout for token share.

Items are sorted by weight (descending) and the list is split where the
running weight first reaches half of the total. The rectangle is cut along
its longer side at the same ratio, and each half recurses. Aspect ratios are
not optimized; the layout is deterministic for a given input.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .file_tree_model import DirectoryNode, FileNode
from .selection import selected_file_nodes

CANVAS_SIZE = 100.0


@dataclass(frozen=True)
class TreemapItem:
    key: Hashable
    weight: float
    payload: Any = None


@dataclass(frozen=True)
class TreemapRect:
    item: TreemapItem
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height


def _split_index(items: Sequence[TreemapItem], total: float) -> int:
    """Index of the first item where the running sum reaches ``total / 2``."""
    half = total / 2
    running = 0.0
    for idx, item in enumerate(items):
        running += item.weight
        if running >= half:
            # keep the suffix non-empty under float drift
            return min(idx, len(items) - 2)
    return len(items) - 2


def layout_treemap(
    items: Iterable[TreemapItem],
    width: float = CANVAS_SIZE,
    height: float = CANVAS_SIZE,
) -> list[TreemapRect]:
    """Partition ``width`` x ``height`` into one rectangle per positive-weight item.

    Empty or all-zero input returns ``[]``; callers show "no visualization".
    """
    ranked = sorted(
        (item for item in items if item.weight > 0),
        key=lambda item: item.weight,
        reverse=True,
    )
    rects: list[TreemapRect] = []

    def subdivide(group: Sequence[TreemapItem], x: float, y: float, w: float, h: float) -> None:
        if not group:
            return
        if len(group) == 1:
            rects.append(TreemapRect(item=group[0], x=x, y=y, width=w, height=h))
            return

        total = sum(item.weight for item in group)
        pivot = _split_index(group, total)
        head = group[: pivot + 1]
        tail = group[pivot + 1 :]
        ratio = sum(item.weight for item in head) / total

        if w > h:
            head_width = w * ratio
            subdivide(head, x, y, head_width, h)
            subdivide(tail, x + head_width, y, w - head_width, h)
        else:
            head_height = h * ratio
            subdivide(head, x, y, w, head_height)
            subdivide(tail, x, y + head_height, w, h - head_height)

    subdivide(ranked, 0.0, 0.0, width, height)
    return rects


def treemap_items_for_selection(
    tree: DirectoryNode,
    selection: frozenset[Path] | set[Path],
    token_counts: Mapping[Path, int] | None = None,
) -> list[TreemapItem]:
    """One item per selected file with a positive known token count."""
    items: list[TreemapItem] = []
    for node in selected_file_nodes(tree, selection):
        count = _count_for(node, token_counts)
        if count is not None and count > 0:
            items.append(TreemapItem(key=node.path, weight=float(count), payload=node))
    return items


def _count_for(node: FileNode, token_counts: Mapping[Path, int] | None) -> int | None:
    if token_counts is not None and node.path in token_counts:
        return token_counts[node.path]
    return node.token_count


__all__ = [
    "CANVAS_SIZE",
    "TreemapItem",
    "TreemapRect",
    "layout_treemap",
    "treemap_items_for_selection",
]
