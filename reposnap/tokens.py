"""Token accounting over workspace files.

Counting is a pure function of tokenizer and text. Bulk counting runs in
fixed-size batches: members of one batch overlap on a thread pool, and the
next batch starts only once the current one has fully completed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Hashable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .binary import is_binary_path
from .file_tree_model import DirectoryNode, FileNode, TreeNode
from .sources import ContentSource, LocalFileSource

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_BATCH_SIZE = 5
DEFAULT_TOKENIZER_ENCODING = "o200k_base"


class Tokenizer(Protocol):
    def encode(self, text: str) -> Sequence[int]: ...


class TiktokenTokenizer:
    """BPE tokenizer backed by ``tiktoken``; the encoding loads on first use."""

    def __init__(self, encoding_name: str = DEFAULT_TOKENIZER_ENCODING) -> None:
        self.encoding_name = encoding_name
        self._encoding = None
        self._lock = threading.Lock()

    def _load(self):
        with self._lock:
            if self._encoding is None:
                import tiktoken

                try:
                    self._encoding = tiktoken.get_encoding(self.encoding_name)
                except ValueError:
                    self._encoding = tiktoken.encoding_for_model(self.encoding_name)
            return self._encoding

    def encode(self, text: str) -> Sequence[int]:
        return self._load().encode(text, allowed_special="all")


class WhitespaceTokenizer:
    """Deterministic word splitter: one token per whitespace-separated word."""

    def encode(self, text: str) -> Sequence[int]:
        return [len(word) for word in text.split()]


class TokenCountCache:
    """Thread-safe ``path -> (snapshot_key, count)`` map.

    An entry only answers for the content snapshot it was computed from; a
    workspace reload replaces the whole cache.
    """

    def __init__(self) -> None:
        self._entries: dict[Path, tuple[Hashable, int]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, path: Path, snapshot_key: Hashable) -> int | None:
        with self._lock:
            entry = self._entries.get(path)
        if entry is None or entry[0] != snapshot_key:
            return None
        return entry[1]

    def put(self, path: Path, snapshot_key: Hashable, count: int) -> None:
        with self._lock:
            entry = self._entries.get(path)
            if entry is not None and entry[0] == snapshot_key:
                return
            self._entries[path] = (snapshot_key, count)

    def counts(self) -> dict[Path, int]:
        with self._lock:
            return {path: count for path, (_key, count) in self._entries.items()}


@dataclass(frozen=True)
class TokenCountResult:
    """Outcome of a bulk count; ``unreadable`` files are included with 0 tokens."""

    counts: dict[Path, int]
    unreadable: frozenset[Path]

    @property
    def total(self) -> int:
        return sum(self.counts.values())


class TokenAccountant:
    def __init__(
        self,
        tokenizer: Tokenizer | None = None,
        source: ContentSource | None = None,
        *,
        batch_size: int = DEFAULT_TOKEN_BATCH_SIZE,
        cache: TokenCountCache | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.tokenizer: Tokenizer = tokenizer if tokenizer is not None else TiktokenTokenizer()
        self.source: ContentSource = source if source is not None else LocalFileSource()
        self.batch_size = batch_size
        self.cache = cache if cache is not None else TokenCountCache()

    def count(self, text: str) -> int:
        return len(self.tokenizer.encode(text))

    def count_path(self, path: Path) -> int | None:
        """Count tokens for one file through the cache.

        Returns ``None`` for binary-classified, unreadable or untokenizable
        files; callers treat those as zero and flag them.
        """
        if is_binary_path(path):
            return None
        try:
            snapshot_key = self.source.snapshot_key(path)
        except OSError as exc:
            logger.debug("Cannot stat %s: %s", path, exc)
            return None
        cached = self.cache.get(path, snapshot_key)
        if cached is not None:
            return cached
        try:
            text = self.source.read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Cannot read %s: %s", path, exc)
            return None
        try:
            token_count = self.count(text)
        except Exception as exc:
            logger.debug("Tokenizer failed for %s: %s", path, exc)
            return None
        self.cache.put(path, snapshot_key, token_count)
        return token_count

    def count_many(self, paths: Iterable[Path]) -> TokenCountResult:
        """Count ``paths`` in batches of ``batch_size``."""
        pending = list(dict.fromkeys(paths))
        counts: dict[Path, int] = {}
        unreadable: set[Path] = set()
        if not pending:
            return TokenCountResult(counts=counts, unreadable=frozenset())

        with ThreadPoolExecutor(
            max_workers=self.batch_size,
            thread_name_prefix="reposnap-tokens",
        ) as executor:
            for start in range(0, len(pending), self.batch_size):
                batch = pending[start : start + self.batch_size]
                futures = [executor.submit(self.count_path, path) for path in batch]
                for path, future in zip(batch, futures):
                    try:
                        token_count = future.result()
                    except Exception as exc:
                        logger.debug("Token count failed for %s: %s", path, exc)
                        token_count = None
                    if token_count is None:
                        unreadable.add(path)
                        counts[path] = 0
                    else:
                        counts[path] = token_count

        logger.info("Counted tokens for %d files (%d unreadable)", len(counts), len(unreadable))
        return TokenCountResult(counts=counts, unreadable=frozenset(unreadable))

    def aggregate(
        self,
        node: TreeNode,
        selection: frozenset[Path] | set[Path],
        token_counts: Mapping[Path, int] | None = None,
    ) -> int:
        return aggregate_tokens(node, selection, token_counts)


def _known_count(file_node: FileNode, token_counts: Mapping[Path, int] | None) -> int | None:
    if token_counts is not None and file_node.path in token_counts:
        return token_counts[file_node.path]
    return file_node.token_count


def aggregate_tokens(
    node: TreeNode,
    selection: frozenset[Path] | set[Path],
    token_counts: Mapping[Path, int] | None = None,
) -> int:
    """Sum known token counts of selected files at or under ``node``.

    Unselected files, files with no known count and directories add nothing.
    """
    total = 0
    stack: list[TreeNode] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, DirectoryNode):
            stack.extend(current.children)
            continue
        if current.path not in selection:
            continue
        known = _known_count(current, token_counts)
        if known is not None:
            total += known
    return total


def directory_token_totals(
    tree: DirectoryNode,
    selection: frozenset[Path] | set[Path],
    token_counts: Mapping[Path, int] | None = None,
) -> dict[Path, int]:
    """Return the selected-token total for every directory, in one pass."""
    totals: dict[Path, int] = {}

    def visit(directory: DirectoryNode) -> int:
        subtotal = 0
        for child in directory.children:
            if isinstance(child, DirectoryNode):
                subtotal += visit(child)
            elif child.path in selection:
                subtotal += _known_count(child, token_counts) or 0
        totals[directory.path] = subtotal
        return subtotal

    visit(tree)
    return totals


def format_tokens(tokens: int, include_k: bool = True) -> str:
    """Format a token count as ``~1.23k``."""
    formatted = f"{abs(tokens) / 1000:.2f}"
    return f"~{formatted}{'k' if include_k else ''}"


__all__ = [
    "DEFAULT_TOKEN_BATCH_SIZE",
    "DEFAULT_TOKENIZER_ENCODING",
    "Tokenizer",
    "TiktokenTokenizer",
    "WhitespaceTokenizer",
    "TokenCountCache",
    "TokenCountResult",
    "TokenAccountant",
    "aggregate_tokens",
    "directory_token_totals",
    "format_tokens",
]
