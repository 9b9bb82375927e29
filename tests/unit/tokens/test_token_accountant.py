"""Tests for batched token accounting and aggregation."""

from __future__ import annotations

import tempfile
import threading
import time
import unittest
from pathlib import Path

from reposnap.file_tree_model import DirectoryNode, FileNode
from reposnap.sources import LocalFileSource, MemorySource
from reposnap.tokens import (
    TokenAccountant,
    TokenCountCache,
    WhitespaceTokenizer,
    aggregate_tokens,
    directory_token_totals,
    format_tokens,
)

ROOT = Path("/repo")


class _RecordingTokenizer:
    """Whitespace tokenizer that records calls and peak concurrency."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def encode(self, text: str):
        with self._lock:
            self.calls.append(text)
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            return text.split()
        finally:
            with self._lock:
                self.active -= 1


class _FailingTokenizer:
    def encode(self, text: str):
        raise RuntimeError("tokenizer exploded")


def _tree() -> DirectoryNode:
    src = DirectoryNode(
        name="src",
        path=ROOT / "src",
        children=(
            FileNode(name="index.ts", path=ROOT / "src" / "index.ts"),
            FileNode(name="util.ts", path=ROOT / "src" / "util.ts"),
        ),
    )
    return DirectoryNode(
        name="repo",
        path=ROOT,
        children=(src, FileNode(name="README.md", path=ROOT / "README.md")),
    )


class TokenAccountantTests(unittest.TestCase):
    def test_count_is_length_of_encoding(self) -> None:
        accountant = TokenAccountant(WhitespaceTokenizer(), MemorySource({}))
        self.assertEqual(accountant.count("a b  c\nd"), 4)
        self.assertEqual(accountant.count(""), 0)

    def test_batch_size_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            TokenAccountant(WhitespaceTokenizer(), MemorySource({}), batch_size=0)

    def test_batches_bound_concurrent_work(self) -> None:
        texts = {ROOT / f"f{idx}.txt": "one two" for idx in range(7)}
        tokenizer = _RecordingTokenizer(delay=0.02)
        accountant = TokenAccountant(tokenizer, MemorySource(texts), batch_size=2)

        result = accountant.count_many(list(texts))

        self.assertEqual(result.counts, {path: 2 for path in texts})
        self.assertEqual(result.unreadable, frozenset())
        self.assertEqual(len(tokenizer.calls), 7)
        self.assertLessEqual(tokenizer.peak, 2)

    def test_duplicate_paths_are_counted_once(self) -> None:
        path = ROOT / "a.txt"
        tokenizer = _RecordingTokenizer()
        accountant = TokenAccountant(tokenizer, MemorySource({path: "x y"}))

        result = accountant.count_many([path, path])

        self.assertEqual(result.counts, {path: 2})
        self.assertEqual(len(tokenizer.calls), 1)

    def test_binary_and_unreadable_files_are_flagged_with_zero(self) -> None:
        readable = ROOT / "a.txt"
        binary = ROOT / "logo.png"
        missing = ROOT / "gone.txt"
        tokenizer = _RecordingTokenizer()
        accountant = TokenAccountant(tokenizer, MemorySource({readable: "a b c", binary: "PNG data"}))

        result = accountant.count_many([readable, binary, missing])

        self.assertEqual(result.counts, {readable: 3, binary: 0, missing: 0})
        self.assertEqual(result.unreadable, frozenset({binary, missing}))
        self.assertEqual(result.total, 3)
        self.assertEqual(tokenizer.calls, ["a b c"])

    def test_tokenizer_failure_is_flagged_not_raised(self) -> None:
        path = ROOT / "a.txt"
        accountant = TokenAccountant(_FailingTokenizer(), MemorySource({path: "text"}))

        result = accountant.count_many([path])

        self.assertEqual(result.counts, {path: 0})
        self.assertEqual(result.unreadable, frozenset({path}))

    def test_cache_answers_only_for_unchanged_content(self) -> None:
        path = ROOT / "a.txt"
        cache = TokenCountCache()
        tokenizer = _RecordingTokenizer()

        first = TokenAccountant(tokenizer, MemorySource({path: "a b"}), cache=cache)
        self.assertEqual(first.count_path(path), 2)
        self.assertEqual(first.count_path(path), 2)
        self.assertEqual(len(tokenizer.calls), 1)

        changed = TokenAccountant(tokenizer, MemorySource({path: "a b c d"}), cache=cache)
        self.assertEqual(changed.count_path(path), 4)
        self.assertEqual(len(tokenizer.calls), 2)
        self.assertEqual(cache.counts(), {path: 4})

    def test_local_files_recount_after_modification(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "notes.txt"
            path.write_text("one two", encoding="utf-8")
            accountant = TokenAccountant(WhitespaceTokenizer(), LocalFileSource())

            self.assertEqual(accountant.count_path(path), 2)
            path.write_text("one two three four five", encoding="utf-8")
            self.assertEqual(accountant.count_path(path), 5)


class TokenAggregationTests(unittest.TestCase):
    def test_aggregate_sums_only_selected_known_counts(self) -> None:
        tree = _tree()
        counts = {ROOT / "src" / "index.ts": 10, ROOT / "src" / "util.ts": 5, ROOT / "README.md": 3}

        self.assertEqual(aggregate_tokens(tree, frozenset(counts), counts), 18)
        self.assertEqual(aggregate_tokens(tree, {ROOT / "src" / "index.ts", ROOT / "src" / "util.ts"}, counts), 15)
        self.assertEqual(aggregate_tokens(tree, frozenset(), counts), 0)
        self.assertEqual(aggregate_tokens(tree, {ROOT / "README.md"}, {}), 0)

    def test_aggregate_of_file_node(self) -> None:
        node = FileNode(name="README.md", path=ROOT / "README.md", token_count=3)
        self.assertEqual(aggregate_tokens(node, {node.path}), 3)
        self.assertEqual(aggregate_tokens(node, set()), 0)

    def test_directory_totals_match_per_directory_aggregates(self) -> None:
        tree = _tree()
        counts = {ROOT / "src" / "index.ts": 10, ROOT / "README.md": 3}
        selection = frozenset({ROOT / "src" / "index.ts", ROOT / "src" / "util.ts", ROOT / "README.md"})

        totals = directory_token_totals(tree, selection, counts)

        self.assertEqual(totals, {ROOT: 13, ROOT / "src": 10})

    def test_format_tokens(self) -> None:
        self.assertEqual(format_tokens(1234), "~1.23k")
        self.assertEqual(format_tokens(0), "~0.00k")
        self.assertEqual(format_tokens(1500, include_k=False), "~1.50")


if __name__ == "__main__":
    unittest.main()
