"""Tests for the ignore-aware filesystem tree builder."""

from __future__ import annotations

import contextlib
import os
import random
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from reposnap.errors import InvalidRootError, RepoSizeCapError
from reposnap.file_tree_model import (
    DirectoryNode,
    EnumerationLimits,
    FileNode,
    build_file_tree,
    file_paths,
    iter_directory_nodes,
    node_sort_key,
    relative_posix,
)
from reposnap.sources import LocalFileSource
from reposnap.tokens import TokenAccountant, WhitespaceTokenizer


def _write(root: Path, rel: str, text: str = "x\n") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _relative_files(tree: DirectoryNode) -> list[str]:
    return [relative_posix(path, tree.path) for path in file_paths(tree)]


class _FlakyEntry:
    """Wraps a real ``os.DirEntry`` and fails one of its calls."""

    def __init__(self, entry: os.DirEntry, failing: str) -> None:
        self._entry = entry
        self._failing = failing

    def __getattr__(self, name: str):
        return getattr(self._entry, name)

    def is_dir(self, *, follow_symlinks: bool = True) -> bool:
        if self._failing == "is_dir":
            raise PermissionError(13, "Permission denied", self._entry.path)
        return self._entry.is_dir(follow_symlinks=follow_symlinks)

    def stat(self, *, follow_symlinks: bool = True) -> os.stat_result:
        if self._failing == "stat":
            raise FileNotFoundError(2, "No such file or directory", self._entry.path)
        return self._entry.stat(follow_symlinks=follow_symlinks)


class BuildFileTreeTests(unittest.TestCase):
    def test_ignored_dependency_directory_never_appears(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, "src/index.ts")
            _write(root, "src/util.ts")
            _write(root, "README.md")
            _write(root, "node_modules/pkg/index.js")

            tree = build_file_tree(root)

            self.assertEqual([child.name for child in tree.children], ["src", "README.md"])
            self.assertEqual(_relative_files(tree), ["src/index.ts", "src/util.ts", "README.md"])
            self.assertNotIn("node_modules", {node.name for node in iter_directory_nodes(tree)})

    def test_root_gitignore_applies_and_is_not_listed(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, ".gitignore", "*.log\n!dist/\n")
            _write(root, "app.log")
            _write(root, "main.py")
            _write(root, "dist/bundle.js")
            _write(root, "docs/.gitignore", "*.md\n")
            _write(root, "docs/guide.md")

            tree = build_file_tree(root)

            self.assertEqual(
                sorted(_relative_files(tree)),
                ["dist/bundle.js", "docs/.gitignore", "docs/guide.md", "main.py"],
            )

    def test_file_negation_under_ignored_directory_stays_hidden(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, ".gitignore", "logs/\n!logs/keep.txt\n")
            _write(root, "logs/keep.txt")
            _write(root, "logs/noise.txt")
            _write(root, "main.py")

            tree = build_file_tree(root)

            self.assertEqual(_relative_files(tree), ["main.py"])

    def test_extra_patterns_extend_ignore_rules(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, "keep.py")
            _write(root, "skip.bak")

            tree = build_file_tree(root, extra_patterns=["*.bak"])

            self.assertEqual(_relative_files(tree), ["keep.py"])

    def test_empty_directories_are_pruned_unless_requested(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "empty" / "deeper").mkdir(parents=True)
            _write(root, "main.py")

            pruned = build_file_tree(root)
            kept = build_file_tree(root, include_empty_dirs=True)

            self.assertEqual([child.name for child in pruned.children], ["main.py"])
            self.assertEqual([child.name for child in kept.children], ["empty", "main.py"])

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks unavailable")
    def test_symlinks_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            target = _write(root, "real/file.txt")
            os.symlink(target, root / "link.txt")
            os.symlink(root / "real", root / "linked_dir")

            tree = build_file_tree(root)

            self.assertEqual(_relative_files(tree), ["real/file.txt"])

    def test_file_nodes_carry_sizes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, "five.txt", "12345")

            tree = build_file_tree(root)

            node = tree.children[0]
            self.assertIsInstance(node, FileNode)
            self.assertEqual(node.file_size, 5)
            self.assertIsNone(node.token_count)

    def test_with_tokens_attaches_counts(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, "a.txt", "one two three")
            _write(root, "logo.png", "not really an image")
            accountant = TokenAccountant(WhitespaceTokenizer(), LocalFileSource())

            tree = build_file_tree(root, with_tokens=True, accountant=accountant)

            counts = {node.name: node.token_count for node in tree.children}
            self.assertEqual(counts, {"a.txt": 3, "logo.png": 0})

    def test_children_are_sorted_directories_first_then_case_insensitive(self) -> None:
        rng = random.Random(7)
        alphabet = "abcABC_1"
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            for _ in range(40):
                depth = rng.randint(1, 3)
                parts = ["".join(rng.choice(alphabet) for _ in range(rng.randint(1, 4))) for _ in range(depth)]
                target = root.joinpath(*parts)
                if any(parent.is_file() for parent in [target, *target.parents] if parent != root):
                    continue
                if target.is_dir():
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text("x", encoding="utf-8")

            tree = build_file_tree(root)

            for directory in iter_directory_nodes(tree):
                keys = [node_sort_key(child.name, child.is_directory) for child in directory.children]
                self.assertEqual(keys, sorted(keys))
                kinds = [child.is_directory for child in directory.children]
                self.assertEqual(kinds, sorted(kinds, reverse=True))


class BuildFileTreeErrorTests(unittest.TestCase):
    def test_missing_root_raises_invalid_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "nope"
            with self.assertRaises(InvalidRootError) as ctx:
                build_file_tree(missing)
            self.assertEqual(ctx.exception.reason, "does not exist")

    def test_file_root_raises_invalid_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = _write(Path(tmp), "file.txt")
            with self.assertRaises(InvalidRootError) as ctx:
                build_file_tree(target)
            self.assertEqual(ctx.exception.reason, "is not a directory")

    def test_file_cap_aborts_the_build(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            for name in ("a.txt", "b.txt", "c.txt"):
                _write(root, name)

            with self.assertRaises(RepoSizeCapError) as ctx:
                build_file_tree(root, limits=EnumerationLimits(max_files=2))

            self.assertEqual(ctx.exception.files, 3)
            self.assertEqual(ctx.exception.max_files, 2)
            self.assertIn("Workspace too large", str(ctx.exception))

    def test_byte_cap_aborts_the_build(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, "big.txt", "x" * 11)

            with self.assertRaises(RepoSizeCapError) as ctx:
                build_file_tree(root, limits=EnumerationLimits(max_bytes=10))

            self.assertEqual(ctx.exception.bytes, 11)

    def test_ignored_files_do_not_count_against_caps(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, "main.py")
            for idx in range(5):
                _write(root, f"node_modules/pkg/f{idx}.js")

            tree = build_file_tree(root, limits=EnumerationLimits(max_files=1))

            self.assertEqual(_relative_files(tree), ["main.py"])

    def test_per_entry_os_errors_drop_only_the_failing_entries(self) -> None:
        real_scandir = os.scandir
        failing_entries = {"vanish.txt": "stat", "odd.txt": "is_dir"}

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            _write(root, "keep.txt")
            _write(root, "vanish.txt")
            _write(root, "odd.txt")
            _write(root, "locked/secret.txt")
            _write(root, "src/main.py")
            locked = root / "locked"

            @contextlib.contextmanager
            def flaky_scandir(path):
                if Path(path) == locked:
                    raise PermissionError(13, "Permission denied", str(path))
                with real_scandir(path) as entries:
                    yield [
                        _FlakyEntry(entry, failing_entries[entry.name]) if entry.name in failing_entries else entry
                        for entry in entries
                    ]

            with mock.patch("reposnap.file_tree_model.fs.os.scandir", side_effect=flaky_scandir):
                tree = build_file_tree(root)

            self.assertEqual(_relative_files(tree), ["src/main.py", "keep.txt"])
            self.assertNotIn(locked, {node.path for node in iter_directory_nodes(tree)})


if __name__ == "__main__":
    unittest.main()
