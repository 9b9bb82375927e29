"""CLI argument, output and error-reporting tests for ``reposnap.cli.main``."""

from __future__ import annotations

import io
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from reposnap import cli


def _sample_repo(root: Path) -> None:
    for rel, text in (
        ("src/index.ts", "one two three four five six seven eight nine ten\n"),
        ("src/util.ts", "a b c d e\n"),
        ("README.md", "Hello there world\n"),
        ("node_modules/pkg/index.js", "module.exports = {}\n"),
    ):
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.base = Path(self._tmp.name).resolve()
        self.root = self.base / "repo"
        _sample_repo(self.root)
        self.config_args = ["--config", str(self.base / "missing-config.json"), "--tokenizer", "whitespace"]

    def _run(self, *args: str, default_path: Path | None = None) -> str:
        stdout = io.StringIO()
        with mock.patch.object(sys, "argv", ["reposnap", *args]), mock.patch.object(sys, "stdout", stdout):
            cli.main(default_path=default_path)
        return stdout.getvalue()

    def test_export_selected_file_with_selected_only_tree(self) -> None:
        out = self._run(str(self.root), "--select", "README.md", "--tree", "selected-only-tree", *self.config_args)

        self.assertTrue(out.startswith("<repo_map>\nrepo\n└── README.md\n</repo_map>\n"))
        self.assertEqual(out.count("File: "), 1)

    def test_everything_is_selected_by_default(self) -> None:
        out = self._run(str(self.root), "--tree", "no-tree", *self.config_args)

        self.assertEqual(out.count("File: "), 3)
        self.assertNotIn("node_modules", out)

    def test_root_defaults_to_given_default_path(self) -> None:
        out = self._run("--tree", "no-tree", *self.config_args, default_path=self.root)
        self.assertIn("File: README.md", out)

    def test_root_defaults_to_current_working_directory(self) -> None:
        previous_cwd = Path.cwd()
        try:
            os.chdir(self.root)
            out = self._run("--select", "src", "--tree", "no-tree", *self.config_args)
        finally:
            os.chdir(previous_cwd)

        self.assertEqual(out.count("File: src/"), 2)

    def test_tokens_report_lists_counts_and_total(self) -> None:
        out = self._run(str(self.root), "--select", "src", "--tokens", *self.config_args)

        lines = out.splitlines()
        self.assertEqual(lines[0].split(), ["10", "src/index.ts"])
        self.assertEqual(lines[1].split(), ["5", "src/util.ts"])
        self.assertEqual(lines[-1].split()[:2], ["15", "total"])

    def test_treemap_report_has_one_row_per_counted_file(self) -> None:
        out = self._run(str(self.root), "--treemap", *self.config_args)

        rows = out.splitlines()
        self.assertEqual(len(rows), 3)
        self.assertTrue(rows[0].endswith("src/index.ts"))

    def test_output_flag_writes_file(self) -> None:
        target = self.base / "export.txt"

        out = self._run(str(self.root), "-o", str(target), "--tree", "no-tree", *self.config_args)

        self.assertEqual(out, "")
        self.assertIn("File: src/util.ts", target.read_text(encoding="utf-8"))

    def test_invalid_root_exits_with_error(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            self._run(str(self.base / "missing"), *self.config_args)

        self.assertTrue(str(ctx.exception.code).startswith("Error: Invalid workspace root"))

    def test_selection_matching_nothing_exits_with_error(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            self._run(str(self.root), "--select", "nope.txt", *self.config_args)

        self.assertEqual(ctx.exception.code, "Error: No files selected to export")

    def test_batch_size_must_be_positive(self) -> None:
        stderr = io.StringIO()
        with mock.patch.object(sys, "stderr", stderr), self.assertRaises(SystemExit) as ctx:
            self._run(str(self.root), "--batch-size", "0", *self.config_args)

        self.assertEqual(ctx.exception.code, 2)
        self.assertIn("value must be >= 1", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
