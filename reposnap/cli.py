"""Command-line front door for reposnap.

Loads a workspace, applies the requested selection and writes either the
export artifact, a token report, or the treemap rectangles.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import load_settings
from .errors import ReposnapError
from .export import TreeRenderMode
from .file_tree_model import relative_posix
from .session import WorkspaceSession
from .tokens import TiktokenTokenizer, Tokenizer, WhitespaceTokenizer, format_tokens

TOKENIZER_CHOICES = ("tiktoken", "whitespace")


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _tree_mode(value: str) -> TreeRenderMode:
    try:
        return TreeRenderMode.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reposnap",
        description="Select files from a repository and export them as one LLM-ready text artifact.",
    )
    parser.add_argument("root", nargs="?", default=None, help="Workspace directory. Defaults to current directory.")
    parser.add_argument(
        "-s",
        "--select",
        action="append",
        default=[],
        metavar="PATH",
        help="File or directory to select, relative to the root (repeatable). Defaults to everything.",
    )
    parser.add_argument(
        "--tree",
        type=_tree_mode,
        default=None,
        help="Repo map mode: full-tree, selected-only-tree or no-tree.",
    )
    parser.add_argument("--tokens", action="store_true", help="Print per-file token counts and the total, then exit.")
    parser.add_argument("--treemap", action="store_true", help="Print treemap rectangles for the selection, then exit.")
    parser.add_argument("--tokenizer", choices=TOKENIZER_CHOICES, default="tiktoken", help="Token counter to use.")
    parser.add_argument("--encoding", default=None, help="tiktoken encoding or model name.")
    parser.add_argument("--batch-size", type=_positive_int, default=None, help="Files counted per batch.")
    parser.add_argument("--config", type=Path, default=None, help="Path to a JSON config file.")
    parser.add_argument("-o", "--output", type=Path, default=None, help="Write the export here instead of stdout.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity.")
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _make_tokenizer(name: str, encoding: str) -> Tokenizer:
    if name == "whitespace":
        return WhitespaceTokenizer()
    return TiktokenTokenizer(encoding)


def _token_report(session: WorkspaceSession) -> str:
    total = session.count_selected_tokens()
    counts = session.token_counts
    unreadable = session.unreadable_paths
    lines: list[str] = []
    for path in sorted(session.selection):
        marker = " (unreadable)" if path in unreadable else ""
        lines.append(f"{counts.get(path, 0):>8}  {relative_posix(path, session.root)}{marker}")
    lines.append(f"{total:>8}  total ({format_tokens(total)})")
    return "\n".join(lines) + "\n"


def _treemap_report(session: WorkspaceSession) -> str:
    session.count_selected_tokens()
    rects = session.treemap()
    if not rects:
        return "No token data to visualize.\n"
    lines = [
        f"{rect.x:7.2f} {rect.y:7.2f} {rect.width:7.2f} {rect.height:7.2f}  "
        f"{relative_posix(rect.item.key, session.root)}"
        for rect in rects
    ]
    return "\n".join(lines) + "\n"


def main(argv: list[str] | None = None, default_path: Path | None = None) -> None:
    """Parse CLI arguments and run one export, token report or treemap.

    Domain errors exit with status 1 and an ``Error:`` message on stderr.
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    settings = load_settings(args.config)
    overrides: dict[str, object] = {}
    if args.encoding:
        overrides["tokenizer_encoding"] = args.encoding
    if args.batch_size is not None:
        overrides["token_batch_size"] = args.batch_size
    if overrides:
        settings = replace(settings, **overrides)

    if default_path is None:
        default_path = Path.cwd()
    root = Path(args.root) if args.root is not None else default_path

    session = WorkspaceSession(
        settings=settings,
        tokenizer=_make_tokenizer(args.tokenizer, settings.tokenizer_encoding),
    )
    try:
        session.open(root)
        if args.select:
            session.select(args.select)
        else:
            session.select_all()

        if args.tokens:
            sys.stdout.write(_token_report(session))
            return
        if args.treemap:
            sys.stdout.write(_treemap_report(session))
            return

        text = session.export(args.tree)
    except ReposnapError as exc:
        raise SystemExit(f"Error: {exc}") from None

    if args.output is not None:
        try:
            args.output.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise SystemExit(f"Error: cannot write {args.output}: {exc}") from None
        return
    sys.stdout.write(text)


if __name__ == "__main__":
    main()
