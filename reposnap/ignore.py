"""Gitignore-style path filtering for workspace walks.

A matcher is compiled once per walk from the built-in defaults followed by the
root ``.gitignore``. Later patterns win, so a user negation can re-include a
default. Matching is delegated to ``pathspec``'s gitignore spec.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import pathspec

logger = logging.getLogger(__name__)

GITIGNORE_FILENAME = ".gitignore"

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    # repo internals
    ".git/",
    ".gitattributes",
    ".hg/",
    ".svn/",
    # dependency and build output
    "node_modules/",
    "vendor/",
    "dist/",
    "build/",
    "coverage/",
    "__pycache__/",
    ".venv/",
    # os artifacts
    ".DS_Store",
    "Thumbs.db",
)


def _split_pattern_lines(text: str) -> list[str]:
    """Return candidate pattern lines, dropping blanks and comments."""
    lines: list[str] = []
    for raw in text.splitlines():
        line = raw.rstrip("\r")
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        lines.append(line)
    return lines


def _valid_patterns(lines: Iterable[str]) -> list[str]:
    """Keep lines pathspec can compile; malformed lines are dropped silently."""
    valid: list[str] = []
    for line in lines:
        try:
            pathspec.GitIgnoreSpec.from_lines([line])
        except (ValueError, TypeError):
            logger.debug("Dropping malformed ignore pattern %r", line)
            continue
        valid.append(line)
    return valid


@dataclass(frozen=True)
class IgnoreMatcher:
    """Compiled, immutable ignore rule set.

    ``patterns`` keeps the accepted lines in evaluation order (defaults first).
    """

    patterns: tuple[str, ...]
    spec: pathspec.GitIgnoreSpec

    def ignores(self, relative_path: str, is_dir: bool) -> bool:
        """Return whether ``relative_path`` (POSIX, relative to root) is ignored."""
        rel = relative_path.strip("/")
        if not rel:
            return False
        if is_dir:
            rel = f"{rel}/"
        return bool(self.spec.match_file(rel))

    def ignores_ancestor(self, relative_path: str) -> bool:
        """Return whether any parent directory of ``relative_path`` is ignored.

        Used where a walk cannot prune (flat entry lists): an ignored directory
        hides everything beneath it, file negations included.
        """
        parts = relative_path.strip("/").split("/")
        for depth in range(1, len(parts)):
            if self.ignores("/".join(parts[:depth]), True):
                return True
        return False


def compile_ignore_matcher(
    default_patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS,
    gitignore_text: str | None = None,
    extra_patterns: Iterable[str] = (),
) -> IgnoreMatcher:
    """Compile defaults, root ``.gitignore`` text and extra patterns, in that order."""
    lines: list[str] = list(default_patterns)
    if gitignore_text:
        lines.extend(_split_pattern_lines(gitignore_text))
    lines.extend(line for line in extra_patterns if line.strip())
    accepted = _valid_patterns(lines)
    return IgnoreMatcher(
        patterns=tuple(accepted),
        spec=pathspec.GitIgnoreSpec.from_lines(accepted),
    )


def load_root_gitignore(root: Path) -> str | None:
    """Read ``<root>/.gitignore`` as UTF-8; absence or read failure yields ``None``."""
    gitignore_path = root / GITIGNORE_FILENAME
    try:
        return gitignore_path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.debug("Could not read %s: %s", gitignore_path, exc)
        return None


def matcher_for_root(root: Path, extra_patterns: Iterable[str] = ()) -> IgnoreMatcher:
    """Compile the matcher governing a walk of ``root``."""
    return compile_ignore_matcher(
        gitignore_text=load_root_gitignore(root),
        extra_patterns=extra_patterns,
    )


__all__ = [
    "DEFAULT_IGNORE_PATTERNS",
    "GITIGNORE_FILENAME",
    "IgnoreMatcher",
    "compile_ignore_matcher",
    "load_root_gitignore",
    "matcher_for_root",
]
