"""Content sources: where file text comes from.

The tree builder, token accountant and export composer only talk to a
``ContentSource``; the live filesystem and caller-supplied flat listings are
two implementations of it.
"""

from __future__ import annotations

import hashlib
from collections.abc import Hashable, Iterable, Mapping
from pathlib import Path
from typing import Protocol


class ContentSource(Protocol):
    def read_text(self, path: Path) -> str: ...

    def snapshot_key(self, path: Path) -> Hashable: ...

    def file_size(self, path: Path) -> int | None: ...


class LocalFileSource:
    """Reads file text straight from disk."""

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8", errors="replace")

    def snapshot_key(self, path: Path) -> Hashable:
        """Return ``(mtime_ns, size)``; raises ``OSError`` when stat fails."""
        stat = path.stat()
        return (int(stat.st_mtime_ns), int(stat.st_size))

    def file_size(self, path: Path) -> int | None:
        try:
            return int(path.stat().st_size)
        except OSError:
            return None


class MemorySource:
    """Serves text for a pre-enumerated flat listing of files.

    Used when the filesystem cannot be walked directly. Unknown paths raise
    ``FileNotFoundError`` like a vanished file would.
    """

    def __init__(self, contents: Mapping[Path, str] | Iterable[tuple[Path, str]]) -> None:
        items = contents.items() if isinstance(contents, Mapping) else contents
        self._contents: dict[Path, str] = {Path(path): text for path, text in items}

    def __contains__(self, path: object) -> bool:
        return path in self._contents

    def paths(self) -> list[Path]:
        return list(self._contents)

    def read_text(self, path: Path) -> str:
        try:
            return self._contents[path]
        except KeyError:
            raise FileNotFoundError(str(path)) from None

    def snapshot_key(self, path: Path) -> Hashable:
        text = self.read_text(path)
        return hashlib.sha1(text.encode("utf-8", errors="replace")).hexdigest()

    def file_size(self, path: Path) -> int | None:
        text = self._contents.get(path)
        if text is None:
            return None
        return len(text.encode("utf-8", errors="replace"))


__all__ = ["ContentSource", "LocalFileSource", "MemorySource"]
