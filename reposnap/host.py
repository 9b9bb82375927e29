"""Host capabilities the workspace core depends on but does not implement.

Clipboard, directory picker and recent-workspace storage belong to the
surrounding application. The session only sees them as plain callables.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

RECENT_WORKSPACES_LIMIT = 10


@dataclass(frozen=True)
class WorkspaceHost:
    """Runtime capabilities injected into :class:`WorkspaceSession`."""

    write_clipboard_text: Callable[[str], None]
    choose_directory: Callable[[], Path | str | None]
    read_recent_workspaces: Callable[[], list[str]]
    write_recent_workspaces: Callable[[list[str]], None]


class MemoryHost:
    """Host that keeps everything in memory (CLI runs and tests)."""

    def __init__(self, chosen_directory: Path | str | None = None) -> None:
        self.chosen_directory = chosen_directory
        self.clipboard_text: str | None = None
        self.recent: list[str] = []

    def _write_clipboard_text(self, text: str) -> None:
        self.clipboard_text = text

    def _choose_directory(self) -> Path | str | None:
        return self.chosen_directory

    def _read_recent_workspaces(self) -> list[str]:
        return list(self.recent)

    def _write_recent_workspaces(self, recent: list[str]) -> None:
        self.recent = list(recent)

    def host(self) -> WorkspaceHost:
        return WorkspaceHost(
            write_clipboard_text=self._write_clipboard_text,
            choose_directory=self._choose_directory,
            read_recent_workspaces=self._read_recent_workspaces,
            write_recent_workspaces=self._write_recent_workspaces,
        )


def remember_workspace(recent: list[str], root: Path | str, limit: int = RECENT_WORKSPACES_LIMIT) -> list[str]:
    """Move ``root`` to the front of ``recent``, deduplicated and capped at ``limit``."""
    key = str(root)
    updated = [key] + [item for item in recent if item != key]
    return updated[: max(1, limit)]


__all__ = ["RECENT_WORKSPACES_LIMIT", "MemoryHost", "WorkspaceHost", "remember_workspace"]
