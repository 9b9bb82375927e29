"""Typed failures surfaced by workspace operations.

Entry-level problems (one unreadable file) never raise; they are dropped or
replaced by placeholders. Only structural and capacity failures reach callers.
"""

from __future__ import annotations

from pathlib import Path


class ReposnapError(Exception):
    """Base class for all reposnap failures."""


class InvalidRootError(ReposnapError):
    """Workspace root does not exist or is not a directory."""

    def __init__(self, root: Path, reason: str) -> None:
        self.root = root
        self.reason = reason
        super().__init__(f"Invalid workspace root '{root}': {reason}")


class NoWorkspaceError(ReposnapError):
    """Raised when an operation needs an open workspace and none is open."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"No workspace is open (required by {operation})")


class NothingSelectedError(ReposnapError):
    """Raised when exporting an empty selection."""

    def __init__(self) -> None:
        super().__init__("No files selected to export")


class RepoSizeCapError(ReposnapError):
    """Enumeration exceeded the configured file-count or byte-size ceiling.

    ``files`` and ``bytes`` are the counts observed when the ceiling was
    crossed; the partial enumeration is discarded by the raiser.
    """

    def __init__(
        self,
        files: int,
        bytes: int,
        *,
        max_files: int | None = None,
        max_bytes: int | None = None,
    ) -> None:
        self.files = files
        self.bytes = bytes
        self.max_files = max_files
        self.max_bytes = max_bytes
        limits: list[str] = []
        if max_files is not None:
            limits.append(f"max {max_files} files")
        if max_bytes is not None:
            limits.append(f"max {max_bytes} bytes")
        suffix = f" ({', '.join(limits)})" if limits else ""
        super().__init__(f"Workspace too large: {files} files, {bytes} bytes{suffix}")


__all__ = [
    "ReposnapError",
    "InvalidRootError",
    "NoWorkspaceError",
    "NothingSelectedError",
    "RepoSizeCapError",
]
