"""Extension-based binary classification for export and token counting."""

from __future__ import annotations

from pathlib import Path

BINARY_EXTENSIONS = frozenset(
    {
        "png",
        "jpg",
        "jpeg",
        "gif",
        "bmp",
        "ico",
        "webp",
        "pdf",
        "zip",
        "gz",
        "tar",
        "7z",
        "rar",
        "exe",
        "dll",
        "so",
        "class",
        "wasm",
        "jar",
        "ttf",
        "otf",
        "woff",
        "woff2",
    }
)


def file_extension(path: Path | str) -> str:
    """Return the text after the last dot of the file name, or ``""``."""
    name = Path(path).name
    dot = name.rfind(".")
    if dot <= 0 or dot == len(name) - 1:
        return ""
    return name[dot + 1 :]


def is_binary_path(path: Path | str) -> bool:
    return file_extension(path).lower() in BINARY_EXTENSIONS


__all__ = ["BINARY_EXTENSIONS", "file_extension", "is_binary_path"]
