"""Persistent JSON config helpers.

Stores token batching, tokenizer encoding, extra ignore patterns, the default
export tree mode and optional enumeration limits. Missing or
malformed config falls back to defaults.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

from .export import TreeRenderMode
from .file_tree_model import EnumerationLimits
from .tokens import DEFAULT_TOKEN_BATCH_SIZE, DEFAULT_TOKENIZER_ENCODING

APP_NAME = "reposnap"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH


@dataclass(frozen=True)
class Settings:
    token_batch_size: int = DEFAULT_TOKEN_BATCH_SIZE
    tokenizer_encoding: str = DEFAULT_TOKENIZER_ENCODING
    extra_ignore_patterns: tuple[str, ...] = ()
    default_tree_mode: TreeRenderMode = TreeRenderMode.FULL_TREE
    max_files: int | None = None
    max_bytes: int | None = None

    @property
    def limits(self) -> EnumerationLimits | None:
        if self.max_files is None and self.max_bytes is None:
            return None
        return EnumerationLimits(max_files=self.max_files, max_bytes=self.max_bytes)


def load_config(path: Path | None = None) -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    config_path = path or CONFIG_PATH
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object], path: Path | None = None) -> None:
    """Persist config data as pretty-printed JSON.

    Filesystem/serialization errors are ignored so a read-only config
    location never breaks a session.
    """
    config_path = path or CONFIG_PATH
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except (OSError, TypeError, ValueError):
        pass


def _coerce_positive_int(value: object) -> int | None:
    """Booleans, non-integers and values below 1 are treated as unset."""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value >= 1 else None


def _coerce_patterns(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str) and item.strip())


def _coerce_tree_mode(value: object) -> TreeRenderMode:
    if not isinstance(value, str):
        return TreeRenderMode.FULL_TREE
    try:
        return TreeRenderMode.parse(value)
    except ValueError:
        return TreeRenderMode.FULL_TREE


def _coerce_encoding(value: object) -> str:
    if not isinstance(value, str):
        return DEFAULT_TOKENIZER_ENCODING
    stripped = value.strip()
    return stripped or DEFAULT_TOKENIZER_ENCODING


def load_settings(path: Path | None = None) -> Settings:
    """Load validated settings; every invalid value falls back to its default."""
    data = load_config(path)
    return Settings(
        token_batch_size=_coerce_positive_int(data.get("token_batch_size")) or DEFAULT_TOKEN_BATCH_SIZE,
        tokenizer_encoding=_coerce_encoding(data.get("tokenizer_encoding")),
        extra_ignore_patterns=_coerce_patterns(data.get("extra_ignore_patterns")),
        default_tree_mode=_coerce_tree_mode(data.get("default_tree_mode")),
        max_files=_coerce_positive_int(data.get("max_files")),
        max_bytes=_coerce_positive_int(data.get("max_bytes")),
    )


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Persist ``settings`` while preserving keys this version does not know."""
    config = load_config(path)
    config["token_batch_size"] = settings.token_batch_size
    config["tokenizer_encoding"] = settings.tokenizer_encoding
    config["extra_ignore_patterns"] = list(settings.extra_ignore_patterns)
    config["default_tree_mode"] = settings.default_tree_mode.value
    for key, value in (("max_files", settings.max_files), ("max_bytes", settings.max_bytes)):
        if value is None:
            config.pop(key, None)
        else:
            config[key] = value
    save_config(config, path)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "Settings",
    "load_config",
    "save_config",
    "load_settings",
    "save_settings",
]
