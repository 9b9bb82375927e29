"""Filesystem watch signatures for poll-based workspace refreshes.

A signature is a cheap hash over the stat metadata of every directory in a
built tree and of each directory's direct children. Hosts poll it and reload
the workspace when it changes; nothing is pushed from the OS.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

from .file_tree_model import DirectoryNode, iter_directory_nodes


def _update_digest(digest, token: str) -> None:
    """Append a token plus separator byte to a hash digest."""
    digest.update(token.encode("utf-8", errors="surrogateescape"))
    digest.update(b"\0")


def _path_stat_signature(path: Path) -> tuple[str, int, int]:
    """Return ``(state, mtime_ns, mode)`` for ``path``; failures are folded into ``state``."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0)
    except OSError:
        return ("error", 0, 0)
    return ("ok", st.st_mtime_ns, st.st_mode)


def build_tree_watch_signature(tree: DirectoryNode) -> str:
    """Digest the on-disk state of every directory present in ``tree``.

    Children are hashed whether or not they are ignored, so the signature may
    change without the rebuilt tree changing. Directories pruned from ``tree``
    (ignored or empty) are only seen through their parent's listing.
    """
    digest = hashlib.blake2b(digest_size=20)
    _update_digest(digest, f"root:{tree.path}")

    for directory in sorted((node.path for node in iter_directory_nodes(tree)), key=str):
        _update_digest(digest, f"dir:{directory}")
        stat_state, stat_mtime, stat_mode = _path_stat_signature(directory)
        _update_digest(digest, f"dir_stat:{stat_state}:{stat_mtime}:{stat_mode}")
        if stat_state != "ok":
            continue

        children: list[tuple[str, bool, int, int, str]] = []
        try:
            with os.scandir(directory) as entries:
                for child in entries:
                    try:
                        is_dir = child.is_dir(follow_symlinks=False)
                    except OSError:
                        is_dir = False
                    try:
                        st = child.stat(follow_symlinks=False)
                        mtime_ns = st.st_mtime_ns
                        size = st.st_size
                        state = "ok"
                    except OSError:
                        mtime_ns = 0
                        size = 0
                        state = "error"
                    children.append((child.name, is_dir, mtime_ns, size, state))
        except OSError:
            _update_digest(digest, "children:error")
            continue

        children.sort(key=lambda item: (not item[1], item[0].casefold(), item[0]))
        for name, is_dir, mtime_ns, size, state in children:
            _update_digest(digest, f"child:{name}:{1 if is_dir else 0}:{state}:{mtime_ns}:{size}")

    return digest.hexdigest()


__all__ = ["build_tree_watch_signature"]
