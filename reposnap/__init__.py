"""Public package surface for reposnap.

Exports ``main`` for programmatic CLI invocation and ``WorkspaceSession``
for hosts embedding the workspace core.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


def __getattr__(name: str):
    if name == "WorkspaceSession":
        from .session import WorkspaceSession

        return WorkspaceSession
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["main", "WorkspaceSession"]
