"""Workspace session: the orchestrator wiring tree, selection, tokens and export.

The session owns the only mutable state of a workspace (the selection model
and the current snapshot). Each open/refresh bumps the load generation, and
background token results computed for an older generation are discarded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .config import Settings
from .errors import NoWorkspaceError, NothingSelectedError
from .export import TreeRenderMode, compose_export
from .file_tree_model import (
    DirectoryNode,
    FlatEntry,
    WorkspaceSnapshot,
    build_file_tree_from_entries,
    build_workspace_snapshot,
    refresh_workspace_snapshot,
)
from .host import MemoryHost, WorkspaceHost, remember_workspace
from .selection import SelectionModel, SelectionStatus, selected_file_nodes
from .sources import ContentSource, LocalFileSource, MemorySource
from .token_prefetch import TokenCountScheduler
from .tokens import (
    TiktokenTokenizer,
    TokenAccountant,
    TokenCountResult,
    Tokenizer,
    aggregate_tokens,
    directory_token_totals,
)
from .treemap import TreemapRect, layout_treemap, treemap_items_for_selection
from .watch import build_tree_watch_signature

logger = logging.getLogger(__name__)


class WorkspaceSession:
    def __init__(
        self,
        host: WorkspaceHost | None = None,
        *,
        settings: Settings | None = None,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        self.host = host if host is not None else MemoryHost().host()
        self.settings = settings if settings is not None else Settings()
        self._tokenizer: Tokenizer = (
            tokenizer if tokenizer is not None else TiktokenTokenizer(self.settings.tokenizer_encoding)
        )
        self._generation = 0
        self._snapshot: WorkspaceSnapshot | None = None
        self._source: ContentSource = LocalFileSource()
        self._accountant: TokenAccountant | None = None
        self._model: SelectionModel | None = None
        self._unreadable: frozenset[Path] = frozenset()
        self._watch_signature: str | None = None
        self._scheduler = TokenCountScheduler(self._count_in_background)

    # lifecycle
    @property
    def is_open(self) -> bool:
        return self._snapshot is not None

    @property
    def generation(self) -> int:
        return self._generation

    def open(self, root: Path | str) -> DirectoryNode:
        """Load ``root`` from disk, replacing any open workspace.

        ``InvalidRootError`` and ``RepoSizeCapError`` propagate and leave the
        previous workspace untouched.
        """
        snapshot = build_workspace_snapshot(
            root,
            generation=self._generation + 1,
            extra_patterns=self.settings.extra_ignore_patterns,
            limits=self.settings.limits,
        )
        self._install(snapshot, LocalFileSource())
        self._remember(snapshot.root_path)
        logger.info("Opened workspace %s (generation %d)", snapshot.root_path, snapshot.generation)
        return snapshot.tree

    def open_entries(self, root: Path | str, entries: Iterable[FlatEntry]) -> DirectoryNode:
        """Load a workspace from a flat ``(absolute_path, text)`` listing."""
        listed = [(Path(path), value) for path, value in entries]
        tree = build_file_tree_from_entries(
            root,
            listed,
            extra_patterns=self.settings.extra_ignore_patterns,
            limits=self.settings.limits,
        )
        texts: dict[Path, str] = {}
        for path, value in listed:
            if isinstance(value, str):
                texts.setdefault(path, value)
        snapshot = WorkspaceSnapshot(
            root_path=tree.path,
            generation=self._generation + 1,
            tree=tree,
            extra_patterns=self.settings.extra_ignore_patterns,
            limits=self.settings.limits,
        )
        self._install(snapshot, MemorySource(texts))
        logger.info("Opened in-memory workspace %s (generation %d)", snapshot.root_path, snapshot.generation)
        return tree

    def choose_and_open(self) -> DirectoryNode | None:
        """Ask the host for a directory and open it; ``None`` when cancelled."""
        chosen = self.host.choose_directory()
        if chosen is None:
            return None
        return self.open(chosen)

    def refresh(self, *, force: bool = False) -> bool:
        """Reload the open workspace from disk and reconcile the selection.

        Returns whether the tree changed. In-memory workspaces have nothing to
        reload and return ``False``.
        """
        snapshot = self._require_snapshot("refresh")
        if not isinstance(self._source, LocalFileSource):
            return False
        refreshed, tree_changed = refresh_workspace_snapshot(snapshot, force=force)
        if refreshed is snapshot:
            return False
        self._generation = refreshed.generation
        self._snapshot = refreshed
        self._accountant = self._new_accountant(self._source)
        self._require_model("refresh").replace_tree(refreshed.tree)
        self._unreadable = frozenset()
        self._watch_signature = build_tree_watch_signature(refreshed.tree)
        logger.info("Refreshed workspace %s (generation %d)", refreshed.root_path, refreshed.generation)
        return tree_changed

    def poll_for_changes(self) -> bool:
        """Reload the workspace when its on-disk watch signature moved.

        Meant to be called on a timer. Returns whether a reload happened;
        in-memory workspaces never reload.
        """
        snapshot = self._require_snapshot("poll_for_changes")
        if self._watch_signature is None:
            return False
        signature = build_tree_watch_signature(snapshot.tree)
        if signature == self._watch_signature:
            return False
        logger.debug("Watch signature changed for %s", snapshot.root_path)
        self.refresh(force=True)
        return True

    def close(self) -> None:
        self._generation += 1
        self._snapshot = None
        self._accountant = None
        self._model = None
        self._unreadable = frozenset()
        self._watch_signature = None
        self._source = LocalFileSource()

    def recent_workspaces(self) -> list[str]:
        return self.host.read_recent_workspaces()

    # state access
    @property
    def root(self) -> Path:
        return self._require_snapshot("root").root_path

    @property
    def tree(self) -> DirectoryNode:
        return self._require_snapshot("tree").tree

    @property
    def selection(self) -> frozenset[Path]:
        return self._require_model("selection").selection

    @property
    def token_counts(self) -> dict[Path, int]:
        return self._require_model("token_counts").token_counts

    @property
    def unreadable_paths(self) -> frozenset[Path]:
        return self._unreadable

    @property
    def selection_model(self) -> SelectionModel:
        return self._require_model("selection_model")

    # selection
    def toggle(self, path: Path | str) -> frozenset[Path]:
        return self._require_model("toggle").toggle(self._absolute(path))

    def select(self, paths: Iterable[Path | str]) -> frozenset[Path]:
        return self._require_model("select").select_paths(self._absolute(path) for path in paths)

    def select_all(self) -> frozenset[Path]:
        return self._require_model("select_all").select_all()

    def clear_selection(self) -> frozenset[Path]:
        return self._require_model("clear_selection").clear()

    def status(self, path: Path | str) -> SelectionStatus:
        return self._require_model("status").status(self._absolute(path))

    def statuses(self) -> dict[Path, SelectionStatus]:
        return self._require_model("statuses").statuses()

    # tokens
    def count_selected_tokens(self) -> int:
        """Count selected files that lack a count, then return the selected total."""
        model = self._require_model("count_selected_tokens")
        missing = model.unknown_count_paths()
        if missing:
            self._apply_counts(self._require_accountant().count_many(missing))
        return self.total_tokens()

    def total_tokens(self) -> int:
        model = self._require_model("total_tokens")
        return aggregate_tokens(model.tree, model.selection, model.token_counts)

    def directory_totals(self) -> dict[Path, int]:
        model = self._require_model("directory_totals")
        return directory_token_totals(model.tree, model.selection, model.token_counts)

    def schedule_token_counts(self, *, all_files: bool = False) -> int | None:
        """Queue background counting for files without a count.

        Only selected files are queued unless ``all_files`` is set. Returns the
        request id, or ``None`` when nothing needs counting.
        """
        snapshot = self._require_snapshot("schedule_token_counts")
        model = self._require_model("schedule_token_counts")
        known = model.token_counts
        if all_files:
            paths = [path for path in snapshot.file_paths() if path not in known]
        else:
            paths = model.unknown_count_paths()
        if not paths:
            return None
        return self._scheduler.schedule(root=snapshot.root_path, generation=snapshot.generation, paths=paths)

    def drain_token_counts(self) -> int:
        """Apply finished background counts for the current load; return how many applied."""
        applied = 0
        for finished in self._scheduler.drain_results():
            snapshot = self._snapshot
            request = finished.request
            if snapshot is None or (request.root, request.generation) != snapshot.identity:
                logger.debug("Dropping stale token counts for %s (generation %d)", request.root, request.generation)
                continue
            self._apply_counts(finished.result)
            applied += 1
        return applied

    # visualization and export
    def treemap(self) -> list[TreemapRect]:
        model = self._require_model("treemap")
        return layout_treemap(treemap_items_for_selection(model.tree, model.selection, model.token_counts))

    def export(self, mode: TreeRenderMode | str | None = None) -> str:
        model = self._require_model("export")
        if not model.selection:
            raise NothingSelectedError()
        selected = [node.path for node in selected_file_nodes(model.tree, model.selection)]
        return compose_export(
            selected,
            self.root,
            mode if mode is not None else self.settings.default_tree_mode,
            source=self._source,
            tree=model.tree,
        )

    def copy_export_to_clipboard(self, mode: TreeRenderMode | str | None = None) -> str:
        text = self.export(mode)
        self.host.write_clipboard_text(text)
        return text

    # internals
    def _install(self, snapshot: WorkspaceSnapshot, source: ContentSource) -> None:
        self._generation = snapshot.generation
        self._snapshot = snapshot
        self._source = source
        self._accountant = self._new_accountant(source)
        self._model = SelectionModel(snapshot.tree, fetch_token_counts=self._fetch_token_counts)
        self._unreadable = frozenset()
        self._watch_signature = (
            build_tree_watch_signature(snapshot.tree) if isinstance(source, LocalFileSource) else None
        )

    def _new_accountant(self, source: ContentSource) -> TokenAccountant:
        return TokenAccountant(self._tokenizer, source, batch_size=self.settings.token_batch_size)

    def _fetch_token_counts(self, paths: list[Path]) -> dict[Path, int]:
        result = self._require_accountant().count_many(paths)
        self._unreadable = self._unreadable | result.unreadable
        return result.counts

    def _count_in_background(self, paths: list[Path]) -> TokenCountResult:
        return self._require_accountant().count_many(paths)

    def _apply_counts(self, result: TokenCountResult) -> None:
        self._require_model("token_counts").merge_token_counts(result.counts)
        self._unreadable = self._unreadable | result.unreadable

    def _remember(self, root: Path) -> None:
        try:
            recent = self.host.read_recent_workspaces()
            self.host.write_recent_workspaces(remember_workspace(recent, root))
        except Exception as exc:
            logger.warning("Could not update recent workspaces: %s", exc)

    def _absolute(self, path: Path | str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.root / candidate

    def _require_snapshot(self, operation: str) -> WorkspaceSnapshot:
        if self._snapshot is None:
            raise NoWorkspaceError(operation)
        return self._snapshot

    def _require_model(self, operation: str) -> SelectionModel:
        if self._model is None:
            raise NoWorkspaceError(operation)
        return self._model

    def _require_accountant(self) -> TokenAccountant:
        if self._accountant is None:
            raise NoWorkspaceError("token counting")
        return self._accountant


__all__ = ["WorkspaceSession"]
