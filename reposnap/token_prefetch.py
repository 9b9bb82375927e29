"""Background token-count worker with latest-request-wins scheduling."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue

from .tokens import TokenCountResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenCountRequest:
    """One bulk count job for the workspace load identified by ``(root, generation)``."""

    request_id: int
    root: Path
    generation: int
    paths: tuple[Path, ...]


@dataclass(frozen=True)
class TokenCountBatchResult:
    """Completed job from the background worker."""

    request: TokenCountRequest
    result: TokenCountResult


class TokenCountScheduler:
    """Single-threaded latest-request-wins token counting scheduler.

    A request scheduled while another is pending replaces it. Results carry
    the root and generation they were computed for; consumers drop results
    that no longer match the open workspace.
    """

    def __init__(self, count_many: Callable[[list[Path]], TokenCountResult]) -> None:
        self._count_many = count_many
        self._lock = threading.Lock()
        self._pending: TokenCountRequest | None = None
        self._running = False
        self._next_request_id = 1
        self._results: Queue[TokenCountBatchResult] = Queue()

    def _worker(self) -> None:
        while True:
            with self._lock:
                request = self._pending
                self._pending = None
                if request is None:
                    self._running = False
                    return

            try:
                result = self._count_many(list(request.paths))
            except Exception as exc:
                logger.warning("Background token count for %s failed: %s", request.root, exc)
                continue
            self._results.put(TokenCountBatchResult(request=request, result=result))

    def schedule(self, *, root: Path, generation: int, paths: list[Path]) -> int:
        """Queue or replace pending work and return its request id."""
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            self._pending = TokenCountRequest(
                request_id=request_id,
                root=root,
                generation=generation,
                paths=tuple(paths),
            )
            if self._running:
                return request_id
            self._running = True

        worker = threading.Thread(
            target=self._worker,
            name="reposnap-token-prefetch",
            daemon=True,
        )
        worker.start()
        return request_id

    def drain_results(self) -> list[TokenCountBatchResult]:
        """Drain all completed results."""
        out: list[TokenCountBatchResult] = []
        while True:
            try:
                out.append(self._results.get_nowait())
            except Empty:
                break
        return out


__all__ = [
    "TokenCountRequest",
    "TokenCountBatchResult",
    "TokenCountScheduler",
]
