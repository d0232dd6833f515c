"""Undo/redo over whole-graph snapshots, and the mutation epoch.

Async work captures ``MutationEpoch.current`` before awaiting and compares
it afterwards; any restore bumps the epoch so results that were in flight
across an undo or redo are dropped instead of resurrecting deleted state.
"""

from __future__ import annotations

import logging
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterator

from wikiweb.config import settings
from wikiweb.graph.model import GraphModel
from wikiweb.graph.models import GraphSnapshot

if TYPE_CHECKING:
    from wikiweb.batching import UpdateBatcher
    from wikiweb.search import PathSearchEngine

logger = logging.getLogger(__name__)


class MutationEpoch:
    """Monotonic counter invalidating async work started before a reset."""

    def __init__(self) -> None:
        self.current = 0

    def bump(self) -> int:
        self.current += 1
        return self.current

    def is_current(self, captured: int) -> bool:
        return captured == self.current


@dataclass
class AppSnapshot:
    """Graph snapshot plus the host's auxiliary per-session state."""

    graph: GraphSnapshot
    aux: dict[str, Any] = field(default_factory=dict)


class HistoryManager:
    """
    Two bounded snapshot stacks.

    ``capture_aux`` returns the caller's auxiliary state (it is copied into
    the snapshot as given, so return fresh containers); ``on_restore``
    receives it back after the graph has been restored.
    """

    def __init__(
        self,
        model: GraphModel,
        batcher: UpdateBatcher | None = None,
        search_engine: PathSearchEngine | None = None,
        epoch: MutationEpoch | None = None,
        max_depth: int | None = None,
        capture_aux: Callable[[], dict[str, Any]] | None = None,
        on_restore: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        self.model = model
        self.batcher = batcher
        self.search_engine = search_engine
        self.epoch = epoch or MutationEpoch()
        self.max_depth = max_depth or settings.history_max_depth
        self.capture_aux = capture_aux
        self.on_restore = on_restore

        self._undo: deque[AppSnapshot] = deque(maxlen=self.max_depth)
        self._redo: deque[AppSnapshot] = deque(maxlen=self.max_depth)
        self._suppressed = 0

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def is_suppressed(self) -> bool:
        return self._suppressed > 0

    @contextmanager
    def suppressed(self) -> Iterator[None]:
        """Disable history capture for the duration of the block."""
        self._suppressed += 1
        try:
            yield
        finally:
            self._suppressed -= 1

    def capture(self) -> AppSnapshot:
        aux = self.capture_aux() if self.capture_aux else {}
        return AppSnapshot(graph=self.model.get_state_snapshot(), aux=aux)

    def push_history(self) -> bool:
        """Record the current state as an undo point. Clears redo."""
        if self.is_suppressed:
            return False
        self._undo.append(self.capture())
        self._redo.clear()
        return True

    def undo(self) -> bool:
        if not self._undo:
            return False
        snapshot = self._undo.pop()
        self._redo.append(self.capture())
        self.restore(snapshot)
        logger.debug(f"Undo: {len(self._undo)} left, {len(self._redo)} redoable")
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        snapshot = self._redo.pop()
        self._undo.append(self.capture())
        self.restore(snapshot)
        logger.debug(f"Redo: {len(self._redo)} left, {len(self._undo)} undoable")
        return True

    def restore(self, snapshot: AppSnapshot) -> None:
        """Invalidate in-flight work, then put the snapshot in place."""
        with self.suppressed():
            self.epoch.bump()
            if self.batcher is not None:
                self.batcher.clear()
            if self.search_engine is not None:
                self.search_engine.abort()
            self.model.set_state_snapshot(snapshot.graph)
            if self.on_restore is not None:
                self.on_restore(snapshot.aux)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
