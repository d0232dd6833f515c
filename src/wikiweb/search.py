"""Breadth-first shortest-path search between two topics.

The search walks outgoing links fetched on demand, so every step may wait
on the network. Pause and abort are events the search awaits alongside the
in-flight fetch, which keeps abort latency independent of fetch latency.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from wikiweb.config import settings
from wikiweb.fetch.base import ContentFetcher, context_for
from wikiweb.graph.model import GraphModel
from wikiweb.graph.models import Link, LinkType, Node
from wikiweb.history import MutationEpoch

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SearchState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RUNNING = "running"
    PAUSED = "paused"
    FOUND = "found"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"
    ERROR = "error"


ACTIVE_STATES = frozenset({SearchState.RESOLVING, SearchState.RUNNING, SearchState.PAUSED})


class SearchOutcome(str, Enum):
    """How a search ended."""

    FOUND = "found"
    NOT_FOUND = "not-found"
    LIMIT_EXCEEDED = "exploration-limit-exceeded"
    ABORTED = "aborted"
    ERROR = "error"


@dataclass(frozen=True)
class SearchProgress:
    current_title: str
    depth: int
    explored_count: int
    queue_size: int
    paths_found: int = 0


@dataclass
class PathSearchResult:
    outcome: SearchOutcome
    paths: list[list[str]] = field(default_factory=list)
    explored_count: int = 0
    error: str | None = None

    @property
    def path(self) -> list[str] | None:
        """First (shortest) path found."""
        return self.paths[0] if self.paths else None


class SearchAborted(Exception):
    """Raised inside the search task when abort() is observed."""


class ExplorationLimitExceeded(Exception):
    pass


class PathSearchEngine:
    """
    Runs one BFS at a time over a ContentFetcher.

    Found paths are injected into the model as ``path`` links with their
    nodes tagged ``is_in_path``, unless the mutation epoch moved since the
    search started.
    """

    def __init__(
        self,
        model: GraphModel,
        fetcher: ContentFetcher,
        epoch: MutationEpoch | None = None,
        max_depth: int | None = None,
        exploration_limit: int | None = None,
    ) -> None:
        self.model = model
        self.fetcher = fetcher
        self.epoch = epoch or MutationEpoch()
        self.max_depth = max_depth if max_depth is not None else settings.search_max_depth
        self.exploration_limit = (
            exploration_limit if exploration_limit is not None else settings.search_exploration_limit
        )

        self.state = SearchState.IDLE
        self.log: deque[str] = deque(maxlen=settings.search_log_size)
        self._lock = asyncio.Lock()
        self._abort = asyncio.Event()
        self._resume = asyncio.Event()
        self._resume.set()
        self._on_log: Callable[[str], None] | None = None
        self._explored = 0

    @property
    def is_searching(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_paused(self) -> bool:
        return self.state == SearchState.PAUSED

    # ------------------------------------------------------------------
    # Controls

    def pause(self) -> None:
        if self.state != SearchState.RUNNING:
            return
        self._resume.clear()
        self.state = SearchState.PAUSED
        self._log("Search paused")

    def resume(self) -> None:
        if self.state != SearchState.PAUSED:
            return
        self.state = SearchState.RUNNING
        self._resume.set()
        self._log("Search resumed")

    def abort(self) -> None:
        if not self.is_searching or self._abort.is_set():
            return
        self._abort.set()
        # Wake a paused search so it can observe the abort
        self._resume.set()
        logger.info("Path search abort requested")

    # ------------------------------------------------------------------
    # Search

    async def search(
        self,
        start: str,
        end: str,
        keep_searching: bool = False,
        on_path_found: Callable[[list[str]], None] | None = None,
        on_progress: Callable[[SearchProgress], None] | None = None,
        on_log: Callable[[str], None] | None = None,
    ) -> PathSearchResult:
        """
        Find the shortest link path from ``start`` to ``end``.

        With ``keep_searching`` the BFS continues after the first hit and
        reports every distinct path until the frontier is exhausted, the
        depth horizon is reached or the search is aborted.
        """
        async with self._lock:
            self._abort.clear()
            self._resume.set()
            self._on_log = on_log
            self.log.clear()
            self.state = SearchState.RESOLVING
            captured_epoch = self.epoch.current
            paths: list[list[str]] = []
            self._explored = 0

            try:
                start_title, end_title = await self._resolve(start, end)
                self._log(f"Tracing path: {start_title} -> {end_title}")
                self.state = SearchState.RUNNING

                if start_title == end_title:
                    paths.append([start_title])
                    self._on_found([start_title], captured_epoch, on_path_found)
                else:
                    await self._bfs(
                        start_title, end_title, keep_searching, captured_epoch,
                        paths, on_path_found, on_progress,
                    )
            except SearchAborted:
                self.state = SearchState.ABORTED
                self._log("[ABORTED] Search cancelled")
                return PathSearchResult(SearchOutcome.ABORTED, paths, self._explored)
            except ExplorationLimitExceeded as e:
                self.state = SearchState.FOUND if paths else SearchState.ERROR
                self._log(f"[ERROR] {e}")
                return PathSearchResult(
                    SearchOutcome.FOUND if paths else SearchOutcome.LIMIT_EXCEEDED,
                    paths, self._explored, None if paths else str(e),
                )
            except Exception as e:
                logger.error(f"Path search failed: {e}")
                self.state = SearchState.ERROR
                self._log(f"[ERROR] {e}")
                return PathSearchResult(
                    SearchOutcome.ERROR, paths, self._explored,
                    str(e) or "Error during pathfinding",
                )
            finally:
                if self.state in ACTIVE_STATES:
                    self.state = SearchState.IDLE

            if paths:
                self.state = SearchState.FOUND
                return PathSearchResult(SearchOutcome.FOUND, paths, self._explored)

            self.state = SearchState.EXHAUSTED
            self._log("[FAILURE] Target not found in search horizon.")
            return PathSearchResult(
                SearchOutcome.NOT_FOUND, paths, self._explored,
                "No path found within search limits.",
            )

    async def _resolve(self, start: str, end: str) -> tuple[str, str]:
        """Canonical titles for both endpoints; raw input where resolution fails."""
        resolved = await self._race(
            asyncio.gather(
                self.fetcher.resolve_title(start),
                self.fetcher.resolve_title(end),
                return_exceptions=True,
            )
        )
        titles = []
        for raw, result in zip((start, end), resolved):
            if isinstance(result, BaseException):
                logger.warning(f'Could not resolve "{raw}", using it verbatim: {result}')
                titles.append(raw)
            else:
                titles.append(result)
        return titles[0], titles[1]

    async def _bfs(
        self,
        start: str,
        end: str,
        keep_searching: bool,
        captured_epoch: int,
        paths: list[list[str]],
        on_path_found: Callable[[list[str]], None] | None,
        on_progress: Callable[[SearchProgress], None] | None,
    ) -> None:
        queue: deque[tuple[str, int]] = deque([(start, 0)])
        visited: set[str] = {start}
        parent: dict[str, str] = {}
        seen_paths: set[tuple[str, ...]] = set()

        while queue:
            await self._checkpoint()
            title, depth = queue.popleft()
            self._explored += 1
            explored = self._explored

            if explored % settings.search_log_every == 0:
                self._log(f"Scanning: {title[:20]}... (D{depth})")
            if explored % settings.search_progress_every == 0:
                if on_progress is not None:
                    on_progress(SearchProgress(
                        current_title=title,
                        depth=depth,
                        explored_count=explored,
                        queue_size=len(queue),
                        paths_found=len(paths),
                    ))
                await asyncio.sleep(0)
                await self._checkpoint()

            if depth >= self.max_depth:
                continue
            if explored > self.exploration_limit:
                raise ExplorationLimitExceeded(
                    f"Exceeded exploration limit ({self.exploration_limit} nodes)."
                )

            links = await self._race(self.fetcher.fetch_links(title))

            for link in links:
                if link.title in visited:
                    continue

                if link.title == end:
                    path = self._rebuild(parent, start, title) + [end]
                    if tuple(path) in seen_paths:
                        continue
                    seen_paths.add(tuple(path))
                    paths.append(path)
                    self._log(f">> TARGET ACQUIRED: {end} <<")
                    self._on_found(path, captured_epoch, on_path_found)
                    if not keep_searching:
                        return
                    continue

                visited.add(link.title)
                parent[link.title] = title
                queue.append((link.title, depth + 1))

    @staticmethod
    def _rebuild(parent: dict[str, str], start: str, last: str) -> list[str]:
        path = [last]
        while path[0] != start:
            path.insert(0, parent[path[0]])
        return path

    def _on_found(
        self,
        path: list[str],
        captured_epoch: int,
        on_path_found: Callable[[list[str]], None] | None,
    ) -> None:
        if self._abort.is_set():
            raise SearchAborted()
        if self.epoch.is_current(captured_epoch):
            self.inject_path(path)
        else:
            logger.info("Graph was reset during search; found path not injected")
        if on_path_found is not None:
            on_path_found(path)

    def inject_path(self, path: list[str]) -> None:
        """Add path nodes and ``path`` links, tag the nodes and clear focus."""
        self.model.add_nodes([Node(id=title) for title in path])
        self.model.add_links([
            Link(
                source=source,
                target=target,
                type=LinkType.PATH,
                context=context_for(self.fetcher, source, target),
            )
            for source, target in zip(path, path[1:])
        ])
        self.model.set_nodes_metadata((title, {"is_in_path": True}) for title in path)
        self.model.highlight_node(None)

    # ------------------------------------------------------------------
    # Signals

    async def _checkpoint(self) -> None:
        """Suspend while paused; raise once aborted."""
        if not self._resume.is_set():
            await self._resume.wait()
        if self._abort.is_set():
            raise SearchAborted()

    async def _race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless abort fires first."""
        task = asyncio.ensure_future(awaitable)
        abort_wait = asyncio.ensure_future(self._abort.wait())
        try:
            await asyncio.wait({task, abort_wait}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            abort_wait.cancel()
        if self._abort.is_set():
            task.cancel()
            raise SearchAborted()
        return task.result()

    def _log(self, message: str) -> None:
        logger.info(message)
        self.log.append(message)
        if self._on_log is not None:
            self._on_log(message)
