"""Debounced batching of graph additions.

Many concurrent fetches each produce a handful of nodes and links; applying
them one by one would reheat the layout on every arrival. The batcher
buffers them and applies everything in one flush per interval.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

from wikiweb.config import settings
from wikiweb.graph.model import GraphModel
from wikiweb.graph.models import Link, Node

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueSize:
    nodes: int
    links: int


class UpdateBatcher:
    """
    Buffers node/link additions and flushes them into a GraphModel.

    At most one flush timer is pending at a time: queueing while a flush is
    scheduled only grows the buffers.
    """

    def __init__(
        self,
        model: GraphModel,
        batch_interval_ms: int | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.model = model
        self.batch_interval_ms = batch_interval_ms if batch_interval_ms is not None else settings.batch_interval_ms
        self._loop = loop
        self._timer: asyncio.TimerHandle | None = None
        self._node_queue: list[Node] = []
        self._link_queue: list[Link] = []
        self.flush_count = 0

    @property
    def pending(self) -> bool:
        """True while a flush timer is scheduled."""
        return self._timer is not None

    def queue_nodes(self, nodes: Iterable[Node]) -> None:
        self._node_queue.extend(nodes)
        self._schedule_flush()

    def queue_links(self, links: Iterable[Link]) -> None:
        self._link_queue.extend(links)
        self._schedule_flush()

    def queue_update(self, nodes: Iterable[Node], links: Iterable[Link]) -> None:
        """Queue nodes and links together."""
        self._node_queue.extend(nodes)
        self._link_queue.extend(links)
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        if self._timer is not None:
            return
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.batch_interval_ms / 1000, self.flush)

    def flush(self) -> None:
        """Apply buffered nodes, then links, in one shot."""
        nodes, links = self._node_queue, self._link_queue
        self._node_queue, self._link_queue = [], []
        self._timer = None

        if nodes or links:
            logger.debug(f"Flushing {len(nodes)} nodes and {len(links)} links")
            self.flush_count += 1
        if nodes:
            self.model.add_nodes(nodes)
        if links:
            self.model.add_links(links)

    def force_flush(self) -> None:
        """Cancel the pending timer and flush immediately."""
        self._cancel_timer()
        self.flush()

    def clear(self) -> None:
        """Drop buffered work without applying it."""
        self._cancel_timer()
        dropped = len(self._node_queue) + len(self._link_queue)
        self._node_queue = []
        self._link_queue = []
        if dropped:
            logger.debug(f"Discarded {dropped} queued graph updates")

    def queue_size(self) -> QueueSize:
        return QueueSize(nodes=len(self._node_queue), links=len(self._link_queue))

    def set_batch_interval(self, interval_ms: int) -> None:
        self.batch_interval_ms = interval_ms

    def close(self) -> None:
        self.clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
