"""In-memory topic graph with idempotent mutation and query operations.

The model owns nodes, links and the per-node metadata side map. It knows
nothing about rendering or physics: layout and render layers subscribe
through structure and change listeners, and the host subscribes through
``GraphCallbacks``.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping

from wikiweb.config import settings
from wikiweb.graph.models import (
    GraphSnapshot,
    GraphStats,
    Link,
    LinksApplied,
    LinkType,
    Node,
    NodeMetadata,
    endpoint_id,
)

logger = logging.getLogger(__name__)

MetadataPartial = Mapping[str, Any] | NodeMetadata


@dataclass
class GraphCallbacks:
    """Host-facing callbacks. Every entry is optional."""

    on_stats_update: Callable[[GraphStats], None] | None = None
    on_links_applied: Callable[[LinksApplied], None] | None = None
    on_selection_change: Callable[[list[Node]], None] | None = None
    on_node_click: Callable[[Node, Any], None] | None = None
    on_node_double_click: Callable[[Node, Any], None] | None = None
    on_node_drag_start: Callable[[Node], None] | None = None
    on_link_click: Callable[[Link, Any], None] | None = None
    on_background_click: Callable[[Any], None] | None = None


class GraphModel:
    """
    Mutable, id-keyed graph of topics.

    Mutations are synchronous and never raise for bad links: links with a
    missing endpoint are dropped. Structural changes notify structure
    listeners with the alpha to reheat the layout to; any visible change
    notifies change listeners so the render layer can reconcile.
    """

    def __init__(
        self,
        callbacks: GraphCallbacks | None = None,
        width: float | None = None,
        height: float | None = None,
    ) -> None:
        self.callbacks = callbacks or GraphCallbacks()
        self.width = width or settings.viewport_width
        self.height = height or settings.viewport_height

        self._nodes: dict[str, Node] = {}
        self._links: dict[tuple[str, str], Link] = {}
        self._metadata: dict[str, NodeMetadata] = {}

        self._structure_listeners: list[Callable[[float], None]] = []
        self._change_listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Subscriptions

    def add_structure_listener(self, listener: Callable[[float], None]) -> None:
        """Register a listener called with a reheat alpha on add/delete."""
        self._structure_listeners.append(listener)

    def add_change_listener(self, listener: Callable[[], None]) -> None:
        """Register a listener called after any visible change."""
        self._change_listeners.append(listener)

    def set_viewport(self, width: float, height: float) -> None:
        self.width = width
        self.height = height

    # ------------------------------------------------------------------
    # Views

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    @property
    def links(self) -> list[Link]:
        return list(self._links.values())

    @property
    def metadata(self) -> dict[str, NodeMetadata]:
        return dict(self._metadata)

    # ------------------------------------------------------------------
    # Mutation

    def add_nodes(self, nodes: Iterable[Node | Mapping[str, Any]]) -> list[Node]:
        """Add nodes that are not present yet (idempotent per id).

        Returns the nodes that were actually added.
        """
        added: list[Node] = []
        for item in nodes:
            node = item if isinstance(item, Node) else Node.from_dict(item)
            if node.id in self._nodes:
                continue
            self._insert_node(node)
            added.append(node)

        if added:
            logger.debug(f"Added {len(added)} nodes ({len(self._nodes)} total)")
            self._emit_structure(settings.reheat_alpha)
            self._emit_change()
            self._notify_stats()
        return added

    def add_links(self, links: Iterable[Link | Mapping[str, Any]]) -> LinksApplied:
        """Insert new links and upgrade existing ones.

        A link whose (source, target) pair already exists is upgraded in
        place: an incoming ``path`` type wins over any other type, and a
        missing context is filled in. Context is never overwritten.
        """
        result = LinksApplied()

        for item in links:
            link = item if isinstance(item, Link) else Link.from_dict(item)
            if link.source not in self._nodes or link.target not in self._nodes:
                result.rejected.append(link)
                continue

            existing = self._links.get((link.source, link.target))
            if existing is None:
                self._links[(link.source, link.target)] = link
                result.added.append(link)
                continue

            upgraded = False
            if link.type == LinkType.PATH and existing.type != LinkType.PATH:
                existing.type = LinkType.PATH
                upgraded = True
            if link.context and not existing.context:
                existing.context = link.context
                upgraded = True
            if upgraded:
                result.updated.append(existing)

        if result.rejected:
            logger.debug(f"Dropped {len(result.rejected)} links with missing endpoints")

        if result.added:
            self._emit_structure(settings.reheat_alpha)
            self._emit_change()
            self._notify_stats()
        elif result.updated:
            self._emit_change()

        if result.changed and self.callbacks.on_links_applied:
            self.callbacks.on_links_applied(result)

        return result

    def delete_node(self, node_id: str) -> bool:
        """Remove a node, its incident links and its metadata."""
        if node_id not in self._nodes:
            return False
        self._remove_nodes({node_id})
        self._emit_structure(settings.reheat_alpha)
        self._emit_change()
        self._notify_stats()
        return True

    def delete_nodes(self, node_ids: Iterable[str]) -> int:
        """Remove several nodes in a single pass. Returns the count removed."""
        doomed = {nid for nid in node_ids if nid in self._nodes}
        if not doomed:
            return 0
        self._remove_nodes(doomed)
        self._emit_structure(settings.reheat_alpha)
        self._emit_change()
        self._notify_stats()
        return len(doomed)

    def prune_nodes(self) -> int:
        """Remove every node with fewer than 2 connections.

        Degrees are measured once, before anything is removed, so nodes that
        become leaves because of this call survive until the next one.
        """
        degrees = self._degree_map()
        doomed = {nid for nid in self._nodes if degrees[nid] < 2}
        if not doomed:
            return 0

        self._remove_nodes(doomed)
        logger.info(f"Pruned {len(doomed)} nodes with degree < 2")

        self._emit_structure(settings.prune_alpha)
        self._emit_change()
        self._notify_stats()
        return len(doomed)

    def clear(self) -> None:
        """Remove all nodes, links and metadata."""
        self._nodes.clear()
        self._links.clear()
        self._metadata.clear()
        self._emit_change()
        self._notify_stats()

    # ------------------------------------------------------------------
    # Metadata

    def get_node_metadata(self, node_id: str) -> NodeMetadata | None:
        """Metadata entry for a node; a default is created for present nodes."""
        meta = self._metadata.get(node_id)
        if meta is None and node_id in self._nodes:
            meta = self._metadata[node_id] = NodeMetadata()
        return meta

    def set_node_metadata(self, node_id: str, partial: MetadataPartial) -> NodeMetadata:
        """Shallow-merge partial metadata; reconciles but does not reheat."""
        meta = self._merge_metadata(node_id, partial)
        self._emit_change()
        return meta

    def set_nodes_metadata(self, updates: Iterable[tuple[str, MetadataPartial]]) -> None:
        """Merge metadata for several nodes with a single reconcile."""
        for node_id, partial in updates:
            self._merge_metadata(node_id, partial)
        self._emit_change()

    def highlight_node(self, target_id: str | None) -> None:
        """Focus one node and its direct neighbors; ``None`` clears focus."""
        if target_id is None:
            for node_id, meta in self._metadata.items():
                self._metadata[node_id] = replace(
                    meta, is_dimmed=False, is_focus_target=False, is_focus_neighbor=False
                )
        else:
            neighbors = self.neighbors(target_id)
            for node_id in self._nodes:
                meta = self.get_node_metadata(node_id)
                self._metadata[node_id] = replace(
                    meta,
                    is_dimmed=node_id != target_id and node_id not in neighbors,
                    is_focus_target=node_id == target_id,
                    is_focus_neighbor=node_id in neighbors,
                )
        self._emit_change()

    def set_path_highlight(self, path_node_ids: Iterable[str] | None) -> None:
        """Dim every node off the path; ``None`` or empty clears path dimming."""
        on_path = set(path_node_ids or ())
        for node_id in self._nodes:
            meta = self.get_node_metadata(node_id)
            self._metadata[node_id] = replace(
                meta, is_dimmed_by_path=bool(on_path) and node_id not in on_path
            )
        self._emit_change()

    # ------------------------------------------------------------------
    # Snapshots

    def get_state_snapshot(self) -> GraphSnapshot:
        """Deep copy of nodes, links and metadata."""
        return GraphSnapshot(
            nodes=tuple(
                Node(
                    id=n.id, title=n.title, x=n.x, y=n.y,
                    vx=n.vx, vy=n.vy, fx=n.fx, fy=n.fy,
                )
                for n in self._nodes.values()
            ),
            links=tuple(replace(link) for link in self._links.values()),
            node_metadata={k: replace(v) for k, v in self._metadata.items()},
        )

    def set_state_snapshot(self, snapshot: GraphSnapshot) -> None:
        """Replace the whole model state with a snapshot.

        Metadata is kept only for nodes in the snapshot; entries pre-seeded for
        nodes that were still queued when the snapshot was taken are dropped.
        """
        self._nodes.clear()
        self._links.clear()
        nodes = snapshot.copy_nodes()
        restored = {node.id for node in nodes}
        self._metadata = {
            k: v for k, v in snapshot.copy_metadata().items() if k in restored
        }

        for node in nodes:
            self._insert_node(node)
        for link in snapshot.copy_links():
            if link.source in self._nodes and link.target in self._nodes:
                self._links.setdefault((link.source, link.target), link)

        logger.debug(
            f"Restored snapshot: {len(self._nodes)} nodes, {len(self._links)} links"
        )
        self._emit_structure(settings.reheat_alpha)
        self._emit_change()
        self._notify_stats()

    # ------------------------------------------------------------------
    # Queries

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def get_node_ids(self) -> list[str]:
        return list(self._nodes)

    def get_node_degree(self, node_id: str) -> int:
        return sum(1 for link in self._links.values() if link.touches(node_id))

    def get_degrees(self) -> dict[str, int]:
        """Degree of every node currently in the graph."""
        return dict(self._degree_map())

    def neighbors(self, node_id: str) -> set[str]:
        """Ids linked to ``node_id`` in either direction."""
        result: set[str] = set()
        for link in self._links.values():
            if link.source == node_id:
                result.add(link.target)
            elif link.target == node_id:
                result.add(link.source)
        return result

    def get_link_between(self, a: str | Node, b: str | Node) -> Link | None:
        """First link joining ``a`` and ``b`` in either direction."""
        a_id, b_id = endpoint_id(a), endpoint_id(b)
        return self._links.get((a_id, b_id)) or self._links.get((b_id, a_id))

    def get_link_by_id(self, link_id: str) -> Link | None:
        for link in self._links.values():
            if link.id == link_id:
                return link
        return None

    def get_stats(self) -> GraphStats:
        return GraphStats(node_count=len(self._nodes), link_count=len(self._links))

    # ------------------------------------------------------------------
    # Internals

    def _insert_node(self, node: Node) -> None:
        if node.x is None:
            node.x = self.width / 2 + (random.random() - 0.5) * settings.spawn_jitter
        if node.y is None:
            node.y = self.height / 2 + (random.random() - 0.5) * settings.spawn_jitter
        self._nodes[node.id] = node
        base = self._metadata.get(node.id) or NodeMetadata()
        self._metadata[node.id] = base.merged(node.metadata)

    def _merge_metadata(self, node_id: str, partial: MetadataPartial) -> NodeMetadata:
        existing = self._metadata.get(node_id) or NodeMetadata()
        meta = self._metadata[node_id] = existing.merged(partial)
        return meta

    def _remove_nodes(self, doomed: set[str]) -> None:
        for node_id in doomed:
            self._nodes.pop(node_id, None)
            self._metadata.pop(node_id, None)
        self._links = {
            pair: link
            for pair, link in self._links.items()
            if link.source not in doomed and link.target not in doomed
        }

    def _degree_map(self) -> Counter[str]:
        degrees: Counter[str] = Counter({nid: 0 for nid in self._nodes})
        for link in self._links.values():
            degrees[link.source] += 1
            degrees[link.target] += 1
        return degrees

    def _emit_structure(self, alpha: float) -> None:
        for listener in self._structure_listeners:
            listener(alpha)

    def _emit_change(self) -> None:
        for listener in self._change_listeners:
            listener()

    def _notify_stats(self) -> None:
        if self.callbacks.on_stats_update:
            self.callbacks.on_stats_update(self.get_stats())
