"""Data models for the topic graph: nodes, links, metadata and snapshots."""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Literal, Mapping

ColorRole = Literal["root", "child"]


class LinkType(str, Enum):
    """How a link entered the graph."""

    MANUAL = "manual"  # Outgoing link of a user-added topic
    AUTO = "auto"  # Cross-link discovered between topics already in the graph
    EXPAND = "expand"  # Outgoing link added by expanding a node
    EXPAND_BACKLINK = "expand_backlink"  # Expansion via a backlink or bidirectional link
    BACKLINK = "backlink"  # Other topic links to this one
    PATH = "path"  # Part of a discovered path


@dataclass
class Node:
    """A topic in the graph.

    ``id`` is the canonical topic title and the only cross-reference key.
    ``fx``/``fy`` hold the pinned position while a node is being dragged.
    """

    id: str
    title: str = ""
    x: float | None = None
    y: float | None = None
    vx: float = 0.0
    vy: float = 0.0
    fx: float | None = None
    fy: float | None = None

    # Partial metadata merged over the defaults when the node is first added
    metadata: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.title:
            self.title = self.id

    @property
    def is_pinned(self) -> bool:
        return self.fx is not None or self.fy is not None

    def to_dict(self) -> dict:
        """Convert to dictionary (metadata excluded)."""
        return {
            "id": self.id,
            "title": self.title,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
            "fx": self.fx,
            "fy": self.fy,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Node:
        """Create node from dictionary."""
        return cls(
            id=data["id"],
            title=data.get("title") or data["id"],
            x=data.get("x"),
            y=data.get("y"),
            vx=data.get("vx", 0.0) or 0.0,
            vy=data.get("vy", 0.0) or 0.0,
            fx=data.get("fx"),
            fy=data.get("fy"),
            metadata=dict(data["metadata"]) if data.get("metadata") else None,
        )


def endpoint_id(endpoint: str | Node | Mapping[str, Any]) -> str:
    """Normalize a link endpoint (bare id, node, or node-like dict) to its id."""
    if isinstance(endpoint, str):
        return endpoint
    if isinstance(endpoint, Node):
        return endpoint.id
    return str(endpoint["id"])


@dataclass
class Link:
    """A directed hyperlink between two topics.

    Endpoints are always stored as bare ids; ``Node`` objects passed in are
    normalized on construction.
    """

    source: str
    target: str
    id: str = ""
    type: LinkType = LinkType.MANUAL
    context: str | None = None  # Sentence around the link in the source article

    def __post_init__(self) -> None:
        self.source = endpoint_id(self.source)
        self.target = endpoint_id(self.target)
        if not isinstance(self.type, LinkType):
            self.type = LinkType(self.type)
        if not self.id:
            self.id = f"{self.source}-{self.target}"

    @property
    def key(self) -> str:
        """Stable render key for the (source, target) pair."""
        return f"{self.source}-{self.target}"

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Link:
        """Create link from dictionary."""
        return cls(
            source=data["source"],
            target=data["target"],
            id=data.get("id") or "",
            type=LinkType(data.get("type") or LinkType.MANUAL.value),
            context=data.get("context"),
        )


# Original camelCase metadata keys accepted on merge
_CAMEL_KEYS = {
    "isUserTyped": "is_user_typed",
    "isAutoDiscovered": "is_auto_discovered",
    "isExpanded": "is_expanded",
    "isInPath": "is_in_path",
    "isRecentlyAdded": "is_recently_added",
    "isCurrentlyExploring": "is_currently_exploring",
    "isSelected": "is_selected",
    "isPathEndpoint": "is_path_endpoint",
    "isBulkSelected": "is_bulk_selected",
    "isDimmed": "is_dimmed",
    "isDimmedByPath": "is_dimmed_by_path",
    "isFocusTarget": "is_focus_target",
    "isFocusNeighbor": "is_focus_neighbor",
    "originSeed": "origin_seed",
    "originDepth": "origin_depth",
    "colorSeed": "color_seed",
    "colorRole": "color_role",
}


@dataclass
class NodeMetadata:
    """Styling and provenance flags kept in a side map keyed by node id."""

    is_user_typed: bool = False
    is_auto_discovered: bool = False
    is_expanded: bool = False
    is_in_path: bool = False
    is_recently_added: bool = False
    is_currently_exploring: bool = False
    is_selected: bool = False
    is_path_endpoint: bool = False
    is_bulk_selected: bool = False
    is_dimmed: bool = False  # Focus dimming
    is_dimmed_by_path: bool = False  # Path dimming
    is_focus_target: bool = False
    is_focus_neighbor: bool = False

    thumbnail: str | None = None
    origin_seed: str | None = None
    origin_depth: int | None = None
    color_seed: str | None = None
    color_role: ColorRole | None = None

    def merged(self, partial: Mapping[str, Any] | NodeMetadata | None) -> NodeMetadata:
        """Return a copy with ``partial`` shallow-merged over this entry."""
        if not partial:
            return replace(self)
        if isinstance(partial, NodeMetadata):
            partial = partial.to_dict()
        valid = {f.name for f in fields(self)}
        updates: dict[str, Any] = {}
        for key, value in partial.items():
            name = _CAMEL_KEYS.get(key, key)
            if name not in valid:
                raise ValueError(f"Unknown node metadata field: {key}")
            updates[name] = value
        if updates.get("origin_depth") is not None and updates["origin_depth"] < 0:
            raise ValueError(f"origin_depth must be >= 0, got {updates['origin_depth']}")
        return replace(self, **updates)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NodeMetadata:
        """Create metadata from dictionary (snake_case or camelCase keys)."""
        return cls().merged(data)


@dataclass(frozen=True)
class GraphStats:
    node_count: int
    link_count: int


@dataclass
class LinksApplied:
    """Outcome of one ``add_links`` call."""

    added: list[Link] = field(default_factory=list)
    updated: list[Link] = field(default_factory=list)
    # Dropped for a missing endpoint; never passed to on_links_applied
    rejected: list[Link] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated)


@dataclass(frozen=True)
class GraphSnapshot:
    """Deep, self-contained copy of the whole graph model state."""

    nodes: tuple[Node, ...] = ()
    links: tuple[Link, ...] = ()
    node_metadata: Mapping[str, NodeMetadata] = field(default_factory=dict)

    def copy_nodes(self) -> list[Node]:
        return [copy.deepcopy(n) for n in self.nodes]

    def copy_links(self) -> list[Link]:
        return [replace(link) for link in self.links]

    def copy_metadata(self) -> dict[str, NodeMetadata]:
        return {node_id: replace(meta) for node_id, meta in self.node_metadata.items()}

    def to_dict(self) -> dict:
        """Convert to a plain dictionary."""
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [link.to_dict() for link in self.links],
            "node_metadata": {k: v.to_dict() for k, v in self.node_metadata.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GraphSnapshot:
        """Create snapshot from dictionary (accepts ``nodeMetadata`` too)."""
        metadata = data.get("node_metadata", data.get("nodeMetadata")) or {}
        return cls(
            nodes=tuple(Node.from_dict(n) for n in data.get("nodes", [])),
            links=tuple(Link.from_dict(link) for link in data.get("links", [])),
            node_metadata={k: NodeMetadata.from_dict(v) for k, v in metadata.items()},
        )
