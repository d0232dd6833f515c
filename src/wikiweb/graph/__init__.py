"""Topic graph model.

Provides:
- Node, Link and metadata data types
- GraphModel with idempotent mutation, pruning and snapshots
"""

from wikiweb.graph.model import GraphCallbacks, GraphModel
from wikiweb.graph.models import (
    ColorRole,
    GraphSnapshot,
    GraphStats,
    Link,
    LinksApplied,
    LinkType,
    Node,
    NodeMetadata,
    endpoint_id,
)

__all__ = [
    # Model
    "GraphModel",
    "GraphCallbacks",
    # Data types
    "Node",
    "Link",
    "LinkType",
    "NodeMetadata",
    "ColorRole",
    "GraphSnapshot",
    "GraphStats",
    "LinksApplied",
    "endpoint_id",
]
