"""Force-directed layout for the topic graph."""

from wikiweb.layout.force import (
    ForceLayoutEngine,
    collision_radius,
    node_radius,
)

__all__ = [
    "ForceLayoutEngine",
    "collision_radius",
    "node_radius",
]
