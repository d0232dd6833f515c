"""Rendering layer: surface abstraction, visual encoding and reconciliation."""

from wikiweb.render.encoding import (
    LinkStyle,
    NodeStyle,
    link_style,
    node_fill,
    node_style,
    opacity_tier,
    seed_hue,
)
from wikiweb.render.reconciler import ReconcileStats, RenderReconciler
from wikiweb.render.surface import (
    IDENTITY,
    Drawable,
    MemorySurface,
    RenderSurface,
    Transition,
    ZoomTransform,
)

__all__ = [
    # Surface
    "RenderSurface",
    "MemorySurface",
    "Drawable",
    "Transition",
    "ZoomTransform",
    "IDENTITY",
    # Encoding
    "NodeStyle",
    "LinkStyle",
    "node_style",
    "link_style",
    "node_fill",
    "opacity_tier",
    "seed_hue",
    # Reconciliation
    "RenderReconciler",
    "ReconcileStats",
]
