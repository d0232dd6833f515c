"""Keyed reconciliation of graph model state onto a rendering surface.

Each reconcile computes the full set of drawables keyed by stable id and
diffs it against what is on the surface: new keys enter, missing keys exit,
and surviving keys keep their element handle and only get new attributes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from wikiweb.graph.model import GraphModel
from wikiweb.graph.models import NodeMetadata
from wikiweb.render.encoding import (
    FOCUS_SCALE,
    GRADIENT_END_COLOR,
    GRADIENT_START_COLOR,
    LINK_HOVER_COLOR,
    gradient_key,
    link_style,
    node_style,
    wrap_label,
)
from wikiweb.render.surface import DRAWABLE_KINDS, Drawable, DrawableKind, RenderSurface, Transition

logger = logging.getLogger(__name__)

DrawableSlot = tuple[DrawableKind, str]

NODE_ENTER_MS = 220
LINK_ENTER_MS = 320
EXIT_MS = 200


@dataclass
class ReconcileStats:
    """What the last reconcile did."""

    entered: int = 0
    updated: int = 0
    exited: int = 0


class RenderReconciler:
    """
    Maps GraphModel state to keyed drawables.

    Drawables are keyed by ``(kind, key)``: node id for nodes,
    ``source-target`` for links, ``gradient:<link key>`` for path-endpoint
    gradients and ``img-<id>`` for thumbnail patterns. A node titled
    "Austria-Hungary" and the link Austria -> Hungary live side by side.
    """

    def __init__(
        self,
        model: GraphModel,
        surface: RenderSurface,
        size_scale: Callable[[], float] | None = None,
    ) -> None:
        self.model = model
        self.surface = surface
        self._size_scale = size_scale or (lambda: 1.0)
        self._handles: dict[DrawableSlot, Drawable] = {}
        self._link_endpoints: dict[str, tuple[str, str]] = {}
        self._hovered_link: str | None = None
        self._hovered_node: str | None = None
        self.last_stats = ReconcileStats()

    def handle(self, key: str, kind: DrawableKind | None = None) -> Drawable | None:
        if kind is not None:
            return self._handles.get((kind, key))
        for candidate in DRAWABLE_KINDS:
            if (candidate, key) in self._handles:
                return self._handles[(candidate, key)]
        return None

    @property
    def keys(self) -> set[str]:
        return {key for _, key in self._handles}

    # ------------------------------------------------------------------
    # Reconcile

    def reconcile(self) -> ReconcileStats:
        """Diff the model against the surface and apply the changes."""
        desired = self._desired()
        stats = ReconcileStats()

        for slot in list(self._handles):
            if slot not in desired:
                handle = self._handles.pop(slot)
                self.surface.remove(handle, self._exit_transition(handle))
                stats.exited += 1

        for (kind, key), attrs in desired.items():
            handle = self._handles.get((kind, key))
            if handle is None:
                self._handles[(kind, key)] = self.surface.create(
                    key, kind, attrs, self._enter_transition(kind, attrs)
                )
                stats.entered += 1
            else:
                self.surface.update(handle, attrs)
                stats.updated += 1

        self.last_stats = stats
        if stats.entered or stats.exited:
            logger.debug(
                f"Reconciled: +{stats.entered} ~{stats.updated} -{stats.exited}"
            )
        self.tick()
        return stats

    def _desired(self) -> dict[DrawableSlot, dict[str, Any]]:
        scale = self._size_scale()
        degrees = self.model.get_degrees()
        desired: dict[DrawableSlot, dict[str, Any]] = {}
        self._link_endpoints = {}

        for link in self.model.links:
            source_meta = self._meta(link.source)
            target_meta = self._meta(link.target)
            style = link_style(link.key, source_meta, target_meta)
            attrs = style.attrs()
            attrs["link_id"] = link.id
            attrs["type"] = link.type.value
            if link.key == self._hovered_link:
                attrs.update({"stroke": LINK_HOVER_COLOR, "stroke-width": 6, "stroke-opacity": 1})
            desired[("link", link.key)] = attrs
            self._link_endpoints[link.key] = (link.source, link.target)

            if style.gradient:
                desired[("gradient", style.gradient)] = {
                    "units": "userSpaceOnUse",
                    "stops": [(0.0, GRADIENT_START_COLOR), (1.0, GRADIENT_END_COLOR)],
                    "link": link.key,
                }

        for node in self.model.nodes:
            meta = self._meta(node.id)
            style = node_style(node.id, meta, degrees.get(node.id, 0), scale)
            attrs = style.attrs()
            attrs["label"] = wrap_label(node.title, style.radius, scale)
            attrs["font-size"] = max(7, 9 * scale)
            if node.id == self._hovered_node and not meta.is_focus_target:
                attrs["scale"] = FOCUS_SCALE
            desired[("node", node.id)] = attrs

            if style.pattern:
                desired[("pattern", style.pattern)] = {"href": meta.thumbnail, "node": node.id}

        return desired

    def _meta(self, node_id: str) -> NodeMetadata:
        return self.model.get_node_metadata(node_id) or NodeMetadata()

    @staticmethod
    def _enter_transition(kind: DrawableKind, attrs: dict[str, Any]) -> Transition | None:
        if kind == "node":
            return Transition(
                name="enter",
                duration_ms=NODE_ENTER_MS,
                start={"opacity": 0, "scale": 0.88},
                end={"opacity": attrs["opacity"], "scale": attrs["scale"]},
            )
        if kind == "link":
            return Transition(
                name="enter",
                duration_ms=LINK_ENTER_MS,
                start={
                    "stroke-width": 0,
                    "stroke-opacity": 0,
                    "stroke-dasharray": "8 12",
                    "stroke-dashoffset": 60,
                },
                end={
                    "stroke-width": attrs["stroke-width"],
                    "stroke-opacity": attrs["stroke-opacity"],
                    "stroke-dasharray": None,
                    "stroke-dashoffset": 0,
                },
            )
        return None

    @staticmethod
    def _exit_transition(handle: Drawable) -> Transition | None:
        if handle.kind == "node":
            return Transition(name="exit", duration_ms=EXIT_MS, end={"opacity": 0})
        if handle.kind == "link":
            return Transition(name="exit", duration_ms=EXIT_MS, end={"stroke-opacity": 0})
        return None

    # ------------------------------------------------------------------
    # Per-frame positioning

    def tick(self) -> None:
        """Move drawables to the current node positions."""
        positions = {n.id: (n.x or 0.0, n.y or 0.0) for n in self.model.nodes}

        for key, (source, target) in self._link_endpoints.items():
            handle = self._handles.get(("link", key))
            if handle is None or source not in positions or target not in positions:
                continue
            (x1, y1), (x2, y2) = positions[source], positions[target]
            geometry = {"x1": x1, "y1": y1, "x2": x2, "y2": y2}
            self.surface.update(handle, geometry)
            gradient = self._handles.get(("gradient", gradient_key(key)))
            if gradient is not None:
                self.surface.update(gradient, geometry)

        for node_id, (x, y) in positions.items():
            handle = self._handles.get(("node", node_id))
            if handle is not None:
                self.surface.update(handle, {"transform": f"translate({x},{y})"})

    # ------------------------------------------------------------------
    # Hover

    def hover_link(self, key: str | None) -> None:
        """Highlight a link under the pointer; ``None`` restores its style."""
        if key == self._hovered_link:
            return
        self._hovered_link = key
        self.reconcile()

    def hover_node(self, node_id: str | None) -> None:
        if node_id == self._hovered_node:
            return
        self._hovered_node = node_id
        self.reconcile()

    def clear(self) -> None:
        """Remove every drawable without transitions (teardown)."""
        for handle in self._handles.values():
            self.surface.remove(handle)
        self._handles.clear()
        self._link_endpoints.clear()
