"""Pointer interaction: node drag, box selection, clicks, pan and zoom.

Screen coordinates are surface pixels. World coordinates are the layout's
node positions; the surface's ZoomTransform maps one onto the other.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Literal

from wikiweb.config import SelectionModifier, settings
from wikiweb.graph.model import GraphCallbacks, GraphModel
from wikiweb.graph.models import Link, Node
from wikiweb.layout.force import ForceLayoutEngine, node_radius
from wikiweb.render.reconciler import RenderReconciler
from wikiweb.render.surface import Drawable, RenderSurface, ZoomTransform

logger = logging.getLogger(__name__)

PointerType = Literal["down", "move", "up", "dblclick", "wheel"]
TargetKind = Literal["node", "link", "background"]

LINK_HIT_TOLERANCE = 6.0  # Screen pixels


@dataclass
class PointerEvent:
    """A pointer event in screen space, with modifier key state."""

    type: PointerType
    x: float
    y: float
    alt_key: bool = False
    shift_key: bool = False
    ctrl_key: bool = False
    meta_key: bool = False
    button: int = 0
    delta_y: float = 0.0  # Wheel only
    # Optional hit-test result supplied by the surface
    target_kind: TargetKind | None = None
    target_id: str | None = None
    default_prevented: bool = False

    def modifier(self, key: SelectionModifier) -> bool:
        return {
            SelectionModifier.ALT: self.alt_key,
            SelectionModifier.SHIFT: self.shift_key,
            SelectionModifier.CTRL: self.ctrl_key,
            SelectionModifier.META: self.meta_key,
        }[key]


@dataclass
class DragState:
    node_id: str
    start: tuple[float, float]  # World coordinates
    moved: bool = False


@dataclass
class SelectionBox:
    start: tuple[float, float]  # Screen coordinates
    end: tuple[float, float]
    brush: Drawable | None = None

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        x0, x1 = sorted((self.start[0], self.end[0]))
        y0, y1 = sorted((self.start[1], self.end[1]))
        return x0, y0, x1, y1


@dataclass
class PanState:
    origin: tuple[float, float]
    transform: ZoomTransform
    moved: bool = False


def nodes_in_screen_rect(
    nodes: list[Node],
    transform: ZoomTransform,
    start: tuple[float, float],
    end: tuple[float, float],
) -> list[Node]:
    """Nodes whose projected position lies inside the rectangle (inclusive)."""
    x0, x1 = sorted((start[0], end[0]))
    y0, y1 = sorted((start[1], end[1]))
    selected = []
    for node in nodes:
        if node.x is None or node.y is None:
            continue
        sx, sy = transform.apply_x(node.x), transform.apply_y(node.y)
        if x0 <= sx <= x1 and y0 <= sy <= y1:
            selected.append(node)
    return selected


def _segment_distance(p: tuple[float, float], a: tuple[float, float], b: tuple[float, float]) -> float:
    ax, ay = a
    bx, by = b
    dx, dy = bx - ax, by - ay
    length2 = dx * dx + dy * dy
    if length2 == 0:
        return math.hypot(p[0] - ax, p[1] - ay)
    t = max(0.0, min(1.0, ((p[0] - ax) * dx + (p[1] - ay) * dy) / length2))
    return math.hypot(p[0] - (ax + t * dx), p[1] - (ay + t * dy))


class InteractionController:
    """
    Turns pointer events into drags, selections and click callbacks.

    A press on a node pins it; the pin follows the pointer only once it has
    moved more than ``drag_threshold`` from where the press started, so a
    press and release in place is reported as a click.
    """

    def __init__(
        self,
        model: GraphModel,
        layout: ForceLayoutEngine,
        surface: RenderSurface,
        reconciler: RenderReconciler | None = None,
        callbacks: GraphCallbacks | None = None,
        drag_threshold: float | None = None,
        modifier: SelectionModifier | None = None,
    ) -> None:
        self.model = model
        self.layout = layout
        self.surface = surface
        self.reconciler = reconciler
        self.callbacks = callbacks or model.callbacks
        self.drag_threshold = drag_threshold if drag_threshold is not None else settings.drag_threshold
        self.modifier = modifier or settings.selection_modifier

        self.drag: DragState | None = None
        self.selection: SelectionBox | None = None
        self.pan: PanState | None = None
        self._press_target: tuple[TargetKind, str | None] | None = None

    def handle(self, event: PointerEvent) -> None:
        """Dispatch one pointer event."""
        if event.type == "down":
            self.pointer_down(event)
        elif event.type == "move":
            self.pointer_move(event)
        elif event.type == "up":
            self.pointer_up(event)
        elif event.type == "dblclick":
            self.double_click(event)
        elif event.type == "wheel":
            self.wheel(event)

    # ------------------------------------------------------------------
    # Hit testing

    def hit_test(self, event: PointerEvent) -> tuple[TargetKind, str | None]:
        """Resolve what is under the pointer: node, link or background."""
        if event.target_kind is not None:
            return event.target_kind, event.target_id

        transform = self.surface.get_transform()
        wx, wy = transform.invert((event.x, event.y))
        scale = getattr(self.layout, "size_scale", 1.0)
        degrees = self.model.get_degrees()

        for node in reversed(self.model.nodes):
            if node.x is None or node.y is None:
                continue
            if math.hypot(wx - node.x, wy - node.y) <= node_radius(degrees.get(node.id, 0), scale):
                return "node", node.id

        tolerance = LINK_HIT_TOLERANCE / transform.k
        for link in reversed(self.model.links):
            source = self.model.get_node(link.source)
            target = self.model.get_node(link.target)
            if source is None or target is None:
                continue
            a = (source.x or 0.0, source.y or 0.0)
            b = (target.x or 0.0, target.y or 0.0)
            if _segment_distance((wx, wy), a, b) <= tolerance:
                return "link", link.key

        return "background", None

    def _link_for_key(self, key: str | None) -> Link | None:
        if key is None:
            return None
        for link in self.model.links:
            if link.key == key or link.id == key:
                return link
        return None

    # ------------------------------------------------------------------
    # Pointer handlers

    def pointer_down(self, event: PointerEvent) -> None:
        kind, target_id = self.hit_test(event)
        self._press_target = (kind, target_id)

        if kind == "node" and target_id is not None:
            self.start_drag(target_id, event)
        elif kind == "background" and event.modifier(self.modifier):
            self.start_selection(event)
        elif kind == "background":
            self.pan = PanState(origin=(event.x, event.y), transform=self.surface.get_transform())

    def pointer_move(self, event: PointerEvent) -> None:
        if self.drag is not None:
            self.drag_to(event)
        elif self.selection is not None:
            self.update_selection(event)
        elif self.pan is not None:
            dx, dy = event.x - self.pan.origin[0], event.y - self.pan.origin[1]
            if dx or dy:
                self.pan.moved = True
                t = self.pan.transform
                self.surface.set_transform(ZoomTransform(k=t.k, x=t.x + dx, y=t.y + dy))
        elif self.reconciler is not None:
            kind, target_id = self.hit_test(event)
            self.reconciler.hover_node(target_id if kind == "node" else None)
            self.reconciler.hover_link(target_id if kind == "link" else None)

    def pointer_up(self, event: PointerEvent) -> None:
        press = self._press_target
        self._press_target = None

        if self.drag is not None:
            moved = self.end_drag(event)
            node = self.model.get_node(press[1]) if press else None
            if not moved and node is not None and self.callbacks.on_node_click:
                self.callbacks.on_node_click(node, event)
            return

        if self.selection is not None:
            self.end_selection(event)
            return

        panned = self.pan is not None and self.pan.moved
        self.pan = None
        if press is None or panned:
            return

        kind, target_id = press
        if kind == "link":
            link = self._link_for_key(target_id)
            if link is not None and self.callbacks.on_link_click:
                self.callbacks.on_link_click(link, event)
        elif kind == "background" and self.callbacks.on_background_click:
            self.callbacks.on_background_click(event)

    def double_click(self, event: PointerEvent) -> None:
        kind, target_id = self.hit_test(event)
        if kind != "node" or target_id is None:
            return
        node = self.model.get_node(target_id)
        if node is not None and self.callbacks.on_node_double_click:
            self.callbacks.on_node_double_click(node, event)

    def wheel(self, event: PointerEvent) -> None:
        """Zoom around the pointer; disabled while the selection modifier is held."""
        if event.modifier(self.modifier):
            return
        self.zoom(2 ** (-event.delta_y * 0.002), (event.x, event.y))

    def zoom(self, factor: float, center: tuple[float, float]) -> ZoomTransform:
        t = self.surface.get_transform()
        k = min(settings.zoom_max, max(settings.zoom_min, t.k * factor))
        wx, wy = t.invert(center)
        zoomed = ZoomTransform(k=k, x=center[0] - wx * k, y=center[1] - wy * k)
        self.surface.set_transform(zoomed)
        return zoomed

    # ------------------------------------------------------------------
    # Node drag

    def start_drag(self, node_id: str, event: PointerEvent) -> None:
        node = self.model.get_node(node_id)
        if node is None:
            return
        world = self.surface.get_transform().invert((event.x, event.y))
        self.drag = DragState(node_id=node_id, start=world)
        self.layout.set_alpha_target(settings.drag_alpha_target)
        node.fx, node.fy = node.x, node.y
        if self.callbacks.on_node_drag_start:
            self.callbacks.on_node_drag_start(node)

    def drag_to(self, event: PointerEvent) -> None:
        drag = self.drag
        node = self.model.get_node(drag.node_id) if drag else None
        if drag is None or node is None:
            return
        wx, wy = self.surface.get_transform().invert((event.x, event.y))
        if math.hypot(wx - drag.start[0], wy - drag.start[1]) > self.drag_threshold:
            drag.moved = True
            event.default_prevented = True
            node.fx, node.fy = wx, wy

    def end_drag(self, event: PointerEvent) -> bool:
        """Release the dragged node to the simulation. Returns whether it moved."""
        drag = self.drag
        self.drag = None
        self.layout.set_alpha_target(0.0)
        if drag is None:
            return False
        node = self.model.get_node(drag.node_id)
        if node is not None:
            node.fx = None
            node.fy = None
        return drag.moved

    # ------------------------------------------------------------------
    # Box selection

    def start_selection(self, event: PointerEvent) -> None:
        point = (event.x, event.y)
        brush = self.surface.create(
            "brush",
            "brush",
            {
                "x": event.x, "y": event.y, "width": 0, "height": 0,
                "fill": "rgba(255, 136, 0, 0.12)",
                "stroke": "rgba(255, 136, 0, 0.65)",
                "stroke-dasharray": "4",
            },
        )
        self.selection = SelectionBox(start=point, end=point, brush=brush)

    def update_selection(self, event: PointerEvent) -> None:
        box = self.selection
        if box is None:
            return
        box.end = (event.x, event.y)
        x0, y0, x1, y1 = box.bounds
        if box.brush is not None:
            self.surface.update(box.brush, {"x": x0, "y": y0, "width": x1 - x0, "height": y1 - y0})

    def end_selection(self, event: PointerEvent) -> list[Node]:
        box = self.selection
        self.selection = None
        if box is None:
            return []
        box.end = (event.x, event.y)
        if box.brush is not None:
            self.surface.remove(box.brush)

        selected = nodes_in_screen_rect(
            self.model.nodes, self.surface.get_transform(), box.start, box.end
        )
        logger.debug(f"Box selection picked {len(selected)} nodes")
        if self.callbacks.on_selection_change:
            self.callbacks.on_selection_change(selected)
        return selected
