"""Graph view: model, layout, rendering and interaction on one surface."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from wikiweb.config import settings
from wikiweb.graph.model import GraphCallbacks, GraphModel
from wikiweb.interaction import InteractionController, PointerEvent
from wikiweb.layout.force import ForceLayoutEngine
from wikiweb.render.reconciler import RenderReconciler
from wikiweb.render.surface import RenderSurface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LensingNode:
    """Screen position and visual weight of a node for background effects."""

    x: float
    y: float
    mass: float


class GraphView:
    """
    Wires a GraphModel to a RenderSurface.

    Model changes reconcile the surface, layout ticks reposition drawables,
    and surface pointer events go to the InteractionController. ``start()``
    runs the frame loop as an asyncio task; ``close()`` cancels it.
    """

    def __init__(
        self,
        surface: RenderSurface,
        model: GraphModel | None = None,
        callbacks: GraphCallbacks | None = None,
        frame_rate: float | None = None,
        seed: int | None = None,
    ) -> None:
        self.surface = surface
        width, height = surface.size
        self.model = model or GraphModel(callbacks=callbacks, width=width, height=height)
        if model is not None and callbacks is not None:
            self.model.callbacks = callbacks
        self.model.set_viewport(width, height)

        self.layout = ForceLayoutEngine(self.model, width=width, height=height, seed=seed)
        self.reconciler = RenderReconciler(
            self.model, surface, size_scale=lambda: self.layout.size_scale
        )
        self.interaction = InteractionController(
            self.model, self.layout, surface, reconciler=self.reconciler
        )
        self.frame_rate = frame_rate or settings.frame_rate

        self.model.add_change_listener(self.reconciler.reconcile)
        self.layout.add_tick_listener(self.reconciler.tick)
        self._unregister_frame = surface.register_frame_callback(self._on_frame)
        surface.set_pointer_handler(self.handle_pointer)

        self._task: asyncio.Task | None = None
        self._closed = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def handle_pointer(self, event: PointerEvent) -> None:
        self.interaction.handle(event)

    def _on_frame(self, now: float) -> None:
        self.layout.step()

    # ------------------------------------------------------------------
    # Frame loop

    def start(self) -> asyncio.Task:
        """Start driving surface frames at ``frame_rate``."""
        if self._closed:
            raise RuntimeError("GraphView is closed")
        if not self.is_running:
            self._task = asyncio.create_task(self._run_frames())
            logger.debug(f"Frame loop started at {self.frame_rate} fps")
        return self._task

    async def _run_frames(self) -> None:
        interval = 1 / self.frame_rate
        while True:
            self.surface.frame()
            await asyncio.sleep(interval)

    async def close(self) -> None:
        """Stop the frame loop and detach from the surface."""
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._unregister_frame()
        self.surface.set_pointer_handler(None)
        self.layout.stop()
        self.reconciler.clear()

    # ------------------------------------------------------------------
    # Layout controls

    def resize(self, width: float, height: float) -> None:
        self.layout.resize(width, height)

    def set_node_spacing(self, spacing: float) -> None:
        self.layout.set_link_distance(spacing)

    def set_node_size_scale(self, scale: float) -> None:
        self.layout.set_size_scale(scale)
        self.reconciler.reconcile()

    # ------------------------------------------------------------------
    # Screen-space queries

    def get_link_screen_coordinates(self, link_id: str) -> tuple[float, float] | None:
        """Screen position of a link's midpoint, for anchoring popups."""
        link = self.model.get_link_by_id(link_id)
        if link is None:
            return None
        source = self.model.get_node(link.source)
        target = self.model.get_node(link.target)
        if source is None or target is None or None in (source.x, source.y, target.x, target.y):
            return None
        midpoint = ((source.x + target.x) / 2, (source.y + target.y) / 2)
        return self.surface.get_transform().apply(midpoint)

    def get_lensing_nodes(self) -> list[LensingNode]:
        """Every positioned node in screen space, weighted by degree."""
        transform = self.surface.get_transform()
        degrees = self.model.get_degrees()
        result = []
        for node in self.model.nodes:
            if node.x is None or node.y is None:
                continue
            x, y = transform.apply((node.x, node.y))
            mass = (0.8 + min(10, degrees.get(node.id, 0)) * 0.25) * self.layout.size_scale
            result.append(LensingNode(x=x, y=y, mass=mass))
        return result
