"""Continuous force-directed layout for the topic graph.

Integrates many-body repulsion, link springs, centering and collision
avoidance with the same velocity-Verlet scheme as d3-force, vectorized
with numpy. The simulation is stochastic: coincident nodes are separated
with a tiny random jiggle.
"""

from __future__ import annotations

import logging
import math
from typing import Callable

import numpy as np

from wikiweb.config import settings
from wikiweb.graph.model import GraphModel

logger = logging.getLogger(__name__)

MIN_SIZE_SCALE = 0.4
MAX_SIZE_SCALE = 2.0


def node_radius(degree: int, size_scale: float = 1.0) -> float:
    """Drawn radius of a node with ``degree`` connections."""
    return min(30 + degree * 0.5, 60) * size_scale


def collision_radius(degree: int, size_scale: float = 1.0) -> float:
    """Collision radius: drawn radius plus a 15px margin."""
    return node_radius(degree, size_scale) + 15


class ForceLayoutEngine:
    """
    Physics simulation driving node positions.

    Alpha (heat) decays toward ``alpha_target`` every tick. While alpha is at
    or above ``alpha_min`` each call to ``step()`` runs one tick and notifies
    tick listeners; below it the simulation is at rest until reheated.
    """

    def __init__(
        self,
        model: GraphModel,
        width: float | None = None,
        height: float | None = None,
        charge_strength: float | None = None,
        link_distance: float | None = None,
        velocity_decay: float | None = None,
        alpha_min: float | None = None,
        size_scale: float | None = None,
        seed: int | None = None,
    ) -> None:
        self.model = model
        self.width = width or model.width
        self.height = height or model.height
        self.charge_strength = charge_strength if charge_strength is not None else settings.charge_strength
        self.link_distance = link_distance or settings.link_distance
        self.velocity_decay = velocity_decay if velocity_decay is not None else settings.velocity_decay
        self.alpha_min = alpha_min or settings.alpha_min
        self.size_scale = size_scale or settings.node_size_scale

        self.alpha = 1.0
        self.alpha_target = 0.0
        self.alpha_decay = 1 - self.alpha_min ** (1 / settings.alpha_decay_steps)

        self._rng = np.random.default_rng(seed)
        self._tick_listeners: list[Callable[[], None]] = []

        model.add_structure_listener(self.reheat)

    # ------------------------------------------------------------------
    # Heat control

    @property
    def is_active(self) -> bool:
        """True while the simulation is still converging or being held warm."""
        return self.alpha >= self.alpha_min or self.alpha_target >= self.alpha_min

    def reheat(self, alpha: float) -> None:
        """Set alpha so the next frames reorganize the layout."""
        self.alpha = alpha

    def set_alpha_target(self, target: float) -> None:
        self.alpha_target = target

    def stop(self) -> None:
        """Let the simulation come to rest immediately."""
        self.alpha = 0.0
        self.alpha_target = 0.0

    def add_tick_listener(self, listener: Callable[[], None]) -> None:
        self._tick_listeners.append(listener)

    # ------------------------------------------------------------------
    # Configuration

    def resize(self, width: float, height: float) -> None:
        """Move the centering point; node positions are kept."""
        next_w = max(1, math.floor(width))
        next_h = max(1, math.floor(height))
        if next_w == self.width and next_h == self.height:
            return
        self.width, self.height = next_w, next_h
        self.model.set_viewport(next_w, next_h)
        self.reheat(settings.resize_alpha)

    def set_link_distance(self, distance: float) -> None:
        self.link_distance = distance
        self.reheat(settings.reheat_alpha)

    def set_size_scale(self, scale: float) -> None:
        """Clamp to [0.4, 2]; anything non-finite resets to 1."""
        if not math.isfinite(scale):
            self.size_scale = 1.0
        else:
            self.size_scale = min(MAX_SIZE_SCALE, max(MIN_SIZE_SCALE, scale))
        self.reheat(settings.reheat_alpha)

    @property
    def center(self) -> tuple[float, float]:
        return self.width / 2, self.height / 2

    # ------------------------------------------------------------------
    # Simulation

    def step(self) -> bool:
        """Advance one frame. Returns False when the simulation is at rest."""
        if not self.is_active:
            return False
        self.tick()
        for listener in self._tick_listeners:
            listener()
        return True

    def tick(self, iterations: int = 1) -> None:
        """Run ``iterations`` physics ticks without notifying listeners."""
        nodes = self.model.nodes
        if not nodes:
            for _ in range(iterations):
                self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
            return

        index = {node.id: i for i, node in enumerate(nodes)}
        pos = np.array([[n.x or 0.0, n.y or 0.0] for n in nodes], dtype=float)
        vel = np.array([[n.vx, n.vy] for n in nodes], dtype=float)
        fixed_x = np.array([n.fx is not None for n in nodes])
        fixed_y = np.array([n.fy is not None for n in nodes])
        pinned = np.array([[n.fx or 0.0, n.fy or 0.0] for n in nodes], dtype=float)

        links = self.model.links
        src = np.array([index[link.source] for link in links], dtype=int)
        dst = np.array([index[link.target] for link in links], dtype=int)
        degree = np.bincount(np.concatenate([src, dst]), minlength=len(nodes)) if links else np.zeros(len(nodes), dtype=int)
        radii = np.minimum(30 + degree * 0.5, 60) * self.size_scale + 15

        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
            if len(links):
                self._apply_links(pos, vel, src, dst, degree)
            if len(nodes) > 1:
                self._apply_charge(pos, vel)
            self._apply_center(pos)
            if len(nodes) > 1:
                self._apply_collide(pos, vel, radii)

            vel *= 1 - self.velocity_decay
            pos += vel
            pos[fixed_x, 0] = pinned[fixed_x, 0]
            pos[fixed_y, 1] = pinned[fixed_y, 1]
            vel[fixed_x, 0] = 0.0
            vel[fixed_y, 1] = 0.0

        for i, node in enumerate(nodes):
            node.x, node.y = float(pos[i, 0]), float(pos[i, 1])
            node.vx, node.vy = float(vel[i, 0]), float(vel[i, 1])

    def _jiggle(self, shape: tuple[int, ...]) -> np.ndarray:
        return (self._rng.random(shape) - 0.5) * 1e-6

    def _apply_links(
        self,
        pos: np.ndarray,
        vel: np.ndarray,
        src: np.ndarray,
        dst: np.ndarray,
        degree: np.ndarray,
    ) -> None:
        count_s = degree[src].astype(float)
        count_t = degree[dst].astype(float)
        strength = 1.0 / np.minimum(count_s, count_t)
        bias = count_s / (count_s + count_t)

        delta = (pos[dst] + vel[dst]) - (pos[src] + vel[src])
        zero = np.all(delta == 0, axis=1)
        if zero.any():
            delta[zero] = self._jiggle((int(zero.sum()), 2))
        length = np.hypot(delta[:, 0], delta[:, 1])
        scale = (length - self.link_distance) / length * self.alpha * strength
        delta *= scale[:, None]

        np.add.at(vel, dst, -delta * bias[:, None])
        np.add.at(vel, src, delta * (1 - bias)[:, None])

    def _apply_charge(self, pos: np.ndarray, vel: np.ndarray) -> None:
        n = len(pos)
        dx = pos[None, :, 0] - pos[:, None, 0]
        dy = pos[None, :, 1] - pos[:, None, 1]
        off_diag = ~np.eye(n, dtype=bool)
        coincident = (dx == 0) & (dy == 0) & off_diag
        if coincident.any():
            count = int(coincident.sum())
            dx[coincident] = self._jiggle((count,))
            dy[coincident] = self._jiggle((count,))
        dist2 = dx * dx + dy * dy
        # Clamp very close pairs (d3 distanceMin = 1)
        dist2 = np.where(dist2 < 1, np.sqrt(dist2), dist2)
        np.fill_diagonal(dist2, np.inf)
        factor = self.charge_strength * self.alpha / dist2
        vel[:, 0] += (dx * factor).sum(axis=1)
        vel[:, 1] += (dy * factor).sum(axis=1)

    def _apply_center(self, pos: np.ndarray) -> None:
        cx, cy = self.center
        mean = pos.mean(axis=0)
        pos -= mean - np.array([cx, cy])

    def _apply_collide(self, pos: np.ndarray, vel: np.ndarray, radii: np.ndarray) -> None:
        predicted = pos + vel
        i, j = np.triu_indices(len(pos), k=1)
        delta = predicted[i] - predicted[j]
        reach = radii[i] + radii[j]
        dist2 = (delta ** 2).sum(axis=1)
        overlap = dist2 < reach ** 2
        if not overlap.any():
            return

        i, j, delta, reach = i[overlap], j[overlap], delta[overlap], reach[overlap]
        zero = np.all(delta == 0, axis=1)
        if zero.any():
            delta[zero] = self._jiggle((int(zero.sum()), 2))
        length = np.hypot(delta[:, 0], delta[:, 1])
        delta *= ((reach - length) / length)[:, None]

        ri2 = radii[i] ** 2
        rj2 = radii[j] ** 2
        share = rj2 / (ri2 + rj2)
        np.add.at(vel, i, delta * share[:, None])
        np.add.at(vel, j, -delta * (1 - share)[:, None])
