"""Rendering surface abstraction and the headless in-memory surface.

A surface holds keyed drawable primitives, a pan/zoom transform, per-frame
callbacks and pointer event delivery. ``MemorySurface`` keeps everything as
plain Python state, which is what tests and headless hosts render from.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable, Literal, Protocol

logger = logging.getLogger(__name__)

DrawableKind = Literal["node", "link", "gradient", "pattern", "brush"]
DRAWABLE_KINDS: tuple[DrawableKind, ...] = ("node", "link", "gradient", "pattern", "brush")
DrawableState = Literal["entering", "live", "exiting", "removed"]


@dataclass(frozen=True)
class ZoomTransform:
    """Pan/zoom transform mapping world coordinates to screen coordinates."""

    k: float = 1.0
    x: float = 0.0
    y: float = 0.0

    def apply_x(self, x: float) -> float:
        return x * self.k + self.x

    def apply_y(self, y: float) -> float:
        return y * self.k + self.y

    def apply(self, point: tuple[float, float]) -> tuple[float, float]:
        return self.apply_x(point[0]), self.apply_y(point[1])

    def invert(self, point: tuple[float, float]) -> tuple[float, float]:
        """Screen point back to world coordinates."""
        return (point[0] - self.x) / self.k, (point[1] - self.y) / self.k

    def scale_clamped(self, low: float, high: float) -> ZoomTransform:
        return ZoomTransform(k=min(high, max(low, self.k)), x=self.x, y=self.y)

    def __str__(self) -> str:
        return f"translate({self.x},{self.y}) scale({self.k})"


IDENTITY = ZoomTransform()


@dataclass(frozen=True)
class Transition:
    """An animated attribute change on a drawable."""

    name: str  # "enter", "exit", "hover"...
    duration_ms: float
    start: dict[str, Any] = field(default_factory=dict)
    end: dict[str, Any] = field(default_factory=dict)


_handle_ids = count(1)


@dataclass(eq=False)
class Drawable:
    """A keyed primitive on the surface. Identity is the handle itself."""

    key: str
    kind: DrawableKind
    attrs: dict[str, Any] = field(default_factory=dict)
    state: DrawableState = "live"
    transitions: list[Transition] = field(default_factory=list)
    handle_id: int = field(default_factory=lambda: next(_handle_ids))
    transition_ends_at: float | None = None


class RenderSurface(Protocol):
    """What the render layer needs from a drawing backend."""

    @property
    def size(self) -> tuple[float, float]: ...

    def create(
        self,
        key: str,
        kind: DrawableKind,
        attrs: dict[str, Any],
        transition: Transition | None = None,
    ) -> Drawable: ...

    def update(self, handle: Drawable, attrs: dict[str, Any]) -> None: ...

    def remove(self, handle: Drawable, transition: Transition | None = None) -> None: ...

    def get_transform(self) -> ZoomTransform: ...

    def set_transform(self, transform: ZoomTransform) -> None: ...

    def register_frame_callback(self, callback: Callable[[float], None]) -> Callable[[], None]: ...

    def frame(self, now: float | None = None) -> None: ...

    def set_pointer_handler(self, handler: Callable[[Any], None] | None) -> None: ...


class MemorySurface:
    """Headless surface storing drawables keyed by (kind, key)."""

    def __init__(self, width: float = 1200.0, height: float = 800.0) -> None:
        self.width = width
        self.height = height
        self.elements: dict[tuple[DrawableKind, str], Drawable] = {}
        self.exiting: list[Drawable] = []
        self.transform = IDENTITY
        self.frame_count = 0
        self._frame_callbacks: list[Callable[[float], None]] = []
        self._pointer_handler: Callable[[Any], None] | None = None

    @property
    def size(self) -> tuple[float, float]:
        return self.width, self.height

    def resize(self, width: float, height: float) -> None:
        self.width, self.height = width, height

    # ------------------------------------------------------------------
    # Drawables

    def create(
        self,
        key: str,
        kind: DrawableKind,
        attrs: dict[str, Any],
        transition: Transition | None = None,
    ) -> Drawable:
        handle = Drawable(key=key, kind=kind, attrs=dict(attrs))
        if transition is not None:
            handle.attrs.update(transition.start)
            self._begin(handle, transition, "entering")
        self.elements[(kind, key)] = handle
        return handle

    def update(self, handle: Drawable, attrs: dict[str, Any]) -> None:
        handle.attrs.update(attrs)

    def remove(self, handle: Drawable, transition: Transition | None = None) -> None:
        slot = (handle.kind, handle.key)
        if self.elements.get(slot) is handle:
            del self.elements[slot]
        if transition is None:
            handle.state = "removed"
            return
        self._begin(handle, transition, "exiting")
        self.exiting.append(handle)

    def get(self, key: str, kind: DrawableKind | None = None) -> Drawable | None:
        """Look up a live drawable; without ``kind`` the first kind holding ``key`` wins."""
        if kind is not None:
            return self.elements.get((kind, key))
        for candidate in DRAWABLE_KINDS:
            handle = self.elements.get((candidate, key))
            if handle is not None:
                return handle
        return None

    def of_kind(self, kind: DrawableKind) -> dict[str, Drawable]:
        return {key: h for (k, key), h in self.elements.items() if k == kind}

    def _begin(self, handle: Drawable, transition: Transition, state: DrawableState) -> None:
        handle.state = state
        handle.transitions.append(transition)
        handle.transition_ends_at = time.monotonic() + transition.duration_ms / 1000

    def finish_transitions(self, now: float | None = None) -> None:
        """Settle transitions that have run their course (all if ``now`` is None)."""
        for handle in list(self.elements.values()) + self.exiting:
            if handle.transition_ends_at is None:
                continue
            if now is not None and handle.transition_ends_at > now:
                continue
            handle.attrs.update(handle.transitions[-1].end)
            handle.transition_ends_at = None
            handle.state = "removed" if handle.state == "exiting" else "live"
        self.exiting = [h for h in self.exiting if h.state == "exiting"]

    # ------------------------------------------------------------------
    # Transform

    def get_transform(self) -> ZoomTransform:
        return self.transform

    def set_transform(self, transform: ZoomTransform) -> None:
        self.transform = transform

    # ------------------------------------------------------------------
    # Frames and pointer events

    def register_frame_callback(self, callback: Callable[[float], None]) -> Callable[[], None]:
        self._frame_callbacks.append(callback)

        def unregister() -> None:
            if callback in self._frame_callbacks:
                self._frame_callbacks.remove(callback)

        return unregister

    def frame(self, now: float | None = None) -> None:
        """Run one animation frame."""
        now = time.monotonic() if now is None else now
        self.frame_count += 1
        for callback in list(self._frame_callbacks):
            callback(now)
        self.finish_transitions(now)

    def set_pointer_handler(self, handler: Callable[[Any], None] | None) -> None:
        self._pointer_handler = handler

    def dispatch(self, event: Any) -> None:
        """Deliver a pointer event to the registered handler."""
        if self._pointer_handler is not None:
            self._pointer_handler(event)
