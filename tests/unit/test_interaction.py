"""Tests for pointer interaction: drag, click, box selection and zoom."""

from unittest.mock import MagicMock

import pytest

from wikiweb.config import SelectionModifier
from wikiweb.graph.model import GraphCallbacks, GraphModel
from wikiweb.graph.models import Link, Node
from wikiweb.interaction import InteractionController, PointerEvent, nodes_in_screen_rect
from wikiweb.layout.force import ForceLayoutEngine
from wikiweb.render.reconciler import RenderReconciler
from wikiweb.render.surface import MemorySurface, ZoomTransform


@pytest.fixture
def layout(model: GraphModel) -> ForceLayoutEngine:
    return ForceLayoutEngine(model, seed=1)


@pytest.fixture
def controller(
    model: GraphModel, layout: ForceLayoutEngine, surface: MemorySurface, callbacks: GraphCallbacks
) -> InteractionController:
    callbacks.on_node_click = MagicMock()
    callbacks.on_node_double_click = MagicMock()
    callbacks.on_node_drag_start = MagicMock()
    callbacks.on_link_click = MagicMock()
    callbacks.on_background_click = MagicMock()
    callbacks.on_selection_change = MagicMock()
    reconciler = RenderReconciler(model, surface)
    model.add_change_listener(reconciler.reconcile)
    return InteractionController(model, layout, surface, reconciler=reconciler)


def press(controller: InteractionController, x: float, y: float, **keys) -> None:
    controller.handle(PointerEvent("down", x, y, **keys))


def move(controller: InteractionController, x: float, y: float, **keys) -> None:
    controller.handle(PointerEvent("move", x, y, **keys))


def release(controller: InteractionController, x: float, y: float, **keys) -> None:
    controller.handle(PointerEvent("up", x, y, **keys))


class TestNodeDrag:
    """Tests for node drag and the click threshold."""

    def test_press_release_in_place_is_click(
        self, model: GraphModel, controller: InteractionController, callbacks: GraphCallbacks
    ) -> None:
        model.add_nodes([Node(id="A", x=100.0, y=100.0)])
        press(controller, 100, 100)
        move(controller, 103, 100)
        release(controller, 103, 100)

        callbacks.on_node_click.assert_called_once()
        node, event = callbacks.on_node_click.call_args.args
        assert node.id == "A"
        assert event.type == "up"
        assert model.get_node("A").fx is None

    def test_drag_past_threshold_moves_pin(
        self,
        model: GraphModel,
        layout: ForceLayoutEngine,
        controller: InteractionController,
        callbacks: GraphCallbacks,
    ) -> None:
        """Test the pin follows only past 5px and is released on drop."""
        model.add_nodes([Node(id="A", x=100.0, y=100.0)])
        press(controller, 100, 100)
        node = model.get_node("A")
        assert (node.fx, node.fy) == (100.0, 100.0)
        assert layout.alpha_target == pytest.approx(0.3)
        callbacks.on_node_drag_start.assert_called_once_with(node)

        move(controller, 200, 150)
        assert (node.fx, node.fy) == (200.0, 150.0)

        release(controller, 200, 150)
        assert node.fx is None and node.fy is None
        assert layout.alpha_target == 0.0
        callbacks.on_node_click.assert_not_called()

    def test_drag_uses_world_coordinates(
        self, model: GraphModel, surface: MemorySurface, controller: InteractionController
    ) -> None:
        surface.set_transform(ZoomTransform(k=2.0, x=0.0, y=0.0))
        model.add_nodes([Node(id="A", x=50.0, y=50.0)])
        press(controller, 100, 100)
        move(controller, 200, 100)
        assert model.get_node("A").fx == 100.0

    def test_double_click(
        self, model: GraphModel, controller: InteractionController, callbacks: GraphCallbacks
    ) -> None:
        model.add_nodes([Node(id="A", x=100.0, y=100.0)])
        controller.handle(PointerEvent("dblclick", 100, 100, shift_key=True))
        node, event = callbacks.on_node_double_click.call_args.args
        assert node.id == "A"
        assert event.shift_key


class TestClicks:
    def test_background_click(
        self, model: GraphModel, controller: InteractionController, callbacks: GraphCallbacks
    ) -> None:
        model.add_nodes([Node(id="A", x=100.0, y=100.0)])
        press(controller, 600, 600)
        release(controller, 600, 600)
        callbacks.on_background_click.assert_called_once()
        callbacks.on_node_click.assert_not_called()

    def test_pan_is_not_click(
        self, surface: MemorySurface, controller: InteractionController, callbacks: GraphCallbacks
    ) -> None:
        press(controller, 600, 600)
        move(controller, 650, 620)
        release(controller, 650, 620)
        assert surface.get_transform() == ZoomTransform(k=1.0, x=50.0, y=20.0)
        callbacks.on_background_click.assert_not_called()

    def test_link_click(
        self, model: GraphModel, controller: InteractionController, callbacks: GraphCallbacks
    ) -> None:
        model.add_nodes([Node(id="A", x=0.0, y=0.0), Node(id="B", x=400.0, y=0.0)])
        model.add_links([Link("A", "B", context="A cites B.")])
        press(controller, 200, 3)
        release(controller, 200, 3)
        link, _ = callbacks.on_link_click.call_args.args
        assert link.context == "A cites B."

    def test_hit_test(self, model: GraphModel, controller: InteractionController) -> None:
        model.add_nodes([Node(id="A", x=100.0, y=100.0)])
        assert controller.hit_test(PointerEvent("move", 125, 100)) == ("node", "A")
        assert controller.hit_test(PointerEvent("move", 140, 100)) == ("background", None)


class TestBoxSelection:
    """Tests for modifier-key rectangle selection."""

    def test_rect_is_inclusive_under_transform(self) -> None:
        """Test a node exactly on the edge is selected; one just outside is not."""
        transform = ZoomTransform(k=2.0, x=10.0, y=20.0)
        on_edge = Node(id="edge", x=45.0, y=40.0)  # Screen (100, 100)
        outside = Node(id="out", x=46.0, y=40.0)  # Screen (102, 100)
        inside = Node(id="in", x=20.0, y=20.0)  # Screen (50, 60)
        picked = nodes_in_screen_rect([on_edge, outside, inside], transform, (100, 100), (0, 0))
        assert [n.id for n in picked] == ["edge", "in"]

    def test_alt_drag_selects(
        self,
        model: GraphModel,
        surface: MemorySurface,
        controller: InteractionController,
        callbacks: GraphCallbacks,
    ) -> None:
        model.add_nodes([
            Node(id="A", x=100.0, y=100.0),
            Node(id="B", x=200.0, y=200.0),
            Node(id="C", x=900.0, y=700.0),
        ])
        press(controller, 20, 20, alt_key=True)
        assert surface.get("brush") is not None
        move(controller, 250, 250, alt_key=True)
        assert surface.get("brush").attrs["width"] == 230
        release(controller, 250, 250, alt_key=True)

        selected = callbacks.on_selection_change.call_args.args[0]
        assert sorted(n.id for n in selected) == ["A", "B"]
        assert surface.get("brush") is None
        assert surface.get_transform() == ZoomTransform()

    def test_configurable_modifier(
        self, model: GraphModel, layout: ForceLayoutEngine, surface: MemorySurface, callbacks: GraphCallbacks
    ) -> None:
        callbacks.on_selection_change = MagicMock()
        controller = InteractionController(model, layout, surface, modifier=SelectionModifier.SHIFT)
        press(controller, 20, 20, alt_key=True)
        assert controller.selection is None
        release(controller, 20, 20)
        press(controller, 20, 20, shift_key=True)
        assert controller.selection is not None


class TestZoom:
    def test_wheel_zoom_clamped(self, surface: MemorySurface, controller: InteractionController) -> None:
        controller.handle(PointerEvent("wheel", 0, 0, delta_y=-500))
        assert surface.get_transform().k == pytest.approx(2.0)
        for _ in range(5):
            controller.handle(PointerEvent("wheel", 0, 0, delta_y=-500))
        assert surface.get_transform().k == 4

    def test_zoom_keeps_point_under_cursor(self, surface: MemorySurface, controller: InteractionController) -> None:
        before = surface.get_transform().invert((300, 200))
        controller.zoom(2.0, (300, 200))
        after = surface.get_transform().invert((300, 200))
        assert after == pytest.approx(before)

    def test_wheel_disabled_with_modifier(self, surface: MemorySurface, controller: InteractionController) -> None:
        controller.handle(PointerEvent("wheel", 0, 0, delta_y=-500, alt_key=True))
        assert surface.get_transform().k == 1.0
