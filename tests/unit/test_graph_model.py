"""Tests for GraphModel mutation, pruning, metadata and snapshots."""

from unittest.mock import MagicMock

import pytest

from wikiweb.graph.model import GraphCallbacks, GraphModel
from wikiweb.graph.models import GraphStats, Link, LinkType, Node


def build(model: GraphModel, ids: list[str], pairs: list[tuple[str, str]]) -> None:
    model.add_nodes([Node(id=i) for i in ids])
    model.add_links([Link(s, t) for s, t in pairs])


class TestAddNodes:
    """Tests for node insertion."""

    def test_add_is_idempotent(self, model: GraphModel) -> None:
        """Test adding the same node twice keeps one copy."""
        first = model.add_nodes([Node(id="A")])
        second = model.add_nodes([Node(id="A")])
        assert len(first) == 1
        assert second == []
        assert model.get_stats() == GraphStats(node_count=1, link_count=0)

    def test_new_nodes_spawn_near_center(self, model: GraphModel) -> None:
        """Test unpositioned nodes get a jittered position around the viewport center."""
        model.add_nodes([Node(id="A")])
        node = model.get_node("A")
        assert abs(node.x - 600) <= 150
        assert abs(node.y - 400) <= 150

    def test_explicit_position_kept(self, model: GraphModel) -> None:
        model.add_nodes([Node(id="A", x=5.0, y=7.0)])
        assert (model.get_node("A").x, model.get_node("A").y) == (5.0, 7.0)

    def test_metadata_on_node_merged(self, model: GraphModel) -> None:
        """Test node-carried metadata lands in the side map."""
        model.add_nodes([{"id": "A", "metadata": {"originSeed": "A", "originDepth": 0}}])
        meta = model.get_node_metadata("A")
        assert meta.origin_seed == "A"
        assert meta.origin_depth == 0

    def test_preseeded_metadata_survives_insert(self, model: GraphModel) -> None:
        """Test metadata set before the node exists is merged on insert."""
        model.set_node_metadata("A", {"color_seed": "a mathematician"})
        model.add_nodes([Node(id="A", metadata={"color_role": "root"})])
        meta = model.get_node_metadata("A")
        assert meta.color_seed == "a mathematician"
        assert meta.color_role == "root"

    def test_structure_listener_gets_reheat_alpha(self, model: GraphModel) -> None:
        listener = MagicMock()
        model.add_structure_listener(listener)
        model.add_nodes([Node(id="A")])
        listener.assert_called_once_with(0.3)


class TestAddLinks:
    """Tests for link insertion and upgrade."""

    def test_stats_scenario(self, callbacks: GraphCallbacks, model: GraphModel) -> None:
        """Test two nodes and one auto link report {2, 1}."""
        callbacks.on_stats_update = MagicMock()
        model.add_nodes([Node(id="A"), Node(id="B")])
        model.add_links([Link("A", "B", type=LinkType.AUTO)])
        callbacks.on_stats_update.assert_called_with(GraphStats(node_count=2, link_count=1))

    def test_duplicate_link_is_noop(self, model: GraphModel) -> None:
        build(model, ["A", "B"], [("A", "B")])
        result = model.add_links([Link("A", "B")])
        assert not result.changed
        assert model.get_stats().link_count == 1

    def test_dangling_link_rejected(self, model: GraphModel) -> None:
        """Test links to missing nodes are dropped and reported."""
        model.add_nodes([Node(id="A")])
        result = model.add_links([Link("A", "Missing")])
        assert [l.target for l in result.rejected] == ["Missing"]
        assert model.get_stats().link_count == 0

    def test_path_upgrade(self, callbacks: GraphCallbacks, model: GraphModel) -> None:
        """Test an auto link without context is upgraded by a path link with context."""
        callbacks.on_links_applied = MagicMock()
        model.add_nodes([Node(id="A"), Node(id="B")])
        model.add_links([Link("A", "B", type=LinkType.AUTO)])

        result = model.add_links([Link("A", "B", type=LinkType.PATH, context="A leads to B.")])
        link = model.get_link_between("A", "B")
        assert link.type == LinkType.PATH
        assert link.context == "A leads to B."
        assert result.updated == [link]

        again = model.add_links([Link("A", "B", type=LinkType.PATH, context="other")])
        assert not again.changed
        assert link.context == "A leads to B."
        assert callbacks.on_links_applied.call_count == 2

    def test_non_path_does_not_downgrade(self, model: GraphModel) -> None:
        build(model, ["A", "B"], [])
        model.add_links([Link("A", "B", type=LinkType.PATH)])
        model.add_links([Link("A", "B", type=LinkType.AUTO)])
        assert model.get_link_between("A", "B").type == LinkType.PATH

    def test_reverse_direction_is_separate_link(self, model: GraphModel) -> None:
        build(model, ["A", "B"], [("A", "B"), ("B", "A")])
        assert model.get_stats().link_count == 2
        assert model.get_node_degree("A") == 2


class TestDelete:
    """Tests for deletion and pruning."""

    def test_cascade_delete(self, model: GraphModel) -> None:
        """Test deleting a node removes its links and metadata."""
        build(model, ["A", "B", "C"], [("A", "B"), ("B", "C"), ("C", "A")])
        model.set_node_metadata("B", {"is_expanded": True})

        assert model.delete_node("B")
        assert not model.has_node("B")
        assert model.get_node_degree("B") == 0
        assert model.get_node_metadata("B") is None
        assert all(not l.touches("B") for l in model.links)
        assert model.get_stats() == GraphStats(node_count=2, link_count=1)

    def test_delete_missing_node(self, model: GraphModel) -> None:
        assert model.delete_node("Nope") is False

    def test_delete_nodes_bulk(self, model: GraphModel) -> None:
        build(model, ["A", "B", "C"], [("A", "B"), ("B", "C")])
        assert model.delete_nodes(["A", "C", "Nope"]) == 2
        assert model.get_node_ids() == ["B"]
        assert model.get_stats().link_count == 0

    def test_prune_chain_one_pass_per_call(self, model: GraphModel) -> None:
        """Test A-B-C-D loses only its endpoint leaves per call."""
        build(model, ["A", "B", "C", "D"], [("A", "B"), ("B", "C"), ("C", "D")])

        assert model.prune_nodes() == 2
        assert sorted(model.get_node_ids()) == ["B", "C"]

        assert model.prune_nodes() == 2
        assert model.get_node_ids() == []

    def test_prune_star(self, model: GraphModel) -> None:
        """Test a hub with five leaves loses the leaves, then the hub."""
        leaves = [f"L{i}" for i in range(5)]
        build(model, ["Hub"] + leaves, [("Hub", leaf) for leaf in leaves])

        assert model.prune_nodes() == 5
        assert model.get_node_ids() == ["Hub"]
        assert model.prune_nodes() == 1
        assert model.get_stats() == GraphStats(node_count=0, link_count=0)

    def test_prune_reheats_fully(self, model: GraphModel) -> None:
        build(model, ["A", "B"], [("A", "B")])
        listener = MagicMock()
        model.add_structure_listener(listener)
        model.prune_nodes()
        listener.assert_called_once_with(1.0)

    def test_prune_nothing(self, model: GraphModel) -> None:
        build(model, ["A", "B", "C"], [("A", "B"), ("B", "C"), ("C", "A")])
        assert model.prune_nodes() == 0


class TestMetadata:
    """Tests for focus and path highlighting."""

    def test_highlight_node(self, model: GraphModel) -> None:
        """Test focus dims everything outside the node and its neighbors."""
        build(model, ["A", "B", "C"], [("A", "B")])
        model.highlight_node("A")

        assert model.get_node_metadata("A").is_focus_target
        assert model.get_node_metadata("B").is_focus_neighbor
        assert not model.get_node_metadata("B").is_dimmed
        assert model.get_node_metadata("C").is_dimmed

        model.highlight_node(None)
        assert not any(m.is_dimmed or m.is_focus_target for m in model.metadata.values())

    def test_path_highlight(self, model: GraphModel) -> None:
        build(model, ["A", "B", "C"], [("A", "B"), ("B", "C")])
        model.set_path_highlight(["A", "B"])
        assert model.get_node_metadata("C").is_dimmed_by_path
        assert not model.get_node_metadata("A").is_dimmed_by_path

        model.set_path_highlight(None)
        assert not model.get_node_metadata("C").is_dimmed_by_path

    def test_change_listener_on_metadata(self, model: GraphModel) -> None:
        """Test metadata changes reconcile but do not reheat."""
        model.add_nodes([Node(id="A")])
        change, structure = MagicMock(), MagicMock()
        model.add_change_listener(change)
        model.add_structure_listener(structure)
        model.set_node_metadata("A", {"is_selected": True})
        change.assert_called_once()
        structure.assert_not_called()

    def test_set_nodes_metadata_rejects_unknown(self, model: GraphModel) -> None:
        model.add_nodes([Node(id="A")])
        with pytest.raises(ValueError):
            model.set_nodes_metadata([("A", {"bogus": 1})])


class TestSnapshots:
    """Tests for snapshot round-trips."""

    def test_round_trip(self, model: GraphModel) -> None:
        """Test set_state_snapshot(get_state_snapshot()) restores equal state."""
        build(model, ["A", "B", "C"], [("A", "B"), ("B", "C")])
        model.add_links([Link("A", "B", type=LinkType.PATH, context="ctx")])
        model.set_node_metadata("A", {"is_in_path": True, "thumbnail": "a.png"})
        snapshot = model.get_state_snapshot()

        nodes_before = [Node(**{k: getattr(n, k) for k in ("id", "title", "x", "y", "vx", "vy", "fx", "fy")}) for n in model.nodes]
        links_before = [l.to_dict() for l in model.links]
        meta_before = {k: v.to_dict() for k, v in model.metadata.items()}

        model.delete_node("B")
        model.set_state_snapshot(snapshot)

        assert model.nodes == nodes_before
        assert [l.to_dict() for l in model.links] == links_before
        assert {k: v.to_dict() for k, v in model.metadata.items()} == meta_before

    def test_restore_drops_metadata_without_node(self, model: GraphModel) -> None:
        build(model, ["A"], [])
        model.set_node_metadata("Queued", {"origin_seed": "A", "is_auto_discovered": True})
        snapshot = model.get_state_snapshot()

        model.set_state_snapshot(snapshot)
        assert set(model.metadata) == {"A"}

        model.add_nodes([Node(id="Queued")])
        assert not model.get_node_metadata("Queued").is_auto_discovered
        assert model.get_node_metadata("Queued").origin_seed is None

    def test_snapshot_is_deep_copy(self, model: GraphModel) -> None:
        build(model, ["A"], [])
        snapshot = model.get_state_snapshot()
        model.get_node("A").x = -1000.0
        assert snapshot.nodes[0].x != -1000.0

    def test_restore_skips_links_applied(self, callbacks: GraphCallbacks, model: GraphModel) -> None:
        """Test snapshot restore does not report links as newly applied."""
        build(model, ["A", "B"], [("A", "B")])
        snapshot = model.get_state_snapshot()
        callbacks.on_links_applied = MagicMock()
        callbacks.on_stats_update = MagicMock()
        model.set_state_snapshot(snapshot)
        callbacks.on_links_applied.assert_not_called()
        callbacks.on_stats_update.assert_called_with(GraphStats(node_count=2, link_count=1))


class TestQueries:
    def test_neighbors_and_link_between(self, model: GraphModel) -> None:
        build(model, ["A", "B", "C"], [("A", "B"), ("C", "A")])
        assert model.neighbors("A") == {"B", "C"}
        assert model.get_link_between("B", "A").id == "A-B"
        assert model.get_link_by_id("C-A").source == "C"
        assert model.get_degrees() == {"A": 2, "B": 1, "C": 1}

    def test_clear(self, model: GraphModel) -> None:
        build(model, ["A", "B"], [("A", "B")])
        model.clear()
        assert model.get_stats() == GraphStats(node_count=0, link_count=0)
        assert model.metadata == {}
