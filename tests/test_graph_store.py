"""Tests for the memory graph model and snapshot store (memlink.graph)."""

import json
import sys
from pathlib import Path

import pytest

_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root / "sdk"))

from memlink.errors import CorruptStateError, ValidationError
from memlink.graph import (
    GRAPH_FILENAME,
    GraphEdge,
    GraphNode,
    MemoryGraph,
    add_node,
    create_graph,
    get_all_nodes,
    get_edge_count,
    get_node,
    get_node_count,
    has_node,
    load_graph,
    remove_node,
    save_graph,
)


def _graph(*nodes, edges=()):
    g = create_graph()
    for node_id, node_type in nodes:
        g = add_node(g, GraphNode(id=node_id, type=node_type))
    return MemoryGraph(version=g.version, nodes=g.nodes, edges=tuple(edges))


# ---------------------------------------------------------------------------
# Node mutations
# ---------------------------------------------------------------------------


class TestAddNode:
    def test_create_graph_is_empty(self):
        g = create_graph()
        assert g.version == 1
        assert g.nodes == ()
        assert g.edges == ()

    def test_add_node_returns_new_graph(self):
        """add_node never mutates its input."""
        g = create_graph()
        g2 = add_node(g, GraphNode(id="a", type="decision"))
        assert get_node_count(g) == 0
        assert get_node_count(g2) == 1
        assert get_node(g2, "a") == GraphNode(id="a", type="decision")

    def test_add_existing_id_updates_type(self):
        g = _graph(("a", "decision"), ("b", "learning"))
        g2 = add_node(g, GraphNode(id="a", type="gotcha"))
        assert get_node_count(g2) == 2
        assert get_node(g2, "a").type == "gotcha"
        # Position is preserved
        assert [n.id for n in g2.nodes] == ["a", "b"]

    def test_add_identical_node_is_noop(self):
        g = _graph(("a", "decision"))
        assert add_node(g, GraphNode(id="a", type="decision")) is g

    def test_add_node_rejects_unknown_type(self):
        with pytest.raises(ValidationError, match="Invalid node type"):
            add_node(create_graph(), GraphNode(id="a", type="widget"))

    @pytest.mark.parametrize("bad_id", ["", "has space", "tab\there"])
    def test_add_node_rejects_bad_ids(self, bad_id):
        with pytest.raises(ValidationError, match="Invalid node id"):
            add_node(create_graph(), GraphNode(id=bad_id, type="decision"))


class TestRemoveNode:
    def test_remove_node_cascades_edges(self):
        g = _graph(
            ("a", "decision"), ("b", "learning"), ("c", "artifact"),
            edges=[
                GraphEdge("a", "b", "informed-by"),
                GraphEdge("b", "c", "implements"),
                GraphEdge("c", "a", "relates-to"),
            ],
        )
        g2 = remove_node(g, "a")
        assert not has_node(g2, "a")
        assert g2.edges == (GraphEdge("b", "c", "implements"),)
        # Original untouched
        assert get_edge_count(g) == 3

    def test_remove_missing_node_returns_same_graph(self):
        g = _graph(("a", "decision"))
        assert remove_node(g, "zzz") is g


class TestNodeQueries:
    def test_get_all_nodes_filters_by_type(self):
        g = _graph(("a", "decision"), ("b", "learning"), ("c", "decision"))
        assert [n.id for n in get_all_nodes(g, "decision")] == ["a", "c"]
        assert len(get_all_nodes(g)) == 3

    def test_get_node_missing_returns_none(self):
        assert get_node(create_graph(), "nope") is None


# ---------------------------------------------------------------------------
# Snapshot persistence
# ---------------------------------------------------------------------------


class TestSnapshot:
    def test_load_missing_file_returns_empty_graph(self, tmp_path):
        g = load_graph(tmp_path)
        assert g == create_graph()

    def test_save_then_load_preserves_order(self, tmp_path):
        g = _graph(
            ("z", "hub"), ("a", "decision"),
            edges=[GraphEdge("a", "z", "documents")],
        )
        save_graph(tmp_path, g)
        loaded = load_graph(tmp_path)
        assert loaded == g
        assert [n.id for n in loaded.nodes] == ["z", "a"]

    def test_snapshot_shape(self, tmp_path):
        g = _graph(("a", "decision"), ("b", "learning"), edges=[GraphEdge("a", "b", "relates-to")])
        save_graph(tmp_path, g)
        data = json.loads((tmp_path / GRAPH_FILENAME).read_text())
        assert data == {
            "version": 1,
            "nodes": [{"id": "a", "type": "decision"}, {"id": "b", "type": "learning"}],
            "edges": [{"source": "a", "target": "b", "label": "relates-to"}],
        }

    def test_save_leaves_no_temp_files(self, tmp_path):
        save_graph(tmp_path, _graph(("a", "decision")))
        leftovers = [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []

    def test_save_creates_store_dir(self, tmp_path):
        store = tmp_path / "nested" / ".memlink"
        save_graph(store, create_graph())
        assert (store / GRAPH_FILENAME).exists()

    def test_corrupt_json_loads_as_empty(self, tmp_path, caplog):
        (tmp_path / GRAPH_FILENAME).write_text("{not json")
        with caplog.at_level("WARNING"):
            g = load_graph(tmp_path)
        assert g == create_graph()
        assert "Failed to load graph" in caplog.text

    def test_wrong_shape_loads_as_empty(self, tmp_path):
        (tmp_path / GRAPH_FILENAME).write_text(json.dumps({"nodes": "nope"}))
        assert load_graph(tmp_path) == create_graph()

    def test_unknown_node_type_is_kept_on_load(self, tmp_path):
        """Types outside the known set survive a load; only add_node rejects them."""
        (tmp_path / GRAPH_FILENAME).write_text(json.dumps({
            "version": 1,
            "nodes": [{"id": "x", "type": "legacy"}],
            "edges": [],
        }))
        assert get_node(load_graph(tmp_path), "x").type == "legacy"


class TestFromDict:
    def test_missing_label_defaults(self):
        g = MemoryGraph.from_dict({
            "nodes": [{"id": "a", "type": "decision"}, {"id": "b", "type": "decision"}],
            "edges": [{"source": "a", "target": "b"}],
        })
        assert g.edges[0].label == "relates-to"

    @pytest.mark.parametrize("data", [
        [],
        {"version": "1"},
        {"nodes": [{"id": 3, "type": "decision"}]},
        {"edges": [{"source": "a"}]},
    ])
    def test_malformed_snapshots_raise(self, data):
        with pytest.raises(CorruptStateError):
            MemoryGraph.from_dict(data)
