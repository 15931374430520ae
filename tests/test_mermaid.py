"""Tests for diagram rendering (memlink.mermaid)."""

import sys
from pathlib import Path

import pytest

_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root / "sdk"))

from memlink.edges import AUTO_LINK_LABEL, add_edge
from memlink.errors import ValidationError
from memlink.graph import GraphNode, add_node, create_graph
from memlink.mermaid import (
    MermaidOptions,
    abbreviate_label,
    escape_label,
    generate_dot,
    generate_mermaid,
    generate_text_graph,
    sanitise_id,
    with_options,
)


def _graph(nodes, edges=()):
    g = create_graph()
    for node_id, node_type in nodes:
        g = add_node(g, GraphNode(node_id, node_type))
    for src, tgt, label in edges:
        g = add_edge(g, src, tgt, label)
    return g


def _node_lines(diagram):
    return [l for l in diagram.splitlines() if '"' in l and "-->" not in l]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestLabelHelpers:
    def test_known_abbreviations(self):
        assert abbreviate_label("relates-to") == "rel"
        assert abbreviate_label("informed-by") == "infb"
        assert abbreviate_label(AUTO_LINK_LABEL) == "sim"

    def test_unknown_label_truncated(self):
        assert abbreviate_label("motivates") == "mot"

    def test_empty_label(self):
        assert abbreviate_label("") == "rel"
        assert abbreviate_label(None) == "rel"

    def test_escape_label(self):
        assert escape_label('say "hi" [now]') == "say 'hi' (now)"
        assert escape_label("<b>") == "&lt;b&gt;"

    def test_sanitise_id(self):
        assert sanitise_id("decision-auth_2") == "decision-auth_2"
        assert sanitise_id("docs/auth.md") == "docs_auth_md"


# ---------------------------------------------------------------------------
# generate_mermaid
# ---------------------------------------------------------------------------


class TestGenerateMermaid:
    def test_empty_graph_is_header_only(self):
        assert generate_mermaid(create_graph()) == "flowchart TB"

    def test_shapes_per_type(self):
        g = _graph([
            ("d", "decision"), ("a", "artifact"), ("l", "learning"),
            ("h", "hub"), ("g", "gotcha"), ("b", "breadcrumb"),
        ])
        diagram = generate_mermaid(g, MermaidOptions(show_all=True))
        assert '  d{{"d"}}' in diagram
        assert '  a["a"]' in diagram
        assert '  l(["l"])' in diagram
        assert '  h(("h"))' in diagram
        assert '  g>"g"]' in diagram
        assert '  b[/"b"/]' in diagram

    def test_edge_lines_abbreviated_by_default(self):
        g = _graph([("a", "decision"), ("b", "learning")], [("a", "b", "informed-by")])
        assert "  a -->|infb| b" in generate_mermaid(g)

    def test_full_labels_when_not_abbreviated(self):
        g = _graph([("a", "decision"), ("b", "learning")], [("a", "b", "informed-by")])
        diagram = generate_mermaid(g, MermaidOptions(abbreviate_labels=False))
        assert "  a -->|informed-by| b" in diagram

    def test_direction(self):
        g = _graph([("a", "decision")])
        assert generate_mermaid(g, MermaidOptions(direction="LR")).startswith("flowchart LR")

    def test_invalid_direction_raises(self):
        with pytest.raises(ValidationError):
            generate_mermaid(create_graph(), MermaidOptions(direction="UP"))

    def test_negative_depth_raises(self):
        with pytest.raises(ValidationError):
            generate_mermaid(create_graph(), MermaidOptions(depth=-1))

    def test_style_section(self):
        g = _graph([("a", "decision"), ("b", "decision"), ("c", "learning")])
        lines = generate_mermaid(g).splitlines()
        assert "" in lines
        assert any(l.startswith("  classDef decision ") for l in lines)
        assert "  class a,b decision" in lines
        assert "  class c learning" in lines

    def test_show_type_prefixes_label(self):
        g = _graph([("a", "gotcha")])
        assert '  a>"gotcha: a"]' in generate_mermaid(g, MermaidOptions(show_type=True))

    def test_ids_with_unsafe_chars(self):
        g = _graph([("x.y", "artifact"), ("p/q", "artifact")], [("x.y", "p/q", "relates-to")])
        diagram = generate_mermaid(g)
        assert '  x_y["x.y"]' in diagram
        assert "  x_y -->|rel| p_q" in diagram


class TestViews:
    @pytest.fixture
    def hubbed(self):
        return _graph(
            [("h", "hub"), ("a", "decision"), ("b", "learning"), ("far", "artifact")],
            [("a", "h", "documents"), ("b", "a", "informed-by"), ("far", "b", "relates-to")],
        )

    def test_hub_view_keeps_hub_neighbourhood(self, hubbed):
        ids = {l.strip().split('"')[1] for l in _node_lines(generate_mermaid(hubbed))}
        assert ids == {"h", "a"}

    def test_show_all(self, hubbed):
        assert len(_node_lines(generate_mermaid(hubbed, MermaidOptions(show_all=True)))) == 4

    def test_from_node_depth(self, hubbed):
        diagram = generate_mermaid(hubbed, MermaidOptions(from_node="b", depth=1))
        ids = {l.strip().split('"')[1] for l in _node_lines(diagram)}
        assert ids == {"a", "b", "far"}

    def test_filter_type(self, hubbed):
        diagram = generate_mermaid(hubbed, MermaidOptions(show_all=True, filter_type="learning"))
        assert len(_node_lines(diagram)) == 1
        assert "-->" not in diagram


class TestOtherFormats:
    def test_text_graph(self):
        g = _graph([("a", "decision"), ("b", "learning")], [("a", "b", "relates-to")])
        text = generate_text_graph(g)
        assert "Nodes: 2" in text
        assert "[decision] a" in text
        assert "a --relates-to--> b" in text

    def test_dot(self):
        g = _graph([("a", "decision"), ("b", "learning")], [("a", "b", "extends")])
        dot = generate_dot(g)
        assert dot.startswith("digraph MemoryGraph {")
        assert '"a" -> "b" [label="extends"];' in dot
        assert dot.endswith("}")


class TestWithOptions:
    def test_none_overrides_ignored(self):
        base = MermaidOptions(direction="LR")
        merged = with_options(base, direction=None, depth=3)
        assert merged.direction == "LR"
        assert merged.depth == 3
        assert base.depth == 1
