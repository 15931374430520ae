"""Render memory graphs as Mermaid flowcharts (plus DOT and plain text)."""

import re
from dataclasses import dataclass, replace
from typing import List, Optional

from .errors import ValidationError
from .graph import GraphEdge, GraphNode, MemoryGraph
from .traversal import get_nodes_at_depth, restrict

DIRECTIONS = ("TB", "TD", "BT", "LR", "RL")

# (open, close) delimiters per node type
NODE_SHAPES = {
    "decision": ("{{", "}}"),     # hexagon
    "artifact": ("[", "]"),       # rectangle
    "learning": ("([", "])"),     # stadium
    "hub": ("((", "))"),          # circle
    "gotcha": (">", "]"),         # asymmetric
    "breadcrumb": ("[/", "/]"),   # parallelogram
}
DEFAULT_SHAPE = ("[", "]")

NODE_STYLES = {
    "decision": "fill:#e1f5fe,stroke:#0288d1",
    "artifact": "fill:#f3e5f5,stroke:#7b1fa2",
    "learning": "fill:#fff3e0,stroke:#f57c00",
    "hub": "fill:#e8f5e9,stroke:#388e3c,stroke-width:3px",
    "gotcha": "fill:#ffebee,stroke:#c62828",
    "breadcrumb": "fill:#fce4ec,stroke:#c2185b",
}

EDGE_LABEL_ABBREVIATIONS = {
    "documents": "doc",
    "relates-to": "rel",
    "supersedes": "sup",
    "depends-on": "dep",
    "extends": "ext",
    "implements": "impl",
    "references": "ref",
    "blocks": "blk",
    "enables": "enb",
    "validates": "val",
    "contradicts": "con",
    "derives-from": "der",
    "parent-of": "par",
    "child-of": "chi",
    "informs": "inf",
    "informed-by": "infb",
    "motivated-by": "mot",
    "warns": "warn",
    "auto-linked-by-similarity": "sim",
}

_LABEL_ESCAPES = str.maketrans({
    '"': "'",
    "[": "(",
    "]": ")",
    "{": "(",
    "}": ")",
    "<": "&lt;",
    ">": "&gt;",
})

_UNSAFE_ID = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass
class MermaidOptions:
    direction: str = "TB"
    # Render the neighbourhood of this node instead of the hub view
    from_node: Optional[str] = None
    depth: int = 1
    filter_type: Optional[str] = None
    show_type: bool = False
    show_all: bool = False
    abbreviate_labels: bool = True


def abbreviate_label(label: Optional[str]) -> str:
    if not label:
        return "rel"
    return EDGE_LABEL_ABBREVIATIONS.get(label, label[:3])


def escape_label(text: str) -> str:
    return text.translate(_LABEL_ESCAPES)


def sanitise_id(node_id: str) -> str:
    return _UNSAFE_ID.sub("_", node_id)


def hub_view(graph: MemoryGraph) -> MemoryGraph:
    """All hubs plus their direct neighbours; the whole graph if there are no hubs."""
    hubs = [n for n in graph.nodes if n.type == "hub"]
    if not hubs:
        return graph

    keep = set()
    for hub in hubs:
        keep |= get_nodes_at_depth(graph, hub.id, 1)
    return restrict(graph, keep)


def select_view(graph: MemoryGraph, options: MermaidOptions) -> MemoryGraph:
    """Apply neighbourhood / hub / type filtering to get the graph to draw."""
    if options.from_node:
        working = restrict(graph, get_nodes_at_depth(graph, options.from_node, options.depth))
    elif not options.show_all:
        working = hub_view(graph)
    else:
        working = graph

    if options.filter_type:
        keep = {n.id for n in working.nodes if n.type == options.filter_type}
        working = restrict(working, keep)

    return working


def _node_line(node: GraphNode, show_type: bool) -> str:
    open_, close = NODE_SHAPES.get(node.type, DEFAULT_SHAPE)
    label = escape_label(node.id)
    if show_type:
        label = f"{node.type}: {label}"
    return f'  {sanitise_id(node.id)}{open_}"{label}"{close}'


def _edge_line(edge: GraphEdge, abbreviate: bool) -> str:
    label = abbreviate_label(edge.label) if abbreviate else edge.label
    src, tgt = sanitise_id(edge.source), sanitise_id(edge.target)
    if label:
        return f"  {src} -->|{escape_label(label)}| {tgt}"
    return f"  {src} --> {tgt}"


def _style_lines(graph: MemoryGraph) -> List[str]:
    types_seen = []
    for node in graph.nodes:
        if node.type in NODE_STYLES and node.type not in types_seen:
            types_seen.append(node.type)

    lines = [f"  classDef {t} {NODE_STYLES[t]}" for t in types_seen]
    for t in types_seen:
        ids = [sanitise_id(n.id) for n in graph.nodes if n.type == t]
        lines.append(f"  class {','.join(ids)} {t}")
    return lines


def generate_mermaid(graph: MemoryGraph, options: Optional[MermaidOptions] = None) -> str:
    """Generate a Mermaid flowchart for the graph."""
    options = options or MermaidOptions()
    if options.direction not in DIRECTIONS:
        raise ValidationError(f"Invalid diagram direction: {options.direction}")
    if options.depth < 0:
        raise ValidationError("Diagram depth cannot be negative")

    working = select_view(graph, options)

    lines = [f"flowchart {options.direction}"]
    lines.extend(_node_line(n, options.show_type) for n in working.nodes)
    lines.extend(_edge_line(e, options.abbreviate_labels) for e in working.edges)

    styles = _style_lines(working)
    if styles:
        lines.append("")
        lines.extend(styles)

    return "\n".join(lines)


def generate_text_graph(graph: MemoryGraph) -> str:
    lines = [f"Nodes: {len(graph.nodes)}", f"Edges: {len(graph.edges)}", ""]
    lines.extend(f"[{n.type}] {n.id}" for n in graph.nodes)
    lines.append("")
    lines.extend(f"{e.source} --{e.label}--> {e.target}" for e in graph.edges)
    return "\n".join(lines)


def generate_dot(graph: MemoryGraph) -> str:
    """Generate a Graphviz digraph."""
    lines = ["digraph MemoryGraph {", "  rankdir=TB;", "  node [shape=box];", ""]
    for node in graph.nodes:
        lines.append(f'  "{node.id}" [label="{escape_label(node.id)}"];')
    lines.append("")
    for edge in graph.edges:
        label = f' [label="{escape_label(edge.label)}"]' if edge.label else ""
        lines.append(f'  "{edge.source}" -> "{edge.target}"{label};')
    lines.append("}")
    return "\n".join(lines)


def with_options(options: Optional[MermaidOptions] = None, **overrides) -> MermaidOptions:
    """Copy options with keyword overrides, ignoring overrides that are None."""
    base = options or MermaidOptions()
    return replace(base, **{k: v for k, v in overrides.items() if v is not None})
