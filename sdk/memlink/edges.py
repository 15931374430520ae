"""Edge operations and queries over a memory graph.

Edges are directed ``(source, target, label)`` triples. The engine never
creates a reverse edge on its own; reciprocal labels live in
``INVERSE_LABELS`` for callers that want them.
"""

from dataclasses import replace
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from .errors import ValidationError
from .graph import GraphEdge, MemoryGraph, has_node

DEFAULT_LABEL = "relates-to"
AUTO_LINK_LABEL = "auto-linked-by-similarity"

EDGE_LABELS = (
    "relates-to",
    "informed-by",
    "implements",
    "supersedes",
    "warns",
    "documents",
    "extends",
    "depends-on",
    "contradicts",
    AUTO_LINK_LABEL,
)

INVERSE_LABELS = {
    "relates-to": "relates-to",
    "informed-by": "informs",
    "informs": "informed-by",
    "implements": "implemented-by",
    "implemented-by": "implements",
    "supersedes": "superseded-by",
    "superseded-by": "supersedes",
    "warns": "warned-by",
    "warned-by": "warns",
    "documents": "documented-by",
    "documented-by": "documents",
    "extends": "extended-by",
    "extended-by": "extends",
    "depends-on": "depended-on-by",
    "depended-on-by": "depends-on",
    "contradicts": "contradicts",
    AUTO_LINK_LABEL: AUTO_LINK_LABEL,
}

EdgeSpec = Union[GraphEdge, Mapping[str, str], Sequence[str]]


def validate_label(label: str) -> str:
    """Return the label if usable as an edge label, else raise ValidationError."""
    if not isinstance(label, str) or not label.strip():
        raise ValidationError("Edge label cannot be empty")
    if any(ch in label for ch in ("\n", "\r", "\t", "|")):
        raise ValidationError(f"Edge label contains forbidden characters: {label!r}")
    return label


def inverse_label(label: str) -> Optional[str]:
    return INVERSE_LABELS.get(label)


def add_edge(
    graph: MemoryGraph,
    source: str,
    target: str,
    label: str = DEFAULT_LABEL,
) -> MemoryGraph:
    """Add a directed edge. Adding an existing triple returns the same graph."""
    validate_label(label)
    if not has_node(graph, source):
        raise ValidationError(f"Source node not found: {source}")
    if not has_node(graph, target):
        raise ValidationError(f"Target node not found: {target}")
    if source == target:
        raise ValidationError("Cannot create self-referencing edge")

    edge = GraphEdge(source=source, target=target, label=label)
    if edge in graph.edges:
        return graph

    return replace(graph, edges=graph.edges + (edge,))


def remove_edge(
    graph: MemoryGraph,
    source: str,
    target: str,
    label: Optional[str] = None,
) -> MemoryGraph:
    """Remove edges from source to target; all labels unless one is given."""
    kept = tuple(
        e for e in graph.edges
        if not (e.source == source and e.target == target and (label is None or e.label == label))
    )
    if len(kept) == len(graph.edges):
        return graph
    return replace(graph, edges=kept)


def get_edges(graph: MemoryGraph) -> List[GraphEdge]:
    return list(graph.edges)


def get_inbound_edges(graph: MemoryGraph, node_id: str) -> List[GraphEdge]:
    return [e for e in graph.edges if e.target == node_id]


def get_outbound_edges(graph: MemoryGraph, node_id: str) -> List[GraphEdge]:
    return [e for e in graph.edges if e.source == node_id]


def get_all_edges_for_node(graph: MemoryGraph, node_id: str) -> List[GraphEdge]:
    return [e for e in graph.edges if e.source == node_id or e.target == node_id]


def has_edge(
    graph: MemoryGraph,
    source: str,
    target: str,
    label: Optional[str] = None,
) -> bool:
    return any(
        e.source == source and e.target == target and (label is None or e.label == label)
        for e in graph.edges
    )


def get_neighbours(graph: MemoryGraph, node_id: str) -> List[str]:
    """Ids connected to node_id in either direction, in first-seen order."""
    neighbours = {}
    for edge in graph.edges:
        if edge.source == node_id:
            neighbours.setdefault(edge.target, None)
        if edge.target == node_id:
            neighbours.setdefault(edge.source, None)
    return list(neighbours)


def get_node_degree(graph: MemoryGraph, node_id: str) -> int:
    return len(get_all_edges_for_node(graph, node_id))


def find_orphaned_nodes(graph: MemoryGraph) -> List[str]:
    """Ids of nodes that no edge touches."""
    connected = set()
    for edge in graph.edges:
        connected.add(edge.source)
        connected.add(edge.target)
    return [n.id for n in graph.nodes if n.id not in connected]


def _coerce_edge(spec: EdgeSpec) -> GraphEdge:
    if isinstance(spec, GraphEdge):
        return spec
    if isinstance(spec, Mapping):
        return GraphEdge(
            source=spec["source"],
            target=spec["target"],
            label=spec.get("label") or DEFAULT_LABEL,
        )
    source, target, *rest = spec
    return GraphEdge(source=source, target=target, label=rest[0] if rest else DEFAULT_LABEL)


def bulk_add_edges(graph: MemoryGraph, edges: Iterable[EdgeSpec]) -> MemoryGraph:
    """Add many edges, skipping any that fail validation."""
    result = graph
    for spec in edges:
        try:
            edge = _coerce_edge(spec)
            result = add_edge(result, edge.source, edge.target, edge.label)
        except (KeyError, TypeError, ValueError):
            continue
    return result
