"""Memory graph data model and snapshot store.

The graph is an immutable value: every mutation returns a new
``MemoryGraph`` and leaves the original untouched. Snapshots are persisted
as ``graph.json`` inside a store directory, one per scope.
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import CorruptStateError, ValidationError

logger = logging.getLogger(__name__)

GRAPH_FILENAME = "graph.json"
GRAPH_VERSION = 1

NODE_TYPES = frozenset({"decision", "learning", "artifact", "gotcha", "breadcrumb", "hub"})

_ID_PATTERN = re.compile(r"^\S+$")


@dataclass(frozen=True)
class GraphNode:
    id: str
    type: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "type": self.type}


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "target": self.target, "label": self.label}


@dataclass(frozen=True)
class MemoryGraph:
    version: int = GRAPH_VERSION
    nodes: Tuple[GraphNode, ...] = field(default_factory=tuple)
    edges: Tuple[GraphEdge, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "MemoryGraph":
        """Build a graph from its snapshot shape, rejecting malformed input."""
        if not isinstance(data, dict):
            raise CorruptStateError("graph snapshot must be an object")

        version = data.get("version", GRAPH_VERSION)
        if not isinstance(version, int) or isinstance(version, bool):
            raise CorruptStateError(f"invalid graph version: {version!r}")

        raw_nodes = data.get("nodes", [])
        raw_edges = data.get("edges", [])
        if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
            raise CorruptStateError("graph nodes and edges must be lists")

        nodes = []
        for item in raw_nodes:
            if not isinstance(item, dict):
                raise CorruptStateError(f"invalid node entry: {item!r}")
            node_id, node_type = item.get("id"), item.get("type")
            if not isinstance(node_id, str) or not isinstance(node_type, str) or not node_id:
                raise CorruptStateError(f"invalid node entry: {item!r}")
            nodes.append(GraphNode(id=node_id, type=node_type))

        edges = []
        for item in raw_edges:
            if not isinstance(item, dict):
                raise CorruptStateError(f"invalid edge entry: {item!r}")
            source, target = item.get("source"), item.get("target")
            label = item.get("label", "relates-to")
            if not all(isinstance(v, str) and v for v in (source, target, label)):
                raise CorruptStateError(f"invalid edge entry: {item!r}")
            edges.append(GraphEdge(source=source, target=target, label=label))

        return cls(version=version, nodes=tuple(nodes), edges=tuple(edges))


def create_graph() -> MemoryGraph:
    """Create an empty graph."""
    return MemoryGraph()


def graph_path(store_dir) -> Path:
    return Path(store_dir) / GRAPH_FILENAME


def load_graph(store_dir) -> MemoryGraph:
    """Load the graph snapshot for a scope.

    A missing snapshot yields an empty graph. So does an unreadable or
    malformed one; the problem is logged and the caller carries on.
    """
    path = graph_path(store_dir)
    if not path.exists():
        return create_graph()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return MemoryGraph.from_dict(data)
    except (OSError, ValueError, CorruptStateError) as e:
        logger.warning(f"Failed to load graph from {path}, starting fresh: {e}")
        return create_graph()


def save_graph(store_dir, graph: MemoryGraph) -> None:
    """Persist a graph snapshot, replacing the previous file atomically."""
    store = Path(store_dir)
    store.mkdir(parents=True, exist_ok=True)
    path = graph_path(store)

    fd, tmp_name = tempfile.mkstemp(dir=str(store), prefix=".graph-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(graph.to_dict(), f, indent=2)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.debug(f"Saved graph {path} ({len(graph.nodes)} nodes, {len(graph.edges)} edges)")


def validate_node(node: GraphNode) -> None:
    if not isinstance(node.id, str) or not _ID_PATTERN.match(node.id):
        raise ValidationError(f"Invalid node id: {node.id!r}")
    if node.type not in NODE_TYPES:
        raise ValidationError(
            f"Invalid node type {node.type!r} (expected one of: {', '.join(sorted(NODE_TYPES))})"
        )


def add_node(graph: MemoryGraph, node: GraphNode) -> MemoryGraph:
    """Add a node, or update the type of an existing node with the same id."""
    validate_node(node)

    for i, existing in enumerate(graph.nodes):
        if existing.id == node.id:
            if existing == node:
                return graph
            nodes = graph.nodes[:i] + (node,) + graph.nodes[i + 1:]
            return replace(graph, nodes=nodes)

    return replace(graph, nodes=graph.nodes + (node,))


def remove_node(graph: MemoryGraph, node_id: str) -> MemoryGraph:
    """Remove a node together with every edge that touches it."""
    if not has_node(graph, node_id):
        return graph
    return replace(
        graph,
        nodes=tuple(n for n in graph.nodes if n.id != node_id),
        edges=tuple(e for e in graph.edges if e.source != node_id and e.target != node_id),
    )


def get_node(graph: MemoryGraph, node_id: str) -> Optional[GraphNode]:
    for node in graph.nodes:
        if node.id == node_id:
            return node
    return None


def get_all_nodes(graph: MemoryGraph, node_type: Optional[str] = None) -> Tuple[GraphNode, ...]:
    if node_type:
        return tuple(n for n in graph.nodes if n.type == node_type)
    return graph.nodes


def has_node(graph: MemoryGraph, node_id: str) -> bool:
    return any(n.id == node_id for n in graph.nodes)


def get_node_count(graph: MemoryGraph) -> int:
    return len(graph.nodes)


def get_edge_count(graph: MemoryGraph) -> int:
    return len(graph.edges)
