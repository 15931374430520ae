"""Graph traversal: BFS/DFS walks, paths, components and impact analysis.

Adjacency is derived from the snapshot on every call; nothing here keeps
state between calls.
"""

from collections import deque
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Set

from .errors import ValidationError
from .graph import MemoryGraph


@dataclass
class Adjacency:
    neighbours: Dict[str, List[str]]
    outbound: Dict[str, List[str]]
    inbound: Dict[str, List[str]]


@dataclass
class TraversalResult:
    visited: List[str]
    depths: Dict[str, int] = field(default_factory=dict)


@dataclass
class ImpactReport:
    node_id: str
    direct_dependents: List[str]
    transitive_dependents: List[str]
    depth: int
    broken_edges: int
    orphaned_nodes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "node_id": self.node_id,
            "direct_dependents": list(self.direct_dependents),
            "transitive_dependents": list(self.transitive_dependents),
            "depth": self.depth,
            "broken_edges": self.broken_edges,
            "orphaned_nodes": list(self.orphaned_nodes),
        }


def _append_unique(index: Dict[str, List[str]], key: str, value: str) -> None:
    bucket = index.setdefault(key, [])
    if value not in bucket:
        bucket.append(value)


def build_adjacency(graph: MemoryGraph) -> Adjacency:
    """Build ordered, deduplicated adjacency lists in a single pass over edges."""
    neighbours: Dict[str, List[str]] = {n.id: [] for n in graph.nodes}
    outbound: Dict[str, List[str]] = {n.id: [] for n in graph.nodes}
    inbound: Dict[str, List[str]] = {n.id: [] for n in graph.nodes}

    for edge in graph.edges:
        _append_unique(neighbours, edge.source, edge.target)
        _append_unique(neighbours, edge.target, edge.source)
        _append_unique(outbound, edge.source, edge.target)
        _append_unique(inbound, edge.target, edge.source)

    return Adjacency(neighbours=neighbours, outbound=outbound, inbound=inbound)


def _check_depth(max_depth: Optional[int]) -> None:
    if max_depth is not None and max_depth < 0:
        raise ValidationError(f"Traversal depth cannot be negative: {max_depth}")


def _level_order(index: Dict[str, List[str]], start: str, max_depth: Optional[int]) -> TraversalResult:
    _check_depth(max_depth)
    visited: List[str] = []
    depths: Dict[str, int] = {}
    queue = deque([(start, 0)])
    seen: Set[str] = set()

    while queue:
        node_id, depth = queue.popleft()
        if node_id in seen or (max_depth is not None and depth > max_depth):
            continue

        seen.add(node_id)
        visited.append(node_id)
        depths[node_id] = depth

        for nxt in index.get(node_id, ()):
            if nxt not in seen:
                queue.append((nxt, depth + 1))

    return TraversalResult(visited=visited, depths=depths)


def bfs_traversal(
    graph: MemoryGraph,
    start: str,
    max_depth: Optional[int] = None,
) -> TraversalResult:
    """Breadth-first walk along outbound edges."""
    return _level_order(build_adjacency(graph).outbound, start, max_depth)


def dfs_traversal(
    graph: MemoryGraph,
    start: str,
    max_depth: Optional[int] = None,
) -> TraversalResult:
    """Depth-first (pre-order) walk along outbound edges."""
    _check_depth(max_depth)
    outbound = build_adjacency(graph).outbound
    visited: List[str] = []
    depths: Dict[str, int] = {}
    seen: Set[str] = set()
    stack = [(start, 0)]

    while stack:
        node_id, depth = stack.pop()
        if node_id in seen or (max_depth is not None and depth > max_depth):
            continue

        seen.add(node_id)
        visited.append(node_id)
        depths[node_id] = depth

        # Reversed so the first outbound edge is explored first.
        for nxt in reversed(outbound.get(node_id, [])):
            if nxt not in seen:
                stack.append((nxt, depth + 1))

    return TraversalResult(visited=visited, depths=depths)


def find_reachable(graph: MemoryGraph, start: str) -> List[str]:
    """All nodes reachable from start, start included."""
    return bfs_traversal(graph, start).visited


def find_predecessors(graph: MemoryGraph, target: str) -> List[str]:
    """All nodes that can reach target, target included."""
    return _level_order(build_adjacency(graph).inbound, target, None).visited


def find_shortest_path(graph: MemoryGraph, source: str, target: str) -> Optional[List[str]]:
    """Unweighted shortest path along outbound edges, or None if unreachable."""
    if source == target:
        return [source]

    outbound = build_adjacency(graph).outbound
    queue = deque([(source, [source])])
    seen: Set[str] = set()

    while queue:
        node_id, path = queue.popleft()
        if node_id in seen:
            continue
        seen.add(node_id)

        for nxt in outbound.get(node_id, ()):
            new_path = path + [nxt]
            if nxt == target:
                return new_path
            if nxt not in seen:
                queue.append((nxt, new_path))

    return None


def find_connected_components(graph: MemoryGraph) -> List[List[str]]:
    """Partition nodes into components, treating edges as undirected."""
    neighbours = build_adjacency(graph).neighbours
    visited: Set[str] = set()
    components: List[List[str]] = []

    for node in graph.nodes:
        if node.id in visited:
            continue

        component = []
        queue = deque([node.id])
        while queue:
            node_id = queue.popleft()
            if node_id in visited:
                continue
            visited.add(node_id)
            component.append(node_id)
            for nxt in neighbours.get(node_id, ()):
                if nxt not in visited:
                    queue.append(nxt)

        components.append(component)

    return components


def get_nodes_at_depth(graph: MemoryGraph, start: str, max_depth: int) -> Set[str]:
    """Ids within max_depth hops of start, following edges in both directions."""
    _check_depth(max_depth)
    neighbours = build_adjacency(graph).neighbours
    reached = {start}
    frontier = [start]

    for _ in range(max_depth):
        if not frontier:
            break
        next_frontier = []
        for node_id in frontier:
            for nxt in neighbours.get(node_id, ()):
                if nxt not in reached:
                    reached.add(nxt)
                    next_frontier.append(nxt)
        frontier = next_frontier

    return reached


def restrict(graph: MemoryGraph, keep: Set[str]) -> MemoryGraph:
    """Keep only the given nodes and the edges between them."""
    return replace(
        graph,
        nodes=tuple(n for n in graph.nodes if n.id in keep),
        edges=tuple(e for e in graph.edges if e.source in keep and e.target in keep),
    )


def get_subgraph(graph: MemoryGraph, start: str, max_depth: int) -> MemoryGraph:
    """Neighbourhood of start within max_depth hops in either direction."""
    return restrict(graph, get_nodes_at_depth(graph, start, max_depth))


def calculate_impact(graph: MemoryGraph, node_id: str) -> ImpactReport:
    """Work out what depends on node_id.

    A dependent is a node with a path of edges leading *into* node_id, i.e.
    something that would be affected if node_id changed. Direct dependents
    sit one hop away; ``depth`` is the furthest level reached.

    ``orphaned_nodes`` are the nodes reachable from node_id whose every
    inbound edge comes from node_id, so removing it would leave them with
    no inbound links at all.
    """
    adjacency = build_adjacency(graph)
    result = _level_order(adjacency.inbound, node_id, None)
    dependents = [n for n in result.visited if n != node_id]
    direct = [n for n in dependents if result.depths[n] == 1]
    depth = max((result.depths[n] for n in dependents), default=0)
    broken = sum(1 for e in graph.edges if e.source == node_id or e.target == node_id)

    orphaned = [
        n for n in _level_order(adjacency.outbound, node_id, None).visited
        if n != node_id and adjacency.inbound.get(n) == [node_id]
    ]

    return ImpactReport(
        node_id=node_id,
        direct_dependents=direct,
        transitive_dependents=dependents,
        depth=depth,
        broken_edges=broken,
        orphaned_nodes=orphaned,
    )
