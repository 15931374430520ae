"""Core MemLink class: Python SDK for memlink."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from engines.base import DEFAULT_TIMEOUT, EmbeddingEngine, ProviderUnavailable, embed_text, get_engine
from engines.embeddings import EmbeddingCache, content_hash
from engines.similarity import SimilarityMatch, rank, similar_pairs

from . import edges as edge_ops
from . import graph as graph_ops
from . import traversal
from .errors import NotFoundError
from .graph import GraphEdge, GraphNode, MemoryGraph
from .mermaid import MermaidOptions, generate_dot, generate_mermaid, generate_text_graph, with_options

logger = logging.getLogger(__name__)

STORE_DIRNAME = ".memlink"

# Temporary memories (thoughts) are never linked
EPHEMERAL_PREFIX = "thought-"

DEFAULT_CONFIG = (
    "[embedding]\n"
    "provider = none\n"
    "model = text-embedding-3-small\n"
    "dimensions = 1536\n"
    "timeout = 30\n\n"
    "[linking]\n"
    "auto_link_threshold = 0.85\n"
    "suggest_threshold = 0.75\n"
    "suggest_limit = 20\n\n"
    "[diagram]\n"
    "direction = TB\n"
    "abbreviate_labels = true\n"
)


@dataclass
class LinkResult:
    edge: GraphEdge
    already_exists: bool
    reverse_edge: Optional[GraphEdge] = None


@dataclass
class AutoLinkResult:
    memory_id: str
    created: int = 0
    matches: List[SimilarityMatch] = field(default_factory=list)
    skipped: int = 0
    reason: Optional[str] = None


@dataclass
class SuggestedLink:
    source: str
    target: str
    similarity: float
    reason: str


@dataclass
class SuggestLinksResult:
    suggestions: List[SuggestedLink] = field(default_factory=list)
    created: int = 0
    skipped: int = 0
    analysed: int = 0
    reason: Optional[str] = None


@dataclass
class BatchEmbedResult:
    generated: int = 0
    cached: int = 0
    failed: List[str] = field(default_factory=list)


@dataclass
class SearchResult:
    id: str
    score: float


@dataclass
class GraphStats:
    nodes: int
    edges: int
    orphans: int
    components: int
    node_types: dict = field(default_factory=dict)
    edge_labels: dict = field(default_factory=dict)
    embeddings: int = 0


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class MemLink:
    """Main memlink interface for Python.

    Wraps one scope: a ``.memlink`` store directory holding the graph
    snapshot, the embedding cache and the config file.
    """

    def __init__(self, path: str = ".", engine: Optional[EmbeddingEngine] = None):
        self._root = Path(path).resolve()
        self._store = self._root / STORE_DIRNAME
        self._engine = engine
        self._engine_loaded = engine is not None

    @property
    def store_dir(self) -> Path:
        return self._store

    @property
    def cache(self) -> EmbeddingCache:
        return EmbeddingCache(self._store)

    def _config_path(self) -> Path:
        return self._store / ".config"

    def _read_config(self, key: str, default: str = "") -> str:
        """Read a config value."""
        config_file = self._config_path()
        if not config_file.exists():
            return default

        section_target, key_target = key.split(".", 1)
        in_section = False
        for line in config_file.read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("[") and line.endswith("]"):
                in_section = line[1:-1] == section_target
                continue
            if in_section and "=" in line:
                k, _, v = line.partition("=")
                if k.strip() == key_target:
                    return v.strip()
        return default

    def _config_float(self, key: str, default: float) -> float:
        try:
            return float(self._read_config(key, str(default)))
        except ValueError:
            logger.warning(f"Invalid number for {key} in {self._config_path()}, using {default}")
            return default

    def _config_int(self, key: str, default: int) -> int:
        try:
            return int(self._read_config(key, str(default)))
        except ValueError:
            logger.warning(f"Invalid integer for {key} in {self._config_path()}, using {default}")
            return default

    def _init_store(self):
        """Initialize store structure."""
        self._store.mkdir(parents=True, exist_ok=True)

        config = self._config_path()
        if not config.exists():
            config.write_text(DEFAULT_CONFIG)

        if not graph_ops.graph_path(self._store).exists():
            graph_ops.save_graph(self._store, graph_ops.create_graph())

    # ------------------------------------------------------------------
    # Embedding provider
    # ------------------------------------------------------------------

    @property
    def engine(self) -> Optional[EmbeddingEngine]:
        """The injected engine, or one built from the [embedding] config."""
        if not self._engine_loaded:
            self._engine_loaded = True
            provider = self._read_config("embedding.provider", "none")
            model = self._read_config("embedding.model", "text-embedding-3-small")
            dims = self._config_int("embedding.dimensions", 1536)
            timeout = self._config_float("embedding.timeout", DEFAULT_TIMEOUT)
            try:
                self._engine = get_engine(provider, model, dims, timeout)
            except (ValueError, ImportError) as e:
                logger.warning(f"Embedding provider {provider!r} unavailable: {e}")
                self._engine = None
        return self._engine

    # ------------------------------------------------------------------
    # Graph store
    # ------------------------------------------------------------------

    def load_graph(self) -> MemoryGraph:
        return graph_ops.load_graph(self._store)

    def save_graph(self, graph: MemoryGraph) -> None:
        graph_ops.save_graph(self._store, graph)

    def _require_node(self, graph: MemoryGraph, node_id: str) -> GraphNode:
        node = graph_ops.get_node(graph, node_id)
        if node is None:
            raise NotFoundError(f"Node not found: {node_id}")
        return node

    def add_memory(self, memory_id: str, memory_type: str) -> GraphNode:
        """Register a memory as a graph node (or update its type)."""
        node = GraphNode(id=memory_id, type=memory_type)
        graph = self.load_graph()
        updated = graph_ops.add_node(graph, node)
        if updated is not graph:
            self.save_graph(updated)
        return node

    def link(
        self,
        source: str,
        target: str,
        label: str = edge_ops.DEFAULT_LABEL,
        source_type: Optional[str] = None,
        target_type: Optional[str] = None,
        bidirectional: bool = False,
    ) -> LinkResult:
        """Create a directed edge between two memories.

        Endpoints missing from the graph are added when their type is given.
        With ``bidirectional`` the reverse edge is also created using the
        inverse label, when one is known.
        """
        graph = self.load_graph()
        if source_type and not graph_ops.has_node(graph, source):
            graph = graph_ops.add_node(graph, GraphNode(id=source, type=source_type))
        if target_type and not graph_ops.has_node(graph, target):
            graph = graph_ops.add_node(graph, GraphNode(id=target, type=target_type))

        already_exists = edge_ops.has_edge(graph, source, target, label)
        updated = edge_ops.add_edge(graph, source, target, label)

        reverse = None
        if bidirectional:
            inverse = edge_ops.inverse_label(label)
            if inverse:
                updated = edge_ops.add_edge(updated, target, source, inverse)
                reverse = GraphEdge(source=target, target=source, label=inverse)

        if updated != graph:
            self.save_graph(updated)
        if not already_exists:
            logger.info(f"Created link {source} -[{label}]-> {target}")

        return LinkResult(
            edge=GraphEdge(source=source, target=target, label=label),
            already_exists=already_exists,
            reverse_edge=reverse,
        )

    def unlink(self, source: str, target: str, label: Optional[str] = None) -> int:
        """Remove edge(s) from source to target. Returns how many were removed."""
        graph = self.load_graph()
        updated = edge_ops.remove_edge(graph, source, target, label)
        removed = len(graph.edges) - len(updated.edges)
        if removed:
            self.save_graph(updated)
            logger.info(f"Removed {removed} link(s) {source} -> {target}")
        return removed

    def remove_node(self, node_id: str) -> Tuple[bool, int]:
        """Detach a memory from the graph. Returns (removed, edges_dropped)."""
        graph = self.load_graph()
        if not graph_ops.has_node(graph, node_id):
            return False, 0
        updated = graph_ops.remove_node(graph, node_id)
        self.save_graph(updated)
        dropped = len(graph.edges) - len(updated.edges)
        logger.info(f"Removed node {node_id} and {dropped} edge(s)")
        return True, dropped

    def forget(self, memory_id: str) -> Tuple[bool, bool]:
        """Drop a deleted memory from both the graph and the embedding cache."""
        removed_node, _ = self.remove_node(memory_id)
        removed_embedding = self.cache.remove(memory_id)
        return removed_node, removed_embedding

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def edges(self, node_id: str) -> Dict[str, list]:
        graph = self.load_graph()
        self._require_node(graph, node_id)
        return {
            "inbound": edge_ops.get_inbound_edges(graph, node_id),
            "outbound": edge_ops.get_outbound_edges(graph, node_id),
        }

    def neighbours(self, node_id: str) -> List[str]:
        graph = self.load_graph()
        self._require_node(graph, node_id)
        return edge_ops.get_neighbours(graph, node_id)

    def orphans(self) -> List[str]:
        return edge_ops.find_orphaned_nodes(self.load_graph())

    def components(self) -> List[List[str]]:
        return traversal.find_connected_components(self.load_graph())

    def path(self, source: str, target: str) -> Optional[List[str]]:
        graph = self.load_graph()
        self._require_node(graph, source)
        self._require_node(graph, target)
        return traversal.find_shortest_path(graph, source, target)

    def subgraph(self, node_id: str, depth: int = 1) -> MemoryGraph:
        graph = self.load_graph()
        self._require_node(graph, node_id)
        return traversal.get_subgraph(graph, node_id, depth)

    def impact(self, node_id: str) -> traversal.ImpactReport:
        graph = self.load_graph()
        self._require_node(graph, node_id)
        return traversal.calculate_impact(graph, node_id)

    def mermaid(self, options: Optional[MermaidOptions] = None, **overrides) -> str:
        """Render the scope's graph as a Mermaid flowchart.

        Config supplies the direction and label abbreviation defaults;
        explicit options and keyword overrides win.
        """
        if options is None:
            options = MermaidOptions(
                direction=self._read_config("diagram.direction", "TB"),
                abbreviate_labels=_as_bool(self._read_config("diagram.abbreviate_labels", "true")),
            )
        options = with_options(options, **overrides)

        graph = self.load_graph()
        if options.from_node:
            self._require_node(graph, options.from_node)
        return generate_mermaid(graph, options)

    def dot(self) -> str:
        return generate_dot(self.load_graph())

    def text(self) -> str:
        return generate_text_graph(self.load_graph())

    def stats(self) -> GraphStats:
        graph = self.load_graph()
        node_types: Dict[str, int] = {}
        for node in graph.nodes:
            node_types[node.type] = node_types.get(node.type, 0) + 1
        edge_labels: Dict[str, int] = {}
        for edge in graph.edges:
            edge_labels[edge.label] = edge_labels.get(edge.label, 0) + 1

        return GraphStats(
            nodes=len(graph.nodes),
            edges=len(graph.edges),
            orphans=len(edge_ops.find_orphaned_nodes(graph)),
            components=len(traversal.find_connected_components(graph)),
            node_types=node_types,
            edge_labels=edge_labels,
            embeddings=len(self.cache),
        )

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def _require_engine(self) -> EmbeddingEngine:
        engine = self.engine
        if engine is None:
            raise ProviderUnavailable("No embedding provider configured")
        return engine

    def embed_memory(self, memory_id: str, content: str) -> Tuple[List[float], bool]:
        """Vector for a memory, reusing the cache when the content is unchanged.

        Returns (vector, from_cache). Raises ProviderUnavailable when a new
        vector is needed and the provider cannot produce one.
        """
        engine = self._require_engine()
        model = engine.model_name()
        chash = content_hash(content)

        cached = self.cache.get(memory_id, model)
        if cached is not None and cached.content_hash == chash:
            logger.debug(f"Using cached embedding for {memory_id}")
            return list(cached.vector), True

        logger.debug(f"Generating new embedding for {memory_id}")
        vector = embed_text(engine, content)
        self.cache.put(memory_id, model, vector, chash)
        return vector, False

    def embed_memories(self, memories: Mapping[str, str]) -> BatchEmbedResult:
        """Embed many memories, writing the cache once at the end."""
        result = BatchEmbedResult()
        try:
            engine = self._require_engine()
        except ProviderUnavailable:
            result.failed = list(memories)
            return result

        model = engine.model_name()
        cache = self.cache
        existing = {e.memory_id: e for e in cache.entries() if e.model == model}
        pending = []

        for memory_id, content in memories.items():
            chash = content_hash(content)
            cached = existing.get(memory_id)
            if cached is not None and cached.content_hash == chash:
                result.cached += 1
                continue
            try:
                vector = embed_text(engine, content)
            except ProviderUnavailable:
                result.failed.append(memory_id)
                continue
            pending.append((memory_id, model, vector, chash))
            result.generated += 1

        if pending:
            cache.put_many(pending)

        logger.info(
            f"Batch embedding complete: {len(memories)} total, "
            f"{result.cached} cached, {result.generated} generated, {len(result.failed)} failed"
        )
        return result

    def get_embedding(self, memory_id: str) -> Optional[List[float]]:
        """Cached vector for a memory under the current model, if any."""
        engine = self.engine
        model = engine.model_name() if engine is not None else None
        entry = self.cache.get(memory_id, model)
        return list(entry.vector) if entry is not None else None

    @staticmethod
    def rank_similar(
        vector: Sequence[float],
        candidates: Sequence[Tuple[str, Sequence[float]]],
        threshold: float = 0.0,
        limit: Optional[int] = None,
    ) -> List[SimilarityMatch]:
        return rank(vector, candidates, threshold, limit)

    def _model_vectors(self, exclude: Optional[str] = None) -> List[Tuple[str, Tuple[float, ...]]]:
        engine = self.engine
        model = engine.model_name() if engine is not None else None
        return [
            (mid, vec) for mid, vec in self.cache.vectors(model=model, exclude=exclude)
            if not mid.startswith(EPHEMERAL_PREFIX)
        ]

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    def auto_link(
        self,
        memory_id: str,
        content: str,
        memory_type: str = "decision",
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> AutoLinkResult:
        """Link a freshly written memory to its closest cached neighbours.

        Never raises because of the embedding provider: when no vector can
        be produced the result carries ``created=0`` and a reason.
        """
        if threshold is None:
            threshold = self._config_float("linking.auto_link_threshold", 0.85)

        result = AutoLinkResult(memory_id=memory_id)
        if memory_id.startswith(EPHEMERAL_PREFIX):
            result.reason = "ephemeral memories are not linked"
            return result

        try:
            vector, _ = self.embed_memory(memory_id, content)
        except ProviderUnavailable as e:
            result.reason = f"embedding unavailable: {e}"
            logger.warning(f"Auto-link skipped for {memory_id}: {e}")
            return result

        candidates = self._model_vectors(exclude=memory_id)
        result.matches = rank(vector, candidates, threshold, limit)
        if not result.matches:
            return result

        original = self.load_graph()
        graph = original
        if not graph_ops.has_node(graph, memory_id):
            graph = graph_ops.add_node(graph, GraphNode(id=memory_id, type=memory_type))

        for match in result.matches:
            if not graph_ops.has_node(graph, match.id):
                result.skipped += 1
                continue
            updated = edge_ops.add_edge(graph, memory_id, match.id, edge_ops.AUTO_LINK_LABEL)
            if updated is not graph:
                result.created += 1
            graph = updated

        if graph is not original:
            self.save_graph(graph)

        logger.info(f"Auto-linked {memory_id}: {result.created} edge(s) created")
        return result

    def suggest_links(
        self,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
        auto_create: bool = False,
    ) -> SuggestLinksResult:
        """Propose links between cached memories that are similar but unlinked."""
        if threshold is None:
            threshold = self._config_float("linking.suggest_threshold", 0.75)
        if limit is None:
            limit = self._config_int("linking.suggest_limit", 20)

        result = SuggestLinksResult()
        candidates = self._model_vectors()
        if len(candidates) < 2:
            if not candidates:
                result.reason = "no cached embeddings"
            return result

        graph = self.load_graph()
        linked = set()
        for edge in graph.edges:
            linked.add((edge.source, edge.target))
            linked.add((edge.target, edge.source))

        for pair in similar_pairs(candidates, threshold):
            result.analysed += 1
            if (pair.source, pair.target) in linked:
                result.skipped += 1
                continue
            if not graph_ops.has_node(graph, pair.source) or not graph_ops.has_node(graph, pair.target):
                continue
            result.suggestions.append(SuggestedLink(
                source=pair.source,
                target=pair.target,
                similarity=pair.score,
                reason=f"Semantic similarity: {pair.score * 100:.1f}%",
            ))

        result.suggestions = result.suggestions[:limit]

        if auto_create and result.suggestions:
            updated = graph
            for s in result.suggestions:
                before = updated
                updated = edge_ops.add_edge(updated, s.source, s.target, edge_ops.AUTO_LINK_LABEL)
                if updated is not before:
                    result.created += 1
            if updated is not graph:
                self.save_graph(updated)
            logger.info(f"Created {result.created} suggested link(s)")

        return result

    def search(self, query: str, threshold: float = 0.0, limit: int = 10) -> List[SearchResult]:
        """Semantic search over cached memory embeddings."""
        engine = self.engine
        if engine is None:
            return []
        try:
            vector = embed_text(engine, query)
        except ProviderUnavailable as e:
            logger.warning(f"Semantic search unavailable: {e}")
            return []

        matches = rank(vector, self.cache.vectors(model=engine.model_name()), threshold, limit)
        return [SearchResult(id=m.id, score=m.score) for m in matches]
