"""memlink: a knowledge graph and semantic linking engine for memories."""

from .core import (
    AutoLinkResult,
    BatchEmbedResult,
    GraphStats,
    LinkResult,
    MemLink,
    SearchResult,
    SuggestedLink,
    SuggestLinksResult,
)
from .errors import CorruptStateError, MemLinkError, NotFoundError, ValidationError
from .graph import GraphEdge, GraphNode, MemoryGraph
from .mermaid import MermaidOptions

__version__ = "1.0.0"


def init(path: str = ".") -> "MemLink":
    """Initialize a new memlink store and return a MemLink instance."""
    ml = MemLink(path)
    ml._init_store()
    return ml


def open(path: str = ".") -> "MemLink":
    """Open an existing memlink store."""
    return MemLink(path)
