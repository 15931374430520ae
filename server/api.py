"""FastAPI HTTP server for memlink."""

import os
import sys
from pathlib import Path
from typing import Optional

# Add project root to path
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root))
sys.path.insert(0, str(_project_root / "sdk"))

try:
    from fastapi import FastAPI, HTTPException, Request
    from fastapi.responses import JSONResponse, PlainTextResponse
    from pydantic import BaseModel, Field
except ImportError:
    print("FastAPI required: pip install fastapi uvicorn", file=sys.stderr)
    sys.exit(1)

import memlink
from memlink.errors import NotFoundError, ValidationError

app = FastAPI(title="memlink", version=memlink.__version__, description="Memory graph and semantic linking API")

# Global instance
_ml: Optional[memlink.MemLink] = None


def get_ml() -> memlink.MemLink:
    global _ml
    if _ml is None:
        store_path = os.environ.get("MEMLINK_STORE", ".")
        _ml = memlink.open(store_path)
    return _ml


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# Request/Response models
class LinkRequest(BaseModel):
    source: str
    target: str
    label: str = "relates-to"
    source_type: Optional[str] = None
    target_type: Optional[str] = None
    bidirectional: bool = False


class UnlinkRequest(BaseModel):
    source: str
    target: str
    label: Optional[str] = None


class AutoLinkRequest(BaseModel):
    memory_id: str
    content: str
    memory_type: str = "decision"
    threshold: Optional[float] = None
    limit: Optional[int] = Field(default=None, ge=0)


class SuggestRequest(BaseModel):
    threshold: Optional[float] = None
    limit: Optional[int] = Field(default=None, ge=0)
    auto_create: bool = False


class SearchRequest(BaseModel):
    query: str
    threshold: float = 0.0
    limit: int = Field(default=10, ge=0)


# Endpoints
@app.get("/health")
def health():
    return {"status": "ok", "version": memlink.__version__}


@app.get("/graph")
def graph_snapshot():
    return get_ml().load_graph().to_dict()


@app.get("/stats")
def graph_stats():
    stats = get_ml().stats()
    return {
        "nodes": stats.nodes,
        "edges": stats.edges,
        "orphans": stats.orphans,
        "components": stats.components,
        "node_types": stats.node_types,
        "edge_labels": stats.edge_labels,
        "embeddings": stats.embeddings,
    }


@app.get("/edges/{node_id:path}")
def node_edges(node_id: str):
    edges = get_ml().edges(node_id)
    return {
        "inbound": [e.to_dict() for e in edges["inbound"]],
        "outbound": [e.to_dict() for e in edges["outbound"]],
    }


@app.post("/link")
def create_link(req: LinkRequest):
    result = get_ml().link(
        req.source, req.target, req.label,
        source_type=req.source_type,
        target_type=req.target_type,
        bidirectional=req.bidirectional,
    )
    return {
        "edge": result.edge.to_dict(),
        "already_exists": result.already_exists,
        "reverse_edge": result.reverse_edge.to_dict() if result.reverse_edge else None,
    }


@app.post("/unlink")
def remove_link(req: UnlinkRequest):
    removed = get_ml().unlink(req.source, req.target, req.label)
    return {"removed": removed}


@app.delete("/nodes/{node_id:path}")
def delete_node(node_id: str):
    removed, dropped = get_ml().remove_node(node_id)
    if not removed:
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
    return {"removed": True, "edges_removed": dropped}


@app.get("/mermaid", response_class=PlainTextResponse)
def mermaid_diagram(
    direction: Optional[str] = None,
    from_node: Optional[str] = None,
    depth: Optional[int] = None,
    type: Optional[str] = None,
    show_type: bool = False,
    show_all: bool = False,
):
    return get_ml().mermaid(
        direction=direction,
        from_node=from_node,
        depth=depth,
        filter_type=type,
        show_type=show_type or None,
        show_all=show_all or None,
    )


@app.get("/impact/{node_id:path}")
def node_impact(node_id: str):
    return get_ml().impact(node_id).to_dict()


@app.get("/path")
def shortest_path(source: str, target: str):
    return {"path": get_ml().path(source, target)}


@app.get("/orphans")
def orphaned_nodes():
    return {"orphans": get_ml().orphans()}


@app.get("/components")
def connected_components():
    return {"components": get_ml().components()}


@app.post("/autolink")
def auto_link(req: AutoLinkRequest):
    result = get_ml().auto_link(
        req.memory_id, req.content,
        memory_type=req.memory_type,
        threshold=req.threshold,
        limit=req.limit,
    )
    return {
        "memory_id": result.memory_id,
        "created": result.created,
        "matches": [{"id": m.id, "score": m.score} for m in result.matches],
        "skipped": result.skipped,
        "reason": result.reason,
    }


@app.post("/suggest")
def suggest_links(req: SuggestRequest):
    result = get_ml().suggest_links(
        threshold=req.threshold,
        limit=req.limit,
        auto_create=req.auto_create,
    )
    return {
        "suggestions": [
            {"source": s.source, "target": s.target, "similarity": s.similarity, "reason": s.reason}
            for s in result.suggestions
        ],
        "created": result.created,
        "skipped": result.skipped,
        "analysed": result.analysed,
        "reason": result.reason,
    }


@app.post("/search")
def semantic_search(req: SearchRequest):
    results = get_ml().search(req.query, threshold=req.threshold, limit=req.limit)
    return [{"id": r.id, "score": r.score} for r in results]


def run(host: str = "0.0.0.0", port: int = 8420):
    """Start the HTTP server."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
