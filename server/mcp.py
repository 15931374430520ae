"""MCP server for memlink: built with FastMCP."""

import json
import os
import sys
from pathlib import Path
from typing import Optional

from fastmcp import FastMCP, Context

# Add project root to path for SDK import
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root))
sys.path.insert(0, str(_project_root / "sdk"))

import memlink
from memlink.errors import MemLinkError

# --- Server setup ---

mcp = FastMCP(
    "memlink",
    instructions=(
        "memlink keeps a graph of linked memories. Use memlink_link and "
        "memlink_unlink to manage relationships, memlink_edges to inspect a "
        "memory's connections, memlink_impact before changing a memory, "
        "memlink_mermaid to draw the graph, memlink_suggest to find unlinked "
        "but similar memories and memlink_search for semantic lookup."
    ),
)


def _get_ml() -> memlink.MemLink:
    store_path = os.environ.get("MEMLINK_STORE", ".")
    return memlink.open(store_path)


# --- Tools ---


@mcp.tool
async def memlink_link(
    source: str,
    target: str,
    label: str = "relates-to",
    bidirectional: bool = False,
    ctx: Context = None,
) -> str:
    """Create a directed link between two memories.

    Args:
        source: Memory id the edge starts from
        target: Memory id the edge points to
        label: Relationship label (e.g. "depends-on", "supersedes")
        bidirectional: Also create the inverse edge when the label has one
    """
    if ctx:
        await ctx.info(f"Linking {source} -> {target} ({label})")

    try:
        result = _get_ml().link(source, target, label, bidirectional=bidirectional)
    except MemLinkError as e:
        return f"Error: {e}"

    if result.already_exists:
        return f"Link already exists: {source} -[{label}]-> {target}"
    text = f"Linked {source} -[{label}]-> {target}"
    if result.reverse_edge:
        text += f"\nLinked {target} -[{result.reverse_edge.label}]-> {source}"
    return text


@mcp.tool
async def memlink_unlink(
    source: str,
    target: str,
    label: Optional[str] = None,
    ctx: Context = None,
) -> str:
    """Remove links from one memory to another.

    Args:
        source: Memory id the edge starts from
        target: Memory id the edge points to
        label: Only remove edges with this label (all labels when omitted)
    """
    removed = _get_ml().unlink(source, target, label)
    if not removed:
        return f"No link found from {source} to {target}"
    return f"Removed {removed} link(s) from {source} to {target}"


@mcp.tool
async def memlink_edges(
    memory_id: str,
    ctx: Context = None,
) -> str:
    """Show the inbound and outbound links of a memory.

    Args:
        memory_id: Memory id (e.g. "decision-auth-tokens")
    """
    try:
        edges = _get_ml().edges(memory_id)
    except MemLinkError as e:
        return f"Error: {e}"

    if not edges["inbound"] and not edges["outbound"]:
        return f"No links found for: {memory_id}"

    parts = [f"  → {e.target} [{e.label}]" for e in edges["outbound"]]
    parts += [f"  ← {e.source} [{e.label}]" for e in edges["inbound"]]
    return f"Links of {memory_id}:\n" + "\n".join(parts)


@mcp.tool
async def memlink_mermaid(
    direction: Optional[str] = None,
    from_node: Optional[str] = None,
    depth: Optional[int] = None,
    filter_type: Optional[str] = None,
    show_all: bool = False,
    ctx: Context = None,
) -> str:
    """Render the memory graph as a Mermaid flowchart.

    Args:
        direction: Flow direction: TB, TD, BT, LR or RL
        from_node: Draw only the neighbourhood of this memory
        depth: Hops around from_node to include (default 1)
        filter_type: Keep only memories of this type
        show_all: Draw every memory instead of the hub view
    """
    try:
        return _get_ml().mermaid(
            direction=direction,
            from_node=from_node,
            depth=depth,
            filter_type=filter_type,
            show_all=show_all or None,
        )
    except MemLinkError as e:
        return f"Error: {e}"


@mcp.tool
async def memlink_impact(
    memory_id: str,
    ctx: Context = None,
) -> str:
    """Analyse which memories depend on a memory before changing it.

    Args:
        memory_id: Memory id to analyse
    """
    try:
        report = _get_ml().impact(memory_id)
    except MemLinkError as e:
        return f"Error: {e}"
    return json.dumps(report.to_dict(), indent=2)


@mcp.tool
async def memlink_suggest(
    threshold: Optional[float] = None,
    limit: Optional[int] = None,
    auto_create: bool = False,
    ctx: Context = None,
) -> str:
    """Suggest links between memories that are similar but not yet linked.

    Args:
        threshold: Minimum cosine similarity (defaults to the store config)
        limit: Maximum number of suggestions
        auto_create: Create the suggested links immediately
    """
    if ctx:
        await ctx.info("Analysing embeddings for link suggestions")

    result = _get_ml().suggest_links(threshold=threshold, limit=limit, auto_create=auto_create)
    if not result.suggestions:
        return result.reason or "No link suggestions found."

    parts = [
        f"{i}. {s.source} ↔ {s.target} ({s.reason})"
        for i, s in enumerate(result.suggestions, 1)
    ]
    if auto_create:
        parts.append(f"\nCreated {result.created} link(s).")
    return "\n".join(parts)


@mcp.tool
async def memlink_search(
    query: str,
    limit: int = 10,
    threshold: float = 0.0,
    ctx: Context = None,
) -> str:
    """Find memories semantically similar to a query.

    Args:
        query: Search query string
        limit: Number of results to return (default 10)
        threshold: Minimum cosine similarity
    """
    if ctx:
        await ctx.info(f"Searching for: {query}")

    results = _get_ml().search(query, threshold=threshold, limit=limit)
    if not results:
        return "No results found."

    return "\n".join(
        f"{i}. **{r.id}** (score: {r.score:.4f})" for i, r in enumerate(results, 1)
    )


def run():
    """Start MCP server (stdio transport)."""
    mcp.run()


def run_http(host: str = "0.0.0.0", port: int = 8420):
    """Start MCP server (HTTP transport)."""
    mcp.run(transport="http", host=host, port=port)


if __name__ == "__main__":
    run()
