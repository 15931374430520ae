"""Tests for the FastAPI HTTP server at server/api.py.

Uses a real memlink store in tmp directories with TestClient (httpx).
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root and sdk to path
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root))
sys.path.insert(0, str(_project_root / "sdk"))

try:
    from fastapi.testclient import TestClient
except ImportError:
    pytest.skip("FastAPI TestClient requires httpx", allow_module_level=True)

import memlink
import server.api as api_module
from server.api import app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_ml():
    """Reset the global _ml before each test so env changes take effect."""
    api_module._ml = None
    yield
    api_module._ml = None


@pytest.fixture()
def api_store(tmp_path):
    """Create a temporary memlink store and point MEMLINK_STORE at it."""
    memlink.init(str(tmp_path))
    os.environ["MEMLINK_STORE"] = str(tmp_path)
    yield tmp_path
    os.environ.pop("MEMLINK_STORE", None)


@pytest.fixture()
def client(api_store):
    return TestClient(app)


@pytest.fixture()
def populated(client):
    client.post("/link", json={"source": "a", "target": "b", "label": "informed-by",
                               "source_type": "decision", "target_type": "learning"})
    client.post("/link", json={"source": "c", "target": "b", "source_type": "artifact"})
    memlink.open(os.environ["MEMLINK_STORE"]).add_memory("o", "gotcha")
    return client


# ---------------------------------------------------------------------------
# Health and graph
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": memlink.__version__}


class TestGraph:
    def test_empty_graph(self, client):
        resp = client.get("/graph")
        assert resp.status_code == 200
        assert resp.json() == {"version": 1, "nodes": [], "edges": []}

    def test_stats(self, populated):
        data = populated.get("/stats").json()
        assert data["nodes"] == 4
        assert data["edges"] == 2
        assert data["orphans"] == 1
        assert data["edge_labels"] == {"informed-by": 1, "relates-to": 1}

    def test_orphans_and_components(self, populated):
        assert populated.get("/orphans").json() == {"orphans": ["o"]}
        assert populated.get("/components").json() == {"components": [["a", "b", "c"], ["o"]]}


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


class TestLinks:
    def test_link_response(self, client):
        resp = client.post("/link", json={
            "source": "a", "target": "b", "label": "implements",
            "source_type": "artifact", "target_type": "decision", "bidirectional": True,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["edge"] == {"source": "a", "target": "b", "label": "implements"}
        assert data["already_exists"] is False
        assert data["reverse_edge"] == {"source": "b", "target": "a", "label": "implemented-by"}

    def test_link_missing_node_is_400(self, client):
        resp = client.post("/link", json={"source": "a", "target": "b"})
        assert resp.status_code == 400
        assert "not found" in resp.json()["detail"]

    def test_link_bad_label_is_400(self, populated):
        resp = populated.post("/link", json={"source": "a", "target": "c", "label": "x|y"})
        assert resp.status_code == 400

    def test_edges(self, populated):
        data = populated.get("/edges/b").json()
        assert [e["source"] for e in data["inbound"]] == ["a", "c"]
        assert data["outbound"] == []

    def test_edges_unknown_is_404(self, client):
        assert client.get("/edges/ghost").status_code == 404

    def test_unlink(self, populated):
        resp = populated.post("/unlink", json={"source": "a", "target": "b"})
        assert resp.json() == {"removed": 1}
        assert populated.post("/unlink", json={"source": "a", "target": "b"}).json() == {"removed": 0}

    def test_delete_node(self, populated):
        resp = populated.delete("/nodes/b")
        assert resp.status_code == 200
        assert resp.json() == {"removed": True, "edges_removed": 2}
        assert populated.delete("/nodes/b").status_code == 404


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class TestAnalysis:
    def test_mermaid(self, populated):
        resp = populated.get("/mermaid", params={"show_all": "true", "direction": "LR"})
        assert resp.status_code == 200
        assert resp.text.startswith("flowchart LR")
        assert "a -->|infb| b" in resp.text

    def test_mermaid_bad_direction_is_400(self, populated):
        assert populated.get("/mermaid", params={"direction": "UP"}).status_code == 400

    def test_impact(self, populated):
        data = populated.get("/impact/b").json()
        assert data["direct_dependents"] == ["a", "c"]
        assert data["broken_edges"] == 2
        assert data["orphaned_nodes"] == []
        # b keeps its inbound link from c
        assert populated.get("/impact/a").json()["orphaned_nodes"] == []

    def test_path(self, populated):
        assert populated.get("/path", params={"source": "a", "target": "b"}).json() == {"path": ["a", "b"]}
        assert populated.get("/path", params={"source": "b", "target": "a"}).json() == {"path": None}
        assert populated.get("/path", params={"source": "a", "target": "ghost"}).status_code == 404


# ---------------------------------------------------------------------------
# Semantic endpoints (no provider configured)
# ---------------------------------------------------------------------------


class TestSemantic:
    def test_autolink_without_provider(self, client):
        resp = client.post("/autolink", json={"memory_id": "x", "content": "text"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["created"] == 0
        assert "No embedding provider" in data["reason"]

    def test_suggest_without_embeddings(self, client):
        data = client.post("/suggest", json={}).json()
        assert data["suggestions"] == []
        assert data["reason"] == "no cached embeddings"

    def test_search_without_provider(self, client):
        assert client.post("/search", json={"query": "anything"}).json() == []

    def test_negative_limit_is_422(self, client):
        assert client.post("/search", json={"query": "q", "limit": -1}).status_code == 422
        assert client.post("/suggest", json={"limit": -1}).status_code == 422
