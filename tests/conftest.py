"""Shared fixtures for memlink tests."""

import os
import sys
from pathlib import Path

import pytest

# Add project root and sdk to path
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root))
sys.path.insert(0, str(_project_root / "sdk"))

from engines.base import EmbeddingEngine


class StubEngine(EmbeddingEngine):
    """Deterministic engine: each text maps to a fixed vector.

    Unknown texts embed to ``default`` (or fail when it is None). ``calls``
    records every text sent to embed() so tests can assert cache reuse.
    """

    def __init__(self, vectors=None, default=None, dims=2, name="stub-model", fail=False):
        self.vectors = dict(vectors or {})
        self.default = default
        self.dims = dims
        self.name = name
        self.fail = fail
        self.calls = []

    def embed(self, texts):
        self.calls.extend(texts)
        if self.fail:
            raise TimeoutError("provider timed out")
        out = []
        for t in texts:
            if t in self.vectors:
                out.append(list(self.vectors[t]))
            elif self.default is not None:
                out.append(list(self.default))
            else:
                raise RuntimeError(f"no vector for {t!r}")
        return out

    def dimensions(self):
        return self.dims

    def model_name(self):
        return self.name


@pytest.fixture
def stub_engine_cls():
    return StubEngine


@pytest.fixture
def tmp_store(tmp_path):
    """Create a temporary memlink store with default config."""
    store = tmp_path / ".memlink"
    store.mkdir()

    config = store / ".config"
    config.write_text(
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

    return tmp_path


@pytest.fixture
def store_dir(tmp_store):
    """The .memlink directory inside tmp_store."""
    return tmp_store / ".memlink"


@pytest.fixture
def ml(tmp_store):
    """A MemLink instance on the temp store (no embedding provider)."""
    import memlink
    return memlink.open(str(tmp_store))


@pytest.fixture(autouse=True)
def _clean_store_env():
    """Keep MEMLINK_STORE from leaking between tests."""
    saved = os.environ.pop("MEMLINK_STORE", None)
    yield
    os.environ.pop("MEMLINK_STORE", None)
    if saved is not None:
        os.environ["MEMLINK_STORE"] = saved
