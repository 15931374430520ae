"""Ollama embedding engine (HTTP, /api/embeddings)."""

import json
import os
import urllib.request
from typing import List

from .base import DEFAULT_TIMEOUT, EmbeddingEngine

# Embedding models typically accept 2K-8K tokens; ~1500 tokens leaves headroom.
MAX_EMBEDDING_CONTENT_LENGTH = 6000


def truncate_for_embedding(content: str, max_length: int = MAX_EMBEDDING_CONTENT_LENGTH) -> str:
    """Trim content to max_length, preferring a word boundary near the end."""
    if len(content) <= max_length:
        return content
    truncated = content[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length - 100:
        truncated = truncated[:last_space]
    return truncated + "..."


class OllamaEngine(EmbeddingEngine):
    """Embed memory content through a local Ollama server."""

    def __init__(
        self,
        model: str = "embeddinggemma:latest",
        dims: int = 768,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = "",
    ):
        self._model = model
        self._dims = dims
        self._timeout = timeout
        self._base_url = (base_url or os.environ.get("OLLAMA_URL", "http://localhost:11434")).rstrip("/")

    def _embed_one(self, text: str) -> List[float]:
        data = json.dumps({
            "model": self._model,
            "prompt": truncate_for_embedding(text),
        }).encode()

        req = urllib.request.Request(
            f"{self._base_url}/api/embeddings",
            data=data,
            headers={"Content-Type": "application/json"},
        )
        with urllib.request.urlopen(req, timeout=self._timeout) as resp:
            result = json.loads(resp.read().decode())

        if "error" in result:
            raise RuntimeError(f"Ollama API error: {result['error']}")
        embedding = result.get("embedding")
        if not embedding:
            raise RuntimeError("Ollama returned no embedding")
        return [float(v) for v in embedding]

    def embed(self, texts: List[str]) -> List[List[float]]:
        return [self._embed_one(t) for t in texts]

    def dimensions(self) -> int:
        return self._dims

    def model_name(self) -> str:
        return f"ollama:{self._model}"
