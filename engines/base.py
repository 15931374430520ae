"""Abstract base for embedding engines, plus the provider factory."""

import logging
import math
from abc import ABC, abstractmethod
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ProviderUnavailable(Exception):
    """The embedding provider could not produce a vector (error, timeout, bad response)."""


class EmbeddingEngine(ABC):
    """Abstract embedding engine interface."""

    @abstractmethod
    def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed a list of texts into vectors."""
        ...

    @abstractmethod
    def dimensions(self) -> int:
        """Return the embedding dimensions."""
        ...

    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier."""
        ...


def normalise(vector: List[float]) -> List[float]:
    """Scale a vector to unit length. Zero vectors are returned unchanged."""
    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return list(vector)
    return [v / magnitude for v in vector]


def embed_text(engine: EmbeddingEngine, text: str) -> List[float]:
    """Embed a single text, raising ProviderUnavailable on any provider failure."""
    if not text or not text.strip():
        raise ProviderUnavailable("Text cannot be empty")

    try:
        vectors = engine.embed([text])
    except Exception as e:
        logger.warning(f"Embedding provider {engine.model_name()} failed: {e}")
        raise ProviderUnavailable(str(e)) from e

    if not vectors or not vectors[0]:
        raise ProviderUnavailable(f"Provider {engine.model_name()} returned no embedding")

    return normalise([float(v) for v in vectors[0]])


def get_engine(
    provider: str,
    model: str,
    dimensions: int,
    timeout: float = DEFAULT_TIMEOUT,
) -> Optional[EmbeddingEngine]:
    """Factory for embedding engines. Returns None when provider is "none"."""
    if provider in ("", "none"):
        return None
    if provider == "openai":
        from .openai_engine import OpenAIEngine
        return OpenAIEngine(model=model, dims=dimensions, timeout=timeout)
    elif provider == "local":
        from .local_engine import LocalEngine
        return LocalEngine(model=model, dims=dimensions)
    elif provider == "ollama":
        from .ollama_engine import OllamaEngine
        return OllamaEngine(model=model, dims=dimensions, timeout=timeout)
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")
