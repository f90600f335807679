# src/meal_image_mapper/enrichment/embeddings.py
from __future__ import annotations

"""
embeddings.py

Purpose:
    Turn a meal name into an embedding vector comparable with the catalog's
    precomputed image embeddings.

Providers:
  - OpenAIEmbeddingProvider (default): OpenAI embeddings API,
    `text-embedding-3-small` (1536 dims). The catalog was built with it.
  - SentenceTransformerEmbeddingProvider: local MiniLM model (384 dims).
    Only useful with a catalog embedded by the same model; otherwise every
    meal fails with a vector length mismatch.

A provider call may fail (network, auth, rate limit). It raises EmbeddingError
and the orchestrator records that single meal as an error.
"""

import os
from typing import List, Optional, Protocol

from meal_image_mapper.config import MapperConfig
from meal_image_mapper.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_LOCAL_MODEL = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"


class EmbeddingError(RuntimeError):
    """Embedding generation failed for one text."""


class EmbeddingProviderInitError(RuntimeError):
    """The embedding provider cannot be constructed (missing package or credentials)."""


class EmbeddingProvider(Protocol):
    def embed(self, text: str) -> List[float]:
        ...


def _safe_import_openai():
    try:
        from openai import OpenAI  # type: ignore
    except Exception:  # noqa: BLE001
        return None
    return OpenAI


def _safe_import_sentence_transformers():
    try:
        from sentence_transformers import SentenceTransformer  # type: ignore
    except Exception:  # noqa: BLE001
        return None
    return SentenceTransformer


class OpenAIEmbeddingProvider:
    def __init__(self, model: str = "text-embedding-3-small", api_key: Optional[str] = None) -> None:
        OpenAI = _safe_import_openai()
        api_key = api_key or os.getenv("OPENAI_API_KEY")

        if OpenAI is None:
            raise EmbeddingProviderInitError("openai package is not installed")
        if not api_key:
            raise EmbeddingProviderInitError("OPENAI_API_KEY is not set")

        self.client = OpenAI(api_key=api_key)
        self.model = model

    def embed(self, text: str) -> List[float]:
        try:
            resp = self.client.embeddings.create(model=self.model, input=text)
            vector = resp.data[0].embedding
        except Exception as exc:  # noqa: BLE001
            raise EmbeddingError(f"OpenAI embedding failed for '{text}': {exc}") from exc

        if not vector:
            raise EmbeddingError(f"OpenAI returned an empty embedding for '{text}'")
        return [float(x) for x in vector]


class SentenceTransformerEmbeddingProvider:
    def __init__(self, model_name: str = DEFAULT_LOCAL_MODEL) -> None:
        SentenceTransformer = _safe_import_sentence_transformers()
        if SentenceTransformer is None:
            raise EmbeddingProviderInitError(
                "sentence-transformers is not installed; install the 'local' extra"
            )

        try:
            self.model = SentenceTransformer(model_name)
        except Exception as exc:  # noqa: BLE001
            raise EmbeddingProviderInitError(
                f"Failed to load SentenceTransformer model '{model_name}': {exc}"
            ) from exc
        self.model_name = model_name

    def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        try:
            vec = self.model.encode([text], normalize_embeddings=True)[0]
        except Exception as exc:  # noqa: BLE001
            raise EmbeddingError(f"Local embedding failed for '{text}': {exc}") from exc
        return [float(x) for x in vec]


def build_embedding_provider(config: MapperConfig) -> EmbeddingProvider:
    """Provider named by config.embedding_provider ('openai' or 'local')."""
    if config.embedding_provider == "openai":
        provider: EmbeddingProvider = OpenAIEmbeddingProvider(model=config.openai_embedding_model)
    elif config.embedding_provider == "local":
        provider = SentenceTransformerEmbeddingProvider()
    else:
        raise EmbeddingProviderInitError(
            f"Unknown EMBEDDING_PROVIDER={config.embedding_provider!r}; expected 'openai' or 'local'"
        )

    logger.info(
        "Embedding provider ready: %s",
        type(provider).__name__,
        extra={
            "invoking_func": "build_embedding_provider",
            "invoking_purpose": "Create embedding provider for meal names",
            "next_step": "Generate one embedding per meal",
            "resolution": "",
        },
    )
    return provider
