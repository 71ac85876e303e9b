"""Embedding providers and the semantic index."""

from .service import (
    EmbeddingConfig,
    EmbeddingProvider,
    HashEmbeddingProvider,
    HuggingFaceEmbeddingProvider,
    build_embedding_provider,
)
from .store import SemanticIndex, cosine_similarity

__all__ = [
    "EmbeddingConfig",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "HuggingFaceEmbeddingProvider",
    "SemanticIndex",
    "build_embedding_provider",
    "cosine_similarity",
]
