"""Embedding providers for the admissions assistant."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Literal, Protocol, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

from admissions_rag.text import tokenize

LOGGER = logging.getLogger(__name__)

Vector = Tuple[float, ...]


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding providers."""

    backend: Literal["hash", "huggingface"] = "hash"
    model: str = "sentence-transformers/all-MiniLM-L6-v2"
    dim: int = 384
    batch_size: int = 16
    max_chars: int = 512
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None


class EmbeddingProvider(Protocol):
    """Protocol describing embedding behaviour."""

    def embed(self, text: str) -> Vector:
        """Return the embedding vector for `text`; may raise."""


def _l2_normalize(vector: list[float] | Vector) -> Vector:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return tuple(vector)
    return tuple(value / norm for value in vector)


class HashEmbeddingProvider:
    """Deterministic offline embeddings built by feature-hashing tokens.

    Each token lands in one bucket with a sign taken from its digest, so texts
    sharing vocabulary have positive cosine similarity and unrelated texts sit
    near zero.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    @property
    def dim(self) -> int:
        return self._config.dim

    def embed(self, text: str) -> Vector:
        vector = [0.0] * self._config.dim
        for token in tokenize(text):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            index = int.from_bytes(digest[:4], "big") % self._config.dim
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[index] += sign
        if self._config.normalize:
            return _l2_normalize(vector)
        return tuple(vector)


class HuggingFaceEmbeddingProvider:
    """Sentence-embedding model served through LangChain's HuggingFace wrapper."""

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        client: LangChainEmbeddings | None = None,
    ) -> None:
        self._config = config or EmbeddingConfig(backend="huggingface")
        if client is not None:
            self._client = client
            return
        model_kwargs = {"device": self._config.device} if self._config.device else {}
        self._client = HuggingFaceEmbeddings(
            model_name=self._config.model,
            model_kwargs=model_kwargs,
            encode_kwargs={"normalize_embeddings": self._config.normalize},
            cache_folder=self._config.cache_folder,
        )
        LOGGER.info("Loaded embedding model %s", self._config.model)

    @property
    def dim(self) -> int:
        return self._config.dim

    def embed(self, text: str) -> Vector:
        vector = tuple(float(value) for value in self._client.embed_query(text[: self._config.max_chars]))
        if len(vector) != self._config.dim:
            LOGGER.warning(
                "Embedding dim mismatch: configured=%d, actual=%d",
                self._config.dim,
                len(vector),
            )
        if self._config.normalize:
            return _l2_normalize(vector)
        return vector


def build_embedding_provider(config: EmbeddingConfig | None = None) -> EmbeddingProvider:
    """Instantiate the provider named by `config.backend`."""

    config = config or EmbeddingConfig()
    if config.backend == "huggingface":
        return HuggingFaceEmbeddingProvider(config)
    if config.backend == "hash":
        return HashEmbeddingProvider(config)
    raise ValueError(f"Unknown embedding backend: {config.backend}")
