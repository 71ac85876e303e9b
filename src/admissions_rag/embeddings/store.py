"""In-memory semantic index over knowledge-base documents."""

from __future__ import annotations

import asyncio
import math
from typing import Sequence

from admissions_rag.embeddings.service import EmbeddingProvider, Vector
from admissions_rag.metrics.observability import PipelineMetrics, get_logger
from admissions_rag.models import Document, SearchResult, SearchType

DEFAULT_BATCH_SIZE = 16
CANDIDATE_MULTIPLIER = 2


def cosine_similarity(left: Sequence[float], right: Sequence[float]) -> float:
    """Cosine similarity; 0 when dimensions differ or either vector has no length."""

    if len(left) != len(right) or not left:
        return 0.0
    dot = sum(a * b for a, b in zip(left, right))
    left_norm = math.sqrt(sum(a * a for a in left))
    right_norm = math.sqrt(sum(b * b for b in right))
    if left_norm == 0 or right_norm == 0:
        return 0.0
    return dot / (left_norm * right_norm)


class SemanticIndex:
    """Documents paired with their embeddings; read-only once built."""

    _logger = get_logger("embeddings")

    def __init__(
        self,
        documents: Sequence[Document],
        embeddings: Sequence[Vector],
        provider: EmbeddingProvider,
    ) -> None:
        if len(documents) != len(embeddings):
            raise ValueError("Mismatch between number of documents and embedding vectors")
        self._documents = tuple(documents)
        self._embeddings = tuple(embeddings)
        self._provider = provider

    @classmethod
    async def build(
        cls,
        documents: Sequence[Document],
        provider: EmbeddingProvider,
        *,
        dim: int = 384,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> "SemanticIndex":
        """Embed every document, batch by batch, concurrently within a batch."""

        batch_size = max(1, batch_size)
        embeddings: list[Vector] = []
        failures = 0
        for offset in range(0, len(documents), batch_size):
            batch = documents[offset : offset + batch_size]
            vectors = await asyncio.gather(
                *(asyncio.to_thread(provider.embed, document.content) for document in batch),
                return_exceptions=True,
            )
            for document, vector in zip(batch, vectors):
                if isinstance(vector, BaseException):
                    failures += 1
                    PipelineMetrics.embedding_failures.inc()
                    cls._logger.warning(
                        "embedding.failed",
                        document_id=document.id,
                        error=str(vector),
                    )
                    embeddings.append(tuple(0.0 for _ in range(dim)))
                else:
                    embeddings.append(tuple(vector))
        cls._logger.info(
            "embedding.index_built",
            document_count=len(documents),
            failures=failures,
        )
        return cls(documents, embeddings, provider)

    @property
    def documents(self) -> tuple[Document, ...]:
        return self._documents

    @property
    def embeddings(self) -> tuple[Vector, ...]:
        return self._embeddings

    def __len__(self) -> int:
        return len(self._documents)

    async def search(self, query: str, k: int) -> list[SearchResult]:
        """Return up to `2k` candidates ranked by cosine similarity."""

        if k <= 0 or not self._documents:
            return []
        query_vector = await asyncio.to_thread(self._provider.embed, query)
        scored = [
            (index, max(0.0, cosine_similarity(query_vector, vector)))
            for index, vector in enumerate(self._embeddings)
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            SearchResult(
                document=self._documents[index],
                score=score,
                search_type=SearchType.SEMANTIC,
                semantic_score=score,
            )
            for index, score in scored[: k * CANDIDATE_MULTIPLIER]
        ]


__all__ = ["SemanticIndex", "cosine_similarity"]
