"""Hybrid retrieval built on top of the semantic and keyword indices."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Protocol, Sequence

from admissions_rag.embeddings.store import SemanticIndex
from admissions_rag.metrics.observability import PipelineMetrics, get_logger
from admissions_rag.models import SearchResult, SearchType
from admissions_rag.retrieval.keyword import KeywordIndex
from admissions_rag.retrieval.reranker import Reranker


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    max_results: int = 5
    enable_reranking: bool = True
    semantic_weight: float = 0.7
    keyword_weight: float = 0.3


class Retriever(Protocol):
    """Retrieve relevant documents for a query string."""

    async def search(
        self,
        query: str,
        k: int | None = None,
        search_type: SearchType | str = SearchType.HYBRID,
    ) -> Sequence[SearchResult]:
        """Return at most k ranked results."""


def _normalized(results: Sequence[SearchResult]) -> list[tuple[SearchResult, float]]:
    top = max((result.score for result in results), default=0.0)
    if top <= 0:
        return [(result, 0.0) for result in results]
    return [(result, result.score / top) for result in results]


def fuse(
    semantic: Sequence[SearchResult],
    keyword: Sequence[SearchResult],
    *,
    semantic_weight: float = 0.7,
    keyword_weight: float = 0.3,
) -> list[SearchResult]:
    """Max-normalize both sets, weight them and merge by document id."""

    merged: dict[str, SearchResult] = {}
    for result, norm in _normalized(semantic):
        merged[result.document.id] = SearchResult(
            document=result.document,
            score=norm * semantic_weight,
            search_type=SearchType.HYBRID,
            semantic_score=norm,
        )
    for result, norm in _normalized(keyword):
        doc_id = result.document.id
        existing = merged.get(doc_id)
        if existing is None:
            merged[doc_id] = SearchResult(
                document=result.document,
                score=norm * keyword_weight,
                search_type=SearchType.HYBRID,
                keyword_score=norm,
            )
            continue
        merged[doc_id] = SearchResult(
            document=existing.document,
            score=existing.score + norm * keyword_weight,
            search_type=SearchType.HYBRID,
            semantic_score=existing.semantic_score,
            keyword_score=norm,
        )
    return sorted(merged.values(), key=lambda item: item.score, reverse=True)


class HybridRetriever:
    """Dispatches to semantic, keyword or fused search and reranks the outcome."""

    _logger = get_logger("retrieval")

    def __init__(
        self,
        semantic_index: SemanticIndex,
        keyword_index: KeywordIndex,
        *,
        reranker: Reranker | None = None,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._semantic = semantic_index
        self._keyword = keyword_index
        self._reranker = reranker or Reranker()
        self._config = config or RetrievalConfig()

    @property
    def document_count(self) -> int:
        return len(self._semantic)

    async def search(
        self,
        query: str,
        k: int | None = None,
        search_type: SearchType | str = SearchType.HYBRID,
    ) -> Sequence[SearchResult]:
        limit = self._config.max_results if k is None else k
        if limit <= 0:
            return []
        mode = SearchType.parse(search_type)
        start = time.perf_counter()
        if mode is SearchType.SEMANTIC:
            candidates = await self._guarded(SearchType.SEMANTIC, self._semantic.search(query, limit))
            results = self._finalize(query, candidates, limit)
        elif mode is SearchType.KEYWORD:
            results = list(
                await self._guarded(SearchType.KEYWORD, asyncio.to_thread(self._keyword.search, query, limit))
            )
        else:
            semantic, keyword = await asyncio.gather(
                self._guarded(SearchType.SEMANTIC, self._semantic.search(query, limit)),
                self._guarded(SearchType.KEYWORD, asyncio.to_thread(self._keyword.search, query, limit)),
            )
            fused = fuse(
                semantic,
                keyword,
                semantic_weight=self._config.semantic_weight,
                keyword_weight=self._config.keyword_weight,
            )
            results = self._finalize(query, fused, limit)
        duration = time.perf_counter() - start
        PipelineMetrics.observe_search(mode.value, duration)
        self._logger.info(
            "retrieval.complete",
            search_type=mode.value,
            k=limit,
            result_count=len(results),
            duration_seconds=duration,
        )
        return results

    def _finalize(self, query: str, candidates: Sequence[SearchResult], limit: int) -> list[SearchResult]:
        if self._config.enable_reranking:
            return self._reranker.rerank(query, candidates, limit)
        return list(candidates[:limit])

    async def _guarded(
        self,
        search_type: SearchType,
        pending: Awaitable[Sequence[SearchResult]],
    ) -> Sequence[SearchResult]:
        try:
            return await pending
        except Exception as exc:
            PipelineMetrics.search_failures.labels(search_type=search_type.value).inc()
            self._logger.warning("search.failed", search_type=search_type.value, error=str(exc))
            return []


__all__ = ["HybridRetriever", "RetrievalConfig", "Retriever", "fuse"]
