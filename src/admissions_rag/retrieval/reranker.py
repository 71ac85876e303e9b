"""Multi-signal reranking of retrieval candidates."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Sequence

from admissions_rag.models import DocumentType, RerankingSignals, SearchResult
from admissions_rag.text import jaccard, tokenize

IDEAL_CONTENT_LENGTH = 200


@dataclass(frozen=True)
class RerankWeights:
    """Linear weights applied to each reranking signal."""

    score: float = 0.5
    keyword_overlap: float = 0.2
    position_boost: float = 0.15
    type_boost: float = 0.1
    length_penalty: float = 0.05


def position_boost(content: str, query: str) -> float:
    """Mean over query terms of how early each one first appears in `content`."""

    terms = tokenize(query)
    if not terms:
        return 0.0
    lowered = content.lower()
    if not lowered:
        return 0.0
    boost = 0.0
    for term in terms:
        index = lowered.find(term)
        if index != -1:
            boost += max(0.0, 1.0 - index / len(lowered))
    return boost / len(terms)


def length_penalty(content: str) -> float:
    return math.exp(-abs(len(content) - IDEAL_CONTENT_LENGTH) / IDEAL_CONTENT_LENGTH)


def type_boost(document_type: DocumentType, query: str) -> float:
    lowered = query.lower()
    if document_type is DocumentType.ADMISSION and ("admission" in lowered or "requirement" in lowered):
        return 0.3
    if document_type is DocumentType.FEE and any(word in lowered for word in ("fee", "cost", "tuition")):
        return 0.3
    if document_type is DocumentType.DEPARTMENT and ("department" in lowered or "program" in lowered):
        return 0.2
    return 0.0


class Reranker:
    """Blends the retrieval score with lexical and structural signals."""

    def __init__(self, weights: RerankWeights | None = None) -> None:
        self._weights = weights or RerankWeights()

    def rerank(self, query: str, results: Sequence[SearchResult], top_k: int) -> list[SearchResult]:
        if top_k <= 0 or not results:
            return []
        query_tokens = set(tokenize(query))
        weights = self._weights
        reranked: list[SearchResult] = []
        for result in results:
            content = result.document.content
            signals = RerankingSignals(
                keyword_overlap=jaccard(query_tokens, set(tokenize(content))),
                position_boost=position_boost(content, query),
                length_penalty=length_penalty(content),
                type_boost=type_boost(result.document.type, query),
            )
            score = (
                result.score * weights.score
                + signals.keyword_overlap * weights.keyword_overlap
                + signals.position_boost * weights.position_boost
                + signals.type_boost * weights.type_boost
                + signals.length_penalty * weights.length_penalty
            )
            reranked.append(
                replace(result, score=score, original_score=result.score, reranking_signals=signals)
            )
        # sorted() is stable, so equal scores keep their incoming order
        reranked = sorted(reranked, key=lambda item: item.score, reverse=True)
        return reranked[:top_k]


__all__ = ["RerankWeights", "Reranker", "length_penalty", "position_boost", "type_boost"]
