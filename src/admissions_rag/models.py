"""Shared domain models used across the admissions assistant."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Sequence


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentType(str, Enum):
    """Category of a knowledge-base document."""

    DEPARTMENT = "department"
    ADMISSION = "admission"
    FEE = "fee"


class SearchType(str, Enum):
    """Retrieval strategy requested by a caller."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: "SearchType | str | None") -> "SearchType":
        if isinstance(value, SearchType):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.HYBRID


@dataclass(frozen=True)
class Keyword:
    """A term and its raw frequency in a text."""

    word: str
    score: int


@dataclass(frozen=True)
class Document:
    """Enriched knowledge-base document; immutable once built."""

    id: str
    content: str
    type: DocumentType
    metadata: Mapping[str, Any] = field(default_factory=dict)
    keywords: tuple[Keyword, ...] = ()
    chunks: tuple[str, ...] = ()
    word_count: int = 0
    enhanced_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def department(self) -> str:
        return str(self.metadata.get("department") or "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "type": self.type.value,
            "metadata": dict(self.metadata),
            "keywords": [{"word": k.word, "score": k.score} for k in self.keywords],
            "word_count": self.word_count,
        }


@dataclass(frozen=True)
class RerankingSignals:
    """Per-candidate signals computed by the reranker."""

    keyword_overlap: float
    position_boost: float
    length_penalty: float
    type_boost: float


@dataclass(frozen=True)
class SearchResult:
    """Document returned from one of the search strategies."""

    document: Document
    score: float
    search_type: SearchType
    original_score: float | None = None
    semantic_score: float | None = None
    keyword_score: float | None = None
    reranking_signals: RerankingSignals | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.document.id,
            "content": self.document.content,
            "type": self.document.type.value,
            "score": self.score,
            "search_type": self.search_type.value,
            "metadata": dict(self.document.metadata),
        }
        if self.reranking_signals is not None:
            signals = self.reranking_signals
            payload["reranking_signals"] = {
                "keyword_overlap": signals.keyword_overlap,
                "position_boost": signals.position_boost,
                "length_penalty": signals.length_penalty,
                "type_boost": signals.type_boost,
            }
        return payload


@dataclass(frozen=True)
class ContextSnapshot:
    """Truncated view of a retrieved document kept in conversation history."""

    content: str
    score: float | None
    type: str


@dataclass(frozen=True)
class Exchange:
    """One user/assistant turn stored in session memory."""

    timestamp: datetime
    user_text: str
    assistant_text: str
    context_snapshot: tuple[ContextSnapshot, ...]
    token_estimate: int
    keywords: tuple[Keyword, ...]


@dataclass(frozen=True)
class CacheEntry:
    """Cached response for a normalized query key."""

    response: str
    context: tuple[Document, ...]
    timestamp: datetime


@dataclass
class QueryStats:
    """Process-wide running counters."""

    total_queries: int = 0
    avg_query_time_ms: float = 0.0
    cache_hits: int = 0
    llm_calls: int = 0
    fallback_responses: int = 0

    def record_latency(self, elapsed_ms: float) -> None:
        if self.total_queries <= 0:
            return
        previous = self.avg_query_time_ms * (self.total_queries - 1)
        self.avg_query_time_ms = (previous + elapsed_ms) / self.total_queries


@dataclass(frozen=True)
class Performance:
    """Timing and provenance for a single query."""

    total_time_ms: float
    generation_time_ms: float | None = None
    generation_method: str | None = None
    result_count: int = 0
    search_type: str | None = None
    cache_hit: bool = False
    provider: str | None = None
    error: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_time_ms": self.total_time_ms,
            "generation_time_ms": self.generation_time_ms,
            "generation_method": self.generation_method,
            "result_count": self.result_count,
            "search_type": self.search_type,
            "cache_hit": self.cache_hit,
            "provider": self.provider,
            "error": self.error,
        }


@dataclass(frozen=True)
class QueryResult:
    """Structured answer returned by the orchestrator."""

    query: str
    response: str
    confidence: float
    results: Sequence[SearchResult]
    performance: Performance
    session_id: str
    timestamp: datetime = field(default_factory=utcnow)
    rewritten_query: str | None = None
    memory_stats: Mapping[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "response": self.response,
            "confidence": self.confidence,
            "results": [result.to_dict() for result in self.results],
            "performance": self.performance.to_dict(),
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "rewritten_query": self.rewritten_query,
            "memory_stats": dict(self.memory_stats) if self.memory_stats is not None else None,
            "error": self.error,
        }
