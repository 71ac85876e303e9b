"""Pydantic models for the admissions assistant API."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from admissions_rag.config import get_settings


class ChatRequest(BaseModel):
    message: str = Field(
        ...,
        min_length=1,
        max_length=get_settings().max_message_length,
        description="End-user question to answer",
    )
    session_id: str = Field(default="default", min_length=1, max_length=128)
    search_type: Literal["semantic", "keyword", "hybrid"] | None = Field(
        default=None,
        description="Override the retrieval strategy for this query",
    )
    language: str = Field(default="en", description="Response language (en or ar)")
    is_voice_interaction: bool = Field(default=False, description="Use the spoken-answer prompt")


class RerankingSignalsModel(BaseModel):
    keyword_overlap: float
    position_boost: float
    length_penalty: float
    type_boost: float


class SearchResultModel(BaseModel):
    id: str
    content: str
    type: str
    score: float
    search_type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    reranking_signals: Optional[RerankingSignalsModel] = None


class PerformanceModel(BaseModel):
    total_time_ms: float
    generation_time_ms: Optional[float] = None
    generation_method: Optional[str] = None
    result_count: int = 0
    search_type: Optional[str] = None
    cache_hit: bool = False
    provider: Optional[str] = None
    error: bool = False


class ChatResponse(BaseModel):
    query: str
    response: str
    confidence: float
    results: List[SearchResultModel]
    performance: PerformanceModel
    session_id: str
    timestamp: str
    rewritten_query: Optional[str] = None
    memory_stats: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


class ClearMemoryResponse(BaseModel):
    session_id: str
    cleared: bool


class StatsResponse(BaseModel):
    total_queries: int
    avg_query_time_ms: float
    cache_hits: int
    llm_calls: int
    fallback_responses: int
    is_initialized: bool
    is_ready: bool
    init_time_ms: Optional[float] = None
    documents_count: int
    embeddings_count: int
    session_count: int
    features: Dict[str, bool]
    memory_stats: Dict[str, Any]
