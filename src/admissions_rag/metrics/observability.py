"""Observability helpers for the admissions assistant."""

from __future__ import annotations

import logging
from contextvars import ContextVar

import structlog
from prometheus_client import Counter, Gauge, Histogram

_logger_configured = False
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int | str = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()
    _correlation_id_var.set("-")


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "admissions_rag") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


class PipelineMetrics:
    """Prometheus metrics for the query pipeline."""

    knowledge_base_load_latency = Histogram(
        "admissions_rag_knowledge_base_load_seconds",
        "Time spent building the document store and indices.",
        buckets=(0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0),
    )
    documents_loaded = Gauge(
        "admissions_rag_documents",
        "Number of documents in the active knowledge base.",
    )
    embedding_failures = Counter(
        "admissions_rag_embedding_failures_total",
        "Documents indexed with a zero-vector placeholder.",
    )
    search_latency = Histogram(
        "admissions_rag_search_duration_seconds",
        "Time spent retrieving documents.",
        ["search_type"],
        buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0),
    )
    search_failures = Counter(
        "admissions_rag_search_failures_total",
        "Sub-searches that raised and were replaced by an empty result set.",
        ["search_type"],
    )
    generation_latency = Histogram(
        "admissions_rag_generation_duration_seconds",
        "Time spent producing a response.",
        ["method"],
        buckets=(0.001, 0.01, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0),
    )
    cache_hits = Counter(
        "admissions_rag_cache_hits_total",
        "Responses served from session caches.",
    )
    query_latency = Histogram(
        "admissions_rag_query_duration_seconds",
        "End-to-end query latency.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
    )
    query_errors = Counter(
        "admissions_rag_query_errors_total",
        "Queries answered with the apology response.",
    )

    @classmethod
    def observe_load(cls, duration_seconds: float, document_count: int) -> None:
        cls.knowledge_base_load_latency.observe(duration_seconds)
        cls.documents_loaded.set(document_count)

    @classmethod
    def observe_search(cls, search_type: str, duration_seconds: float) -> None:
        cls.search_latency.labels(search_type=search_type).observe(duration_seconds)

    @classmethod
    def observe_generation(cls, method: str, duration_seconds: float) -> None:
        cls.generation_latency.labels(method=method).observe(duration_seconds)
        if method == "cached":
            cls.cache_hits.inc()

    @classmethod
    def observe_query(cls, duration_seconds: float, *, error: bool = False) -> None:
        cls.query_latency.observe(duration_seconds)
        if error:
            cls.query_errors.inc()


__all__ = [
    "PipelineMetrics",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
]
