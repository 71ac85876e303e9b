"""Query orchestration: rewrite, retrieval, generation, memory and stats."""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict
from functools import partial
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from admissions_rag.config import Settings, get_settings
from admissions_rag.embeddings import (
    EmbeddingConfig,
    EmbeddingProvider,
    SemanticIndex,
    build_embedding_provider,
)
from admissions_rag.errors import InitializationError, NotInitializedError
from admissions_rag.ingestion import IngestionConfig, build_documents, load_knowledge_base_file
from admissions_rag.memory import ConversationMemory, MemoryConfig, MemoryService
from admissions_rag.metrics.observability import PipelineMetrics, get_logger
from admissions_rag.models import (
    Document,
    Performance,
    QueryResult,
    QueryStats,
    SearchResult,
    SearchType,
)
from admissions_rag.retrieval import HybridRetriever, KeywordIndex, Reranker, RetrievalConfig
from admissions_rag.services.generation import (
    AnthropicBackend,
    GenerationBackend,
    GenerationConfig,
    OpenAICompatibleBackend,
    ProviderChain,
    TransformersBackend,
)
from admissions_rag.services.prompts import Language, PromptBuilder, PromptKind
from admissions_rag.services.responder import ResponseGenerator
from admissions_rag.services.templates import APOLOGY

REWRITE_HISTORY = 3
REWRITE_EXCHANGES = 2
REWRITE_TERMS = 2
DEFAULT_SESSION = "default"

KnowledgeBaseSource = Mapping[str, Any] | Sequence[Mapping[str, Any]] | Sequence[Document]


def embedding_config_from(settings: Settings) -> EmbeddingConfig:
    return EmbeddingConfig(
        backend=settings.embedding_backend,
        model=settings.embedding_model,
        dim=settings.embedding_dim,
        batch_size=settings.embedding_batch_size,
        device=settings.embedding_device,
        cache_folder=settings.embedding_cache_folder,
    )


def build_generation_backends(settings: Settings) -> list[GenerationBackend]:
    """Instantiate the configured providers in order, skipping those without credentials."""

    logger = get_logger("generation")
    config = GenerationConfig(
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
        timeout_seconds=settings.generation_timeout_seconds,
    )
    backends: list[GenerationBackend] = []
    for name in settings.llm_providers_tuple:
        if name == "groq" and settings.groq_api_key:
            backends.append(
                OpenAICompatibleBackend(
                    "groq",
                    api_key=settings.groq_api_key,
                    model=settings.groq_model,
                    base_url=settings.groq_base_url,
                    config=config,
                )
            )
        elif name == "openai" and settings.openai_api_key:
            backends.append(
                OpenAICompatibleBackend(
                    "openai",
                    api_key=settings.openai_api_key,
                    model=settings.openai_model,
                    base_url=settings.openai_base_url,
                    config=config,
                )
            )
        elif name == "anthropic" and settings.anthropic_api_key:
            backends.append(
                AnthropicBackend(
                    api_key=settings.anthropic_api_key,
                    model=settings.anthropic_model,
                    base_url=settings.anthropic_base_url,
                    config=config,
                )
            )
        elif name == "local":
            backends.append(
                TransformersBackend(
                    settings.local_generator_model,
                    device=settings.local_generator_device,
                    config=config,
                )
            )
        else:
            logger.info("generation.provider_skipped", provider=name)
    return backends


def build_response_generator(settings: Settings) -> ResponseGenerator:
    backends = build_generation_backends(settings) if settings.enable_llm else []
    return ResponseGenerator(
        ProviderChain(backends, timeout_seconds=settings.generation_timeout_seconds),
        enable_llm=settings.enable_llm,
        prompt_builder=PromptBuilder(include_history=settings.prompt_include_history),
    )


def rewrite_query(query: str, memory: ConversationMemory | None) -> str:
    """Append the leading keywords of related earlier exchanges to the query."""

    if memory is None:
        return query
    history = memory.get_relevant_history(query, REWRITE_HISTORY)
    if not history:
        return query
    terms = " ".join(
        " ".join(keyword.word for keyword in exchange.keywords[:REWRITE_TERMS])
        for exchange in history[:REWRITE_EXCHANGES]
    )
    return f"{query} {terms}"


class QueryOrchestrator:
    """Answers questions against the loaded knowledge base; never raises from `query`."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        embedding_loader: Callable[[], EmbeddingProvider] | None = None,
        generator: ResponseGenerator | None = None,
        memory: MemoryService | None = None,
        reranker: Reranker | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._embedding_config = embedding_config_from(self._settings)
        self._embedding_loader = embedding_loader or partial(build_embedding_provider, self._embedding_config)
        self._generator = generator or build_response_generator(self._settings)
        self._memory = memory or MemoryService(
            MemoryConfig(
                max_history=self._settings.memory_max_history,
                cache_ttl_seconds=self._settings.memory_cache_ttl_seconds,
                max_sessions=self._settings.max_sessions,
                session_idle_ttl_seconds=self._settings.session_idle_ttl_seconds,
            )
        )
        self._reranker = reranker or Reranker()
        self._retrieval_config = RetrievalConfig(
            max_results=self._settings.max_results,
            enable_reranking=self._settings.enable_reranking,
        )
        self._provider: EmbeddingProvider | None = None
        self._retriever: HybridRetriever | None = None
        self._documents: tuple[Document, ...] = ()
        self._embeddings_count = 0
        self._init_lock = asyncio.Lock()
        self._init_time_ms: float | None = None
        self._stats = QueryStats()
        self._logger = get_logger("query")

    @property
    def is_initialized(self) -> bool:
        return self._provider is not None

    @property
    def is_ready(self) -> bool:
        return self._provider is not None and self._retriever is not None

    @property
    def memory(self) -> MemoryService:
        return self._memory

    async def initialize(self) -> None:
        """Load the embedding backend once; concurrent callers wait for the first."""

        async with self._init_lock:
            if self._provider is not None:
                return
            start = time.perf_counter()
            try:
                provider = await asyncio.to_thread(self._embedding_loader)
            except Exception as exc:
                self._logger.exception("initialize.failed", error=str(exc))
                raise InitializationError(f"Failed to load embedding backend: {exc}") from exc
            self._provider = provider
            self._init_time_ms = (time.perf_counter() - start) * 1000
            self._logger.info(
                "initialize.complete",
                embedding_backend=self._embedding_config.backend,
                duration_ms=self._init_time_ms,
            )

    async def load_knowledge_base(self, source: KnowledgeBaseSource) -> int:
        """Build the document store and both indices, then swap them in."""

        if self._provider is None:
            raise NotInitializedError("System not initialized. Call initialize() first.")
        start = time.perf_counter()
        if isinstance(source, Sequence) and source and all(isinstance(item, Document) for item in source):
            documents: Sequence[Document] = list(source)
        else:
            documents = await asyncio.to_thread(
                build_documents,
                source,
                config=IngestionConfig(institution_name=self._settings.institution_name),
            )
        return await self._install(documents, start)

    async def load_knowledge_base_file(self, path: Path | str | None = None) -> int:
        if self._provider is None:
            raise NotInitializedError("System not initialized. Call initialize() first.")
        start = time.perf_counter()
        target = Path(path) if path is not None else self._settings.knowledge_base_path
        documents = await asyncio.to_thread(
            load_knowledge_base_file,
            target,
            config=IngestionConfig(institution_name=self._settings.institution_name),
        )
        return await self._install(documents, start)

    async def _install(self, documents: Sequence[Document], start: float) -> int:
        assert self._provider is not None
        semantic = await SemanticIndex.build(
            documents,
            self._provider,
            dim=self._embedding_config.dim,
            batch_size=self._embedding_config.batch_size,
        )
        keyword = await asyncio.to_thread(KeywordIndex, documents)
        retriever = HybridRetriever(
            semantic,
            keyword,
            reranker=self._reranker,
            config=self._retrieval_config,
        )
        self._documents = tuple(documents)
        self._embeddings_count = len(semantic.embeddings)
        self._retriever = retriever
        duration = time.perf_counter() - start
        PipelineMetrics.observe_load(duration, len(documents))
        self._logger.info(
            "knowledge_base.loaded",
            document_count=len(documents),
            duration_seconds=duration,
        )
        return len(documents)

    async def search(
        self,
        query: str,
        search_type: SearchType | str | None = None,
        k: int | None = None,
    ) -> Sequence[SearchResult]:
        """Retrieval only, without rewrite, generation or memory."""

        retriever = self._require_retriever()
        return await retriever.search(query, k, search_type or self._settings.default_search_type)

    async def query(
        self,
        text: str,
        session_id: str = DEFAULT_SESSION,
        search_type: SearchType | str | None = None,
        *,
        language: Language | str = Language.EN,
        is_voice_interaction: bool = False,
    ) -> QueryResult:
        start = time.perf_counter()
        language = Language.parse(language)
        mode = SearchType.parse(search_type or self._settings.default_search_type)
        self._stats.total_queries += 1
        try:
            retriever = self._require_retriever()
            memory = self._memory.get(session_id) if self._settings.enable_memory else None
            rewritten = rewrite_query(text, memory)
            results = await retriever.search(rewritten, self._settings.max_results, mode)
            response = await self._generator.generate(
                text,
                results,
                memory,
                language,
                PromptKind.for_interaction(is_voice_interaction),
            )
            if response.method == "cached":
                self._stats.cache_hits += 1
            if response.llm_attempted:
                self._stats.llm_calls += 1
            if response.method == "fallback":
                self._stats.fallback_responses += 1
            if memory is not None:
                memory.add_exchange(text, response.text, results)

            total_ms = (time.perf_counter() - start) * 1000
            self._stats.record_latency(total_ms)
            PipelineMetrics.observe_query(total_ms / 1000)
            self._logger.info(
                "query.complete",
                session_id=session_id,
                search_type=mode.value,
                result_count=len(results),
                method=response.method,
                duration_ms=total_ms,
            )
            return QueryResult(
                query=text,
                response=response.text,
                confidence=response.confidence,
                results=tuple(results),
                performance=Performance(
                    total_time_ms=total_ms,
                    generation_time_ms=response.generation_time_ms,
                    generation_method=response.method,
                    result_count=len(results),
                    search_type=mode.value,
                    cache_hit=response.method == "cached",
                    provider=response.provider,
                ),
                session_id=session_id,
                rewritten_query=rewritten if rewritten != text else None,
                memory_stats=memory.stats() if memory is not None else None,
            )
        except Exception as exc:
            total_ms = (time.perf_counter() - start) * 1000
            self._stats.record_latency(total_ms)
            PipelineMetrics.observe_query(total_ms / 1000, error=True)
            self._logger.exception("query.failed", session_id=session_id, error=str(exc))
            return QueryResult(
                query=text,
                response=APOLOGY[language],
                confidence=0.0,
                results=(),
                performance=Performance(total_time_ms=total_ms, search_type=mode.value, error=True),
                session_id=session_id,
                error=str(exc),
            )

    def clear_memory(self, session_id: str = DEFAULT_SESSION) -> bool:
        return self._memory.clear(session_id)

    def get_stats(self) -> dict[str, Any]:
        return {
            **asdict(self._stats),
            "is_initialized": self.is_initialized,
            "is_ready": self.is_ready,
            "init_time_ms": self._init_time_ms,
            "documents_count": len(self._documents),
            "embeddings_count": self._embeddings_count,
            "session_count": self._memory.session_count,
            "features": {
                "enable_reranking": self._settings.enable_reranking,
                "enable_llm": self._generator.llm_enabled,
                "enable_memory": self._settings.enable_memory,
            },
            "memory_stats": self._memory.stats(),
        }

    def _require_retriever(self) -> HybridRetriever:
        if self._provider is None:
            raise NotInitializedError("System not initialized. Call initialize() first.")
        if self._retriever is None:
            raise NotInitializedError("Knowledge base not loaded.")
        return self._retriever


def build_orchestrator(settings: Settings | None = None) -> QueryOrchestrator:
    return QueryOrchestrator(settings or get_settings())


__all__ = [
    "QueryOrchestrator",
    "build_generation_backends",
    "build_orchestrator",
    "build_response_generator",
    "embedding_config_from",
    "rewrite_query",
]
