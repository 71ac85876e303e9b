"""Response generation: cache, prompt, provider chain and template fallback."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Sequence

from admissions_rag.memory import ConversationMemory
from admissions_rag.metrics.observability import PipelineMetrics, get_logger
from admissions_rag.models import SearchResult
from admissions_rag.services.generation import ProviderChain
from admissions_rag.services.prompts import Language, PromptBuilder, PromptKind
from admissions_rag.services.templates import NO_INFORMATION, TemplateResponder

PROMPT_HISTORY_EXCHANGES = 2


@dataclass(frozen=True)
class GeneratedResponse:
    """Answer text plus how it was produced."""

    text: str
    confidence: float
    generation_time_ms: float
    method: str
    provider: str | None = None
    llm_attempted: bool = False
    errors: tuple[str, ...] = ()


def compute_confidence(query: str, results: Sequence[SearchResult]) -> float:
    """Blend of top score, mean score and query length, clamped to [0, 1]."""

    if not results:
        return 0.0
    scores = [result.score for result in results]
    top = scores[0]
    average = sum(scores) / len(scores)
    confidence = min(top * 2, 1.0) * min(average * 5, 1.0) * min(len(query) / 20, 1.0)
    return max(0.0, min(1.0, confidence))


class ResponseGenerator:
    """Produces the final answer for a query and its retrieved context."""

    def __init__(
        self,
        chain: ProviderChain | None = None,
        *,
        enable_llm: bool = True,
        prompt_builder: PromptBuilder | None = None,
        templates: TemplateResponder | None = None,
    ) -> None:
        self._chain = chain or ProviderChain(())
        self._enable_llm = enable_llm
        self._prompts = prompt_builder or PromptBuilder()
        self._templates = templates or TemplateResponder()
        self._logger = get_logger("generation")

    @property
    def llm_enabled(self) -> bool:
        return self._enable_llm and len(self._chain) > 0

    async def generate(
        self,
        query: str,
        results: Sequence[SearchResult],
        memory: ConversationMemory | None = None,
        language: Language | str = Language.EN,
        prompt_kind: PromptKind = PromptKind.STANDARD,
    ) -> GeneratedResponse:
        language = Language.parse(language)
        start = time.perf_counter()
        response = await self._generate(query, results, memory, language, prompt_kind, start)
        PipelineMetrics.observe_generation(response.method, response.generation_time_ms / 1000)
        self._logger.info(
            "generation.complete",
            method=response.method,
            provider=response.provider,
            confidence=response.confidence,
            duration_ms=response.generation_time_ms,
        )
        return response

    async def _generate(
        self,
        query: str,
        results: Sequence[SearchResult],
        memory: ConversationMemory | None,
        language: Language,
        prompt_kind: PromptKind,
        start: float,
    ) -> GeneratedResponse:
        def elapsed_ms() -> float:
            return (time.perf_counter() - start) * 1000

        if not results:
            return GeneratedResponse(NO_INFORMATION[language], 0.0, elapsed_ms(), "fallback")

        confidence = compute_confidence(query, results)
        if memory is not None:
            cached = memory.get_cached_response(query)
            if cached is not None:
                # confidence reflects the current retrieval, not the cached one
                return GeneratedResponse(cached.response, confidence, elapsed_ms(), "cached")

        if not self.llm_enabled:
            text = self._templates.respond(query, results, language)
            return GeneratedResponse(text, confidence, elapsed_ms(), "template")

        history = memory.get_relevant_history(query, PROMPT_HISTORY_EXCHANGES) if memory is not None else []
        errors: tuple[str, ...] = ()
        try:
            prompt = self._prompts.build(prompt_kind, language, query, results, history)
            attempt = await self._chain.attempt(prompt.system, prompt.user)
            if attempt.succeeded:
                return GeneratedResponse(
                    attempt.text or "",
                    confidence,
                    elapsed_ms(),
                    "llm",
                    provider=attempt.provider,
                    llm_attempted=True,
                    errors=attempt.errors,
                )
            errors = attempt.errors
        except Exception as exc:
            self._logger.exception("generation.failed", error=str(exc))
            errors = (str(exc),)
        self._logger.warning("generation.fallback", errors=list(errors))
        text = self._templates.respond(query, results, language)
        return GeneratedResponse(
            text,
            confidence,
            elapsed_ms(),
            "fallback",
            llm_attempted=True,
            errors=errors,
        )


__all__ = ["GeneratedResponse", "ResponseGenerator", "compute_confidence"]
