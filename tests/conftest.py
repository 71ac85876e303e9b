"""Shared fixtures: a small department catalogue, hash embeddings and stub backends."""

from __future__ import annotations

import asyncio
from typing import Callable, Sequence

import pytest

from admissions_rag.config import Settings
from admissions_rag.embeddings import EmbeddingConfig, HashEmbeddingProvider
from admissions_rag.services.generation import ProviderChain
from admissions_rag.services.query import QueryOrchestrator
from admissions_rag.services.responder import ResponseGenerator

DEPARTMENTS = {
    "departments": [
        {
            "id": "dentistry",
            "name_en": "Dentistry",
            "name_ar": "طب الأسنان",
            "minimum_grade": {"morning": "79.5%", "evening": "77%"},
            "tuition_fee": {"morning": "10,000,000 IQD", "evening": "11,000,000 IQD"},
            "shift": ["Morning", "Evening"],
            "admission_channels": ["General", "Parallel"],
        },
        {
            "id": "pharmacy",
            "name_en": "Pharmacy",
            "name_ar": "الصيدلة",
            "minimum_grade": "78%",
            "tuition_fee": "9,000,000 IQD",
            "shift": "Morning",
        },
        {
            "id": "nursing",
            "name_en": "Nursing",
            "minimum_grade": "62%",
            "tuition_fee": "3,000,000 IQD",
        },
        {
            "id": "law",
            "name_en": "Law",
            "name_ar": "القانون",
            "minimum_grade": "58%",
        },
    ]
}


class StubBackend:
    """Generation backend returning a canned completion."""

    def __init__(self, text: str = "stub answer", name: str = "stub") -> None:
        self.name = name
        self.text = text
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        return self.text


class FailingBackend:
    """Generation backend that always raises."""

    def __init__(self, name: str = "broken") -> None:
        self.name = name

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        raise RuntimeError("provider unavailable")


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def departments() -> dict:
    return DEPARTMENTS


@pytest.fixture
def hash_provider() -> HashEmbeddingProvider:
    return HashEmbeddingProvider(EmbeddingConfig(dim=384))


@pytest.fixture
def make_orchestrator(hash_provider: HashEmbeddingProvider) -> Callable[..., QueryOrchestrator]:
    """Build an initialized orchestrator loaded with `DEPARTMENTS`."""

    def _make(
        backends: Sequence[object] | None = None,
        *,
        source: object = DEPARTMENTS,
        **overrides: object,
    ) -> QueryOrchestrator:
        settings = Settings(environment="test", **overrides)
        generator = ResponseGenerator(
            ProviderChain(list(backends or []), timeout_seconds=settings.generation_timeout_seconds),
            enable_llm=settings.enable_llm,
        )
        orchestrator = QueryOrchestrator(
            settings,
            embedding_loader=lambda: hash_provider,
            generator=generator,
        )
        run(orchestrator.initialize())
        run(orchestrator.load_knowledge_base(source))
        return orchestrator

    return _make
