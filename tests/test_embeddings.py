from __future__ import annotations

import math

import pytest

from admissions_rag.embeddings import (
    EmbeddingConfig,
    HashEmbeddingProvider,
    HuggingFaceEmbeddingProvider,
    SemanticIndex,
    build_embedding_provider,
    cosine_similarity,
)
from admissions_rag.ingestion import build_documents
from admissions_rag.models import SearchType
from conftest import run


class FlakyProvider:
    """Raises for any text mentioning Pharmacy."""

    def __init__(self) -> None:
        self._delegate = HashEmbeddingProvider(EmbeddingConfig(dim=16))

    def embed(self, text: str):
        if "Pharmacy" in text:
            raise RuntimeError("model crashed")
        return self._delegate.embed(text)


class FakeLangChainEmbeddings:
    def __init__(self) -> None:
        self.seen: list[str] = []

    def embed_query(self, text: str) -> list[float]:
        self.seen.append(text)
        return [3.0, 4.0]

    def embed_documents(self, texts):
        return [self.embed_query(text) for text in texts]


def test_hash_embedding_dim_and_norm():
    provider = HashEmbeddingProvider(EmbeddingConfig(dim=64))
    vec = provider.embed("dentistry admission requirements")
    assert isinstance(vec, tuple)
    assert len(vec) == 64
    assert math.isclose(math.sqrt(sum(v * v for v in vec)), 1.0)


def test_hash_embedding_is_deterministic_and_overlap_sensitive():
    provider = HashEmbeddingProvider()
    assert provider.embed("tuition fees") == provider.embed("tuition fees")
    related = cosine_similarity(provider.embed("dentistry tuition fees"), provider.embed("tuition fees for dentistry"))
    unrelated = cosine_similarity(provider.embed("dentistry tuition fees"), provider.embed("library opening hours"))
    assert related > 0.75
    assert related > unrelated


def test_hash_embedding_of_empty_text_is_zero_vector():
    assert HashEmbeddingProvider(EmbeddingConfig(dim=8)).embed("") == (0.0,) * 8


def test_cosine_similarity_edge_cases():
    assert cosine_similarity((1.0, 0.0), (1.0, 0.0, 0.0)) == 0.0
    assert cosine_similarity((0.0, 0.0), (1.0, 0.0)) == 0.0
    assert cosine_similarity((1.0, 0.0), (-1.0, 0.0)) == -1.0


def test_huggingface_provider_truncates_and_normalizes():
    client = FakeLangChainEmbeddings()
    provider = HuggingFaceEmbeddingProvider(EmbeddingConfig(backend="huggingface", dim=2, max_chars=10), client=client)
    vec = provider.embed("x" * 50)
    assert client.seen == ["x" * 10]
    assert vec == pytest.approx((0.6, 0.8))


def test_build_embedding_provider_selects_hash_backend():
    assert isinstance(build_embedding_provider(EmbeddingConfig(backend="hash")), HashEmbeddingProvider)


def test_semantic_index_keeps_alignment_when_embedding_fails(departments):
    documents = build_documents(departments)
    index = run(SemanticIndex.build(documents, FlakyProvider(), dim=16, batch_size=3))
    assert len(index.embeddings) == len(index.documents) == len(documents)
    for document, vector in zip(index.documents, index.embeddings):
        assert len(vector) == 16
        if "Pharmacy" in document.content:
            assert vector == (0.0,) * 16


def test_semantic_index_returns_twice_k_candidates(departments, hash_provider):
    documents = build_documents(departments)
    index = run(SemanticIndex.build(documents, hash_provider))
    results = run(index.search("Dentistry الأسنان", 2))
    assert len(results) == 4
    assert all(result.search_type is SearchType.SEMANTIC for result in results)
    assert all(result.score >= 0 for result in results)
    scores = [result.score for result in results]
    assert scores == sorted(scores, reverse=True)
    assert results[0].document.department == "Dentistry"


def test_semantic_index_empty():
    index = run(SemanticIndex.build([], HashEmbeddingProvider()))
    assert run(index.search("anything", 5)) == []
