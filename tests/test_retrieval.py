from __future__ import annotations

import math

from admissions_rag.embeddings import SemanticIndex
from admissions_rag.ingestion import build_documents
from admissions_rag.models import Document, DocumentType, SearchResult, SearchType
from admissions_rag.retrieval import HybridRetriever, KeywordIndex, Reranker, RetrievalConfig, fuse
from admissions_rag.retrieval.keyword import enriched_text
from admissions_rag.retrieval.reranker import length_penalty, position_boost, type_boost
from conftest import run


def _doc(doc_id: str, content: str, doc_type: DocumentType = DocumentType.DEPARTMENT, department: str = "") -> Document:
    return Document(id=doc_id, content=content, type=doc_type, metadata={"department": department})


def _result(doc: Document, score: float, search_type: SearchType = SearchType.SEMANTIC) -> SearchResult:
    return SearchResult(document=doc, score=score, search_type=search_type)


class BrokenIndex:
    def __len__(self) -> int:
        return 0

    async def search(self, query: str, k: int):
        raise RuntimeError("index unavailable")


def test_enriched_text_includes_department_and_type(departments):
    doc = build_documents(departments)[0]
    text = enriched_text(doc)
    assert text.startswith(doc.content)
    assert text.endswith("Dentistry department")


def test_keyword_index_idf_and_metadata_boost():
    docs = [
        _doc("a", "pharmacy fees", department="Pharmacy"),
        _doc("b", "dentistry fees", department="Dentistry"),
        _doc("c", "library hours"),
    ]
    index = KeywordIndex(docs)
    # "fees" appears in two of three documents
    assert math.isclose(index.idf("fees"), 1 + math.log(3 / 3))
    assert math.isclose(index.idf("unknown"), 1 + math.log(3 / 1))

    results = index.search("dentistry fees", 5)
    assert [r.document.id for r in results] == ["b", "a"]
    assert all(r.search_type is SearchType.KEYWORD for r in results)
    # "dentistry" occurs twice in b's enriched text and names its department
    expected = 2 * index.idf("dentistry") * 1.5 + index.tfidf("fees", 1)
    assert math.isclose(results[0].score, expected)


def test_keyword_index_empty_query_and_corpus():
    assert KeywordIndex([]).search("fees", 3) == []
    assert KeywordIndex([_doc("a", "fees")]).search("a ?", 3) == []


def test_reranker_signals():
    assert position_boost("fees are high", "fees") == 1.0
    assert position_boost("", "fees") == 0.0
    assert length_penalty("x" * 200) == 1.0
    assert math.isclose(length_penalty("x" * 400), math.exp(-1))
    assert type_boost(DocumentType.ADMISSION, "Admission requirements?") == 0.3
    assert type_boost(DocumentType.FEE, "what does it cost") == 0.3
    assert type_boost(DocumentType.DEPARTMENT, "which program") == 0.2
    assert type_boost(DocumentType.FEE, "which program") == 0.0


def test_reranker_blends_scores_and_is_deterministic():
    docs = [
        _doc("fee", "Tuition fees for Dentistry are 10,000,000 IQD.", DocumentType.FEE, "Dentistry"),
        _doc("dept", "Dentistry department overview.", DocumentType.DEPARTMENT, "Dentistry"),
        _doc("other", "Library hours.", DocumentType.DEPARTMENT),
    ]
    candidates = [_result(docs[1], 0.9), _result(docs[0], 0.8), _result(docs[2], 0.1)]
    reranker = Reranker()
    first = reranker.rerank("dentistry tuition fees", candidates, 2)
    second = reranker.rerank("dentistry tuition fees", candidates, 2)
    assert [r.document.id for r in first] == [r.document.id for r in second] == ["fee", "dept"]
    top = first[0]
    assert top.original_score == 0.8
    signals = top.reranking_signals
    assert signals is not None and signals.type_boost == 0.3
    expected = (
        0.8 * 0.5
        + signals.keyword_overlap * 0.2
        + signals.position_boost * 0.15
        + signals.type_boost * 0.1
        + signals.length_penalty * 0.05
    )
    assert math.isclose(top.score, expected)


def test_fuse_normalizes_weights_and_merges():
    a, b, c = _doc("a", "x"), _doc("b", "y"), _doc("c", "z")
    semantic = [_result(a, 0.5), _result(b, 0.25)]
    keyword = [_result(b, 4.0, SearchType.KEYWORD), _result(c, 2.0, SearchType.KEYWORD)]
    fused = fuse(semantic, keyword)
    scores = {r.document.id: r.score for r in fused}
    assert math.isclose(scores["a"], 0.7)
    assert math.isclose(scores["b"], 0.35 + 0.3)
    assert math.isclose(scores["c"], 0.15)
    assert [r.document.id for r in fused] == ["a", "b", "c"]
    assert all(0.0 <= r.score <= 1.0 and r.search_type is SearchType.HYBRID for r in fused)


def test_fuse_handles_zero_scores():
    a = _doc("a", "x")
    fused = fuse([_result(a, 0.0)], [])
    assert fused[0].score == 0.0


def test_hybrid_search_dispatch(departments, hash_provider):
    documents = build_documents(departments)
    semantic = run(SemanticIndex.build(documents, hash_provider))
    retriever = HybridRetriever(semantic, KeywordIndex(documents), config=RetrievalConfig(max_results=3))

    hybrid = run(retriever.search("Dentistry tuition fees", 3, "hybrid"))
    assert 0 < len(hybrid) <= 3
    assert hybrid[0].document.id == "fee_dentistry"
    assert all(r.reranking_signals is not None for r in hybrid)

    keyword = run(retriever.search("Dentistry tuition fees", 3, SearchType.KEYWORD))
    assert all(r.search_type is SearchType.KEYWORD and r.reranking_signals is None for r in keyword)

    semantic_only = run(retriever.search("Dentistry tuition fees", 2, "semantic"))
    assert len(semantic_only) == 2
    assert all(r.original_score is not None for r in semantic_only)

    unknown = run(retriever.search("Dentistry tuition fees", 3, "bogus"))
    assert [r.document.id for r in unknown] == [r.document.id for r in hybrid]


def test_hybrid_search_survives_semantic_failure(departments):
    documents = build_documents(departments)
    retriever = HybridRetriever(BrokenIndex(), KeywordIndex(documents))
    results = run(retriever.search("Pharmacy fees", 3))
    assert results
    assert results[0].document.department == "Pharmacy"
    assert results[0].search_type is SearchType.HYBRID


def test_hybrid_search_without_reranking(departments, hash_provider):
    documents = build_documents(departments)
    semantic = run(SemanticIndex.build(documents, hash_provider))
    retriever = HybridRetriever(
        semantic,
        KeywordIndex(documents),
        config=RetrievalConfig(enable_reranking=False),
    )
    results = run(retriever.search("Law admission", 2))
    assert len(results) == 2
    assert all(r.reranking_signals is None for r in results)


class BrokenKeywordIndex:
    def search(self, query: str, k: int):
        raise RuntimeError("keyword index unavailable")


def test_single_mode_searches_survive_index_failure(departments, hash_provider):
    documents = build_documents(departments)
    semantic = run(SemanticIndex.build(documents, hash_provider))
    broken_semantic = HybridRetriever(BrokenIndex(), KeywordIndex(documents))
    assert run(broken_semantic.search("Dentistry fees", 3, "semantic")) == []

    broken_keyword = HybridRetriever(semantic, BrokenKeywordIndex())
    assert run(broken_keyword.search("Dentistry fees", 3, "keyword")) == []
