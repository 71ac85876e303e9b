"""TF-IDF keyword index with metadata boosting."""

from __future__ import annotations

import math
from collections import Counter
from typing import Sequence

from admissions_rag.models import Document, SearchResult, SearchType
from admissions_rag.text import tokenize

METADATA_BOOST = 1.5


def enriched_text(document: Document) -> str:
    """Content plus keyword words, department name and type."""

    parts = [document.content]
    parts.extend(keyword.word for keyword in document.keywords)
    parts.append(document.department)
    parts.append(document.type.value)
    return " ".join(parts)


class KeywordIndex:
    """Term-frequency index built once over a fixed document list."""

    def __init__(self, documents: Sequence[Document]) -> None:
        self._documents = tuple(documents)
        self._term_counts = [Counter(tokenize(enriched_text(doc))) for doc in self._documents]
        document_frequency: Counter[str] = Counter()
        for counts in self._term_counts:
            document_frequency.update(counts.keys())
        self._document_frequency = document_frequency
        self._metadata_terms = [
            frozenset(tokenize(doc.department)) | {doc.type.value} for doc in self._documents
        ]

    def __len__(self) -> int:
        return len(self._documents)

    def idf(self, term: str) -> float:
        total = len(self._documents)
        if total == 0:
            return 0.0
        return 1.0 + math.log(total / (1 + self._document_frequency.get(term, 0)))

    def tfidf(self, term: str, index: int) -> float:
        count = self._term_counts[index].get(term, 0)
        if count == 0:
            return 0.0
        return count * self.idf(term)

    def search(self, query: str, k: int) -> list[SearchResult]:
        if k <= 0 or not self._documents:
            return []
        terms = tokenize(query)
        if not terms:
            return []
        scored: list[tuple[int, float]] = []
        for index in range(len(self._documents)):
            score = 0.0
            for term in terms:
                weight = self.tfidf(term, index)
                if term in self._metadata_terms[index]:
                    weight *= METADATA_BOOST
                score += weight
            if score > 0:
                scored.append((index, score))
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            SearchResult(
                document=self._documents[index],
                score=score,
                search_type=SearchType.KEYWORD,
                keyword_score=score,
            )
            for index, score in scored[:k]
        ]


__all__ = ["KeywordIndex", "enriched_text"]
