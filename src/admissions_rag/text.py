"""Tokenization and keyword extraction shared by every component."""

from __future__ import annotations

import re
from collections import Counter

from admissions_rag.models import Keyword

_NON_WORD = re.compile(r"[^\w\s]")
MIN_TOKEN_LENGTH = 3


def tokenize(text: str) -> list[str]:
    """Lower-case, strip punctuation and drop tokens of two characters or fewer."""

    if not text:
        return []
    cleaned = _NON_WORD.sub(" ", text.lower())
    return [token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH]


def extract_keywords(text: str, top_k: int = 10) -> list[Keyword]:
    """Return the `top_k` most frequent tokens; ties keep first-seen order."""

    if top_k <= 0:
        return []
    counts = Counter(tokenize(text))
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [Keyword(word=word, score=count) for word, count in ranked[:top_k]]


def jaccard(left: set[str], right: set[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


__all__ = ["extract_keywords", "jaccard", "tokenize"]
