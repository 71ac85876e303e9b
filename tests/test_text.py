from __future__ import annotations

from admissions_rag.text import extract_keywords, jaccard, tokenize


def test_tokenize_lowercases_strips_punctuation_and_short_tokens():
    assert tokenize("What are the Admission-Requirements, for IT?") == [
        "what",
        "are",
        "the",
        "admission",
        "requirements",
        "for",
    ]


def test_tokenize_keeps_arabic_words():
    assert tokenize("ما هي رسوم طب الأسنان؟") == ["رسوم", "الأسنان"]


def test_tokenize_is_idempotent():
    text = "Tuition: 10,000,000 IQD per year (morning shift)!"
    once = tokenize(text)
    assert tokenize(" ".join(once)) == once


def test_tokenize_empty():
    assert tokenize("") == []
    assert tokenize("a b ?!") == []


def test_extract_keywords_orders_by_frequency_then_first_seen():
    keywords = extract_keywords("fees dentistry fees pharmacy dentistry fees law", top_k=3)
    assert [(k.word, k.score) for k in keywords] == [("fees", 3), ("dentistry", 2), ("pharmacy", 1)]


def test_extract_keywords_empty_and_zero_k():
    assert extract_keywords("") == []
    assert extract_keywords("some words here", top_k=0) == []


def test_jaccard():
    assert jaccard({"a", "b"}, {"b", "c"}) == 1 / 3
    assert jaccard(set(), set()) == 0.0
