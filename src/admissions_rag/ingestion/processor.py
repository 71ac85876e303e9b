"""Sentence chunking and document enrichment."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Mapping

from admissions_rag.models import Document, utcnow
from admissions_rag.text import extract_keywords

DOCUMENT_KEYWORDS = 15
CHUNK_MAX_LENGTH = 500
CHUNK_OVERLAP = 50

_SENTENCE_END = re.compile(r"[.!?]+")


def chunk_text(text: str, max_length: int = CHUNK_MAX_LENGTH, overlap: int = CHUNK_OVERLAP) -> list[str]:
    """Pack sentences into chunks of at most `max_length` characters.

    A sentence longer than `max_length` is kept whole in its own chunk. Each
    chunk after the first is prefixed with the last `overlap // 2` words of the
    previous chunk so that boundaries keep some context.
    """

    sentences = [sentence.strip() for sentence in _SENTENCE_END.split(text)]
    sentences = [sentence for sentence in sentences if sentence]

    packed: list[str] = []
    current = ""
    for sentence in sentences:
        if len(current) + len(sentence) <= max_length:
            current += sentence + ". "
            continue
        if current.strip():
            packed.append(current.strip())
        current = sentence + ". "
    if current.strip():
        packed.append(current.strip())

    carry = overlap // 2
    if carry <= 0:
        return packed

    chunks: list[str] = []
    for index, chunk in enumerate(packed):
        if index > 0:
            previous_words = packed[index - 1].split(" ")[-carry:]
            chunk = " ".join(previous_words) + " " + chunk
        chunks.append(chunk)
    return chunks


def enhance_document(doc: Document, metadata: Mapping[str, Any] | None = None) -> Document:
    """Attach keywords, chunks and word count; merge any extra metadata."""

    merged = dict(doc.metadata)
    if metadata:
        merged.update(metadata)
    return replace(
        doc,
        metadata=merged,
        keywords=tuple(extract_keywords(doc.content, DOCUMENT_KEYWORDS)),
        chunks=tuple(chunk_text(doc.content)),
        word_count=len(doc.content.split(" ")) if doc.content else 0,
        enhanced_at=utcnow(),
    )
