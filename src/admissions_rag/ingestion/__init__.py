"""Knowledge-base ingestion pipeline."""

from .processor import chunk_text, enhance_document
from .service import (
    IngestionConfig,
    KnowledgeBaseBuilder,
    build_documents,
    load_knowledge_base_file,
)

__all__ = [
    "IngestionConfig",
    "KnowledgeBaseBuilder",
    "build_documents",
    "chunk_text",
    "enhance_document",
    "load_knowledge_base_file",
]
