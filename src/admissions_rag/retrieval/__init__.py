"""Retrieval components."""

from .keyword import KeywordIndex
from .reranker import Reranker, RerankWeights
from .service import HybridRetriever, RetrievalConfig, Retriever, fuse

__all__ = [
    "HybridRetriever",
    "KeywordIndex",
    "RerankWeights",
    "Reranker",
    "RetrievalConfig",
    "Retriever",
    "fuse",
]
