"""Retrieval module — dense vector search over résumé chunks."""

from src.retrieval.vector_retriever import RetrievalResult, VectorRetriever

__all__ = [
    "RetrievalResult",
    "VectorRetriever",
]
