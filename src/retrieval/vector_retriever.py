"""Vector retrieval via ChromaDB cosine similarity.

Thin wrapper that encodes a query and returns scored chunks
from the résumé collection.
"""

import logging
from dataclasses import dataclass, field

from src.ingestion.embeddings import EmbeddingGenerator
from src.storage.chroma_store import ChromaStore

logger = logging.getLogger(__name__)


@dataclass
class RetrievalResult:
    """A single retrieved chunk with its similarity score."""

    chunk_id: str
    text: str
    score: float
    metadata: dict = field(default_factory=dict)


class VectorRetriever:
    """Dense vector retriever using ChromaDB."""

    def __init__(
        self,
        chroma_store: ChromaStore,
        embedding_generator: EmbeddingGenerator,
    ):
        self.chroma_store = chroma_store
        self.embedding_generator = embedding_generator

    def search(
        self,
        query: str,
        top_k: int = 5,
        where: dict | None = None,
    ) -> list[RetrievalResult]:
        """Search by embedding similarity.

        Args:
            query: Raw query string.
            top_k: Maximum results to return.
            where: Optional ChromaDB metadata filter.

        Returns:
            RetrievalResults sorted by descending score, where
            score = 1 - cosine_distance (higher = more similar).
        """
        if self.chroma_store.count() == 0:
            logger.warning("Vector store is empty — nothing to retrieve")
            return []

        query_embedding = self.embedding_generator.encode_query(query)
        results = self.chroma_store.query(
            query_embedding=query_embedding,
            n_results=top_k,
            where=where,
        )

        ids = results["ids"][0]
        distances = results["distances"][0]
        documents = results["documents"][0]
        metadatas = results["metadatas"][0]

        scored = [
            RetrievalResult(
                chunk_id=ids[i],
                text=documents[i] or "",
                score=1.0 - distances[i],
                metadata=metadatas[i] or {},
            )
            for i in range(len(ids))
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored
