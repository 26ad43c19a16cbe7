"""ChromaDB vector store for résumé chunks.

One persistent collection (``resume_chunks``, cosine space) holds every chunk
with its text, embedding and metadata. Embeddings are computed by
``EmbeddingGenerator``; this module only reads and writes the collection.
"""

import logging
from pathlib import Path

import chromadb

logger = logging.getLogger(__name__)


class ChromaStore:
    """Persistent ChromaDB collection of résumé and portfolio chunks."""

    COLLECTION_NAME = "resume_chunks"

    def __init__(self, persist_path: str | Path, collection_name: str | None = None):
        self.persist_path = str(persist_path)
        self.collection_name = collection_name or self.COLLECTION_NAME
        self._client = None
        self._collection = None

    @property
    def client(self) -> chromadb.ClientAPI:
        if self._client is None:
            self._client = chromadb.PersistentClient(path=self.persist_path)
        return self._client

    @property
    def collection(self) -> chromadb.Collection:
        if self._collection is None:
            self._collection = self.client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        return self._collection

    def add_embeddings(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict],
        batch_size: int = 500,
    ):
        """Upsert chunks in batches; re-adding an ID replaces the old chunk.

        ChromaDB rejects None metadata values, so callers drop them first.
        """
        if not (len(ids) == len(embeddings) == len(documents) == len(metadatas)):
            raise ValueError("ids, embeddings, documents and metadatas must have equal length")

        for i in range(0, len(ids), batch_size):
            end = min(i + batch_size, len(ids))
            self.collection.upsert(
                ids=ids[i:end],
                embeddings=embeddings[i:end],
                documents=documents[i:end],
                metadatas=metadatas[i:end],
            )
        logger.info("Upserted %d chunks into %s", len(ids), self.collection_name)

    def query(
        self,
        query_embedding: list[float],
        n_results: int = 5,
        where: dict | None = None,
    ) -> dict:
        """Nearest chunks to ``query_embedding``.

        Returns the raw ChromaDB result: ``ids``, ``documents``, ``metadatas``
        and ``distances``, each a one-element list of per-query lists.
        """
        kwargs = {
            "query_embeddings": [query_embedding],
            "n_results": n_results,
            "include": ["documents", "metadatas", "distances"],
        }
        if where:
            kwargs["where"] = where
        return self.collection.query(**kwargs)

    def delete_where(self, where: dict) -> int:
        """Delete every chunk matching a metadata filter. Returns the count."""
        matches = self.collection.get(where=where, include=[])
        ids = matches["ids"]
        if ids:
            self.collection.delete(ids=ids)
            logger.info("Deleted %d chunks matching %s", len(ids), where)
        return len(ids)

    def count(self) -> int:
        return self.collection.count()

    def reset(self):
        """Drop and recreate the collection."""
        try:
            self.client.delete_collection(self.collection_name)
        except Exception:
            pass  # Collection may not exist
        self._collection = None
        logger.info("ChromaDB collection %s reset", self.collection_name)
