"""Embedding generation using sentence-transformers.

Encodes chunk texts into vectors and stores them in ChromaDB.
"""

import logging
import uuid

from sentence_transformers import SentenceTransformer
from tqdm import tqdm

from src.storage.chroma_store import ChromaStore

logger = logging.getLogger(__name__)

# Metadata keys copied from chunk dicts into ChromaDB
METADATA_KEYS = (
    "category",
    "title",
    "source",
    "file_name",
    "page_number",
    "chunk_index",
    "document_type",
    "upload_date",
    "file_size",
)


class EmbeddingGenerator:
    """Generate embeddings for chunks and store in ChromaDB."""

    def __init__(self, model_name: str = "BAAI/bge-base-en-v1.5"):
        logger.info("Loading embedding model: %s", model_name)
        self.model = SentenceTransformer(model_name)
        self.model_name = model_name
        logger.info("Embedding model loaded (dim=%d)", self.model.get_sentence_embedding_dimension())

    def encode(self, texts: list[str], batch_size: int = 64) -> list[list[float]]:
        """Encode texts into embedding vectors.

        Args:
            texts: List of strings to encode.
            batch_size: Batch size for encoding.

        Returns:
            List of embedding vectors as lists of floats.
        """
        embeddings = self.model.encode(
            texts,
            batch_size=batch_size,
            show_progress_bar=len(texts) > batch_size,
            normalize_embeddings=True,
        )
        return embeddings.tolist()

    def encode_query(self, query: str) -> list[float]:
        """Encode a single query string."""
        embedding = self.model.encode(query, normalize_embeddings=True)
        return embedding.tolist()

    def embed_and_store(
        self,
        chunks: list[dict],
        chroma_store: ChromaStore,
        batch_size: int = 64,
    ) -> list[str]:
        """Encode chunks and store embeddings in ChromaDB.

        Args:
            chunks: Chunk dicts from the chunking module. Each must have
                    ``chunk_text``; an ``id`` is generated when missing.
            chroma_store: ChromaStore instance.
            batch_size: Batch size for encoding.

        Returns:
            The IDs of the stored chunks.
        """
        if not chunks:
            logger.warning("No chunks to embed")
            return []

        texts = [c["chunk_text"] for c in chunks]

        logger.info("Encoding %d chunks with %s", len(texts), self.model_name)
        all_embeddings = self.encode(texts, batch_size=batch_size)

        ids = []
        metadatas = []
        for chunk in tqdm(chunks, desc="Preparing ChromaDB data", disable=len(chunks) < 100):
            ids.append(str(chunk.get("id") or f"doc-{uuid.uuid4().hex[:12]}"))
            metadatas.append({
                key: chunk[key]
                for key in METADATA_KEYS
                if chunk.get(key) is not None
            })

        chroma_store.add_embeddings(
            ids=ids,
            embeddings=all_embeddings,
            documents=texts,
            metadatas=metadatas,
        )

        logger.info("Stored %d embeddings in ChromaDB", len(ids))
        return ids
