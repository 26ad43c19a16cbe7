"""Tests for vector retrieval and embedding storage.

Uses a real temporary ChromaDB with hand-made vectors and a mocked
embedding model, so no model download is needed.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from src.ingestion.embeddings import EmbeddingGenerator
from src.retrieval.vector_retriever import VectorRetriever
from src.storage.chroma_store import ChromaStore


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def chroma(tmp_path) -> ChromaStore:
    store = ChromaStore(tmp_path / "chroma")
    store.add_embeddings(
        ids=["exp-1", "proj-1", "hobby-1"],
        embeddings=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]],
        documents=[
            "Five years of backend engineering.",
            "Built a RAG chatbot for my résumé.",
            "Plays chess on weekends.",
        ],
        metadatas=[
            {"category": "experience", "chunk_index": 0},
            {"category": "projects", "chunk_index": 0},
            {"category": "hobbies", "chunk_index": 0},
        ],
    )
    return store


@pytest.fixture
def mock_embedding_generator():
    """Embeds every query as the 'projects' direction."""
    gen = MagicMock(spec=EmbeddingGenerator)
    gen.encode_query.return_value = [0.1, 0.9, 0.0]
    return gen


# ── Vector Retriever ─────────────────────────────────────────────────


class TestVectorRetriever:
    def test_search_ranking(self, chroma, mock_embedding_generator):
        vr = VectorRetriever(chroma, mock_embedding_generator)
        results = vr.search("What have you built?", top_k=3)
        assert results[0].chunk_id == "proj-1"
        assert results[0].text == "Built a RAG chatbot for my résumé."
        assert results[0].metadata["category"] == "projects"

    def test_scores_descending_and_similarity_based(self, chroma, mock_embedding_generator):
        vr = VectorRetriever(chroma, mock_embedding_generator)
        results = vr.search("anything", top_k=3)
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert scores[0] > 0.9

    def test_top_k(self, chroma, mock_embedding_generator):
        vr = VectorRetriever(chroma, mock_embedding_generator)
        assert len(vr.search("anything", top_k=1)) == 1

    def test_where_filter(self, chroma, mock_embedding_generator):
        vr = VectorRetriever(chroma, mock_embedding_generator)
        results = vr.search("anything", top_k=3, where={"category": "hobbies"})
        assert [r.chunk_id for r in results] == ["hobby-1"]

    def test_empty_store(self, tmp_path, mock_embedding_generator):
        vr = VectorRetriever(ChromaStore(tmp_path / "empty"), mock_embedding_generator)
        assert vr.search("anything") == []
        mock_embedding_generator.encode_query.assert_not_called()


# ── Embedding storage ────────────────────────────────────────────────


class TestEmbedAndStore:
    @pytest.fixture
    def generator(self):
        gen = EmbeddingGenerator.__new__(EmbeddingGenerator)
        gen.model_name = "mock-model"
        gen.model = MagicMock()
        gen.model.encode.side_effect = lambda texts, **kw: np.ones((len(texts), 3))
        return gen

    def test_stores_chunks_with_metadata(self, generator, tmp_path):
        store = ChromaStore(tmp_path / "chroma")
        chunks = [
            {"chunk_text": "Led a platform team.", "chunk_index": 0, "category": "experience",
             "title": None, "unrelated": "dropped"},
            {"chunk_text": "Wrote a compiler.", "chunk_index": 1, "category": "projects"},
        ]
        ids = generator.embed_and_store(chunks, store)

        assert len(ids) == 2
        assert all(i.startswith("doc-") for i in ids)
        assert store.count() == 2
        stored = store.collection.get(ids=[ids[0]], include=["metadatas", "documents"])
        assert stored["documents"][0] == "Led a platform team."
        assert stored["metadatas"][0] == {"chunk_index": 0, "category": "experience"}

    def test_explicit_ids_are_kept(self, generator, tmp_path):
        store = ChromaStore(tmp_path / "chroma")
        ids = generator.embed_and_store([{"id": "fixed", "chunk_text": "x" * 60}], store)
        assert ids == ["fixed"]

    def test_no_chunks(self, generator, tmp_path):
        assert generator.embed_and_store([], ChromaStore(tmp_path / "chroma")) == []
