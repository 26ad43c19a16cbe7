"""Tests for the generation module.

Covers LLM backend abstraction, Ollama/Groq backends (including quota
signalling), intent detection, prompt building, conversation memory and the
full RAG engine. All tests use mocks — no model downloads, API calls, or
running servers required.
"""

from unittest.mock import MagicMock, patch

import groq
import httpx
import pytest

from src.generation.groq_backend import GroqBackend
from src.generation.llm_backend_base import (
    GenerationConfig,
    GenerationResult,
    LLMBackend,
    LLMQuotaError,
)
from src.generation.memory import ConversationMemory
from src.generation.ollama_backend import OllamaBackend
from src.generation.rag_engine import (
    CONTACT,
    ENDING,
    GENERAL,
    GREETING,
    QUESTION,
    RAGEngine,
    RAGResponse,
    build_prompt,
    detect_intent,
    format_context,
    format_history,
)
from src.retrieval.vector_retriever import RetrievalResult, VectorRetriever


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def sample_retrieval_results() -> list[RetrievalResult]:
    return [
        RetrievalResult(
            chunk_id="doc-1",
            text="Led the migration of the billing service to Kubernetes.",
            score=0.81,
            metadata={"title": "Experience", "category": "experience"},
        ),
        RetrievalResult(
            chunk_id="doc-2",
            text="Built a résumé chatbot using FastAPI and ChromaDB.",
            score=0.64,
            metadata={"category": "projects"},
        ),
        RetrievalResult(
            chunk_id="doc-3",
            text="Enjoys hiking.",
            score=0.12,
            metadata={},
        ),
    ]


@pytest.fixture
def mock_llm_backend():
    """A mock LLM backend that returns a canned response."""
    backend = MagicMock(spec=LLMBackend)
    backend.backend_name = "mock"
    backend.generate.return_value = GenerationResult(
        answer="I led a Kubernetes migration.",
        model="mock-model",
        usage={"prompt_tokens": 100, "completion_tokens": 50},
    )
    backend.is_available.return_value = True
    return backend


@pytest.fixture
def mock_retriever(sample_retrieval_results):
    retriever = MagicMock(spec=VectorRetriever)
    retriever.search.return_value = sample_retrieval_results
    retriever.embedding_generator = MagicMock()
    retriever.chroma_store = MagicMock()
    return retriever


@pytest.fixture
def engine(mock_retriever, mock_llm_backend, clock):
    return RAGEngine(
        mock_retriever,
        mock_llm_backend,
        memory=ConversationMemory(clock=clock),
        owner_name="Sam",
        contact_lines=["Email: sam@example.com"],
    )


# ── GenerationConfig ─────────────────────────────────────────────────


class TestGenerationConfig:
    def test_defaults(self):
        cfg = GenerationConfig()
        assert cfg.model == ""
        assert cfg.max_tokens == 400
        assert cfg.temperature == 0.9
        assert "résumé" in cfg.system_prompt

    def test_custom_values(self):
        cfg = GenerationConfig(model="qwen2.5:14b", max_tokens=2048, temperature=0.5)
        assert cfg.model == "qwen2.5:14b"
        assert cfg.max_tokens == 2048
        assert cfg.temperature == 0.5


# ── Intent detection ─────────────────────────────────────────────────


class TestDetectIntent:
    @pytest.mark.parametrize("message,intent", [
        ("hi", GREETING),
        ("Hello!", GREETING),
        ("good morning", GREETING),
        ("thanks", ENDING),
        ("Okay!", ENDING),
        ("That's all.", ENDING),
        ("How can I contact you?", CONTACT),
        ("What's your LinkedIn?", CONTACT),
        ("Tell me about yourself", GENERAL),
        ("Who are you?", GENERAL),
        ("What languages do you know?", QUESTION),
    ])
    def test_intents(self, message, intent):
        assert detect_intent(message) == intent


# ── Context and prompt formatting ────────────────────────────────────


class TestFormatting:
    def test_empty_context(self):
        assert format_context([]) == "No relevant information found."

    def test_context_uses_title_or_category(self, sample_retrieval_results):
        context = format_context(sample_retrieval_results[:2])
        assert "[Experience]" in context
        assert "[projects]" in context
        assert "Kubernetes" in context

    def test_empty_history(self):
        assert format_history([]) == "(no previous messages)"

    def test_history_roles(self):
        text = format_history([("user", "hi"), ("assistant", "hello")])
        assert text == "User: hi\nAssistant: hello"

    def test_question_prompt_has_context_and_question(self):
        prompt = build_prompt("What is your stack?", "CTX", "HIST", QUESTION, "Sam")
        assert "CTX" in prompt
        assert "HIST" in prompt
        assert "What is your stack?" in prompt
        assert "Sam" in prompt

    def test_greeting_prompt_skips_context(self):
        prompt = build_prompt("hi", "CTX", "HIST", GREETING, "Sam")
        assert "CTX" not in prompt
        assert "greeted" in prompt

    def test_contact_prompt_lists_details(self):
        prompt = build_prompt("email?", "CTX", "HIST", CONTACT, "Sam", ["Email: sam@example.com"])
        assert "sam@example.com" in prompt

    def test_contact_without_details_falls_back_to_question(self):
        prompt = build_prompt("email?", "CTX", "HIST", CONTACT, "Sam", [])
        assert "RELEVANT CONTEXT" in prompt


# ── Conversation memory ──────────────────────────────────────────────


class TestConversationMemory:
    def test_append_and_history(self, clock):
        memory = ConversationMemory(clock=clock)
        memory.append("k", "hi", "hello")
        assert memory.history("k") == [("user", "hi"), ("assistant", "hello")]

    def test_history_is_bounded(self, clock):
        memory = ConversationMemory(max_messages=4, clock=clock)
        for i in range(5):
            memory.append("k", f"q{i}", f"a{i}")
        history = memory.history("k")
        assert len(history) == 4
        assert history[0] == ("user", "q3")

    def test_expired_history_is_empty(self, clock):
        memory = ConversationMemory(ttl_seconds=3600, clock=clock)
        memory.append("k", "hi", "hello")
        clock.advance(3601)
        assert memory.history("k") == []
        memory.append("k", "again", "hi again")
        assert memory.history("k") == [("user", "again"), ("assistant", "hi again")]

    def test_clear(self, clock):
        memory = ConversationMemory(clock=clock)
        memory.append("k", "hi", "hello")
        memory.clear("k")
        assert memory.history("k") == []
        assert len(memory) == 0

    def test_sweep(self, clock):
        memory = ConversationMemory(ttl_seconds=60, clock=clock)
        memory.append("old", "hi", "hello")
        clock.advance(30)
        memory.append("new", "hi", "hello")
        clock.advance(31)
        assert memory.sweep() == 1
        assert len(memory) == 1


# ── OllamaBackend ────────────────────────────────────────────────────


class TestOllamaBackend:
    def test_backend_name(self):
        assert OllamaBackend().backend_name == "ollama"

    def test_host_trailing_slash_stripped(self):
        b = OllamaBackend(host="http://localhost:11434/")
        assert b.host == "http://localhost:11434"

    def test_empty_model_uses_default(self):
        assert OllamaBackend(model="").model == "qwen2.5:7b"

    @patch("src.generation.ollama_backend.requests.get")
    def test_is_available_success(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        mock_get.return_value.json.return_value = {"models": [{"name": "qwen2.5:7b"}]}
        backend = OllamaBackend()
        assert backend.is_available() is True
        mock_get.assert_called_once()

    @patch("src.generation.ollama_backend.requests.get")
    def test_is_available_model_missing(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        mock_get.return_value.json.return_value = {"models": [{"name": "llama3:latest"}]}
        assert OllamaBackend().is_available() is False
        assert OllamaBackend(model="llama3").is_available() is True

    @patch("src.generation.ollama_backend.requests.get")
    def test_is_available_connection_error(self, mock_get):
        import requests

        mock_get.side_effect = requests.ConnectionError("refused")
        backend = OllamaBackend()
        assert backend.is_available() is False

    @patch("src.generation.ollama_backend.requests.post")
    def test_generate_basic(self, mock_post):
        mock_resp = MagicMock(status_code=200)
        mock_resp.json.return_value = {
            "message": {"content": "Generated answer"},
            "eval_count": 20,
            "prompt_eval_count": 50,
        }
        mock_post.return_value = mock_resp

        backend = OllamaBackend(model="test-model")
        result = backend.generate("What is your stack?", system_prompt="Be helpful.")

        assert result.answer == "Generated answer"
        assert result.model == "test-model"
        assert result.usage["completion_tokens"] == 20
        assert result.usage["prompt_tokens"] == 50

        payload = mock_post.call_args.kwargs["json"]
        assert payload["model"] == "test-model"
        assert len(payload["messages"]) == 2  # system + user
        assert payload["messages"][0]["role"] == "system"
        assert payload["stream"] is False
        assert payload["options"]["num_predict"] == 400

    @pytest.mark.parametrize("status", [429, 503])
    @patch("src.generation.ollama_backend.requests.post")
    def test_generate_quota(self, mock_post, status):
        mock_post.return_value = MagicMock(status_code=status)
        with pytest.raises(LLMQuotaError):
            OllamaBackend().generate("question")

    @patch("src.generation.ollama_backend.requests.post")
    def test_generate_connection_error(self, mock_post):
        import requests

        mock_post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(RuntimeError, match="unreachable"):
            OllamaBackend().generate("question")


# ── GroqBackend ──────────────────────────────────────────────────────


def _groq_response(content="Groq answer", usage=True):
    mock_message = MagicMock()
    mock_message.content = content
    mock_choice = MagicMock()
    mock_choice.message = mock_message
    mock_response = MagicMock()
    mock_response.choices = [mock_choice]
    if usage:
        mock_response.usage = MagicMock(prompt_tokens=80, completion_tokens=30, total_tokens=110)
    else:
        mock_response.usage = None
    return mock_response


class TestGroqBackend:
    def test_backend_name(self):
        with patch("src.generation.groq_backend.Groq"):
            backend = GroqBackend(api_key="test-key")
            assert backend.backend_name == "groq"

    def test_missing_api_key_raises(self):
        with pytest.raises(ValueError, match="API key"):
            GroqBackend(api_key="")

    @patch("src.generation.groq_backend.Groq")
    def test_is_available_failure(self, MockGroq):
        mock_client = MagicMock()
        mock_client.models.list.side_effect = groq.APIConnectionError(
            request=httpx.Request("GET", "https://api.groq.com/openai/v1/models")
        )
        MockGroq.return_value = mock_client
        backend = GroqBackend(api_key="bad-key")
        assert backend.is_available() is False

    @patch("src.generation.groq_backend.Groq")
    def test_generate_basic(self, MockGroq):
        mock_client = MagicMock()
        MockGroq.return_value = mock_client
        mock_client.chat.completions.create.return_value = _groq_response()

        backend = GroqBackend(api_key="test-key", model="llama-3.3-70b-versatile")
        result = backend.generate("What is NLP?", system_prompt="Be concise.")

        assert result.answer == "Groq answer"
        assert result.model == "llama-3.3-70b-versatile"
        assert result.usage["total_tokens"] == 110
        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert len(call_kwargs["messages"]) == 2

    @patch("src.generation.groq_backend.Groq")
    def test_generate_no_usage(self, MockGroq):
        mock_client = MagicMock()
        MockGroq.return_value = mock_client
        mock_client.chat.completions.create.return_value = _groq_response("Answer", usage=False)

        result = GroqBackend(api_key="key").generate("question")
        assert result.usage == {}

    @patch("src.generation.groq_backend.Groq")
    def test_rate_limit_becomes_quota_error(self, MockGroq):
        mock_client = MagicMock()
        MockGroq.return_value = mock_client
        request = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
        mock_client.chat.completions.create.side_effect = groq.RateLimitError(
            "rate limited", response=httpx.Response(429, request=request), body=None,
        )

        with pytest.raises(LLMQuotaError):
            GroqBackend(api_key="key").generate("question")


# ── RAGEngine ────────────────────────────────────────────────────────


class TestRAGEngine:
    def test_query_returns_rag_response(self, engine):
        response = engine.query("What infrastructure work have you done?", session_key="k")
        assert isinstance(response, RAGResponse)
        assert response.answer == "I led a Kubernetes migration."
        assert response.model == "mock-model"
        assert response.intent == QUESTION

    def test_low_score_results_filtered(self, engine):
        response = engine.query("What infrastructure work have you done?", session_key="k")
        assert [s["id"] for s in response.sources] == ["doc-1", "doc-2"]

    def test_query_passes_top_k(self, engine, mock_retriever):
        engine.query("What infrastructure work have you done?", top_k=3)
        mock_retriever.search.assert_called_once_with(
            query="What infrastructure work have you done?", top_k=3
        )

    def test_greeting_skips_retrieval(self, engine, mock_retriever):
        response = engine.query("hello")
        assert response.intent == GREETING
        mock_retriever.search.assert_not_called()

    def test_contact_details_in_prompt(self, engine, mock_llm_backend):
        engine.query("How can I contact you?")
        prompt = mock_llm_backend.generate.call_args.kwargs["prompt"]
        assert "sam@example.com" in prompt

    def test_query_uses_generation_config(self, mock_retriever, mock_llm_backend):
        config = GenerationConfig(max_tokens=2048, temperature=0.5, system_prompt="Custom prompt.")
        engine = RAGEngine(mock_retriever, mock_llm_backend, config=config)
        engine.query("What is your stack?")

        call_kwargs = mock_llm_backend.generate.call_args.kwargs
        assert call_kwargs["max_tokens"] == 2048
        assert call_kwargs["temperature"] == 0.5
        assert call_kwargs["system_prompt"] == "Custom prompt."

    def test_history_carried_between_turns(self, engine, mock_llm_backend):
        engine.query("What is your stack?", session_key="k")
        engine.query("And before that?", session_key="k")
        prompt = mock_llm_backend.generate.call_args.kwargs["prompt"]
        assert "User: What is your stack?" in prompt
        assert "Assistant: I led a Kubernetes migration." in prompt

    def test_history_is_per_session(self, engine, mock_llm_backend):
        engine.query("What is your stack?", session_key="a")
        engine.query("And before that?", session_key="b")
        prompt = mock_llm_backend.generate.call_args.kwargs["prompt"]
        assert "What is your stack?" not in prompt

    def test_quota_error_propagates_without_memory_update(self, engine, mock_llm_backend):
        mock_llm_backend.generate.side_effect = LLMQuotaError("quota")
        with pytest.raises(LLMQuotaError):
            engine.query("What is your stack?", session_key="k")
        assert engine.memory.history("k") == []

    def test_add_document_chunks_and_stores(self, engine, mock_retriever):
        mock_retriever.embedding_generator.embed_and_store.return_value = ["doc-a"]

        ids = engine.add_document("Some résumé text. " * 10, {"category": "experience"})

        assert ids == ["doc-a"]
        chunks, store = mock_retriever.embedding_generator.embed_and_store.call_args.args
        assert store is mock_retriever.chroma_store
        assert chunks[0]["category"] == "experience"
        assert chunks[0]["document_type"] == "text"
        assert "upload_date" in chunks[0]

    def test_add_documents_batches(self, engine, mock_retriever):
        mock_retriever.embedding_generator.embed_and_store.return_value = ["a", "b"]
        engine.add_documents([
            {"text": "First document about backend work and services."},
            {"text": "Second document about data pipelines and tooling.", "title": "Data"},
        ])
        chunks, _ = mock_retriever.embedding_generator.embed_and_store.call_args.args
        assert len(chunks) == 2
        assert chunks[1]["title"] == "Data"
        assert "text" not in chunks[0]
