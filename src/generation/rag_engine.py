"""End-to-end RAG engine.

Orchestrates retrieval → context formatting → intent-aware prompt → LLM
generation → conversation memory. This is the main entry point for answering
questions about the résumé owner, and for adding documents to the index.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.generation.llm_backend_base import GenerationConfig, GenerationResult, LLMBackend
from src.generation.memory import ConversationMemory
from src.ingestion.chunking import chunk_document
from src.ingestion.embeddings import EmbeddingGenerator
from src.retrieval.vector_retriever import RetrievalResult, VectorRetriever
from src.storage.chroma_store import ChromaStore

logger = logging.getLogger(__name__)

GREETING = "greeting"
ENDING = "ending"
CONTACT = "contact"
GENERAL = "general"
QUESTION = "question"

_GREETING_RE = re.compile(
    r"^(hi|hello|hey|good (morning|afternoon|evening)|what'?s up|how are you|yo|sup|howdy|hiya)[!. ]*$",
    re.IGNORECASE,
)
_ENDING_RE = re.compile(
    r"^(thanks?|thank you|ok|okay|alright|cool|nice|no|nope|i'?m good|that'?s all|bye|goodbye|"
    r"see you|ttyl|talk to you later)[!. ]*$",
    re.IGNORECASE,
)
_CONTACT_RE = re.compile(
    r"\b(contact|email|phone|call|reach|linkedin|get in touch|reach out|mobile|social|profiles?|connect)\b",
    re.IGNORECASE,
)
_GENERAL_RE = re.compile(r"tell me about|who are you|introduce yourself", re.IGNORECASE)

QUOTA_FALLBACK = (
    "I'm currently experiencing high usage and cannot process your request right now. "
    "Please try again in a few moments."
)


@dataclass
class RAGResponse:
    """Full RAG response with answer, sources, and metadata."""

    answer: str
    sources: list[dict]
    model: str
    intent: str = QUESTION
    usage: dict = field(default_factory=dict)


def detect_intent(message: str) -> str:
    """Classify the user message so the prompt can match its tone."""
    text = message.strip()
    if _ENDING_RE.match(text):
        return ENDING
    if _GREETING_RE.match(text):
        return GREETING
    if _CONTACT_RE.search(text):
        return CONTACT
    if _GENERAL_RE.search(text):
        return GENERAL
    return QUESTION


def format_context(results: list[RetrievalResult]) -> str:
    """Format retrieval results into a context block for the LLM prompt."""
    if not results:
        return "No relevant information found."

    blocks = []
    for r in results:
        title = r.metadata.get("title") or r.metadata.get("category") or "document"
        blocks.append(f"[{title}]\n{r.text}")
    return "\n\n".join(blocks)


def format_history(history: list[tuple[str, str]]) -> str:
    if not history:
        return "(no previous messages)"
    return "\n".join(
        f"{'User' if role == 'user' else 'Assistant'}: {content}" for role, content in history
    )


def build_prompt(
    message: str,
    context: str,
    history: str,
    intent: str,
    owner_name: str,
    contact_lines: list[str] | None = None,
) -> str:
    """Build the user prompt for the detected intent."""
    header = (
        f"You are {owner_name}'s portfolio chatbot with a friendly, conversational "
        f"personality. Speak in first person as {owner_name}. Do not use bullet "
        f"points or asterisks; write natural sentences."
    )

    if intent == ENDING:
        instructions = (
            "The user seems to be wrapping up the conversation. Respond warmly and "
            "briefly, offer to help again later, and do not push for more questions."
        )
        return f"{header}\n\nCONVERSATION HISTORY:\n{history}\n\nUSER: {message}\n\n{instructions}\n\nRESPONSE:"

    if intent == GREETING:
        instructions = (
            "The user greeted you. Reply with a short, casual greeting (at most two "
            "sentences) and mention you can answer questions about background, skills "
            "and projects."
        )
        return f"{header}\n\nCONVERSATION HISTORY:\n{history}\n\nUSER: {message}\n\n{instructions}\n\nRESPONSE:"

    if intent == CONTACT and contact_lines:
        details = "\n".join(contact_lines)
        instructions = (
            "The user wants contact information. Share the details below naturally "
            "in a sentence or two and encourage them to reach out."
        )
        return (
            f"{header}\n\nCONTACT INFORMATION:\n{details}\n\nCONVERSATION HISTORY:\n{history}"
            f"\n\nUSER: {message}\n\n{instructions}\n\nRESPONSE:"
        )

    if intent == GENERAL:
        instructions = (
            "Give a brief, friendly introduction in two or three sentences, mentioning "
            "two or three highlights from the context. Keep it conversational."
        )
    else:
        instructions = (
            "Answer the question using only the context and conversation history. "
            "Keep it concise. If the context does not cover it, say you don't have "
            "that information."
        )
    return (
        f"{header}\n\nRELEVANT CONTEXT:\n{context}\n\nCONVERSATION HISTORY:\n{history}"
        f"\n\nUSER QUESTION: {message}\n\n{instructions}\n\nRESPONSE:"
    )


class RAGEngine:
    """Orchestrates retrieval and generation for résumé chat.

    Usage:
        engine = RAGEngine(retriever, llm_backend)
        response = engine.query("What projects have you built?", session_key="1.2.3.4:curl")
        print(response.answer)
    """

    def __init__(
        self,
        retriever: VectorRetriever,
        llm_backend: LLMBackend,
        config: GenerationConfig | None = None,
        memory: ConversationMemory | None = None,
        owner_name: str = "the candidate",
        contact_lines: list[str] | None = None,
        min_score: float = 0.3,
    ):
        self.retriever = retriever
        self.llm = llm_backend
        self.config = config or GenerationConfig()
        self.memory = memory or ConversationMemory()
        self.owner_name = owner_name
        self.contact_lines = contact_lines or []
        self.min_score = min_score

    def query(
        self,
        question: str,
        session_key: str = "anonymous",
        top_k: int = 3,
    ) -> RAGResponse:
        """Answer a question using retrieval-augmented generation.

        Args:
            question: The user's natural-language question.
            session_key: Client key used to look up conversation history.
            top_k: Number of chunks to retrieve as context.

        Returns:
            RAGResponse with the answer, sources, and metadata.

        Raises:
            LLMQuotaError: The LLM provider refused the call on quota grounds.
        """
        logger.info("RAG query: %r (top_k=%d)", question[:100], top_k)

        intent = detect_intent(question)

        results: list[RetrievalResult] = []
        if intent in (GENERAL, QUESTION):
            results = [
                r for r in self.retriever.search(query=question, top_k=top_k)
                if r.score > self.min_score
            ]
            logger.info("Retrieved %d chunks above score %.2f", len(results), self.min_score)

        history = self.memory.history(session_key)
        prompt = build_prompt(
            message=question,
            context=format_context(results),
            history=format_history(history),
            intent=intent,
            owner_name=self.owner_name,
            contact_lines=self.contact_lines,
        )
        gen_result: GenerationResult = self.llm.generate(
            prompt=prompt,
            system_prompt=self.config.system_prompt,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

        self.memory.append(session_key, question, gen_result.answer)

        sources = [
            {
                "id": r.chunk_id,
                "score": round(r.score, 4),
                "title": r.metadata.get("title"),
                "category": r.metadata.get("category"),
            }
            for r in results
        ]

        return RAGResponse(
            answer=gen_result.answer,
            sources=sources,
            model=gen_result.model,
            intent=intent,
            usage=gen_result.usage,
        )

    def search(self, query: str, top_k: int = 5) -> list[RetrievalResult]:
        """Raw similarity search, no generation."""
        return self.retriever.search(query=query, top_k=top_k)

    def add_document(self, text: str, metadata: dict | None = None) -> list[str]:
        """Chunk, embed and store a single document. Returns chunk IDs."""
        return self.add_documents([{**(metadata or {}), "text": text}])

    def add_documents(self, documents: list[dict]) -> list[str]:
        """Chunk, embed and store several documents in one batch.

        Each document dict needs ``text``; other keys become metadata.
        """
        upload_date = datetime.now(timezone.utc).isoformat()
        chunks = []
        for doc in documents:
            metadata = {k: v for k, v in doc.items() if k != "text" and v is not None}
            metadata.setdefault("document_type", "text")
            metadata.setdefault("upload_date", upload_date)
            chunks.extend(chunk_document(doc["text"], metadata))

        ids = self.embedder.embed_and_store(chunks, self.store)
        logger.info("Indexed %d documents as %d chunks", len(documents), len(ids))
        return ids

    @property
    def embedder(self) -> EmbeddingGenerator:
        return self.retriever.embedding_generator

    @property
    def store(self) -> ChromaStore:
        return self.retriever.chroma_store
