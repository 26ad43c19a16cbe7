"""Ollama LLM backend.

Talks to a local or self-hosted Ollama server over its REST API
(``/api/chat`` for generation, ``/api/tags`` for health).
"""

import logging

import requests

from src.generation.llm_backend_base import GenerationResult, LLMBackend, LLMQuotaError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "qwen2.5:7b"

# Ollama answers these when it is overloaded or queue-limited
_QUOTA_STATUSES = frozenset({429, 503})


class OllamaBackend(LLMBackend):
    """LLM backend for an Ollama server."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = DEFAULT_MODEL,
        timeout: float = 120,
    ):
        self.host = host.rstrip("/")
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout

    @property
    def backend_name(self) -> str:
        return "ollama"

    def is_available(self) -> bool:
        """True when the server is up and the configured model has been pulled."""
        try:
            resp = requests.get(f"{self.host}/api/tags", timeout=5)
        except requests.RequestException:
            return False
        if resp.status_code != 200:
            return False
        names = {m.get("name", "") for m in resp.json().get("models", [])}
        if self.model not in names and f"{self.model}:latest" not in names:
            logger.warning("Ollama is up but model %s is not pulled", self.model)
            return False
        return True

    def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 400,
        temperature: float = 0.9,
    ) -> GenerationResult:
        """Generate a single non-streamed chat completion."""
        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})

        logger.info("Ollama request: model=%s, max_tokens=%d", self.model, max_tokens)

        try:
            resp = requests.post(
                f"{self.host}/api/chat",
                json={
                    "model": self.model,
                    "messages": messages,
                    "stream": False,
                    "options": {"num_predict": max_tokens, "temperature": temperature},
                },
                timeout=self.timeout,
            )
        except requests.ConnectionError as exc:
            logger.error("Ollama server unreachable at %s: %s", self.host, exc)
            raise RuntimeError(f"Ollama server unreachable at {self.host}") from exc
        except requests.RequestException as exc:
            logger.error("Ollama request failed: %s", exc)
            raise RuntimeError(f"Ollama request failed: {exc}") from exc

        if resp.status_code in _QUOTA_STATUSES:
            logger.warning("Ollama at %s is overloaded (HTTP %d)", self.host, resp.status_code)
            raise LLMQuotaError(f"Ollama at {self.host} returned {resp.status_code}")
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            logger.error("Ollama request failed: %s", exc)
            raise RuntimeError(f"Ollama request failed: {exc}") from exc

        data = resp.json()
        answer = data.get("message", {}).get("content", "")
        usage = {
            key: data[src]
            for key, src in (("prompt_tokens", "prompt_eval_count"), ("completion_tokens", "eval_count"))
            if src in data
        }

        logger.info("Ollama response: %d chars, usage=%s", len(answer), usage)
        return GenerationResult(answer=answer, model=self.model, usage=usage)
