"""
AI Gateway
Wraps the two model capabilities the pipeline uses: chat completion and
embeddings, over OpenAI-compatible endpoints (DeepSeek / Together / Ollama).

Every per-item call returns None on any failure (auth, timeout, rate limit,
empty response) so callers can count the error and move on.
"""

import logging
import time
from typing import Callable

from openai import OpenAI

from config import Settings
from newsbrief.ai.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

EMBEDDING_BATCH_SIZE = 10


def _is_rate_limit_error(exc: Exception) -> bool:
    msg = str(exc).lower()
    return "429" in msg or "too many requests" in msg or "rate limit" in msg


class AIGateway:
    """Stateless per call; holds only the lazily created API clients."""

    def __init__(
        self,
        settings: Settings,
        chat_client: OpenAI | None = None,
        embedding_client: OpenAI | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self._chat_client = chat_client
        self._embedding_client = embedding_client
        self._sleep = sleep
        self._batch_limiter = RateLimiter(settings.embedding_batch_delay_seconds, sleep=sleep)

    def _get_chat_client(self) -> OpenAI:
        """Lazy-init chat client."""
        if self._chat_client is None:
            if not self.settings.chat_api_key:
                raise ValueError(f"{self.settings.api_provider} chat API key is not set.")
            self._chat_client = OpenAI(
                api_key=self.settings.chat_api_key,
                base_url=self.settings.chat_base_url,
                max_retries=0,
            )
        return self._chat_client

    def _get_embedding_client(self) -> OpenAI:
        """Lazy-init embedding client."""
        if self._embedding_client is None:
            if not self.settings.embedding_api_key:
                raise ValueError(f"{self.settings.api_provider} embedding API key is not set.")
            self._embedding_client = OpenAI(
                api_key=self.settings.embedding_api_key,
                base_url=self.settings.embedding_base_url,
                max_retries=0,
            )
        return self._embedding_client

    def _with_backoff(self, label: str, call: Callable[[], object]) -> object:
        """Run call(), retrying only on 429 with exponential backoff. Other errors propagate."""
        retries = self.settings.rate_limit_max_retries
        for attempt in range(retries + 1):
            try:
                return call()
            except Exception as e:
                if _is_rate_limit_error(e) and attempt < retries:
                    backoff = self.settings.rate_limit_backoff_seconds * (2 ** attempt)
                    logger.warning(
                        f"[LLM] {label}: 429 rate limit, backoff {backoff:.1f}s "
                        f"then retry ({attempt + 1}/{retries})"
                    )
                    self._sleep(backoff)
                    continue
                raise
        return None

    def chat_complete(self, prompt: str, system_prompt: str | None = None,
                      model: str | None = None) -> str | None:
        """Send one prompt to the chat model. Returns the stripped text or None."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            client = self._get_chat_client()
            response = self._with_backoff(
                "chat",
                lambda: client.chat.completions.create(
                    model=model or self.settings.chat_model,
                    messages=messages,
                    max_tokens=self.settings.llm_max_tokens,
                    temperature=self.settings.llm_temperature,
                    timeout=self.settings.llm_timeout_seconds,
                ),
            )
        except Exception as e:
            logger.error(f"[LLM] Chat API call error: {e}")
            return None

        if not response or not response.choices:
            logger.warning("[LLM] Empty chat response (no choices)")
            return None

        content = response.choices[0].message.content
        if not isinstance(content, str) or not content.strip():
            finish_reason = getattr(response.choices[0], "finish_reason", "unknown")
            logger.warning(f"[LLM] Empty chat response (finish_reason={finish_reason})")
            return None
        return content.strip()

    def embed(self, text: str, model: str | None = None) -> list[float] | None:
        """Embed a single text. Returns the vector or None."""
        try:
            client = self._get_embedding_client()
            response = self._with_backoff(
                "embedding",
                lambda: client.embeddings.create(
                    model=model or self.settings.embedding_model,
                    input=[text],
                    timeout=self.settings.llm_timeout_seconds,
                ),
            )
        except Exception as e:
            logger.error(f"[LLM] Embedding API call error: {e}")
            return None

        if not response or not response.data:
            logger.warning("[LLM] No embedding returned for text.")
            return None
        return list(response.data[0].embedding)

    def embed_batch(self, texts: list[str], model: str | None = None) -> list[list[float] | None]:
        """
        Embed texts in batches of EMBEDDING_BATCH_SIZE with a delay between batches.
        The result is aligned with the input; a failed batch yields None for each of its texts.
        """
        results: list[list[float] | None] = []
        if not texts:
            return results

        try:
            client = self._get_embedding_client()
        except ValueError as e:
            logger.error(f"[LLM] {e}")
            return [None] * len(texts)

        for start in range(0, len(texts), EMBEDDING_BATCH_SIZE):
            batch = texts[start:start + EMBEDDING_BATCH_SIZE]
            self._batch_limiter.wait()
            try:
                response = self._with_backoff(
                    "embedding-batch",
                    lambda: client.embeddings.create(
                        model=model or self.settings.embedding_model,
                        input=batch,
                        timeout=self.settings.llm_timeout_seconds,
                    ),
                )
            except Exception as e:
                logger.error(f"[LLM] Error getting batch embeddings for batch {start}: {e}")
                results.extend([None] * len(batch))
                continue

            data = list(response.data or [])
            for index in range(len(batch)):
                if index < len(data) and data[index] is not None:
                    results.append(list(data[index].embedding))
                else:
                    results.append(None)
        return results

    def test_connectivity(self) -> dict:
        """Probe both endpoints with a tiny request."""
        errors: list[str] = []

        reply = self.chat_complete('Respond with "OK" if you can read this.')
        chat_ok = reply is not None
        if not chat_ok:
            errors.append("Chat API returned null response")

        vector = self.embed("This is a test for embedding API connectivity.")
        embedding_ok = bool(vector)
        if not embedding_ok:
            errors.append("Embedding API returned null or empty embedding")

        return {"chat": chat_ok, "embedding": embedding_ok, "errors": errors}
