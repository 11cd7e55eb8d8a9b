"""Embedding capability used by the retriever.

The retriever depends only on the ``Embedder`` protocol. ``OllamaEmbedder``
is the production adapter; tests substitute a deterministic fake.
"""
import asyncio
from typing import List, Optional, Protocol
import httpx
import structlog

from docqa import config
from docqa.errors import EmbeddingFailure
from docqa.llm_client import OllamaClient
from docqa.rag.similarity import validate_embedding

logger = structlog.get_logger()

# Statuses worth another attempt besides any 5xx: timeout and rate limiting
RETRYABLE_STATUS = {408, 429}


def is_retryable_status(status: int) -> bool:
    return status in RETRYABLE_STATUS or status >= 500


class Embedder(Protocol):
    """Anything that turns text into a fixed-length vector."""

    async def embed(self, text: str) -> List[float]:
        """Embed text.

        Raises:
            EmbeddingFailure: If the text cannot be embedded
        """
        ...


def clean_text(text: str) -> str:
    """Flatten newlines and trim, as the provider is fed single-line prompts."""
    return text.replace("\r", " ").replace("\n", " ").strip()


class OllamaEmbedder:
    """Embedder backed by the Ollama embeddings endpoint."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        model: str = None,
        max_retries: int = None,
        retry_backoff: float = None,
    ):
        """Initialize the embedder.

        Args:
            client: Ollama client (a fresh default client if not provided)
            model: Embedding model name (default from config)
            max_retries: Extra attempts after a transient failure (default from config)
            retry_backoff: First retry delay in seconds, doubled per attempt (default from config)
        """
        self.client = client or OllamaClient()
        self.model = model or config.EMBEDDING_MODEL
        self.max_retries = (
            max_retries if max_retries is not None else config.EMBED_MAX_RETRIES
        )
        self.retry_backoff = (
            retry_backoff if retry_backoff is not None else config.EMBED_RETRY_BACKOFF
        )

    async def embed(self, text: str) -> List[float]:
        """Embed one piece of text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector

        Raises:
            EmbeddingFailure: On empty input, provider errors after retries,
                or a malformed provider response
        """
        prompt = clean_text(text or "")
        if not prompt:
            raise EmbeddingFailure("Invalid text input for embedding", text)

        data = await self._request_with_retries(prompt, text)

        embedding = data.get("embedding") if isinstance(data, dict) else None
        valid, error = validate_embedding(embedding)
        if not valid:
            logger.error("embedding_response_invalid", model=self.model, error=error)
            raise EmbeddingFailure(error, text)

        return [float(v) for v in embedding]

    async def _request_with_retries(self, prompt: str, text: str):
        attempt = 0
        while True:
            try:
                return await self.client.embeddings(prompt=prompt, model=self.model)
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                reason = f"Embedding provider returned HTTP {status}"
                if not is_retryable_status(status) or attempt >= self.max_retries:
                    logger.error(
                        "embedding_request_failed",
                        model=self.model,
                        status_code=status,
                        attempts=attempt + 1,
                    )
                    raise EmbeddingFailure(reason, text) from e
            except httpx.TransportError as e:
                reason = f"{type(e).__name__}: {e}"
                if attempt >= self.max_retries:
                    logger.error(
                        "embedding_request_failed",
                        model=self.model,
                        error=reason,
                        attempts=attempt + 1,
                    )
                    raise EmbeddingFailure(reason, text) from e
            except ValueError as e:
                logger.error("embedding_response_not_json", model=self.model, error=str(e))
                raise EmbeddingFailure("Malformed response from embedding provider", text) from e

            delay = self.retry_backoff * (2 ** attempt)
            attempt += 1
            logger.warning(
                "embedding_request_retry",
                model=self.model,
                attempt=attempt,
                delay=delay,
                reason=reason,
            )
            await asyncio.sleep(delay)
