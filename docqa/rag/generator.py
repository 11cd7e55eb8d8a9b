"""Answer generation from retrieved context."""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import httpx
import structlog

from docqa import config
from docqa.llm_client import OllamaClient

logger = structlog.get_logger()

NO_CONTEXT_RESPONSE = (
    "I don't have any document content to reference for answering your question."
)

SYSTEM_PROMPT = """You answer questions about the user's documents.

Instructions:
- Answer based only on the provided document content
- Use the conversation history to understand the user's intent
- If the document doesn't contain relevant information, state that clearly
- Provide a clear, concise answer
- Do not make up information not in the document
- Reference specific parts of the document when applicable"""


@dataclass
class GenerationResult:
    """Outcome of an answer-generation call."""

    success: bool
    text: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, text: str) -> "GenerationResult":
        return cls(success=True, text=text)

    @classmethod
    def failed(cls, error: str) -> "GenerationResult":
        return cls(success=False, error=error)


def build_messages(
    query: str,
    context: str,
    history: Sequence[Dict[str, str]] = (),
) -> List[Dict[str, str]]:
    """Build the chat messages for a grounded answer.

    Args:
        query: Current user question
        context: Assembled grounding context
        history: Earlier turns as dicts with 'role' and 'content'

    Returns:
        Messages list for the chat endpoint
    """
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    messages.extend(
        {"role": turn["role"], "content": turn["content"]} for turn in history
    )
    messages.append(
        {
            "role": "user",
            "content": f"Document content:\n{context}\n\nCurrent user question: {query}",
        }
    )
    return messages


class AnswerGenerator:
    """Turns a query plus grounding context into an answer via Ollama chat."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        model: str = None,
        temperature: float = None,
        history_window: int = None,
    ):
        """Initialize the generator.

        Args:
            client: Ollama client (a fresh default client if not provided)
            model: Chat model name (default from config)
            temperature: Sampling temperature (default from config)
            history_window: Number of recent turns to send (default from config)
        """
        self.client = client or OllamaClient()
        self.model = model or config.CHAT_MODEL
        self.temperature = (
            temperature if temperature is not None else config.GENERATION_TEMPERATURE
        )
        self.history_window = (
            history_window if history_window is not None else config.HISTORY_WINDOW
        )

    async def generate(
        self,
        query: str,
        context: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
    ) -> GenerationResult:
        """Generate an answer grounded in the context.

        Provider errors and malformed responses come back as a failed result.

        Args:
            query: User question
            context: Grounding context; blank context skips the provider call
            history: Earlier conversation turns

        Returns:
            GenerationResult
        """
        if not context or not context.strip():
            return GenerationResult.ok(NO_CONTEXT_RESPONSE)

        recent = list(history or [])[-self.history_window:] if self.history_window > 0 else []
        messages = build_messages(query, context, recent)

        try:
            data = await self.client.chat(
                messages=messages,
                model=self.model,
                temperature=self.temperature,
            )
        except httpx.HTTPError as e:
            return GenerationResult.failed(f"{type(e).__name__}: {e}")
        except ValueError as e:
            return GenerationResult.failed(f"Malformed response from chat provider: {e}")

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            logger.error("generation_response_invalid", model=self.model)
            return GenerationResult.failed("Chat provider returned no answer text")

        logger.info(
            "answer_generated",
            model=self.model,
            response_length=len(content),
        )
        return GenerationResult.ok(content.strip())
