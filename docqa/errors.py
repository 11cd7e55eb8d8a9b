"""Errors raised by the retrieval and generation layers."""
from typing import Optional


class RetrievalError(RuntimeError):
    """Base class for faults that abort a retrieval or answer request."""


class EmbeddingFailure(RetrievalError):
    """The embedding provider could not embed a piece of text."""

    def __init__(self, reason: str, offending_text: Optional[str] = None):
        self.reason = reason
        self.offending_text = offending_text
        preview = ""
        if offending_text is not None:
            preview = f" (text: {offending_text[:50]!r})"
        super().__init__(f"Embedding failed: {reason}{preview}")


class DimensionMismatch(RetrievalError, ValueError):
    """Two vectors being compared have different lengths."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimensions do not match: expected {expected}, got {actual}"
        )


class GenerationFailure(RetrievalError):
    """The answer-generation provider did not return a usable answer."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Answer generation failed: {reason}")
