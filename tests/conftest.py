"""Pytest configuration and fixtures for unit tests."""
import asyncio
import string
from typing import Dict, Iterable, List, Optional

import pytest

from docqa.errors import EmbeddingFailure


class FakeEmbedder:
    """Deterministic embedder backed by a lookup table.

    Records every call, the peak number of calls in flight, and which calls
    were cancelled before finishing.
    """

    def __init__(
        self,
        vectors: Dict[str, List[float]],
        delays: Optional[Dict[str, float]] = None,
        failing: Iterable[str] = (),
        default_delay: float = 0.0,
    ):
        self.vectors = vectors
        self.delays = delays or {}
        self.failing = set(failing)
        self.default_delay = default_delay
        self.calls: List[str] = []
        self.cancelled: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if text in self.failing:
                raise EmbeddingFailure("quota exceeded", text)
            await asyncio.sleep(self.delays.get(text, self.default_delay))
            return list(self.vectors[text])
        except asyncio.CancelledError:
            self.cancelled.append(text)
            raise
        finally:
            self.in_flight -= 1


class LetterCountEmbedder:
    """Embeds text as its a-z letter counts; works for any input."""

    def __init__(self):
        self.calls = 0

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        lowered = text.lower()
        return [float(lowered.count(c)) for c in string.ascii_lowercase]


@pytest.fixture
def letter_embedder():
    """Embedder that needs no lookup table."""
    return LetterCountEmbedder()


@pytest.fixture
def ranked_corpus():
    """Query plus five chunks; chunk-3 is closest, chunk-2 second closest."""
    vectors = {
        "query": [1.0, 0.0, 0.0],
        "chunk-0": [0.0, 1.0, 0.0],
        "chunk-1": [0.0, 0.0, 1.0],
        "chunk-2": [0.5, 0.5, 0.0],
        "chunk-3": [0.9, 0.1, 0.0],
        "chunk-4": [-1.0, 0.0, 0.0],
    }
    chunks = ["chunk-0", "chunk-1", "chunk-2", "chunk-3", "chunk-4"]
    return vectors, chunks


@pytest.fixture
def fake_embedder_factory():
    """Build FakeEmbedder instances inside a test."""
    return FakeEmbedder
