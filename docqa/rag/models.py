"""Data types shared by the retrieval components."""
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from docqa import config


@dataclass(frozen=True)
class Document:
    """Extracted text of one uploaded document."""

    document_id: str
    text: str
    title: str = "Untitled"
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentChunk:
    """A chunk of a document, tagged with where it came from."""

    content: str
    document_id: Optional[str] = None
    document_title: Optional[str] = None
    chunk_index: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoredChunk:
    """A chunk with its similarity to the query.

    ``index`` is the position of the chunk in the (flattened) corpus that was
    ranked; ``chunk_index`` is its position inside its own document.
    """

    content: str
    score: float
    index: int
    document_id: Optional[str] = None
    document_title: Optional[str] = None
    chunk_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "score": self.score,
            "index": self.index,
            "document_id": self.document_id,
            "document_title": self.document_title,
            "chunk_index": self.chunk_index,
        }


# Marks an override the caller did not pass; None is a real value for min_score
UNSET: Any = object()


class RetrievalOptions(BaseModel):
    """Per-request retrieval knobs."""

    max_chunk_size: int = Field(default=config.CHUNK_SIZE, ge=1)
    top_k: int = Field(default=config.RETRIEVAL_TOP_K, ge=0)
    min_score: Optional[float] = Field(default=config.MIN_SIMILARITY, ge=-1.0, le=1.0)
    strategy: Literal["word", "sentence"] = config.CHUNK_STRATEGY

    def merged(self, **overrides: Any) -> "RetrievalOptions":
        """Return a validated copy with the overrides applied.

        UNSET overrides are ignored. None is ignored too, except for
        ``min_score`` where it switches the threshold off.
        """
        values = self.model_dump()
        for key, value in overrides.items():
            if value is UNSET or (value is None and key != "min_score"):
                continue
            values[key] = value
        return RetrievalOptions(**values)
