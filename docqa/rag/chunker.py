"""Text chunking for the RAG pipeline.

Chunks are packed greedily from whole words (or whole sentences) up to a
character budget that counts the separators between them. Nothing is ever
split mid-word: a single word longer than the budget becomes its own chunk.
"""
import re
from typing import Dict, List
import structlog

from docqa import config
from docqa.rag.models import Document, DocumentChunk

logger = structlog.get_logger()

STRATEGIES = ("word", "sentence")

_SENTENCE_END = re.compile(r"[.!?]+")

# Sentence chunks this short carry no content (stray punctuation, initials)
_MIN_SENTENCE_CHUNK = 3


class TextChunker:
    """Greedy word/sentence packer with a character budget."""

    def __init__(self, max_chunk_size: int = None, strategy: str = None):
        """Initialize the text chunker.

        Args:
            max_chunk_size: Chunk budget in characters (default from config)
            strategy: "word" or "sentence" (default from config)
        """
        self.max_chunk_size = (
            max_chunk_size if max_chunk_size is not None else config.CHUNK_SIZE
        )
        self.strategy = strategy or config.CHUNK_STRATEGY

        if self.max_chunk_size < 1:
            raise ValueError(
                f"max_chunk_size must be at least 1, got {self.max_chunk_size}"
            )
        if self.strategy not in STRATEGIES:
            raise ValueError(
                f"Unknown chunking strategy {self.strategy!r}, expected one of {STRATEGIES}"
            )

    def chunk_text(self, text: str) -> List[str]:
        """Split text into ordered chunks.

        Args:
            text: Text to chunk

        Returns:
            List of chunk strings, earliest text first
        """
        if self.strategy == "sentence":
            chunks = self._chunk_sentences(text)
        else:
            chunks = self._chunk_words(text)

        logger.debug(
            "text_chunked",
            strategy=self.strategy,
            text_length=len(text),
            budget=self.max_chunk_size,
            **self.get_chunk_stats(chunks),
        )
        return chunks

    def _chunk_words(self, text: str) -> List[str]:
        # Runs of whitespace separate words; they never produce empty words.
        words = text.split()
        if not words:
            return [""]

        chunks = []
        current: List[str] = []
        current_size = 0

        for word in words:
            if current_size + len(word) + 1 > self.max_chunk_size and current:
                chunks.append(" ".join(current))
                current = [word]
                current_size = len(word)
            else:
                current.append(word)
                current_size += len(word) + 1

        if current:
            chunks.append(" ".join(current))

        return chunks

    def _chunk_sentences(self, text: str) -> List[str]:
        sentences = [s.strip() for s in _SENTENCE_END.split(text.strip())]
        sentences = [s for s in sentences if s]

        chunks = []
        current: List[str] = []
        current_size = 0

        for sentence in sentences:
            if current_size + len(sentence) > self.max_chunk_size and current:
                chunks.append(". ".join(current) + ".")
                current = [sentence]
                current_size = len(sentence)
            else:
                current.append(sentence)
                current_size += len(sentence) + 2

        if current:
            chunks.append(". ".join(current) + ".")

        return [c for c in chunks if len(c) > _MIN_SENTENCE_CHUNK]

    def chunk_document(self, document: Document) -> List[DocumentChunk]:
        """Chunk a document, tagging each chunk with its source.

        Args:
            document: Document to chunk

        Returns:
            List of DocumentChunk objects in document order
        """
        return [
            DocumentChunk(
                content=content,
                document_id=document.document_id,
                document_title=document.title,
                chunk_index=i,
                metadata=dict(document.metadata),
            )
            for i, content in enumerate(self.chunk_text(document.text))
        ]

    def get_chunk_stats(self, chunks: List[str]) -> Dict[str, int]:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of chunk strings

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
            }

        chunk_sizes = [len(c) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
        }


def chunk_text(
    text: str, max_chunk_size: int = None, strategy: str = "word"
) -> List[str]:
    """Chunk text with a throwaway chunker (convenience function).

    Args:
        text: Text to chunk
        max_chunk_size: Chunk budget in characters (default from config)
        strategy: "word" or "sentence"

    Returns:
        List of chunk strings
    """
    return TextChunker(max_chunk_size=max_chunk_size, strategy=strategy).chunk_text(text)
