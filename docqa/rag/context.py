"""Grounding context assembly."""
from typing import Sequence

from docqa.rag.models import ScoredChunk


def source_label(rank: int, chunk: ScoredChunk) -> str:
    """Label shown in front of a chunk when sources are requested."""
    title = chunk.document_title or "Untitled"
    return f'[Source {rank} from "{title}"]'


def assemble_context(
    ranked_chunks: Sequence[ScoredChunk], with_sources: bool = False
) -> str:
    """Join ranked chunks, most relevant first, separated by a blank line.

    Scores are dropped and duplicate text is kept as-is.

    Args:
        ranked_chunks: Retrieval results in ranked order
        with_sources: Prefix each chunk with a ``[Source i from "title"]`` label

    Returns:
        Context string, empty if there are no chunks
    """
    if with_sources:
        parts = [
            f"{source_label(rank, chunk)}: {chunk.content}"
            for rank, chunk in enumerate(ranked_chunks, 1)
        ]
    else:
        parts = [chunk.content for chunk in ranked_chunks]
    return "\n\n".join(parts)
