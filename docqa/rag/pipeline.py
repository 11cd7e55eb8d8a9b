"""Question answering over documents: retrieve, assemble, generate."""
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import structlog

from docqa.errors import GenerationFailure
from docqa.rag.context import assemble_context
from docqa.rag.generator import AnswerGenerator
from docqa.rag.models import Document, ScoredChunk
from docqa.rag.retriever import Retriever

logger = structlog.get_logger()

NOT_FOUND_RESPONSE = (
    "I couldn't find relevant information in the provided documents "
    "to answer your question."
)


@dataclass
class RAGAnswer:
    """An answer together with the chunks it was grounded on."""

    query: str
    response: str
    sources: List[ScoredChunk] = field(default_factory=list)

    @property
    def chunks_used(self) -> int:
        return len(self.sources)

    @property
    def avg_similarity(self) -> Optional[float]:
        if not self.sources:
            return None
        return sum(s.score for s in self.sources) / len(self.sources)

    @property
    def source_breakdown(self) -> Dict[str, int]:
        """Number of retrieved chunks per document title."""
        return dict(Counter(s.document_title or "Untitled" for s in self.sources))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "response": self.response,
            "chunks_used": self.chunks_used,
            "avg_similarity": self.avg_similarity,
            "source_breakdown": self.source_breakdown,
            "sources": [s.to_dict() for s in self.sources],
        }


class RAGPipeline:
    """Answers questions about a set of documents."""

    def __init__(self, retriever: Retriever, generator: AnswerGenerator):
        self.retriever = retriever
        self.generator = generator

    async def answer(
        self,
        query: str,
        documents: Sequence[Document],
        history: Optional[Sequence[Dict[str, str]]] = None,
        **overrides,
    ) -> RAGAnswer:
        """Answer a question from the given documents.

        Args:
            query: User question
            documents: Documents to ground the answer in
            history: Earlier conversation turns ('role'/'content' dicts)
            **overrides: Retrieval option overrides (top_k, max_chunk_size, ...)

        Returns:
            RAGAnswer; when nothing relevant is found the response says so

        Raises:
            ValueError: If the query is blank
            EmbeddingFailure: If retrieval could not embed the query or a chunk
            GenerationFailure: If the chat provider did not produce an answer
        """
        if not query or not query.strip():
            raise ValueError("Query is required and cannot be empty")

        sources = await self.retriever.retrieve_documents(query, documents, **overrides)

        if not sources:
            logger.info("no_relevant_content", document_count=len(documents))
            return RAGAnswer(query=query, response=NOT_FOUND_RESPONSE)

        context = assemble_context(sources, with_sources=True)
        result = await self.generator.generate(query, context, history)

        if not result.success:
            logger.error("answer_generation_failed", error=result.error)
            raise GenerationFailure(result.error)

        answer = RAGAnswer(query=query, response=result.text, sources=sources)
        logger.info(
            "question_answered",
            chunks_used=answer.chunks_used,
            avg_similarity=answer.avg_similarity,
        )
        return answer
