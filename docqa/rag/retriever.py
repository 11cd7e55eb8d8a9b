"""Retriever for semantic search over document chunks.

Handles:
- Query and chunk embedding (concurrent fan-out)
- Cosine similarity ranking
- Top-K selection with deterministic tie-breaking
- Multi-document corpora
"""
import asyncio
from typing import List, Optional, Sequence
import structlog

from docqa import config
from docqa.errors import EmbeddingFailure
from docqa.rag.chunker import TextChunker
from docqa.rag.context import assemble_context
from docqa.rag.embedder import Embedder
from docqa.rag.models import UNSET, Document, DocumentChunk, RetrievalOptions, ScoredChunk
from docqa.rag.similarity import cosine_similarity

logger = structlog.get_logger()


class Retriever:
    """Ranks chunks against a query by embedding similarity."""

    def __init__(
        self,
        embedder: Embedder,
        options: Optional[RetrievalOptions] = None,
        max_concurrency: int = None,
    ):
        """Initialize the retriever.

        Args:
            embedder: Embedding capability, used for the query and every chunk
            options: Default retrieval options (defaults from config)
            max_concurrency: Cap on in-flight embedding calls, 0 for no cap
                (default from config)
        """
        self.embedder = embedder
        self.options = options or RetrievalOptions()
        self.max_concurrency = (
            max_concurrency
            if max_concurrency is not None
            else config.EMBED_MAX_CONCURRENCY
        )

        logger.info(
            "retriever_initialized",
            top_k=self.options.top_k,
            max_chunk_size=self.options.max_chunk_size,
            strategy=self.options.strategy,
            max_concurrency=self.max_concurrency,
        )

    async def retrieve(
        self,
        query: str,
        chunks: Sequence[str],
        top_k: Optional[int] = None,
        min_score: Optional[float] = UNSET,
    ) -> List[ScoredChunk]:
        """Retrieve the chunks most similar to a query.

        Args:
            query: User query text
            chunks: Candidate chunk texts, in corpus order
            top_k: Number of results to return (overrides default)
            min_score: Drop results scoring below this (overrides default;
                None switches the threshold off)

        Returns:
            Up to top_k ScoredChunk objects, best first; ties keep corpus order

        Raises:
            EmbeddingFailure: If the query or any chunk cannot be embedded
            DimensionMismatch: If the embedder returns vectors of different lengths
        """
        options = self.options.merged(top_k=top_k, min_score=min_score)
        corpus = [DocumentChunk(content=chunk) for chunk in chunks]
        return await self._rank(query, corpus, options)

    async def retrieve_documents(
        self,
        query: str,
        documents: Sequence[Document],
        top_k: Optional[int] = None,
        max_chunk_size: Optional[int] = None,
        strategy: Optional[str] = None,
        min_score: Optional[float] = UNSET,
    ) -> List[ScoredChunk]:
        """Chunk several documents and rank all their chunks together.

        Ranking is global: the chunks of every document are flattened into one
        corpus before scoring, so ``ScoredChunk.index`` refers to that corpus.

        Args:
            query: User query text
            documents: Documents to search
            top_k: Number of results to return (overrides default)
            max_chunk_size: Chunk budget in characters (overrides default)
            strategy: Chunking strategy (overrides default)
            min_score: Drop results scoring below this (overrides default;
                None switches the threshold off)

        Returns:
            Up to top_k ScoredChunk objects tagged with their source document
        """
        options = self.options.merged(
            top_k=top_k,
            max_chunk_size=max_chunk_size,
            strategy=strategy,
            min_score=min_score,
        )
        chunker = TextChunker(
            max_chunk_size=options.max_chunk_size, strategy=options.strategy
        )

        corpus: List[DocumentChunk] = []
        for document in documents:
            if not document.text or not document.text.strip():
                logger.warning(
                    "document_without_text_skipped",
                    document_id=document.document_id,
                )
                continue
            corpus.extend(chunker.chunk_document(document))

        logger.debug(
            "documents_chunked",
            document_count=len(documents),
            chunk_count=len(corpus),
        )

        return await self._rank(query, corpus, options)

    async def retrieve_context(
        self,
        query: str,
        documents: Sequence[Document],
        with_sources: bool = False,
        **overrides,
    ) -> str:
        """Retrieve over documents and join the results into grounding context.

        Args:
            query: User query text
            documents: Documents to search
            with_sources: Prefix each chunk with its source label
            **overrides: Retrieval option overrides (top_k, max_chunk_size, ...)

        Returns:
            Context string, empty when nothing was retrieved
        """
        results = await self.retrieve_documents(query, documents, **overrides)
        return assemble_context(results, with_sources=with_sources)

    async def _rank(
        self,
        query: str,
        corpus: Sequence[DocumentChunk],
        options: RetrievalOptions,
    ) -> List[ScoredChunk]:
        if not query or not query.strip():
            logger.warning("empty_query_provided")
            return []

        if not corpus:
            logger.info("empty_corpus_no_results")
            return []

        logger.info(
            "retrieval_started",
            query_length=len(query),
            chunk_count=len(corpus),
            top_k=options.top_k,
        )

        try:
            vectors = await self._embed_all([query] + [c.content for c in corpus])
        except EmbeddingFailure as e:
            logger.error(
                "retrieval_failed",
                error=e.reason,
                query_preview=query[:100],
                chunk_count=len(corpus),
            )
            raise

        query_vector = vectors[0]
        scored = [
            ScoredChunk(
                content=chunk.content,
                score=cosine_similarity(query_vector, vector),
                index=i,
                document_id=chunk.document_id,
                document_title=chunk.document_title,
                chunk_index=chunk.chunk_index,
            )
            for i, (chunk, vector) in enumerate(zip(corpus, vectors[1:]))
        ]

        scored.sort(key=lambda s: (-s.score, s.index))

        if options.min_score is not None:
            scored = [s for s in scored if s.score >= options.min_score]

        results = scored[: options.top_k]

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return results

    async def _embed_all(self, texts: List[str]) -> List[List[float]]:
        """Embed every text concurrently, returning vectors in input order.

        All calls are in flight at once (or up to ``max_concurrency``). The
        first failure cancels whatever is still outstanding.
        """
        semaphore = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None
        )

        async def embed_one(index: int, text: str):
            try:
                if semaphore is None:
                    return index, await self.embedder.embed(text)
                async with semaphore:
                    return index, await self.embedder.embed(text)
            except EmbeddingFailure:
                raise
            except Exception as e:
                raise EmbeddingFailure(f"{type(e).__name__}: {e}", text) from e

        tasks = [asyncio.create_task(embed_one(i, t)) for i, t in enumerate(texts)]
        vectors: List[Optional[List[float]]] = [None] * len(texts)

        try:
            for finished in asyncio.as_completed(tasks):
                index, vector = await finished
                vectors[index] = vector
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        logger.debug("embeddings_gathered", count=len(vectors))
        return vectors
