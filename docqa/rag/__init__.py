"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document chunking (word and sentence packing)
- Embedding through a pluggable provider
- Cosine similarity ranking
- Top-K retrieval over one or many documents
- Context assembly and answer generation
"""
from docqa.rag.chunker import TextChunker, chunk_text
from docqa.rag.context import assemble_context
from docqa.rag.embedder import Embedder, OllamaEmbedder
from docqa.rag.models import Document, DocumentChunk, RetrievalOptions, ScoredChunk
from docqa.rag.retriever import Retriever
from docqa.rag.similarity import cosine_similarity

__all__ = [
    "Document",
    "DocumentChunk",
    "Embedder",
    "OllamaEmbedder",
    "RetrievalOptions",
    "Retriever",
    "ScoredChunk",
    "TextChunker",
    "assemble_context",
    "chunk_text",
    "cosine_similarity",
]
