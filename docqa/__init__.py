"""Document question answering over uploaded text.

The retrieval core lives in ``docqa.rag``; ``docqa.llm_client`` talks to the
Ollama API for embeddings and answer generation.
"""

__version__ = "0.1.0"
