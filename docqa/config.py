"""Application configuration with sensible defaults."""
import os
from typing import Optional


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return float(value)


# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemma3:12b")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "mxbai-embed-large:latest")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "60.0"))

# Chunking (character-based, separators included)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_STRATEGY = os.getenv("CHUNK_STRATEGY", "word")       # "word" or "sentence"

# Retrieval
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "3"))
MIN_SIMILARITY = _optional_float("MIN_SIMILARITY")          # None = no threshold

# Embedding fan-out
EMBED_MAX_CONCURRENCY = int(os.getenv("EMBED_MAX_CONCURRENCY", "0"))  # 0 = unbounded
EMBED_MAX_RETRIES = int(os.getenv("EMBED_MAX_RETRIES", "2"))
EMBED_RETRY_BACKOFF = float(os.getenv("EMBED_RETRY_BACKOFF", "0.5"))  # seconds, doubled per attempt

# Answer generation
GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", "0.5"))
HISTORY_WINDOW = int(os.getenv("HISTORY_WINDOW", "6"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")                # "json" or "console"
