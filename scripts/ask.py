#!/usr/bin/env python
"""Ask a question about one or more text documents.

Usage:
    python scripts/ask.py "What is the refund policy?" terms.txt
    python scripts/ask.py "Who signed?" a.txt b.txt --top-k 5
    python scripts/ask.py "Summary?" notes.txt --retrieve-only
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from docqa import config
from docqa.errors import EmbeddingFailure, GenerationFailure
from docqa.logging_config import configure_logging
from docqa.llm_client import OllamaClient
from docqa.rag.context import assemble_context
from docqa.rag.embedder import OllamaEmbedder
from docqa.rag.generator import AnswerGenerator
from docqa.rag.models import Document, RetrievalOptions
from docqa.rag.pipeline import RAGPipeline
from docqa.rag.retriever import Retriever
import structlog

logger = structlog.get_logger()


def load_documents(paths):
    """Read text files into documents, keyed by their path."""
    documents = []
    for path in paths:
        if not path.exists():
            raise FileNotFoundError(f"Document not found: {path}")
        documents.append(
            Document(
                document_id=str(path),
                title=path.name,
                text=path.read_text(encoding="utf-8"),
            )
        )
    return documents


def print_sources(sources):
    for rank, source in enumerate(sources, 1):
        preview = source.content[:200] + ("..." if len(source.content) > 200 else "")
        print(f"  [{rank}] {source.document_title} #{source.chunk_index}  score={source.score:.3f}")
        print(f"      {preview}")


async def main():
    """Main entry point for the ask script."""
    parser = argparse.ArgumentParser(
        description="Answer a question from local text documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ask.py "What is the refund policy?" terms.txt
  python scripts/ask.py "Who signed?" a.txt b.txt --top-k 5
  python scripts/ask.py "Summary?" notes.txt --retrieve-only
        """,
    )

    parser.add_argument("question", help="Question to ask")
    parser.add_argument("files", nargs="+", type=Path, help="UTF-8 text files")
    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help=f"Number of chunks to retrieve (default: {config.RETRIEVAL_TOP_K})",
    )
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=None,
        help=f"Chunk budget in characters (default: {config.CHUNK_SIZE})",
    )
    parser.add_argument(
        "--strategy",
        choices=["word", "sentence"],
        default=None,
        help=f"Chunking strategy (default: {config.CHUNK_STRATEGY})",
    )
    parser.add_argument(
        "--min-score",
        type=float,
        default=None,
        help="Drop chunks scoring below this similarity",
    )
    parser.add_argument(
        "--retrieve-only",
        action="store_true",
        help="Print the retrieved context without generating an answer",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    args = parser.parse_args()
    configure_logging(level="DEBUG" if args.verbose else "WARNING", fmt="console")

    overrides = {
        "top_k": args.top_k,
        "max_chunk_size": args.chunk_size,
        "strategy": args.strategy,
        "min_score": args.min_score,
    }
    # Unset flags keep the configured defaults
    overrides = {k: v for k, v in overrides.items() if v is not None}

    try:
        documents = load_documents(args.files)
        client = OllamaClient()
        retriever = Retriever(
            embedder=OllamaEmbedder(client=client),
            options=RetrievalOptions().merged(**overrides),
        )

        if args.retrieve_only:
            sources = await retriever.retrieve_documents(args.question, documents)
            print(f"\n📚 Retrieved {len(sources)} chunk(s):\n")
            print_sources(sources)
            print(f"\n{'=' * 60}\n")
            print(assemble_context(sources) or "(no context)")
            return

        pipeline = RAGPipeline(retriever, AnswerGenerator(client=client))
        answer = await pipeline.answer(args.question, documents)

        print(f"\n💬 {answer.response}\n")
        if answer.sources:
            print(f"📚 Sources ({answer.chunks_used}, avg similarity {answer.avg_similarity:.3f}):")
            print_sources(answer.sources)
        print()

    except KeyboardInterrupt:
        print("\n\n⚠️  Cancelled by user.\n")
        sys.exit(1)

    except (EmbeddingFailure, GenerationFailure) as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("ask_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)

    except (FileNotFoundError, ValueError) as e:
        print(f"\n❌ Error: {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
