"""Tests for top-K retrieval."""
import asyncio

import pytest
from pydantic import ValidationError

from docqa.errors import DimensionMismatch, EmbeddingFailure
from docqa.rag.models import Document, RetrievalOptions
from docqa.rag.retriever import Retriever


@pytest.mark.asyncio
async def test_returns_closest_chunks_first(ranked_corpus, fake_embedder_factory):
    """Test that the best match leads and the top_k cut drops the rest."""
    vectors, chunks = ranked_corpus
    retriever = Retriever(fake_embedder_factory(vectors))

    results = await retriever.retrieve("query", chunks, top_k=2)

    assert [r.content for r in results] == ["chunk-3", "chunk-2"]
    assert [r.index for r in results] == [3, 2]
    assert results[0].score > results[1].score
    assert results[0].score == pytest.approx(0.9 / (0.82 ** 0.5))


@pytest.mark.asyncio
async def test_embeds_query_once_and_each_chunk_once(ranked_corpus, fake_embedder_factory):
    """Test the number of embedding calls."""
    vectors, chunks = ranked_corpus
    embedder = fake_embedder_factory(vectors)

    await Retriever(embedder).retrieve("query", chunks)

    assert sorted(embedder.calls) == sorted(["query"] + chunks)


@pytest.mark.asyncio
@pytest.mark.parametrize("top_k", [0, 1, 3, 5, 10])
async def test_result_count_is_bounded(ranked_corpus, fake_embedder_factory, top_k):
    """Test that at most min(top_k, chunk count) results come back."""
    vectors, chunks = ranked_corpus
    results = await Retriever(fake_embedder_factory(vectors)).retrieve(
        "query", chunks, top_k=top_k
    )

    assert len(results) == min(top_k, len(chunks))
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_default_top_k_comes_from_options(ranked_corpus, fake_embedder_factory):
    """Test that the retriever's options supply the default top_k."""
    vectors, chunks = ranked_corpus
    retriever = Retriever(
        fake_embedder_factory(vectors), options=RetrievalOptions(top_k=3)
    )

    results = await retriever.retrieve("query", chunks)

    assert len(results) == 3


@pytest.mark.asyncio
async def test_ties_keep_corpus_order(fake_embedder_factory):
    """Test that equal scores are ordered by original position."""
    vectors = {
        "q": [1.0, 0.0],
        "a": [0.0, 1.0],
        "b": [1.0, 1.0],
        "c": [2.0, 2.0],
        "d": [3.0, 3.0],
    }
    retriever = Retriever(fake_embedder_factory(vectors))

    results = await retriever.retrieve("q", ["a", "b", "c", "d"], top_k=4)

    assert [r.content for r in results] == ["b", "c", "d", "a"]
    assert [r.index for r in results] == [1, 2, 3, 0]


@pytest.mark.asyncio
async def test_duplicate_chunks_tie_by_index(fake_embedder_factory):
    """Test that identical chunk texts rank by position."""
    vectors = {"q": [1.0, 0.0], "same": [1.0, 0.5], "other": [0.0, 1.0]}
    retriever = Retriever(fake_embedder_factory(vectors))

    results = await retriever.retrieve("q", ["other", "same", "same"])

    assert [(r.content, r.index) for r in results] == [
        ("same", 1),
        ("same", 2),
        ("other", 0),
    ]


@pytest.mark.asyncio
async def test_order_independent_of_completion_order(ranked_corpus, fake_embedder_factory):
    """Test that slow early chunks do not change the ranking."""
    vectors, chunks = ranked_corpus
    # Earliest chunks finish last
    delays = {chunk: 0.01 * (len(chunks) - i) for i, chunk in enumerate(chunks)}

    fast = await Retriever(fake_embedder_factory(vectors)).retrieve(
        "query", chunks, top_k=5
    )
    scrambled = await Retriever(fake_embedder_factory(vectors, delays=delays)).retrieve(
        "query", chunks, top_k=5
    )

    assert scrambled == fast
    assert all(chunks[r.index] == r.content for r in scrambled)


@pytest.mark.asyncio
async def test_identical_calls_are_deterministic(letter_embedder):
    """Test that repeating a retrieval gives identical output."""
    chunks = ["apples and pears", "zebra crossing", "pear tree", "apple pie", "xyz"]
    retriever = Retriever(letter_embedder)

    first = await retriever.retrieve("apple", chunks, top_k=3)
    second = await retriever.retrieve("apple", chunks, top_k=3)

    assert first == second


@pytest.mark.asyncio
async def test_embedding_calls_run_concurrently(ranked_corpus, fake_embedder_factory):
    """Test that every embedding call is issued before any completes."""
    vectors, chunks = ranked_corpus
    embedder = fake_embedder_factory(vectors, default_delay=0.01)

    await Retriever(embedder, max_concurrency=0).retrieve("query", chunks)

    assert embedder.max_in_flight == len(chunks) + 1


@pytest.mark.asyncio
async def test_concurrency_cap(ranked_corpus, fake_embedder_factory):
    """Test that max_concurrency bounds in-flight embedding calls."""
    vectors, chunks = ranked_corpus
    embedder = fake_embedder_factory(vectors, default_delay=0.01)

    results = await Retriever(embedder, max_concurrency=2).retrieve("query", chunks, top_k=2)

    assert embedder.max_in_flight == 2
    assert [r.content for r in results] == ["chunk-3", "chunk-2"]


@pytest.mark.asyncio
async def test_one_failed_chunk_fails_the_retrieval(fake_embedder_factory):
    """Test that a single chunk failure aborts with EmbeddingFailure."""
    vectors = {"q": [1.0, 0.0], "a": [1.0, 0.0], "b": [0.0, 1.0], "c": [1.0, 1.0]}
    embedder = fake_embedder_factory(
        vectors, failing=["bad"], default_delay=10.0
    )

    with pytest.raises(EmbeddingFailure) as exc_info:
        await asyncio.wait_for(
            Retriever(embedder).retrieve("q", ["a", "bad", "b", "c"]), timeout=5.0
        )

    assert exc_info.value.offending_text == "bad"
    # Outstanding calls were cancelled rather than left running
    assert sorted(embedder.cancelled) == ["a", "b", "c", "q"]
    assert embedder.in_flight == 0


@pytest.mark.asyncio
async def test_query_failure_fails_the_retrieval(ranked_corpus, fake_embedder_factory):
    """Test that a failed query embedding surfaces as EmbeddingFailure."""
    vectors, chunks = ranked_corpus
    embedder = fake_embedder_factory(vectors, failing=["query"])

    with pytest.raises(EmbeddingFailure):
        await Retriever(embedder).retrieve("query", chunks)


@pytest.mark.asyncio
async def test_unexpected_embedder_errors_become_embedding_failures():
    """Test that arbitrary embedder exceptions are reported as EmbeddingFailure."""

    class BrokenEmbedder:
        async def embed(self, text):
            raise RuntimeError("socket closed")

    with pytest.raises(EmbeddingFailure) as exc_info:
        await Retriever(BrokenEmbedder()).retrieve("q", ["a"])

    assert "socket closed" in exc_info.value.reason
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_caller_cancellation_cancels_embedding_calls(ranked_corpus, fake_embedder_factory):
    """Test that cancelling retrieve cancels every outstanding embedding."""
    vectors, chunks = ranked_corpus
    embedder = fake_embedder_factory(vectors, default_delay=10.0)

    task = asyncio.create_task(Retriever(embedder).retrieve("query", chunks))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(embedder.cancelled) == len(chunks) + 1
    assert embedder.in_flight == 0


@pytest.mark.asyncio
async def test_dimension_mismatch_is_raised(fake_embedder_factory):
    """Test that mixed vector lengths fail fast."""
    vectors = {"q": [1.0, 0.0], "a": [1.0, 0.0, 0.0]}

    with pytest.raises(DimensionMismatch):
        await Retriever(fake_embedder_factory(vectors)).retrieve("q", ["a"])


@pytest.mark.asyncio
async def test_zero_vector_chunk_scores_zero(fake_embedder_factory):
    """Test that a zero-magnitude chunk ranks with score 0.0."""
    vectors = {"q": [1.0, 0.0], "empty": [0.0, 0.0], "away": [-1.0, 0.0]}

    results = await Retriever(fake_embedder_factory(vectors)).retrieve(
        "q", ["away", "empty"]
    )

    assert [(r.content, r.score) for r in results] == [("empty", 0.0), ("away", -1.0)]


@pytest.mark.asyncio
async def test_empty_corpus_returns_nothing(fake_embedder_factory):
    """Test that no chunks is an empty result, not an error."""
    embedder = fake_embedder_factory({})

    assert await Retriever(embedder).retrieve("question", []) == []
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_blank_query_returns_nothing(ranked_corpus, fake_embedder_factory):
    """Test that a blank query retrieves nothing."""
    vectors, chunks = ranked_corpus
    embedder = fake_embedder_factory(vectors)

    assert await Retriever(embedder).retrieve("   ", chunks) == []
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_min_score_filters_before_truncation(ranked_corpus, fake_embedder_factory):
    """Test that low scoring chunks are dropped."""
    vectors, chunks = ranked_corpus

    results = await Retriever(fake_embedder_factory(vectors)).retrieve(
        "query", chunks, top_k=5, min_score=0.5
    )

    assert [r.content for r in results] == ["chunk-3", "chunk-2"]


@pytest.mark.asyncio
async def test_invalid_top_k_rejected(ranked_corpus, fake_embedder_factory):
    """Test that a negative top_k fails validation."""
    vectors, chunks = ranked_corpus

    with pytest.raises(ValidationError):
        await Retriever(fake_embedder_factory(vectors)).retrieve("query", chunks, top_k=-1)


@pytest.mark.asyncio
async def test_multi_document_ranking_is_global(fake_embedder_factory):
    """Test that chunks from several documents are ranked together."""
    vectors = {
        "q": [1.0, 0.0],
        "alpha one": [0.2, 1.0],
        "alpha two": [1.0, 0.1],
        "beta one": [1.0, 0.0],
        "beta two": [0.0, 1.0],
    }
    documents = [
        Document(document_id="a", title="Alpha", text="alpha one alpha two"),
        Document(document_id="empty", title="Scan", text="   "),
        Document(document_id="b", title="Beta", text="beta one beta two"),
    ]
    retriever = Retriever(fake_embedder_factory(vectors))

    results = await retriever.retrieve_documents(
        "q", documents, top_k=3, max_chunk_size=10
    )

    assert [r.content for r in results] == ["beta one", "alpha two", "alpha one"]
    assert [r.index for r in results] == [2, 1, 0]
    assert [r.document_title for r in results] == ["Beta", "Alpha", "Alpha"]
    assert [r.chunk_index for r in results] == [0, 1, 0]
    assert results[0].document_id == "b"


@pytest.mark.asyncio
async def test_documents_without_text_give_empty_result(fake_embedder_factory):
    """Test that blank documents contribute no chunks."""
    embedder = fake_embedder_factory({})
    documents = [Document(document_id="x", text="")]

    assert await Retriever(embedder).retrieve_documents("q", documents) == []
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_retrieve_context(fake_embedder_factory):
    """Test retrieval straight into a labelled context string."""
    vectors = {"q": [1.0, 0.0], "alpha one": [1.0, 0.0], "alpha two": [0.0, 1.0]}
    documents = [Document(document_id="a", title="Alpha", text="alpha one alpha two")]
    retriever = Retriever(fake_embedder_factory(vectors))

    context = await retriever.retrieve_context(
        "q", documents, with_sources=True, max_chunk_size=10, top_k=1
    )

    assert context == '[Source 1 from "Alpha"]: alpha one'


@pytest.mark.asyncio
async def test_none_min_score_switches_threshold_off(ranked_corpus, fake_embedder_factory):
    """Test that an explicit None clears a configured threshold for one call."""
    vectors, chunks = ranked_corpus
    retriever = Retriever(
        fake_embedder_factory(vectors), options=RetrievalOptions(top_k=5, min_score=0.5)
    )

    filtered = await retriever.retrieve("query", chunks)
    unfiltered = await retriever.retrieve("query", chunks, min_score=None)

    assert [r.content for r in filtered] == ["chunk-3", "chunk-2"]
    assert len(unfiltered) == 5


def test_merged_ignores_unset_and_none_for_required_fields():
    """Test which overrides replace the defaults."""
    options = RetrievalOptions(top_k=4, min_score=0.2)

    assert options.merged(top_k=None).top_k == 4
    assert options.merged().min_score == 0.2
    assert options.merged(min_score=None).min_score is None
    assert options.merged(top_k=1, strategy="sentence").strategy == "sentence"
