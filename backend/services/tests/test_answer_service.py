"""Test suite for the answer service."""

import re

import pytest

from rag.config import GenerationConfig, RetrievalConfig, ServiceConfig
from rag.errors import GenerationFailedError, InputInvalidError, RetrievalUnavailableError
from rag.models import SupplementaryDocument
from rag.retrieval_service import RetrievalService
from rag.tests.fakes import (
    FakeEmbeddingService,
    FakeVectorStore,
    ScriptedGenerationClient,
    make_chunk,
    parse_events,
)

from ..answer_service import AnswerService

CITATION = re.compile(r"\[\d+\]")

CORPUS = [
    make_chunk("c1", "Termination of periodic tenancy", "90.427", 0.81),
    make_chunk("c2", "Security deposits", "90.300", 0.55),
    make_chunk("c3", "Security deposits", "90.300", 0.52),
]


def build_service(candidates=None, generation=None, embedding=None, max_query_chars=2000, fragment_timeout=None):
    embedding = embedding or FakeEmbeddingService()
    retrieval = RetrievalService(
        vector_store=FakeVectorStore(CORPUS if candidates is None else candidates),
        embedding_service=embedding,
        config=RetrievalConfig()
    )
    generation = generation or ScriptedGenerationClient()
    service = AnswerService(
        retrieval_service=retrieval,
        generation_client=generation,
        service_config=ServiceConfig(max_query_chars=max_query_chars),
        generation_config=GenerationConfig(fragment_timeout_seconds=fragment_timeout)
    )
    return service, embedding, generation


async def stream_events(service, query, document=None):
    transport = await service.open_stream(query, document)
    frames = [frame async for frame in transport.events()]
    return parse_events("".join(frames))


class TestValidation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query, message", [
        ("", "Message cannot be empty"),
        ("   \n\t ", "Message cannot be empty"),
        (None, "Message is required and must be a string"),
        ("x" * 21, "Message is too long (max 20 characters)"),
    ])
    async def test_invalid_query_is_rejected_before_any_call(self, query, message):
        service, embedding, generation = build_service(max_query_chars=20)

        with pytest.raises(InputInvalidError) as exc_info:
            await service.ask(query)

        assert exc_info.value.message == message
        assert exc_info.value.status_code == 400
        assert embedding.queries == []
        assert generation.prompts == []

    @pytest.mark.asyncio
    async def test_stream_validates_before_retrieval(self):
        service, embedding, _ = build_service()

        with pytest.raises(InputInvalidError):
            await service.open_stream("  ")

        assert embedding.queries == []

    def test_question_is_trimmed(self):
        service, _, _ = build_service()

        assert service.validate_query("  deposit?  ") == "deposit?"

    def test_length_is_checked_after_trimming(self):
        service, _, _ = build_service(max_query_chars=5)

        assert service.validate_query("  abcde  ") == "abcde"


@pytest.mark.asyncio
async def test_sync_answer_cites_sources():
    service, _, generation = build_service()

    answer = await service.ask("What notice is required before ending a month to month tenancy?")

    assert [s.ordinal for s in answer.sources] == [1, 2]
    assert answer.sources[0].section == "90.427"
    assert "[1]" in answer.answer
    assert generation.prompts[0].user.endswith(
        "Question: What notice is required before ending a month to month tenancy?"
    )


@pytest.mark.asyncio
async def test_no_knowledge_answer_has_no_citations():
    service, _, generation = build_service(candidates=[])

    answer = await service.ask("How do I reset the office printer?")

    assert answer.sources == []
    assert not CITATION.search(answer.answer)
    assert "Do not output any bracketed citation markers" in generation.prompts[0].system


@pytest.mark.asyncio
async def test_sync_and_stream_agree_on_ordinals():
    question = "Can I keep the security deposit after move out?"
    sync_service, _, _ = build_service()
    stream_service, _, _ = build_service()

    answer = await sync_service.ask(question)
    events = await stream_events(stream_service, question)

    assert events[0]["type"] == "sources"
    assert events[0]["sources"] == [s.to_dict() for s in answer.sources]
    streamed = "".join(e["text"] for e in events if e["type"] == "text")
    assert streamed == answer.answer


@pytest.mark.asyncio
async def test_stream_with_document_puts_document_first():
    service, _, generation = build_service()
    document = SupplementaryDocument(content="I want my deposit back.", name="tenant-email.txt")

    events = await stream_events(service, "What should we reply?", document)

    sources = events[0]["sources"]
    assert sources[0]["ordinal"] == 1
    assert sources[0]["type"] == "user_document"
    assert sources[0]["icon"] == "📎"
    assert 'a document called "tenant-email.txt"' in generation.prompts[0].system
    assert events[-1] == {"type": "done"}


@pytest.mark.asyncio
async def test_stream_failure_after_two_fragments():
    service, _, generation = build_service(generation=ScriptedGenerationClient(fail_after=2))

    events = await stream_events(service, "security deposit rules")

    assert [e["type"] for e in events] == ["sources", "text", "text", "error"]
    assert generation.closed


@pytest.mark.asyncio
async def test_stream_stall_is_reported_in_band():
    service, _, _ = build_service(generation=ScriptedGenerationClient(gap=0.2), fragment_timeout=0.01)

    events = await stream_events(service, "security deposit rules")

    assert events[-1] == {"type": "error", "error": "Answer generation stalled"}


@pytest.mark.asyncio
async def test_retrieval_failure_raises_before_stream_opens():
    service, _, generation = build_service(embedding=FakeEmbeddingService(fail=True))

    with pytest.raises(RetrievalUnavailableError):
        await service.open_stream("security deposit rules")

    assert generation.prompts == []


@pytest.mark.asyncio
async def test_sync_generation_failure_propagates():
    service, _, _ = build_service(generation=ScriptedGenerationClient(fail_sync=True))

    with pytest.raises(GenerationFailedError):
        await service.ask("security deposit rules")
