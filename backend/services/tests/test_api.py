"""
Tests for the HTTP surface: status codes, JSON errors, and the SSE contract.
"""

import pytest
from fastapi.testclient import TestClient

from main import app, get_answer_service
from rag.config import RetrievalConfig
from rag.retrieval_service import RetrievalService
from rag.tests.fakes import (
    FakeEmbeddingService,
    FakeVectorStore,
    ScriptedGenerationClient,
    make_chunk,
    parse_events,
)

from ..answer_service import AnswerService

CORPUS = [
    make_chunk("c1", "Termination of periodic tenancy", "90.427", 0.81),
    make_chunk("c2", "Late rent charges", "90.260", 0.44),
]


@pytest.fixture
def wire():
    """Install an AnswerService built from fakes and return a TestClient."""
    def _wire(candidates=None, embedding=None, generation=None):
        service = AnswerService(
            retrieval_service=RetrievalService(
                vector_store=FakeVectorStore(CORPUS if candidates is None else candidates),
                embedding_service=embedding or FakeEmbeddingService(),
                config=RetrievalConfig()
            ),
            generation_client=generation or ScriptedGenerationClient()
        )
        app.dependency_overrides[get_answer_service] = lambda: service
        return TestClient(app)

    yield _wire
    app.dependency_overrides.clear()


def test_root(wire):
    response = wire().get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_sync_ask(wire):
    client = wire()

    response = client.post("/api/ask", json={"query": "What notice ends a month to month tenancy?"})

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"answer", "sources"}
    assert body["sources"][0] == {
        "id": "c1",
        "ordinal": 1,
        "title": "Termination of periodic tenancy",
        "type": "ors_90",
        "icon": "⚖️",
        "section": "90.427",
        "url": "https://oregon.public.law/statutes",
    }
    assert "[1]" in body["answer"]


def test_streaming_ask(wire):
    client = wire()

    response = client.post("/api/ask", json={"query": "late fee rules", "mode": "streaming"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-accel-buffering"] == "no"
    events = parse_events(response.text)
    assert events[0]["type"] == "sources"
    assert [s["ordinal"] for s in events[0]["sources"]] == [1, 2]
    assert all(e["type"] == "text" for e in events[1:-1])
    assert events[-1] == {"type": "done"}


def test_no_knowledge_stream(wire):
    client = wire(candidates=[])

    response = client.post("/api/ask", json={"query": "How do I reset the printer?", "mode": "streaming"})

    events = parse_events(response.text)
    assert events[0] == {"type": "sources", "sources": []}
    text = "".join(e["text"] for e in events if e["type"] == "text")
    assert "[" not in text
    assert events[-1] == {"type": "done"}


def test_mid_stream_failure_is_in_band(wire):
    """The status line is already sent, so the failure arrives as an error event"""
    client = wire(generation=ScriptedGenerationClient(fail_after=2))

    response = client.post("/api/ask", json={"query": "late fee rules", "mode": "streaming"})

    assert response.status_code == 200
    events = parse_events(response.text)
    assert [e["type"] for e in events] == ["sources", "text", "text", "error"]
    assert "done" not in [e["type"] for e in events]


def test_retrieval_failure_before_stream_is_503(wire):
    client = wire(embedding=FakeEmbeddingService(fail=True))

    response = client.post("/api/ask", json={"query": "late fee rules", "mode": "streaming"})

    assert response.status_code == 503
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"error": "Knowledge base search is unavailable"}


def test_sync_generation_failure_is_502(wire):
    client = wire(generation=ScriptedGenerationClient(fail_sync=True))

    response = client.post("/api/ask", json={"query": "late fee rules"})

    assert response.status_code == 502
    assert response.json() == {"error": "Answer generation failed"}


@pytest.mark.parametrize("payload, message", [
    ({"query": ""}, "Message cannot be empty"),
    ({"query": "   "}, "Message cannot be empty"),
    ({"query": "x" * 2001}, "Message is too long (max 2000 characters)"),
])
def test_invalid_query_is_400(wire, payload, message):
    response = wire().post("/api/ask", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_malformed_body_is_400(wire):
    response = wire().post("/api/ask", json={"question": "wrong field"})

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request: query")


def test_unknown_mode_is_400(wire):
    response = wire().post("/api/ask", json={"query": "q", "mode": "batch"})

    assert response.status_code == 400


def test_ask_with_supplementary_document(wire):
    client = wire()

    response = client.post("/api/ask", json={
        "query": "Is this notice valid?",
        "supplementary_document": {"content": "30 day notice to vacate", "name": "notice.txt"},
    })

    sources = response.json()["sources"]
    assert sources[0]["ordinal"] == 1
    assert sources[0]["title"] == "notice.txt"
    assert sources[0]["type"] == "user_document"


@pytest.mark.parametrize("document", [
    {"content": "", "name": ""},
    {"content": "   \n", "name": "blank.txt"},
])
def test_blank_supplementary_document_is_ignored(wire, document):
    response = wire().post("/api/ask", json={"query": "late fee rules", "supplementary_document": document})

    assert response.status_code == 200
    sources = response.json()["sources"]
    assert [s["type"] for s in sources] == ["ors_90", "ors_90"]
    assert sources[0]["title"] == "Termination of periodic tenancy"


def test_blank_document_name_gets_default(wire):
    response = wire().post("/api/ask", json={
        "query": "Is this notice valid?",
        "supplementary_document": {"content": "30 day notice", "name": "  "},
    })

    assert response.json()["sources"][0]["title"] == "Uploaded Document"


def test_sync_and_legacy_routes_agree_on_blank_documents(wire):
    client = wire()

    ask = client.post("/api/ask", json={
        "query": "late fee rules",
        "supplementary_document": {"content": "", "name": ""},
    })
    chat = client.post("/api/chat", json={"message": "late fee rules", "documentContent": "", "documentName": ""})

    assert ask.json()["sources"] == chat.json()["sources"]


def test_legacy_chat(wire):
    response = wire().post("/api/chat", json={"message": "late fee rules"})

    assert response.status_code == 200
    assert [s["ordinal"] for s in response.json()["sources"]] == [1, 2]


def test_legacy_chat_stream_with_document(wire):
    client = wire()

    response = client.post("/api/chat/stream", json={
        "message": "What should we reply?",
        "documentContent": "Please fix the heater.",
        "documentName": "repair-request.txt",
    }, headers={"X-User-Email": "manager@example.com"})

    events = parse_events(response.text)
    assert events[0]["sources"][0]["title"] == "repair-request.txt"
    assert events[0]["sources"][0]["icon"] == "📎"
    assert events[-1] == {"type": "done"}


def test_service_not_initialized_is_503():
    app.dependency_overrides.clear()

    response = TestClient(app).post("/api/ask", json={"query": "late fee rules"})

    assert response.status_code == 503
    assert response.json() == {"error": "Knowledge services not available"}
