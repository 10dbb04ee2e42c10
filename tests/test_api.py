# tests/test_api.py
import pytest
from fastapi.testclient import TestClient

from conftest import FakeOCR, FakeTextBackend, mcq_payload
from core.exceptions import TextGenerationError
from infrastructure.repositories import InMemorySessionStore
from main import app
from services.factory import get_ocr_backend, get_session_store, get_text_backend


@pytest.fixture
def backend():
    return FakeTextBackend(reply=mcq_payload(3), chunks=["Cells ", "divide."])


@pytest.fixture
def client(backend):
    # No `with`: the lifespan (database setup) is not needed against the in-memory store
    store = InMemorySessionStore()
    app.dependency_overrides[get_text_backend] = lambda: backend
    app.dependency_overrides[get_ocr_backend] = lambda: FakeOCR(text="Scanned")
    app.dependency_overrides[get_session_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_session(client, **body) -> dict:
    response = client.post("/chat/sessions", json=body)
    assert response.status_code == 201
    return response.json()


# ---------- Documents ----------

def test_process_text_document(client):
    response = client.post("/documents/process", files={"file": ("notes.txt", b"Mitosis has four phases.", "text/plain")})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["file_type"] == "txt"
    assert body["word_count"] == 4
    assert body["quiz"] is None


def test_process_document_with_quiz(client, study_text):
    response = client.post(
        "/documents/process",
        files={"file": ("bio.txt", study_text.encode(), "text/plain")},
        data={"generate_quiz": "true", "num_questions": "3", "difficulty": "hard", "question_type": "mcq"},
    )

    body = response.json()
    assert body["success"] is True
    assert len(body["quiz"]) == 3
    assert body["quiz"][0]["type"] == "mcq"
    assert len(body["quiz"][0]["options"]) == 4


def test_process_unsupported_file_is_reported_not_raised(client):
    response = client.post("/documents/process", files={"file": ("tool.exe", b"MZ", "application/octet-stream")})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "INVALID_FORMAT"


def test_process_rejects_out_of_range_question_count(client):
    response = client.post(
        "/documents/process",
        files={"file": ("notes.txt", b"text", "text/plain")},
        data={"num_questions": "51"},
    )
    assert response.status_code == 422


def test_batch_is_accepted_then_polled(client):
    response = client.post(
        "/documents/batch",
        files=[
            ("files", ("a.txt", b"alpha beta", "text/plain")),
            ("files", ("scan.png", b"\x89PNG", "image/png")),
        ],
    )

    assert response.status_code == 202
    accepted = response.json()
    assert accepted["total_files"] == 2

    status = client.get(f"/documents/batch/{accepted['batch_id']}").json()
    assert status["status"] == "completed"
    assert status["is_processing"] is False
    assert status["percentage"] == 100
    assert status["result"]["successful_files"] == 2
    assert status["result"]["results"][1]["text"] == "Scanned 1"


def test_unknown_batch_is_404(client):
    assert client.get("/documents/batch/batch-missing").status_code == 404


# ---------- Quiz ----------

def test_generate_quiz(client, study_text):
    response = client.post("/quiz/generate", json={"text": study_text, "options": {"num_questions": 3}})

    assert response.status_code == 200
    assert response.json()["total_questions"] == 3


def test_generate_quiz_short_text_is_422(client, backend):
    response = client.post("/quiz/generate", json={"text": "too short"})

    assert response.status_code == 422
    assert response.json()["detail"] == "Insufficient content for quiz generation"
    assert backend.calls == []


def test_generate_quiz_without_backend_is_503(client, study_text):
    app.dependency_overrides[get_text_backend] = lambda: None
    response = client.post("/quiz/generate", json={"text": study_text})
    assert response.status_code == 503


# ---------- Service info ----------

def test_models_and_health(client):
    models = client.get("/models").json()
    assert {"id": "gemma2-9b-it", "name": "Gemma2 9b It", "context_limit": 8192} in models

    assert client.get("/health/services").json() == {"groq": True, "mistral": True}


# ---------- Chat ----------

def test_session_crud(client):
    session = create_session(client, title="Genetics")
    assert session["model"] == "llama-3.1-70b-versatile"

    listed = client.get("/chat/sessions").json()
    assert [(s["id"], s["message_count"]) for s in listed] == [(session["id"], 0)]
    assert client.get(f"/chat/sessions/{session['id']}").json()["title"] == "Genetics"

    assert client.delete(f"/chat/sessions/{session['id']}").status_code == 200
    assert client.get(f"/chat/sessions/{session['id']}").status_code == 404
    assert client.delete(f"/chat/sessions/{session['id']}").status_code == 404


def test_create_session_rejects_unknown_model(client):
    response = client.post("/chat/sessions", json={"model": "gpt-2"})
    assert response.status_code == 422


def test_attach_and_remove_documents(client):
    session = create_session(client)

    response = client.post(
        f"/chat/sessions/{session['id']}/documents",
        files=[("files", ("notes.txt", b"Genes are made of DNA.", "text/plain"))],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["successful_files"] == 1
    attachment = body["attachments"][0]
    assert attachment["content"].startswith("DOCUMENT ANALYSIS:")

    stored = client.get(f"/chat/sessions/{session['id']}").json()
    assert len(stored["documents"]) == 1
    assert stored["messages"][-1]["role"] == "assistant"

    response = client.delete(f"/chat/sessions/{session['id']}/documents/{attachment['id']}")
    assert response.status_code == 200
    assert response.json()["documents"] == []


def test_attach_to_unknown_session_is_404(client):
    response = client.post(
        "/chat/sessions/session-missing/documents",
        files=[("files", ("notes.txt", b"text", "text/plain"))],
    )
    assert response.status_code == 404


def test_streamed_message(client, backend):
    session = create_session(client)

    response = client.post(f"/chat/sessions/{session['id']}/messages", json={"content": "How do cells divide?"})

    assert response.status_code == 200
    assert response.text == "Cells divide."
    assert backend.calls[0]["model"] == "llama-3.1-70b-versatile"
    messages = client.get(f"/chat/sessions/{session['id']}").json()["messages"]
    assert [(m["role"], m["content"]) for m in messages] == [
        ("user", "How do cells divide?"),
        ("assistant", "Cells divide."),
    ]


def test_message_over_context_limit_is_413(client, backend):
    session = create_session(client)

    response = client.post(
        f"/chat/sessions/{session['id']}/messages",
        json={"content": "Explain everything.", "model": "unknown-model", "context_limit": 1},
    )

    assert response.status_code == 413
    assert "Context limit exceeded" in response.json()["detail"]
    assert backend.calls == []


def test_backend_failure_before_first_chunk_is_502(client, backend):
    backend.chunks = []
    backend.error = TextGenerationError("LLM error: 500", status_code=500)
    session = create_session(client)

    response = client.post(f"/chat/sessions/{session['id']}/messages", json={"content": "hi"})

    assert response.status_code == 502


def test_message_to_unknown_session_is_404(client):
    response = client.post("/chat/sessions/session-missing/messages", json={"content": "hi"})
    assert response.status_code == 404


def test_empty_message_is_rejected(client):
    session = create_session(client)
    response = client.post(f"/chat/sessions/{session['id']}/messages", json={"content": ""})
    assert response.status_code == 422
