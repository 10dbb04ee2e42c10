# tests/conftest.py
import json
from typing import Dict, Iterator, List, Optional

import pytest

from core.domain import OCRResult
from core.interfaces import IOCRBackend, ITextGenerationBackend
from infrastructure.repositories import InMemorySessionStore
from services.chat_service import ChatService
from services.document_service import DocumentProcessingService


class FakeTextBackend(ITextGenerationBackend):
    """Scripted text backend. `error` is raised after any scripted chunks."""

    def __init__(self, reply: str = "", chunks: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.reply = reply
        self.chunks = chunks or []
        self.error = error
        self.calls: List[Dict] = []
        self.connected = True

    def complete(self, messages, model, temperature, max_tokens) -> str:
        self.calls.append(
            {"mode": "complete", "messages": messages, "model": model,
             "temperature": temperature, "max_tokens": max_tokens}
        )
        if self.error:
            raise self.error
        return self.reply

    def stream(self, messages, model, temperature, max_tokens) -> Iterator[str]:
        self.calls.append(
            {"mode": "stream", "messages": messages, "model": model,
             "temperature": temperature, "max_tokens": max_tokens}
        )
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error

    def test_connection(self, model=None) -> bool:
        return self.connected


class FakeOCR(IOCRBackend):
    def __init__(self, text: str = "OCR TEXT", success: bool = True):
        self.text = text
        self.success = success
        self.calls: List[Dict] = []

    def extract_text(self, data: bytes, mime_type: str) -> OCRResult:
        self.calls.append({"data": data, "mime_type": mime_type})
        if not self.success:
            return OCRResult(success=False, text="", confidence=0.0, processing_time=0.0, error="OCR error: 500")
        return OCRResult(
            success=True, text=f"{self.text} {len(self.calls)}", confidence=0.95, processing_time=0.01
        )

    def test_connection(self) -> bool:
        return True


def mcq_payload(count: int) -> str:
    return json.dumps({
        "questions": [
            {
                "id": f"q{i}",
                "type": "mcq",
                "question": f"Which option is number {i}?",
                "options": ["A", "B", "C", "D"],
                "correctAnswer": "B",
                "explanation": "B is correct.",
                "difficulty": "medium",
            }
            for i in range(1, count + 1)
        ]
    })


def true_false_payload(answers: List) -> str:
    return json.dumps({
        "questions": [
            {
                "id": f"q{i}",
                "type": "true_false",
                "question": f"Statement {i} holds.",
                "correctAnswer": answer,
                "explanation": "Because.",
                "difficulty": "easy",
            }
            for i, answer in enumerate(answers, start=1)
        ]
    })


STUDY_TEXT = (
    "Photosynthesis is the process by which green plants use sunlight, water and carbon dioxide "
    "to produce glucose and oxygen. It takes place mainly in the chloroplasts of leaf cells."
)


@pytest.fixture
def study_text():
    return STUDY_TEXT


@pytest.fixture
def text_backend():
    return FakeTextBackend()


@pytest.fixture
def ocr():
    return FakeOCR()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def document_service(text_backend, ocr):
    return DocumentProcessingService(text_backend=text_backend, ocr=ocr)


@pytest.fixture
def chat_service(store, text_backend):
    return ChatService(store=store, backend=text_backend)
