# tests/test_document_service.py
import json

import pytest

from conftest import FakeOCR, FakeTextBackend, mcq_payload
from core.domain import Difficulty, ErrorCode, FileInput, ProcessingOptions, ProcessingResult, QuizOptions
from core.exceptions import ConfigurationError, InsufficientContentError, TextGenerationError
from services.document_service import DocumentProcessingService

MAX_SIZE = 50 * 1024 * 1024


def quiz_options() -> ProcessingOptions:
    return ProcessingOptions(generate_quiz=True, quiz_options=QuizOptions(num_questions=2))


# ---------- Validation ----------

async def test_unsupported_type_touches_nothing(document_service, text_backend, ocr):
    result = await document_service.process_document(FileInput(name="setup.exe", data=b"MZ"), quiz_options())

    assert not result.success
    assert result.error == (
        "Unsupported file type. Supported types: pdf, docx, pptx, txt, jpg, jpeg, png, gif, bmp, webp"
    )
    assert result.error_code is ErrorCode.INVALID_FORMAT
    assert result.file_type == "exe"
    assert text_backend.calls == []
    assert ocr.calls == []


async def test_missing_extension_is_unknown_type(document_service):
    result = await document_service.process_document(FileInput(name="README", data=b"hello"))
    assert not result.success
    assert result.file_type == "unknown"


async def test_oversized_file_is_rejected(document_service, ocr):
    big = FileInput(name="scan.pdf", data=b"%PDF", size=MAX_SIZE + 1)
    result = await document_service.process_document(big)

    assert not result.success
    assert result.error == "File too large. Maximum size: 50MB"
    assert result.error_code is ErrorCode.FILE_TOO_LARGE
    assert ocr.calls == []


async def test_file_at_size_limit_is_accepted(document_service):
    result = await document_service.process_document(
        FileInput(name="notes.txt", data=b"just enough", size=MAX_SIZE)
    )
    assert result.success


def test_static_helpers():
    assert DocumentProcessingService.max_file_size() == MAX_SIZE
    assert DocumentProcessingService.is_file_type_supported("Lecture.PPTX")
    assert not DocumentProcessingService.is_file_type_supported("archive.zip")
    assert DocumentProcessingService.validate_file(FileInput(name="a.txt", data=b"x")).is_valid


# ---------- Processing ----------

async def test_text_file_word_count(document_service):
    result = await document_service.process_document(FileInput(name="notes.txt", data=b"one two  three\nfour"))

    assert result.success
    assert result.text == "one two  three\nfour"
    assert result.word_count == 4
    assert result.file_size == 19
    assert result.processing_time >= 0


async def test_image_uses_ocr(document_service, ocr):
    result = await document_service.process_document(FileInput(name="board.JPG", data=b"\xff\xd8"))

    assert result.success
    assert result.file_type == "jpg"
    assert result.metadata.ocr_used is True
    assert len(ocr.calls) == 1


async def test_pdf_without_ocr_backend():
    service = DocumentProcessingService(text_backend=None, ocr=None)
    result = await service.process_document(FileInput(name="scan.pdf", data=b"%PDF"))

    assert not result.success
    assert result.error == "OCR service not available for PDF processing"
    assert result.error_code is ErrorCode.OCR_UNAVAILABLE


async def test_quiz_attached_on_success(study_text):
    backend = FakeTextBackend(reply=mcq_payload(2))
    service = DocumentProcessingService(text_backend=backend, ocr=FakeOCR())

    result = await service.process_document(FileInput(name="bio.txt", data=study_text.encode()), quiz_options())

    assert result.success
    assert len(result.quiz) == 2
    assert result.quiz_error is None


async def test_quiz_failure_does_not_fail_extraction(study_text):
    backend = FakeTextBackend(error=TextGenerationError("LLM error: 500", status_code=500))
    service = DocumentProcessingService(text_backend=backend, ocr=FakeOCR())

    result = await service.process_document(FileInput(name="bio.txt", data=study_text.encode()), quiz_options())

    assert result.success
    assert result.text == study_text
    assert result.quiz is None
    assert result.quiz_error == "Failed to generate quiz: LLM error: 500"


async def test_quiz_on_short_text_reports_insufficient_content(document_service, text_backend):
    result = await document_service.process_document(FileInput(name="short.txt", data=b"too short"), quiz_options())

    assert result.success
    assert result.quiz_error == "Insufficient content for quiz generation"
    assert text_backend.calls == []


async def test_quiz_without_text_backend(study_text):
    service = DocumentProcessingService(text_backend=None, ocr=None)
    result = await service.process_document(FileInput(name="bio.txt", data=study_text.encode()), quiz_options())

    assert result.success
    assert result.quiz_error == "Groq API key required for quiz generation"


async def test_quiz_input_is_truncated():
    backend = FakeTextBackend(reply=mcq_payload(2))
    service = DocumentProcessingService(text_backend=backend, ocr=None)
    long_text = "word " * 5000

    result = await service.process_document(FileInput(name="long.txt", data=long_text.encode()), quiz_options())

    assert result.success
    assert len(result.text) == 25000
    prompt = backend.calls[0]["messages"][1]["content"]
    assert "word " * 4000 + "\n\n[Content truncated for quiz generation]" in prompt
    assert "word " * 4001 not in prompt


# ---------- Batch ----------

async def test_batch_reports_progress_and_isolates_failures(document_service):
    files = [
        FileInput(name="a.txt", data=b"alpha"),
        FileInput(name="b.exe", data=b"MZ"),
        FileInput(name="c.txt", data=b"gamma delta"),
    ]
    progress = []

    batch = await document_service.process_batch(files, on_progress=lambda *args: progress.append(args))

    assert progress == [(0, 3, "a.txt"), (1, 3, "b.exe"), (2, 3, "c.txt"), (3, 3, "")]
    assert [r.file_name for r in batch.results] == ["a.txt", "b.exe", "c.txt"]
    assert batch.total_files == 3
    assert batch.successful_files == 2
    assert batch.failed_files == 1
    assert batch.total_processing_time >= 0


async def test_empty_batch(document_service):
    progress = []
    batch = await document_service.process_batch([], on_progress=lambda *args: progress.append(args))

    assert progress == [(0, 0, "")]
    assert batch.total_files == 0


# ---------- Quiz helpers ----------

async def test_generate_quiz_from_documents_joins_successful_texts(study_text):
    backend = FakeTextBackend(reply=mcq_payload(1))
    service = DocumentProcessingService(text_backend=backend)
    results = [
        ProcessingResult(success=True, file_type="txt", file_name="a.txt", file_size=1, text="First part. " + study_text),
        ProcessingResult(success=False, file_type="pdf", file_name="b.pdf", file_size=1, text="ignored"),
        ProcessingResult(success=True, file_type="txt", file_name="c.txt", file_size=1, text="Second part."),
    ]

    questions = await service.generate_quiz_from_documents(results)

    assert len(questions) == 1
    prompt = backend.calls[0]["messages"][1]["content"]
    assert "\n\n--- Document Separator ---\n\nSecond part." in prompt
    assert "ignored" not in prompt


async def test_generate_quiz_from_documents_needs_content(document_service):
    results = [ProcessingResult(success=True, file_type="txt", file_name="a.txt", file_size=1, text="tiny")]
    with pytest.raises(InsufficientContentError, match="Insufficient content from documents for quiz generation"):
        await document_service.generate_quiz_from_documents(results)


async def test_generate_quiz_requires_backend(study_text):
    with pytest.raises(ConfigurationError):
        await DocumentProcessingService().generate_quiz_from_text(study_text)


async def test_test_services(document_service):
    assert await document_service.test_services() == {"groq": True, "mistral": True}
    assert await DocumentProcessingService().test_services() == {"groq": False, "mistral": False}


async def test_unexpected_quiz_error_keeps_extraction_successful(study_text):
    backend = FakeTextBackend(error=RuntimeError("backend exploded"))
    service = DocumentProcessingService(text_backend=backend, ocr=None)

    result = await service.process_document(FileInput(name="bio.txt", data=study_text.encode()), quiz_options())

    assert result.success
    assert result.error is None
    assert result.quiz is None
    assert result.quiz_error == "Failed to generate quiz: backend exploded"


async def test_odd_difficulty_shape_still_yields_quiz(study_text):
    payload = json.loads(mcq_payload(2))
    payload["questions"][0]["difficulty"] = {"level": "easy"}
    service = DocumentProcessingService(text_backend=FakeTextBackend(reply=json.dumps(payload)), ocr=None)

    result = await service.process_document(FileInput(name="notes.txt", data=study_text.encode()), quiz_options())

    assert result.success
    assert result.quiz_error is None
    assert result.quiz[0].difficulty is Difficulty.MEDIUM
