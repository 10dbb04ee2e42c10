# api/endpoints.py
"""
API endpoints for document processing, quiz generation and tutor chat.

No authentication: API keys for the hosted backends live in server configuration.
"""
import logging
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from config import settings
from core.domain import (
    ChatConfig, Difficulty, FileInput, ProcessingOptions, QuestionMix, QuizOptions,
)
from core.exceptions import (
    ChatCompletionError, ConfigurationError, ContextLimitExceededError, DocumentProcessingError,
    InsufficientContentError, QuizGenerationError, SessionNotFoundError, StudyQuestError,
)
from infrastructure.progress_store import progress_store
from services.chat_service import ChatService
from services.document_service import DocumentProcessingService
from services.factory import get_chat_service, get_document_service
from utils.common import generate_id
from api.schemas import (
    AttachDocumentsResponse,
    BatchAccepted,
    BatchProcessingResponse,
    BatchProgress,
    ChatAttachmentSchema,
    ChatMessageRequest,
    ChatSessionResponse,
    ChatSessionSummary,
    CreateSessionRequest,
    DeleteResponse,
    ModelInfo,
    ProcessDocumentResponse,
    QuizQuestionSchema,
    QuizRequest,
    QuizResponse,
    ServiceHealth,
)

logger = logging.getLogger(settings.LOGGER_NAME)

router = APIRouter()

_ERROR_STATUS = [
    (SessionNotFoundError, 404),
    (ContextLimitExceededError, 413),
    (ConfigurationError, 503),
    (InsufficientContentError, 422),
    (QuizGenerationError, 422),
    (DocumentProcessingError, 400),
    (ChatCompletionError, 502),
]


def _http_error(error: StudyQuestError) -> HTTPException:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# ---------- Helper: Form fields -> ProcessingOptions ----------
def _processing_options(
    generate_quiz: bool = Form(False),
    num_questions: int = Form(5),
    difficulty: Difficulty = Form(Difficulty.MEDIUM),
    question_type: QuestionMix = Form(QuestionMix.MIXED),
    text_model: Optional[str] = Form(None),
) -> ProcessingOptions:
    if not 1 <= num_questions <= 50:
        raise HTTPException(status_code=422, detail="num_questions must be between 1 and 50")
    return ProcessingOptions(
        generate_quiz=generate_quiz,
        quiz_options=QuizOptions(
            num_questions=num_questions, difficulty=difficulty, question_type=question_type
        ),
        text_model=text_model or None,
    )


async def _read_uploads(files: List[UploadFile]) -> List[FileInput]:
    inputs = []
    for upload in files:
        data = await upload.read()
        inputs.append(FileInput(name=upload.filename or "", data=data))
    return inputs


# ---------- Documents ----------
@router.post("/documents/process", response_model=ProcessDocumentResponse)
async def process_document(
    file: UploadFile = File(...),
    options: ProcessingOptions = Depends(_processing_options),
    service: DocumentProcessingService = Depends(get_document_service),
) -> ProcessDocumentResponse:
    (upload,) = await _read_uploads([file])
    result = await service.process_document(upload, options)
    return ProcessDocumentResponse.model_validate(result)


async def _run_batch(
    service: DocumentProcessingService,
    batch_id: str,
    files: List[FileInput],
    options: ProcessingOptions,
) -> None:
    """Background task: process the batch and publish progress for polling."""
    try:
        result = await service.process_batch(
            files,
            options,
            on_progress=lambda completed, total, name: progress_store.update(batch_id, completed, total, name),
        )
        progress_store.complete(batch_id, result)
        logger.info(f"Batch {batch_id} finished: {result.successful_files}/{result.total_files} succeeded")
    except Exception as e:
        logger.error(f"Batch {batch_id} failed: {e}", exc_info=True)
        progress_store.fail(batch_id, str(e))


@router.post("/documents/batch", response_model=BatchAccepted, status_code=202)
async def process_batch(
    background_tasks: BackgroundTasks,
    files: List[UploadFile] = File(...),
    options: ProcessingOptions = Depends(_processing_options),
    service: DocumentProcessingService = Depends(get_document_service),
) -> BatchAccepted:
    inputs = await _read_uploads(files)
    batch_id = generate_id("batch")
    progress_store.start(batch_id, total=len(inputs))
    background_tasks.add_task(_run_batch, service, batch_id, inputs, options)
    return BatchAccepted(batch_id=batch_id, total_files=len(inputs))


@router.get("/documents/batch/{batch_id}", response_model=BatchProgress)
async def get_batch_status(batch_id: str) -> BatchProgress:
    """Get real-time progress for a batch, with results once it completes"""
    progress = progress_store.get(batch_id)
    if not progress:
        raise HTTPException(status_code=404, detail="No processing status found for this batch")

    result = progress["result"]
    return BatchProgress(
        batch_id=batch_id,
        status=progress["status"],
        is_processing=progress["is_processing"],
        current_file=progress["current_file"],
        completed=progress["completed"],
        total=progress["total"],
        percentage=progress["percentage"],
        error=progress["error"],
        result=BatchProcessingResponse.model_validate(result) if result is not None else None,
    )


# ---------- Quiz ----------
@router.post("/quiz/generate", response_model=QuizResponse)
async def generate_quiz(
    request: QuizRequest,
    service: DocumentProcessingService = Depends(get_document_service),
) -> QuizResponse:
    options = QuizOptions(
        num_questions=request.options.num_questions,
        difficulty=request.options.difficulty,
        question_type=request.options.question_type,
    )
    try:
        questions = await service.generate_quiz_from_text(request.text, options, request.model)
    except StudyQuestError as e:
        raise _http_error(e)

    return QuizResponse(
        questions=[QuizQuestionSchema.model_validate(q) for q in questions],
        total_questions=len(questions),
    )


# ---------- Service info ----------
@router.get("/models", response_model=List[ModelInfo])
async def list_models() -> List[ModelInfo]:
    return [
        ModelInfo(id=m["id"], name=m["name"], context_limit=m["contextLimit"])
        for m in ChatService.get_available_models()
    ]


@router.get("/health/services", response_model=ServiceHealth)
async def service_health(
    service: DocumentProcessingService = Depends(get_document_service),
) -> ServiceHealth:
    """Ping the hosted text-generation and OCR backends."""
    return ServiceHealth(**await service.test_services())


# ---------- Chat sessions ----------
@router.post("/chat/sessions", response_model=ChatSessionResponse, status_code=201)
async def create_session(
    request: CreateSessionRequest,
    chat_service: ChatService = Depends(get_chat_service),
) -> ChatSessionResponse:
    if not chat_service.is_valid_model(request.model):
        raise HTTPException(status_code=422, detail=f"Unknown chat model: {request.model}")
    session = await chat_service.create_session(request.title, request.model)
    return ChatSessionResponse.model_validate(session)


@router.get("/chat/sessions", response_model=List[ChatSessionSummary])
async def list_sessions(chat_service: ChatService = Depends(get_chat_service)) -> List[ChatSessionSummary]:
    return [
        ChatSessionSummary(
            id=s.id,
            title=s.title,
            model=s.model,
            created_at=s.created_at,
            updated_at=s.updated_at,
            message_count=len(s.messages),
            document_count=len(s.documents),
        )
        for s in await chat_service.get_sessions()
    ]


@router.get("/chat/sessions/{session_id}", response_model=ChatSessionResponse)
async def get_session(
    session_id: str, chat_service: ChatService = Depends(get_chat_service)
) -> ChatSessionResponse:
    session = await chat_service.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return ChatSessionResponse.model_validate(session)


@router.delete("/chat/sessions/{session_id}", response_model=DeleteResponse)
async def delete_session(
    session_id: str, chat_service: ChatService = Depends(get_chat_service)
) -> DeleteResponse:
    if not await chat_service.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return DeleteResponse(status="success", message="Session deleted successfully")


# ---------- Chat documents ----------
@router.post("/chat/sessions/{session_id}/documents", response_model=AttachDocumentsResponse)
async def attach_documents(
    session_id: str,
    files: List[UploadFile] = File(...),
    chat_service: ChatService = Depends(get_chat_service),
    service: DocumentProcessingService = Depends(get_document_service),
) -> AttachDocumentsResponse:
    if not await chat_service.get_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")

    batch = await service.process_batch(await _read_uploads(files))
    try:
        attachments = await chat_service.attach_processing_results(session_id, batch)
    except StudyQuestError as e:
        raise _http_error(e)

    return AttachDocumentsResponse(
        attachments=[ChatAttachmentSchema.model_validate(a) for a in attachments],
        successful_files=batch.successful_files,
        failed_files=batch.failed_files,
    )


@router.delete("/chat/sessions/{session_id}/documents/{document_id}", response_model=ChatSessionResponse)
async def remove_document(
    session_id: str,
    document_id: str,
    chat_service: ChatService = Depends(get_chat_service),
) -> ChatSessionResponse:
    try:
        await chat_service.remove_document_from_session(session_id, document_id)
    except StudyQuestError as e:
        raise _http_error(e)
    return ChatSessionResponse.model_validate(await chat_service.get_session(session_id))


# ---------- Chat messages (streamed) ----------
@router.post("/chat/sessions/{session_id}/messages")
async def send_message(
    session_id: str,
    request: ChatMessageRequest,
    chat_service: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    """
    Stream the tutor's reply as plain text.

    Errors raised before the first chunk (unknown session, context limit,
    missing configuration) map to HTTP status codes. A backend failure after
    streaming has started ends the stream early; the failure is recorded in
    the session's message log.
    """
    session = await chat_service.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    defaults = ChatConfig()
    config = ChatConfig(
        selected_model=request.model or session.model,
        temperature=request.temperature,
        max_tokens=request.max_tokens,
        system_prompt=request.system_prompt or defaults.system_prompt,
        enable_document_context=request.enable_document_context,
        context_limit=request.context_limit,
    )

    stream = chat_service.stream_message(session_id, request.content, config)
    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        first = ""
    except StudyQuestError as e:
        raise _http_error(e)

    async def body() -> AsyncIterator[str]:
        if first:
            yield first
        try:
            async for delta in stream:
                yield delta
        except ChatCompletionError as e:
            logger.error(f"Chat stream for session {session_id} ended early: {e}")

    return StreamingResponse(body(), media_type="text/plain")
