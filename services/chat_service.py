# services/chat_service.py
import asyncio
import logging
import re
from datetime import timedelta
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from config import settings
from core.domain import (
    AttachmentKind,
    BatchProcessingResult,
    ChatAttachment,
    ChatConfig,
    ChatMessage,
    ChatSession,
    MessageRole,
    ProcessingResult,
)
from core.exceptions import (
    ChatCompletionError,
    ConfigurationError,
    ContextLimitExceededError,
    SessionNotFoundError,
)
from core.interfaces import ISessionStore, ITextGenerationBackend
from services.context_builder import (
    MODEL_CONTEXT_LIMITS,
    ContextBuilder,
    estimate_token_count,
    get_context_limit,
)
from utils.common import generate_id, get_file_extension, utc_now

logger = logging.getLogger(settings.LOGGER_NAME)

CHAT_FAILURE_MESSAGE = "Failed to get response from AI model. Please try again."
DEFAULT_SESSION_TITLE = "New Chat"

_STREAM_END = object()


def _analysis_content(result: ProcessingResult) -> str:
    """Attachment text for one processed file, as shown to the tutor model."""
    if not (result.success and result.text):
        return f"Failed to process {result.file_name}: {result.error or 'Unknown error'}"

    lines = [
        "DOCUMENT ANALYSIS:",
        f"File: {result.file_name}",
        f"Type: {result.file_type.upper()}",
        f"Word Count: {result.word_count}",
        f"Processing Time: {result.processing_time:.2f}s",
        "",
        "EXTRACTED CONTENT:",
        result.text,
        "",
    ]
    if result.metadata.page_count:
        lines.append(f"Pages: {result.metadata.page_count}")
    if result.metadata.slide_count:
        lines.append(f"Slides: {result.metadata.slide_count}")
    if result.metadata.ocr_used:
        lines.append("Note: OCR was used to extract text from images")
    if result.quiz:
        lines.append(f"QUIZ AVAILABLE: {len(result.quiz)} questions generated")
    if result.error:
        lines.append(f"Processing Notes: {result.error}")
    return "\n".join(lines).rstrip() + "\n"


class ChatService:
    """
    Tutor chat over a caller-owned session store.

    Every mutation re-reads the session, applies the change, advances
    updated_at and writes the session back.
    """

    def __init__(
        self,
        store: ISessionStore,
        backend: Optional[ITextGenerationBackend] = None,
        context_builder: Optional[ContextBuilder] = None,
    ):
        self.store = store
        self.backend = backend
        self.context = context_builder or ContextBuilder()

    # -----------------------------
    # Sessions
    # -----------------------------
    @staticmethod
    def _touch(session: ChatSession) -> None:
        now = utc_now()
        if now <= session.updated_at:
            now = session.updated_at + timedelta(microseconds=1)
        session.updated_at = now

    async def _save(self, session: ChatSession) -> None:
        self._touch(session)
        await self.store.put(session)

    async def _require(self, session_id: str) -> ChatSession:
        session = await self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def create_session(self, title: str = "", model: str = settings.DEFAULT_CHAT_MODEL) -> ChatSession:
        now = utc_now()
        session = ChatSession(
            id=generate_id("session"),
            title=title or DEFAULT_SESSION_TITLE,
            model=model,
            created_at=now,
            updated_at=now,
        )
        await self.store.put(session)
        logger.info(f"Created chat session {session.id} ({model})")
        return session

    async def get_sessions(self) -> List[ChatSession]:
        return await self.store.list_all()

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        return await self.store.get(session_id)

    async def delete_session(self, session_id: str) -> bool:
        deleted = await self.store.delete(session_id)
        if deleted:
            logger.info(f"Deleted chat session {session_id}")
        return deleted

    async def add_message(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        attachments: Optional[List[ChatAttachment]] = None,
    ) -> ChatMessage:
        session = await self._require(session_id)
        message = ChatMessage(
            id=generate_id("msg"),
            role=role,
            content=content,
            timestamp=utc_now(),
            attachments=attachments,
        )
        session.messages.append(message)
        await self._save(session)
        return message

    async def add_document_to_session(self, session_id: str, document: ChatAttachment) -> None:
        session = await self._require(session_id)
        session.documents.append(document)
        await self._save(session)

    async def remove_document_from_session(self, session_id: str, document_id: str) -> None:
        session = await self._require(session_id)
        session.documents = [d for d in session.documents if d.id != document_id]
        await self._save(session)

    async def attach_processing_results(
        self, session_id: str, batch: BatchProcessingResult
    ) -> List[ChatAttachment]:
        """Attach every processed file to the session and post a status message."""
        session = await self._require(session_id)

        attachments = []
        for result in batch.results:
            is_image = get_file_extension(result.file_name) in settings.IMAGE_EXTENSIONS
            attachments.append(
                ChatAttachment(
                    id=generate_id("attachment"),
                    name=result.file_name,
                    type=AttachmentKind.IMAGE if is_image else AttachmentKind.DOCUMENT,
                    size=result.file_size,
                    content=_analysis_content(result),
                )
            )
        session.documents.extend(attachments)
        await self._save(session)

        processed = sum(1 for r in batch.results if r.success)
        failed = len(batch.results) - processed
        status = f"Processed {processed} document(s) successfully"
        if failed:
            status += f" ({failed} failed)"
        status += ". I can now help you understand and study these materials!"
        await self.add_message(session_id, MessageRole.ASSISTANT, status)

        return attachments

    # -----------------------------
    # Chat completion
    # -----------------------------
    async def stream_message(self, session_id: str, text: str, config: ChatConfig) -> AsyncIterator[str]:
        """
        Send a user turn and yield the reply deltas as they arrive.

        The user message is persisted before anything is sent. The full reply is
        persisted once the stream completes; a consumer that stops early leaves
        no assistant message behind.

        Raises:
            SessionNotFoundError: Unknown session id
            ConfigurationError: No text backend configured
            ContextLimitExceededError: Context plus the new message exceeds the model budget
            ChatCompletionError: The backend failed (an error message is appended first)
        """
        session = await self._require(session_id)
        if self.backend is None:
            raise ConfigurationError("GROQ_API_KEY is required for chat")

        limit = get_context_limit(config.selected_model, config.context_limit)
        estimated = estimate_token_count(self.context.build(session, config) + text)
        messages = self.context.build_messages(session, config)
        messages.append({"role": MessageRole.USER.value, "content": text})

        await self.add_message(session_id, MessageRole.USER, text)
        if estimated > limit:
            logger.warning(f"Context limit exceeded for session {session_id}: {estimated} > {limit}")
            raise ContextLimitExceededError(estimated, limit)

        max_tokens = min(config.max_tokens, settings.CHAT_MAX_TOKENS_CEILING)
        reply: List[str] = []
        try:
            deltas = await asyncio.to_thread(
                self.backend.stream, messages, config.selected_model, config.temperature, max_tokens
            )
            while True:
                delta = await asyncio.to_thread(next, deltas, _STREAM_END)
                if delta is _STREAM_END:
                    break
                if delta:
                    reply.append(delta)
                    yield delta
        except Exception as e:
            logger.error(f"Chat completion error for session {session_id}: {e}", exc_info=True)
            await self.add_message(session_id, MessageRole.ASSISTANT, f"{CHAT_FAILURE_MESSAGE} ({e})")
            raise ChatCompletionError(CHAT_FAILURE_MESSAGE) from e

        await self.add_message(session_id, MessageRole.ASSISTANT, "".join(reply))

    async def send_message(
        self,
        session_id: str,
        text: str,
        config: ChatConfig,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Drain stream_message, calling on_chunk for each delta. Returns the full reply."""
        reply = []
        async for delta in self.stream_message(session_id, text, config):
            if on_chunk:
                on_chunk(delta)
            reply.append(delta)
        return "".join(reply)

    # -----------------------------
    # Models
    # -----------------------------
    @staticmethod
    def is_valid_model(model: str) -> bool:
        return model in MODEL_CONTEXT_LIMITS

    @staticmethod
    def get_available_models() -> List[Dict[str, Any]]:
        return [
            {
                "id": model_id,
                "name": re.sub(r"\b\w", lambda m: m.group().upper(), model_id.replace("-", " ")),
                "contextLimit": limit,
            }
            for model_id, limit in MODEL_CONTEXT_LIMITS.items()
        ]
