# services/factory.py
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from config import settings
from core.interfaces import IOCRBackend, ISessionStore, ITextGenerationBackend
from infrastructure.llm_clients import GroqChatClient
from infrastructure.ocr_service import MistralOCRService
from infrastructure.repositories import InMemorySessionStore, SQLSessionStore
from services.chat_service import ChatService
from services.document_processor_factory import DocumentProcessorFactory
from services.document_service import DocumentProcessingService

# Provider functions for each component
@lru_cache
def get_text_backend() -> Optional[ITextGenerationBackend]:
    """Text generation client, or None when no Groq key is configured."""
    if not settings.GROQ_API_KEY:
        return None
    return GroqChatClient()

@lru_cache
def get_ocr_backend() -> Optional[IOCRBackend]:
    """OCR client, or None when no Mistral key is configured."""
    if not settings.MISTRAL_API_KEY:
        return None
    return MistralOCRService()

@lru_cache
def get_session_store() -> ISessionStore:
    """Create session store based on configuration."""
    if settings.SESSION_STORE_TYPE == "sql":
        return SQLSessionStore()
    elif settings.SESSION_STORE_TYPE == "memory":
        return InMemorySessionStore()
    else:
        raise ValueError(f"Unknown session store type: {settings.SESSION_STORE_TYPE}")

# Main service providers using FastAPI DI
def get_document_service(
    text_backend: Optional[ITextGenerationBackend] = Depends(get_text_backend),
    ocr: Optional[IOCRBackend] = Depends(get_ocr_backend),
) -> DocumentProcessingService:
    """
    Create document processing service with injected backends.

    Easy to override individual components for testing.
    """
    return DocumentProcessingService(
        text_backend=text_backend,
        ocr=ocr,
        factory=DocumentProcessorFactory(ocr),
    )

def get_chat_service(
    store: ISessionStore = Depends(get_session_store),
    backend: Optional[ITextGenerationBackend] = Depends(get_text_backend),
) -> ChatService:
    return ChatService(store=store, backend=backend)
