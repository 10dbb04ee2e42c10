# core/interfaces.py
"""Core interfaces for the study assistant"""
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional

from core.domain import ChatSession, ExtractionResult, FileInput, OCRResult

# ============= Text Generation Interface =============
class ITextGenerationBackend(ABC):
    """Hosted large-language-model chat completions (blocking transport)."""

    @abstractmethod
    def complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Return the full completion text. Raises TextGenerationError."""
        pass

    @abstractmethod
    def stream(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> Iterator[str]:
        """Yield completion deltas in arrival order. Raises TextGenerationError."""
        pass

    @abstractmethod
    def test_connection(self, model: Optional[str] = None) -> bool:
        pass

# ============= OCR Interface =============
class IOCRBackend(ABC):
    """Hosted OCR/vision capability."""

    @abstractmethod
    def extract_text(self, data: bytes, mime_type: str) -> OCRResult:
        """
        Read text out of an image or a whole scanned document.
        Never raises: failures come back as OCRResult(success=False, error=...).
        """
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        pass

# ============= Extractor Interface =============
class IExtractor(ABC):
    """Converts one file format's bytes into plain text."""

    @abstractmethod
    async def extract(self, file: FileInput) -> ExtractionResult:
        """Extract text. Failures are reported in the result, not raised."""
        pass

# ============= Session Store Interface =============
class ISessionStore(ABC):
    """
    Caller-owned key-value persistence for chat sessions, keyed by session id.
    Implementations: InMemorySessionStore, SQLSessionStore.
    """

    @abstractmethod
    async def get(self, session_id: str) -> Optional[ChatSession]:
        pass

    @abstractmethod
    async def put(self, session: ChatSession) -> None:
        """Insert or replace the session stored under session.id"""
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        pass

    @abstractmethod
    async def list_all(self) -> List[ChatSession]:
        pass
