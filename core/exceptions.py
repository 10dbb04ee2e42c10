# core/exceptions.py
"""Error taxonomy for processing, quiz generation and chat."""
from typing import Optional

from core.domain import ErrorCode


class StudyQuestError(Exception):
    """Base class for all errors raised by the core."""


class ConfigurationError(StudyQuestError):
    """Missing API credential or unselected model. Raised before any network call."""


class DocumentProcessingError(StudyQuestError):
    """Raised when document processing fails with a specific error code"""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.PROCESSING_FAILED):
        self.message = message
        self.error_code = error_code
        super().__init__(message)

    def __str__(self):
        return self.message


class InsufficientContentError(StudyQuestError):
    """Not enough text to build a quiz from."""


class TextGenerationError(StudyQuestError):
    """The text-generation backend failed or returned nothing usable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class QuizParseError(StudyQuestError):
    """No valid question list could be recovered from model output."""

    def __init__(self, reason: str, raw_snippet: str = ""):
        self.reason = reason
        self.raw_snippet = raw_snippet
        super().__init__(f"Failed to parse quiz response from AI: {reason}")


class QuizGenerationError(StudyQuestError):
    """Wraps any backend or parse failure during quiz generation."""


class SessionNotFoundError(StudyQuestError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__("Session not found")


class ContextLimitExceededError(StudyQuestError):
    """The prompt for the next turn would not fit the model's context budget."""

    def __init__(self, estimated_tokens: int, limit: int):
        self.estimated_tokens = estimated_tokens
        self.limit = limit
        super().__init__(
            "Context limit exceeded. Please start a new chat session or reduce document content. "
            f"Current: {estimated_tokens}, Limit: {limit} tokens."
        )


class ChatCompletionError(StudyQuestError):
    """The chat backend failed; the failure has already been logged to the session."""
