# core/domain.py
"""Shared enumerations and domain models used across the application."""
from enum import Enum

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional, Union

# ============= Enums =============

class ErrorCode(str, Enum):
    """Error codes for user-facing error messages."""
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_FORMAT = "INVALID_FORMAT"
    OCR_UNAVAILABLE = "OCR_UNAVAILABLE"
    PROCESSING_FAILED = "PROCESSING_FAILED"


class ProcessingStatus(str, Enum):
    """Batch processing lifecycle."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class QuestionType(str, Enum):
    MCQ = "mcq"
    TRUE_FALSE = "true_false"


class QuestionMix(str, Enum):
    """Requested question type for a whole quiz."""
    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    MIXED = "mixed"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class AttachmentKind(str, Enum):
    DOCUMENT = "document"
    IMAGE = "image"


DEFAULT_TUTOR_PROMPT = """You are an AI study tutor helping a student learn from their own study materials.

For every answer:
1. Explain the concept clearly, starting from what the student already knows
2. Use examples drawn from the uploaded documents whenever they exist
3. Highlight definitions, formulas and facts that are likely to be examined
4. Offer a practical study tip or memory aid
5. End with a short question that checks the student's understanding

Keep explanations structured and academic in tone, and say so plainly when the materials do not cover a question."""


# ============= Document Processing Models =============

@dataclass
class FileInput:
    """Raw upload: a dotted file name plus its bytes."""
    name: str
    data: bytes
    size: Optional[int] = None

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.data)


@dataclass
class FileValidation:
    is_valid: bool
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None


@dataclass
class ProcessingMetadata:
    page_count: Optional[int] = None
    slide_count: Optional[int] = None
    is_image_based: Optional[bool] = None
    ocr_used: Optional[bool] = None


@dataclass
class OCRResult:
    """Outcome of one OCR/vision call. `error` is set when `success` is False."""
    success: bool
    text: str
    confidence: float
    processing_time: float
    error: Optional[str] = None


@dataclass
class ExtractionResult:
    """What an extractor hands back to the orchestrator."""
    success: bool
    text: str = ""
    word_count: int = 0
    metadata: ProcessingMetadata = field(default_factory=ProcessingMetadata)
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None


@dataclass(frozen=True)
class QuizQuestion:
    """One validated quiz question. MCQ items carry 4 options, true/false items a bool answer."""
    id: str
    type: QuestionType
    question: str
    correct_answer: Union[str, bool, None]
    explanation: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    options: Optional[List[str]] = None


@dataclass
class QuizOptions:
    num_questions: int = 5
    difficulty: Difficulty = Difficulty.MEDIUM
    question_type: QuestionMix = QuestionMix.MIXED


@dataclass
class ProcessingOptions:
    """Per-call processing knobs (the AI configuration a user picks)."""
    generate_quiz: bool = False
    quiz_options: QuizOptions = field(default_factory=QuizOptions)
    text_model: Optional[str] = None


@dataclass
class ProcessingResult:
    """Outcome of extracting (and optionally quizzing) one file. Never persisted by the core."""
    success: bool
    file_type: str
    file_name: str
    file_size: int
    text: str = ""
    word_count: int = 0
    processing_time: float = 0.0
    quiz: Optional[List[QuizQuestion]] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    quiz_error: Optional[str] = None
    metadata: ProcessingMetadata = field(default_factory=ProcessingMetadata)


@dataclass
class BatchProcessingResult:
    results: List[ProcessingResult]
    total_files: int
    successful_files: int
    failed_files: int
    total_processing_time: float


# ============= Quiz Parsing =============

@dataclass
class ParseOk:
    questions: List[QuizQuestion]


@dataclass
class ParseError:
    reason: str
    raw_snippet: str


ParseResult = Union[ParseOk, ParseError]


# ============= Chat Models =============

@dataclass
class ChatConfig:
    selected_model: str = "llama-3.1-70b-versatile"
    temperature: float = 0.7
    max_tokens: int = 2048
    system_prompt: str = DEFAULT_TUTOR_PROMPT
    enable_document_context: bool = True
    context_limit: int = 80  # Percentage of the model's context window


@dataclass(frozen=True)
class ChatAttachment:
    id: str
    name: str
    type: AttachmentKind
    size: int
    content: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "size": self.size,
            "content": self.content,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatAttachment":
        return cls(
            id=data["id"],
            name=data["name"],
            type=AttachmentKind(data.get("type", AttachmentKind.DOCUMENT.value)),
            size=int(data.get("size", 0)),
            content=data.get("content"),
            url=data.get("url"),
        )


@dataclass(frozen=True)
class ChatMessage:
    id: str
    role: MessageRole
    content: str
    timestamp: datetime
    attachments: Optional[List[ChatAttachment]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "attachments": (
                [a.to_dict() for a in self.attachments] if self.attachments is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        attachments = data.get("attachments")
        return cls(
            id=data["id"],
            role=MessageRole(data["role"]),
            content=data.get("content", ""),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            attachments=(
                [ChatAttachment.from_dict(a) for a in attachments] if attachments is not None else None
            ),
        )


@dataclass
class ChatSession:
    """A persisted conversation. `updated_at` advances on every mutation."""
    id: str
    title: str
    model: str
    created_at: datetime
    updated_at: datetime
    messages: List[ChatMessage] = field(default_factory=list)
    documents: List[ChatAttachment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "model": self.model,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "messages": [m.to_dict() for m in self.messages],
            "documents": [d.to_dict() for d in self.documents],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatSession":
        """Re-hydrate a stored session, turning ISO strings back into datetimes."""
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            model=data.get("model", ""),
            created_at=datetime.fromisoformat(data["createdAt"]),
            updated_at=datetime.fromisoformat(data["updatedAt"]),
            messages=[ChatMessage.from_dict(m) for m in data.get("messages", [])],
            documents=[ChatAttachment.from_dict(d) for d in data.get("documents", [])],
        )
