# api/schemas.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Union

from config import settings
from core.domain import (
    AttachmentKind, Difficulty, ErrorCode, MessageRole, ProcessingStatus,
    QuestionMix, QuestionType,
)

# ---------- Documents ----------

class ProcessingMetadataSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    page_count: Optional[int] = None
    slide_count: Optional[int] = None
    is_image_based: Optional[bool] = None
    ocr_used: Optional[bool] = None

class QuizQuestionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: QuestionType
    question: str
    options: Optional[List[str]] = None
    correct_answer: Union[bool, str, None] = None
    explanation: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM

class ProcessDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    file_type: str
    file_name: str
    file_size: int
    text: str = ""
    word_count: int = 0
    processing_time: float = 0.0  # seconds
    quiz: Optional[List[QuizQuestionSchema]] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    quiz_error: Optional[str] = None
    metadata: ProcessingMetadataSchema = Field(default_factory=ProcessingMetadataSchema)

class BatchProcessingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    results: List[ProcessDocumentResponse]
    total_files: int
    successful_files: int
    failed_files: int
    total_processing_time: float

class BatchAccepted(BaseModel):
    batch_id: str
    total_files: int
    status: ProcessingStatus = ProcessingStatus.PENDING

class BatchProgress(BaseModel):
    batch_id: str
    status: ProcessingStatus
    is_processing: bool
    current_file: str
    completed: int
    total: int
    percentage: int  # 0-100
    error: Optional[str] = None
    result: Optional[BatchProcessingResponse] = None

# ---------- Quiz ----------

class QuizOptionsSchema(BaseModel):
    num_questions: int = Field(5, ge=1, le=50)
    difficulty: Difficulty = Difficulty.MEDIUM
    question_type: QuestionMix = QuestionMix.MIXED

class QuizRequest(BaseModel):
    text: str
    options: QuizOptionsSchema = Field(default_factory=QuizOptionsSchema)
    model: Optional[str] = None

class QuizResponse(BaseModel):
    questions: List[QuizQuestionSchema]
    total_questions: int

# ---------- Service info ----------

class ModelInfo(BaseModel):
    id: str
    name: str
    context_limit: int

class ServiceHealth(BaseModel):
    groq: bool
    mistral: bool

# ---------- Chat ----------

class CreateSessionRequest(BaseModel):
    title: str = ""
    model: str = settings.DEFAULT_CHAT_MODEL

class ChatAttachmentSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: AttachmentKind
    size: int
    content: Optional[str] = None
    url: Optional[str] = None

class ChatMessageSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    role: MessageRole
    content: str
    timestamp: datetime
    attachments: Optional[List[ChatAttachmentSchema]] = None

class ChatSessionSummary(BaseModel):
    id: str
    title: str
    model: str
    created_at: datetime
    updated_at: datetime
    message_count: int
    document_count: int

class ChatSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    model: str
    created_at: datetime
    updated_at: datetime
    messages: List[ChatMessageSchema]
    documents: List[ChatAttachmentSchema]

class ChatMessageRequest(BaseModel):
    content: str = Field(..., min_length=1)
    model: Optional[str] = None  # Defaults to the session's model
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(2048, ge=1)
    system_prompt: Optional[str] = None
    enable_document_context: bool = True
    context_limit: int = Field(settings.DEFAULT_CONTEXT_LIMIT_PERCENT, ge=1, le=100)

class AttachDocumentsResponse(BaseModel):
    attachments: List[ChatAttachmentSchema]
    successful_files: int
    failed_files: int

class DeleteResponse(BaseModel):
    status: str
    message: str
