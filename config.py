# config.py
"""Application configuration for the study assistant core"""
from typing import List, Optional
from pydantic_settings import BaseSettings
from utils.common import get_log_file_path

class Settings(BaseSettings):
    """Application configuration"""

    # Logger configuration
    LOG_FILE_PATH: str = get_log_file_path()
    LOGGER_NAME: str = "studyquest"
    LOG_LEVEL: str = "INFO"  # Console level; the file always records DEBUG
    LOG_MAX_BYTES: int = 5 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # Chat session persistence
    DATABASE_URL: str = "sqlite+aiosqlite:///./chat_sessions.db"
    SESSION_STORE_TYPE: str = "sql"  # Options: sql, memory

    # Text generation backend (OpenAI-compatible chat completions)
    GROQ_API_KEY: Optional[str] = None
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    DEFAULT_TEXT_MODEL: str = "llama-3.3-70b-versatile"

    # OCR / vision backend
    MISTRAL_API_KEY: Optional[str] = None
    MISTRAL_BASE_URL: str = "https://api.mistral.ai/v1"
    DEFAULT_OCR_MODEL: str = "pixtral-12b-2409"
    OCR_MAX_TOKENS: int = 16000

    # Transport
    REQUEST_TIMEOUT: int = 120

    # Document processing
    MAX_FILE_SIZE: int = 50 * 1024 * 1024
    SUPPORTED_FILE_TYPES: List[str] = [
        "pdf", "docx", "pptx", "txt", "jpg", "jpeg", "png", "gif", "bmp", "webp"
    ]
    IMAGE_EXTENSIONS: List[str] = ["jpg", "jpeg", "png", "gif", "bmp", "webp"]
    PPTX_MAX_OCR_IMAGES: int = 5

    # Quiz generation
    QUIZ_TEXT_CHAR_LIMIT: int = 20000
    MIN_QUIZ_TEXT_LENGTH: int = 100
    QUIZ_TEMPERATURE: float = 0.7
    QUIZ_MAX_TOKENS: int = 8000  # Room for ~15 questions with explanations

    # Chat
    CHAT_MAX_TOKENS_CEILING: int = 4096
    DOCUMENT_CONTEXT_CHARS: int = 2000
    DEFAULT_CONTEXT_LIMIT_PERCENT: int = 80
    DEFAULT_CHAT_MODEL: str = "llama-3.1-70b-versatile"

    # App metadata
    APP_TITLE: str = "StudyQuest Learning Core"
    APP_VERSION: str = "1.0.0"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
