# services/document_service.py
import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from config import settings
from core.domain import (
    BatchProcessingResult,
    ErrorCode,
    FileInput,
    FileValidation,
    ProcessingOptions,
    ProcessingResult,
    QuizOptions,
    QuizQuestion,
)
from core.exceptions import (
    ConfigurationError,
    DocumentProcessingError,
    InsufficientContentError,
    StudyQuestError,
)
from core.interfaces import IOCRBackend, ITextGenerationBackend
from services.document_processor_factory import DocumentProcessorFactory
from services.quiz_generator import QuizGenerator
from utils.common import count_words, get_file_extension, truncate_text

logger = logging.getLogger(settings.LOGGER_NAME)

ProgressCallback = Callable[[int, int, str], None]

QUIZ_TRUNCATION_MARKER = "\n\n[Content truncated for quiz generation]"
DOCUMENT_SEPARATOR = "\n\n--- Document Separator ---\n\n"


class DocumentProcessingService:
    """
    Orchestrates validation → extraction → optional quiz generation for uploaded files.

    Failures are reported on the ProcessingResult, never raised, so one bad
    file cannot abort a batch.
    """

    def __init__(
        self,
        text_backend: Optional[ITextGenerationBackend] = None,
        ocr: Optional[IOCRBackend] = None,
        factory: Optional[DocumentProcessorFactory] = None,
        default_text_model: Optional[str] = settings.DEFAULT_TEXT_MODEL,
    ):
        self.text_backend = text_backend
        self.ocr = ocr
        self.factory = factory or DocumentProcessorFactory(ocr)
        self.default_text_model = default_text_model

    # -----------------------------
    # Validation
    # -----------------------------
    @staticmethod
    def supported_file_types() -> List[str]:
        return list(settings.SUPPORTED_FILE_TYPES)

    @staticmethod
    def max_file_size() -> int:
        return settings.MAX_FILE_SIZE

    @classmethod
    def is_file_type_supported(cls, filename: str) -> bool:
        return get_file_extension(filename) in cls.supported_file_types()

    @classmethod
    def validate_file(cls, file: FileInput) -> FileValidation:
        if not cls.is_file_type_supported(file.name):
            return FileValidation(
                is_valid=False,
                error=f"Unsupported file type. Supported types: {', '.join(cls.supported_file_types())}",
                error_code=ErrorCode.INVALID_FORMAT,
            )
        if file.size > cls.max_file_size():
            return FileValidation(
                is_valid=False,
                error=f"File too large. Maximum size: {cls.max_file_size() // (1024 * 1024)}MB",
                error_code=ErrorCode.FILE_TOO_LARGE,
            )
        return FileValidation(is_valid=True)

    # -----------------------------
    # Processing
    # -----------------------------
    async def process_document(
        self, file: FileInput, options: Optional[ProcessingOptions] = None
    ) -> ProcessingResult:
        options = options or ProcessingOptions()
        start = time.perf_counter()
        result = ProcessingResult(
            success=False,
            file_type=get_file_extension(file.name) or "unknown",
            file_name=file.name,
            file_size=file.size,
        )

        validation = self.validate_file(file)
        if not validation.is_valid:
            logger.warning(f"Rejected '{file.name}': {validation.error}")
            result.error = validation.error
            result.error_code = validation.error_code
            result.processing_time = time.perf_counter() - start
            return result

        try:
            extractor = self.factory.get_extractor(result.file_type)
            extraction = await extractor.extract(file)

            result.success = extraction.success
            result.text = extraction.text
            result.metadata = extraction.metadata
            result.error = extraction.error
            result.error_code = extraction.error_code
            result.word_count = extraction.word_count or count_words(extraction.text)

            if options.generate_quiz and result.success and result.text.strip():
                await self._attach_quiz(result, options)

        except DocumentProcessingError as e:
            result.success = False
            result.error = e.message
            result.error_code = e.error_code
        except Exception as e:
            logger.error(f"Processing failed for '{file.name}': {e}", exc_info=True)
            result.success = False
            result.error = str(e) or "Unknown error"
            result.error_code = ErrorCode.PROCESSING_FAILED

        result.processing_time = time.perf_counter() - start
        logger.info(
            f"Processed '{file.name}' in {result.processing_time:.2f}s "
            f"(success={result.success}, words={result.word_count})"
        )
        return result

    async def _attach_quiz(self, result: ProcessingResult, options: ProcessingOptions) -> None:
        """Quiz failure is recorded in quiz_error and never fails the extraction."""
        text = result.text
        if len(text) > settings.QUIZ_TEXT_CHAR_LIMIT:
            logger.info(f"Text truncated to {settings.QUIZ_TEXT_CHAR_LIMIT} characters for quiz generation")
            text = truncate_text(text, settings.QUIZ_TEXT_CHAR_LIMIT, QUIZ_TRUNCATION_MARKER)

        try:
            result.quiz = await self.generate_quiz_from_text(text, options.quiz_options, options.text_model)
        except StudyQuestError as e:
            logger.error(f"Quiz generation failed for '{result.file_name}': {e}")
            result.quiz_error = str(e) or "Quiz generation failed"
        except Exception as e:
            logger.error(f"Unexpected quiz failure for '{result.file_name}': {e}", exc_info=True)
            result.quiz_error = f"Failed to generate quiz: {e}"

    async def process_batch(
        self,
        files: List[FileInput],
        options: Optional[ProcessingOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchProcessingResult:
        """Process files one after another, reporting progress before each file and once at the end."""
        start = time.perf_counter()
        total = len(files)
        results: List[ProcessingResult] = []

        for index, file in enumerate(files):
            if on_progress:
                on_progress(index, total, file.name)
            results.append(await self.process_document(file, options))

        if on_progress:
            on_progress(total, total, "")

        successful = sum(1 for r in results if r.success)
        return BatchProcessingResult(
            results=results,
            total_files=total,
            successful_files=successful,
            failed_files=total - successful,
            total_processing_time=time.perf_counter() - start,
        )

    # -----------------------------
    # Quiz generation
    # -----------------------------
    async def generate_quiz_from_text(
        self, text: str, quiz_options: Optional[QuizOptions] = None, model: Optional[str] = None
    ) -> List[QuizQuestion]:
        """
        Raises:
            InsufficientContentError: Text shorter than the quiz minimum
            ConfigurationError: No text backend or no model
            QuizGenerationError: Backend or parse failure
        """
        if len((text or "").strip()) < settings.MIN_QUIZ_TEXT_LENGTH:
            raise InsufficientContentError("Insufficient content for quiz generation")
        if self.text_backend is None:
            raise ConfigurationError("Groq API key required for quiz generation")

        model = model or self.default_text_model
        if not model:
            raise ConfigurationError("Please select a Groq model for quiz generation")

        generator = QuizGenerator(self.text_backend, model)
        return await generator.generate(text, quiz_options or QuizOptions())

    async def generate_quiz_from_documents(
        self,
        results: List[ProcessingResult],
        quiz_options: Optional[QuizOptions] = None,
        model: Optional[str] = None,
    ) -> List[QuizQuestion]:
        combined = DOCUMENT_SEPARATOR.join(r.text for r in results if r.success and r.text.strip())
        if len(combined.strip()) < settings.MIN_QUIZ_TEXT_LENGTH:
            raise InsufficientContentError("Insufficient content from documents for quiz generation")
        return await self.generate_quiz_from_text(combined, quiz_options, model)

    # -----------------------------
    # Diagnostics
    # -----------------------------
    async def test_services(self) -> Dict[str, bool]:
        status = {"groq": False, "mistral": False}

        if self.text_backend is not None:
            try:
                status["groq"] = await asyncio.to_thread(self.text_backend.test_connection, self.default_text_model)
            except Exception as e:
                logger.error(f"Groq test failed: {e}")

        if self.ocr is not None:
            try:
                status["mistral"] = await asyncio.to_thread(self.ocr.test_connection)
            except Exception as e:
                logger.error(f"Mistral test failed: {e}")

        return status
