# services/document_processor_factory.py
"""Maps file extensions to text extractors"""
import logging
from typing import Dict, Optional

from config import settings
from core.domain import ErrorCode
from core.exceptions import DocumentProcessingError
from core.interfaces import IExtractor, IOCRBackend
from infrastructure.document_processors import (
    DOCXExtractor,
    ImageExtractor,
    PDFExtractor,
    PlainTextExtractor,
    PPTXExtractor,
)

logger = logging.getLogger(settings.LOGGER_NAME)


class DocumentProcessorFactory:
    """
    Factory returning the extractor for a file type ("pdf", "docx", "png", ...).
    OCR-backed extractors share the single OCR backend given at construction;
    without one they report an explicit "OCR service not available" error.
    """

    def __init__(self, ocr: Optional[IOCRBackend] = None):
        self.ocr = ocr
        image_extractor = ImageExtractor(ocr)
        self._extractors: Dict[str, IExtractor] = {
            "txt": PlainTextExtractor(),
            "pdf": PDFExtractor(ocr),
            "docx": DOCXExtractor(),
            "pptx": PPTXExtractor(ocr),
        }
        for extension in settings.IMAGE_EXTENSIONS:
            self._extractors[extension] = image_extractor

    def get_extractor(self, file_type: str) -> IExtractor:
        """
        Get the extractor for a file type.

        Raises:
            DocumentProcessingError: If no extractor handles the type
        """
        extractor = self._extractors.get(file_type.lower())
        if extractor is None:
            raise DocumentProcessingError(f"Unsupported file type: {file_type}", ErrorCode.INVALID_FORMAT)
        return extractor
