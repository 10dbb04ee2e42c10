# infrastructure/document_processors.py
"""Text extractors, one per file family.

- PlainTextExtractor: UTF-8 passthrough.
- PDFExtractor: the whole PDF goes to the OCR/vision backend as a single unit, so
  page_count is always reported as 1 and the document is always treated as
  image-based, even when it has a text layer.
- ImageExtractor: whole-image OCR.
- DOCXExtractor: paragraph text only. Embedded images are NOT OCR'd.
- PPTXExtractor: per-slide shape text (python-pptx) plus OCR of the first few embedded
  raster images, each section labelled by its source.

Extractors never raise; failures come back in ExtractionResult.error.
"""
from __future__ import annotations

import asyncio
import io
import logging
import re
import zipfile
from typing import Iterator, List, Optional, Tuple, Union

import docx
from pptx import Presentation
from pptx.exc import PackageNotFoundError
from pptx.parts.image import ImagePart
from pptx.shapes.group import GroupShape
from pptx.slide import Slide

from config import settings
from core.domain import ErrorCode, ExtractionResult, FileInput, ProcessingMetadata
from core.interfaces import IExtractor, IOCRBackend
from infrastructure.image_utils import ImageProcessor
from utils.common import count_words, get_file_extension

logger = logging.getLogger(settings.LOGGER_NAME)

# -----------------------------
# Configuration
# -----------------------------
MEDIA_IMAGE_PATTERN = re.compile(r"^/ppt/media/.+\.(jpg|jpeg|png|gif)$", re.IGNORECASE)
SECTION_SEPARATOR = "\n\n"


def _ocr_unavailable(kind: str, metadata: Optional[ProcessingMetadata] = None) -> ExtractionResult:
    return ExtractionResult(
        success=False,
        metadata=metadata or ProcessingMetadata(),
        error=f"OCR service not available for {kind} processing",
        error_code=ErrorCode.OCR_UNAVAILABLE,
    )


# -----------------------------
# Plain text
# -----------------------------
class PlainTextExtractor(IExtractor):
    async def extract(self, file: FileInput) -> ExtractionResult:
        # Undecodable bytes become U+FFFD rather than failing the read
        text = file.data.decode("utf-8-sig", errors="replace")
        return ExtractionResult(success=True, text=text)


# -----------------------------
# OCR-backed extractors
# -----------------------------
class _OCRExtractor(IExtractor):
    """Sends the whole file to the OCR/vision backend."""

    kind = "document"

    def __init__(self, ocr: Optional[IOCRBackend] = None):
        self.ocr = ocr

    def _metadata(self) -> ProcessingMetadata:
        return ProcessingMetadata(ocr_used=True)

    async def extract(self, file: FileInput) -> ExtractionResult:
        if self.ocr is None:
            return self._unavailable()

        mime_type = ImageProcessor.mime_type_for_extension(get_file_extension(file.name))
        logger.info(f"Running OCR on '{file.name}' ({file.size} bytes)")
        ocr_result = await asyncio.to_thread(self.ocr.extract_text, file.data, mime_type)

        return ExtractionResult(
            success=ocr_result.success,
            text=ocr_result.text,
            metadata=self._metadata(),
            error=ocr_result.error,
            error_code=None if ocr_result.success else ErrorCode.PROCESSING_FAILED,
        )

    def _unavailable(self) -> ExtractionResult:
        return _ocr_unavailable(self.kind)


class PDFExtractor(_OCRExtractor):
    kind = "PDF"

    def _metadata(self) -> ProcessingMetadata:
        # The backend reads the PDF as one unit
        return ProcessingMetadata(page_count=1, is_image_based=True, ocr_used=True)

    def _unavailable(self) -> ExtractionResult:
        return _ocr_unavailable(
            self.kind, ProcessingMetadata(page_count=0, is_image_based=True, ocr_used=True)
        )


class ImageExtractor(_OCRExtractor):
    kind = "image"


# -----------------------------
# Office containers
# -----------------------------
class DOCXExtractor(IExtractor):
    """Paragraph text of a Word document."""

    @staticmethod
    def _read_paragraphs(data: bytes) -> str:
        document = docx.Document(io.BytesIO(data))
        return SECTION_SEPARATOR.join(p.text for p in document.paragraphs)

    async def extract(self, file: FileInput) -> ExtractionResult:
        try:
            text = await asyncio.to_thread(self._read_paragraphs, file.data)
        except Exception as e:
            logger.error(f"DOCX extraction failed for '{file.name}': {e}", exc_info=True)
            return ExtractionResult(
                success=False,
                error=f"DOCX processing error: {e}",
                error_code=ErrorCode.PROCESSING_FAILED,
            )
        return ExtractionResult(success=True, text=text, word_count=count_words(text))


def _shape_texts(shapes) -> Iterator[str]:
    """Text of every shape, descending into groups and table cells."""
    for shape in shapes:
        if isinstance(shape, GroupShape):
            yield from _shape_texts(shape.shapes)
        elif shape.has_text_frame:
            yield shape.text_frame.text
        elif getattr(shape, "has_table", False):
            for row in shape.table.rows:
                for cell in row.cells:
                    yield cell.text


def extract_slide_text(slide: Slide) -> str:
    """All text on one slide, whitespace-collapsed."""
    runs = [text for text in _shape_texts(slide.shapes) if text]
    return re.sub(r"\s+", " ", " ".join(runs)).strip()


def _natural_key(name: str) -> List[Union[int, str]]:
    return [int(token) if token.isdigit() else token for token in re.split(r"(\d+)", name)]


def read_presentation(data: bytes, max_images: int) -> Tuple[List[str], List[Tuple[str, bytes]]]:
    """
    Return (slide_texts, images) from a PPTX file.

    slide_texts: one entry per slide, in presentation order.
    images: (part_name, bytes) for the first `max_images` raster media parts,
    ordered by part name (image2 before image10).
    """
    prs = Presentation(io.BytesIO(data))
    slide_texts = [extract_slide_text(slide) for slide in prs.slides]

    media = sorted(
        (
            part for part in prs.part.package.iter_parts()
            if isinstance(part, ImagePart) and MEDIA_IMAGE_PATTERN.match(str(part.partname))
        ),
        key=lambda part: _natural_key(str(part.partname)),
    )
    images = [(str(part.partname).lstrip("/"), part.blob) for part in media[:max_images]]
    return slide_texts, images


class PPTXExtractor(IExtractor):
    """Slide text plus OCR of embedded raster images."""

    def __init__(self, ocr: Optional[IOCRBackend] = None, max_images: int = settings.PPTX_MAX_OCR_IMAGES):
        self.ocr = ocr
        self.max_images = max_images

    async def _ocr_images(self, images: List[Tuple[str, bytes]]) -> List[str]:
        sections: List[str] = []
        for name, payload in images:
            mime_type = ImageProcessor.mime_type_for_extension(get_file_extension(name))
            try:
                result = await asyncio.to_thread(self.ocr.extract_text, payload, mime_type)
            except Exception as e:
                logger.warning(f"Failed to process image {name}: {e}")
                continue
            if result.success and result.text.strip():
                sections.append(f"--- Image: {name} ---\n{result.text}")
            elif not result.success:
                logger.warning(f"OCR failed for image {name}: {result.error}")
        return sections

    async def extract(self, file: FileInput) -> ExtractionResult:
        max_images = self.max_images if self.ocr is not None else 0
        try:
            slides, images = await asyncio.to_thread(read_presentation, file.data, max_images)
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
            logger.error(f"PPTX extraction failed for '{file.name}': {e}")
            return ExtractionResult(
                success=False,
                metadata=ProcessingMetadata(slide_count=0),
                error=f"PPTX processing error: {e}",
                error_code=ErrorCode.PROCESSING_FAILED,
            )

        sections: List[str] = []
        for number, slide_text in enumerate(slides, start=1):
            if slide_text:
                sections.append(f"--- Slide {number} ---\n{slide_text}")

        if images:
            sections.extend(await self._ocr_images(images))

        logger.info(f"PPTX '{file.name}': {len(slides)} slides, {len(images)} images sent to OCR")
        return ExtractionResult(
            success=True,
            text=SECTION_SEPARATOR.join(sections),
            metadata=ProcessingMetadata(slide_count=len(slides), ocr_used=bool(images)),
        )
