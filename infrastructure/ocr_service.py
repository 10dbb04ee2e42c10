# infrastructure/ocr_service.py
import logging
import time
from typing import Any, Dict, Optional

import requests

from config import settings
from core.domain import OCRResult
from core.exceptions import ConfigurationError
from core.interfaces import IOCRBackend
from infrastructure.image_utils import ImageProcessor

logger = logging.getLogger(settings.LOGGER_NAME)

OCR_PROMPT = (
    "Extract all text from this image. Return only the text content, "
    "maintaining the original structure and formatting as much as possible."
)
# Vision models report no per-call confidence; this is the nominal value surfaced to callers
NOMINAL_CONFIDENCE = 0.95

# 1x1 transparent PNG
_PING_IMAGE = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class MistralOCRService(IOCRBackend):
    """OCR through a hosted vision chat model (Mistral Pixtral by default)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = settings.DEFAULT_OCR_MODEL,
        base_url: str = settings.MISTRAL_BASE_URL,
        timeout: int = settings.REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key or settings.MISTRAL_API_KEY
        if not self.api_key:
            raise ConfigurationError("MISTRAL_API_KEY is not set in environment variables")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    def _content_part(self, data_url: str, mime_type: str) -> Dict[str, Any]:
        if mime_type == "application/pdf":
            return {"type": "document_url", "document_url": data_url}
        return {"type": "image_url", "image_url": data_url}

    def _chat(self, content: list, max_tokens: int) -> Dict[str, Any]:
        response = self.http.post(
            f"{self.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": content}],
                "max_tokens": max_tokens,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def extract_text(self, data: bytes, mime_type: str) -> OCRResult:
        start = time.perf_counter()
        try:
            payload, payload_mime = ImageProcessor.prepare_for_vision(data, mime_type)
            data_url = ImageProcessor.to_data_url(payload, payload_mime)
            logger.info(f"Sending {len(payload)} bytes ({payload_mime}) to OCR model '{self.model}'")

            result = self._chat(
                [
                    {"type": "text", "text": OCR_PROMPT},
                    self._content_part(data_url, payload_mime),
                ],
                max_tokens=settings.OCR_MAX_TOKENS,
            )
            content = (result.get("choices") or [{}])[0].get("message", {}).get("content")
            text = content if isinstance(content, str) else ""

            return OCRResult(
                success=True,
                text=text,
                confidence=NOMINAL_CONFIDENCE,
                processing_time=time.perf_counter() - start,
            )
        except requests.exceptions.Timeout:
            error = f"OCR request timed out after {self.timeout} seconds"
        except requests.exceptions.ConnectionError:
            error = "Cannot connect to OCR service"
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            error = f"OCR error: {status}"
        except (ValueError, AttributeError, IndexError) as e:
            error = f"Malformed OCR response: {e}"

        logger.error(f"OCR extraction failed: {error}")
        return OCRResult(
            success=False,
            text="",
            confidence=0.0,
            processing_time=time.perf_counter() - start,
            error=error,
        )

    def test_connection(self) -> bool:
        try:
            result = self._chat(
                [
                    {"type": "text", "text": "Test connection"},
                    {"type": "image_url", "image_url": f"data:image/png;base64,{_PING_IMAGE}"},
                ],
                max_tokens=10,
            )
            return bool(result.get("choices"))
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"OCR connection test failed: {e}")
            return False
