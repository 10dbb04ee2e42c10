# infrastructure/image_utils.py
"""
Image helpers for the OCR/vision backend: format sniffing and re-encoding.
"""
import base64
import io
import logging
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)

EXTENSION_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
    "pdf": "application/pdf",
}


class ImageProcessor:
    """Prepare raster images for a hosted vision model."""

    # Formats vision endpoints accept as-is; everything else is re-encoded as PNG
    PASSTHROUGH_FORMATS = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp"}

    @staticmethod
    def mime_type_for_extension(extension: str) -> str:
        return EXTENSION_MIME_TYPES.get(extension.lower().lstrip("."), "application/octet-stream")

    @staticmethod
    def prepare_for_vision(data: bytes, mime_type: str) -> Tuple[bytes, str]:
        """
        Return (bytes, mime_type) ready to embed in a data URL.

        Documents (PDF) pass through untouched. Images are sniffed with Pillow;
        JPEG/PNG/WEBP pass through, other formats (BMP, GIF) become a PNG of
        the first frame. Bytes Pillow cannot identify are sent unchanged.
        """
        if not mime_type.startswith("image/"):
            return data, mime_type

        try:
            with Image.open(io.BytesIO(data)) as image:
                detected = image.format or ""
                if detected in ImageProcessor.PASSTHROUGH_FORMATS:
                    return data, ImageProcessor.PASSTHROUGH_FORMATS[detected]

                image.seek(0)
                converted = image.convert("RGBA" if image.mode in ("RGBA", "LA", "P") else "RGB")
                buffer = io.BytesIO()
                converted.save(buffer, format="PNG", optimize=True)
                logger.debug(f"Re-encoded {detected or 'unknown'} image as PNG for OCR")
                return buffer.getvalue(), "image/png"
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f"Could not inspect image before OCR, sending as-is: {e}")
            return data, mime_type

    @staticmethod
    def to_data_url(data: bytes, mime_type: str) -> str:
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"
