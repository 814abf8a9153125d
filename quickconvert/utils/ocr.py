"""
Text recognition over a single image with Tesseract (via pytesseract).
"""

import os
import shutil
from pathlib import Path
from typing import Optional

import pytesseract
from PIL import Image, UnidentifiedImageError

from ..config import KNOWN_TESSERACT_PATHS
from .error_handling import ErrorCode, QuickConvertError
from .logging_config import get_logger

logger = get_logger()


class OcrError(QuickConvertError):
    error_code = ErrorCode.CONVERSION_FAILED


class TesseractOcrEngine:
    """Recognizes text in images. Calls block; run them in a worker thread."""

    def __init__(self, language: str = "eng", tesseract_cmd: Optional[str] = None):
        self.language = language
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        elif shutil.which("tesseract") is None:
            # pytesseract only looks on PATH
            for candidate in KNOWN_TESSERACT_PATHS:
                if os.path.exists(candidate):
                    pytesseract.pytesseract.tesseract_cmd = candidate
                    logger.debug(f"Using tesseract at {candidate}")
                    break

    def recognize(self, image_path: str) -> str:
        """
        Return the text found in an image file.

        Raises:
            OcrError: If the image cannot be read or Tesseract fails
        """
        try:
            with Image.open(image_path) as img:
                return pytesseract.image_to_string(img, lang=self.language)
        except pytesseract.TesseractNotFoundError as exc:
            raise OcrError("Tesseract OCR is not installed or not on the PATH.") from exc
        except (pytesseract.TesseractError, UnidentifiedImageError, Image.DecompressionBombError,
                OSError, RuntimeError, ValueError) as exc:
            raise OcrError(f"Could not read {Path(image_path).name}: {exc}") from exc

    def check_available(self) -> bool:
        try:
            pytesseract.get_tesseract_version()
            return True
        except pytesseract.TesseractNotFoundError:
            return False
