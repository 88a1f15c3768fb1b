"""
Marie Reconciliation - OCR Pre-extraction

PURPOSE: Local Tesseract pass whose text is sent along with the statement image
SCOPE: Image preprocessing and text extraction; PDFs are passed through untouched
DEPENDENCIES: pytesseract, cv2, PIL, numpy
"""

import io
import asyncio
import logging

import cv2
import numpy as np
import pytesseract
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class OCRProcessor:
    """Extracts raw statement text to help the AI read dense or faint scans."""

    def __init__(self, languages: str = 'por+eng', enabled: bool = True):
        self.languages = languages
        self.enabled = enabled

    @staticmethod
    def preprocess(image_bytes: bytes) -> np.ndarray:
        """Grayscale and binarize the statement to sharpen printed digits."""
        image = Image.open(io.BytesIO(image_bytes)).convert('RGB')
        gray = cv2.cvtColor(np.array(image), cv2.COLOR_RGB2GRAY)
        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return binary

    async def extract_text(self, image_bytes: bytes, mime_type: str = '') -> str:
        """Return the OCR text of an image, or an empty string when unavailable."""
        if not self.enabled or not mime_type.startswith('image/'):
            return ''

        try:
            prepared = self.preprocess(image_bytes)
        except (UnidentifiedImageError, OSError, cv2.error) as e:
            logger.warning(f"Could not prepare image for OCR: {e}")
            return ''

        loop = asyncio.get_running_loop()
        ocr_config = f'--oem 3 --psm 6 -l {self.languages}'

        try:
            text = await loop.run_in_executor(
                None,
                lambda: pytesseract.image_to_string(prepared, config=ocr_config)
            )
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
            logger.error(f"OCR processing error: {e}")
            return ''

        logger.info(f"OCR extracted {len(text)} character(s) from statement")
        return text.strip()
