"""
OCR service for extracting structured data from receipt images.
"""

import asyncio
import io
import logging
from enum import Enum
from typing import Callable, Optional, Tuple

import pytesseract
from PIL import Image

from app.config import settings
from app.models.receipt import ExtractedReceiptData
from app.services.errors import AlreadyProcessingError, RecognitionError
from app.services.parser import ReceiptParser

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class OCRService:
    """Service for extracting text from receipt images with Tesseract."""

    def __init__(self, language: Optional[str] = None):
        """Initialize OCR service with Tesseract configuration."""
        pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD
        self.language = language or settings.OCR_LANGUAGE

    def recognize(self, image_data: bytes, progress: Optional[ProgressCallback] = None) -> str:
        """
        Extract text from an image using Tesseract OCR.

        Args:
            image_data: Raw image bytes (JPEG, PNG, etc.)
            progress: Optional callback receiving the recognition progress
                fraction; called with 0.0 before and 1.0 after recognition

        Returns:
            Extracted text

        Raises:
            RecognitionError: the image could not be read or Tesseract failed
        """
        if progress:
            progress(0.0)

        try:
            image = Image.open(io.BytesIO(image_data))

            # Run OCR with custom config for receipts
            custom_config = r'--oem 3 --psm 6'
            text = pytesseract.image_to_string(image, lang=self.language, config=custom_config)

        except (pytesseract.TesseractError, OSError, RuntimeError, ValueError) as e:
            logger.warning("Tesseract recognition failed", exc_info=True)
            raise RecognitionError(f"OCR failed: {e}") from e

        if progress:
            progress(1.0)

        return text.strip()


class ExtractorState(Enum):
    """Lifecycle of a ReceiptExtractor; only one recognition may be in flight."""
    IDLE = "idle"
    PROCESSING = "processing"


class ReceiptExtractor:
    """
    Runs the OCR engine on a receipt image and parses the recognized text.

    Each instance accepts a single in-flight recognition. A call made while
    another is running fails with AlreadyProcessingError instead of queuing;
    use separate instances for parallel work.
    """

    def __init__(self, engine: Optional[OCRService] = None, parser: Optional[ReceiptParser] = None):
        self.engine = engine if engine is not None else OCRService()
        self.parser = parser if parser is not None else ReceiptParser()
        self._state = ExtractorState.IDLE

    @property
    def state(self) -> ExtractorState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state is ExtractorState.PROCESSING

    def _begin(self):
        if self._state is ExtractorState.PROCESSING:
            raise AlreadyProcessingError()
        self._state = ExtractorState.PROCESSING

    def _finish(self):
        self._state = ExtractorState.IDLE

    @staticmethod
    def _report_progress(progress: Optional[ProgressCallback]) -> ProgressCallback:
        def report(fraction: float):
            fraction = min(max(float(fraction), 0.0), 1.0)
            logger.debug(f"OCR progress: {round(fraction * 100)}%")
            if progress:
                progress(fraction)
        return report

    async def recognize(
        self,
        image: bytes,
        progress: Optional[ProgressCallback] = None
    ) -> Tuple[str, ExtractedReceiptData]:
        """
        Recognize an image and parse it.

        Args:
            image: Raw image bytes
            progress: Optional callback receiving progress fractions in [0, 1]

        Returns:
            Tuple of (recognized text, extracted data)

        Raises:
            AlreadyProcessingError: another call on this instance is in flight
            RecognitionError: the OCR engine failed
        """
        self._begin()
        try:
            try:
                text = await asyncio.to_thread(
                    self.engine.recognize, image, self._report_progress(progress)
                )
            except RecognitionError:
                raise
            except Exception as e:
                logger.warning("OCR engine raised an unexpected error", exc_info=True)
                raise RecognitionError(f"OCR failed: {e}") from e

            data = self.parser.parse_expense_data(text)
            logger.info("Receipt recognized", extra={
                "characters": len(text),
                "has_amount": data.amount is not None,
                "has_date": data.date is not None,
            })
            return text, data
        finally:
            self._finish()

    async def extract_text_from_image(
        self,
        image: bytes,
        progress: Optional[ProgressCallback] = None
    ) -> ExtractedReceiptData:
        """Recognize an image and return only the extracted fields."""
        _, data = await self.recognize(image, progress=progress)
        return data
