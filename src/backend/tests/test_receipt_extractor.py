"""
Test suite for the OCR-backed receipt extractor.

Tests cover:
- Single in-flight recognition per extractor instance
- State returns to IDLE after success and failure
- Engine failures surface as RecognitionError
- Progress reporting
- Tesseract adapter error wrapping
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import asyncio
import io
import threading
from unittest.mock import Mock, patch

import pytest
from PIL import Image

from app.services.errors import AlreadyProcessingError, RecognitionError
from app.services.ocr import ExtractorState, OCRService, ReceiptExtractor
from app.services.parser import ReceiptParser
from app.utils.keywords import CategoryRules


RECEIPT_TEXT = "Starbucks Coffee\nCoffee and Sandwich\nDate: 03/15/2024\nTotal: $12.50"


def _extractor(engine):
    return ReceiptExtractor(engine=engine, parser=ReceiptParser(rules=CategoryRules.default()))


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (20, 20), "white").save(buffer, format="PNG")
    return buffer.getvalue()


class TestExtractTextFromImage:

    def test_parses_recognized_text(self):
        engine = Mock()
        engine.recognize.return_value = RECEIPT_TEXT
        extractor = _extractor(engine)

        data = asyncio.run(extractor.extract_text_from_image(b"image-bytes"))

        assert data.amount == 12.50
        assert data.date == "2024-03-15"
        assert data.vendor == "Starbucks Coffee"
        assert extractor.state is ExtractorState.IDLE
        engine.recognize.assert_called_once()
        assert engine.recognize.call_args[0][0] == b"image-bytes"

    def test_recognize_returns_raw_text(self):
        engine = Mock()
        engine.recognize.return_value = RECEIPT_TEXT
        extractor = _extractor(engine)

        text, data = asyncio.run(extractor.recognize(b"image-bytes"))

        assert text == RECEIPT_TEXT
        assert data.description == "Coffee and Sandwich"

    def test_engine_failure_wrapped(self):
        engine = Mock()
        engine.recognize.side_effect = RuntimeError("engine crashed")
        extractor = _extractor(engine)

        with pytest.raises(RecognitionError, match="engine crashed"):
            asyncio.run(extractor.extract_text_from_image(b"image-bytes"))

        assert extractor.state is ExtractorState.IDLE

    def test_recognition_error_passes_through(self):
        engine = Mock()
        engine.recognize.side_effect = RecognitionError("OCR failed: unreadable image")
        extractor = _extractor(engine)

        with pytest.raises(RecognitionError, match="unreadable image"):
            asyncio.run(extractor.extract_text_from_image(b"image-bytes"))

        assert not extractor.is_processing

    def test_instance_reusable_after_failure(self):
        engine = Mock()
        engine.recognize.side_effect = [RuntimeError("boom"), RECEIPT_TEXT]
        extractor = _extractor(engine)

        with pytest.raises(RecognitionError):
            asyncio.run(extractor.extract_text_from_image(b"first"))
        data = asyncio.run(extractor.extract_text_from_image(b"second"))

        assert data.amount == 12.50

    def test_progress_reported_in_range(self):
        def recognize(image, progress=None):
            progress(0.0)
            progress(0.5)
            progress(1.7)
            return RECEIPT_TEXT

        engine = Mock()
        engine.recognize.side_effect = recognize
        seen = []

        asyncio.run(_extractor(engine).extract_text_from_image(b"image-bytes", progress=seen.append))

        assert seen == [0.0, 0.5, 1.0]


class TestSingleInFlight:

    def test_second_call_rejected_while_busy(self):
        started = threading.Event()
        release = threading.Event()

        def slow_recognize(image, progress=None):
            started.set()
            release.wait(timeout=5)
            return RECEIPT_TEXT

        engine = Mock()
        engine.recognize.side_effect = slow_recognize
        extractor = _extractor(engine)

        async def scenario():
            first = asyncio.create_task(extractor.extract_text_from_image(b"first"))
            while not extractor.is_processing:
                await asyncio.sleep(0)

            with pytest.raises(AlreadyProcessingError):
                await extractor.extract_text_from_image(b"second")

            release.set()
            return await first

        data = asyncio.run(scenario())

        assert data.amount == 12.50
        assert data.date == "2024-03-15"
        assert engine.recognize.call_count == 1
        assert extractor.state is ExtractorState.IDLE

    def test_separate_instances_run_in_parallel(self):
        barrier = threading.Barrier(2, timeout=5)

        def recognize(image, progress=None):
            barrier.wait()
            return RECEIPT_TEXT

        first = Mock()
        first.recognize.side_effect = recognize
        second = Mock()
        second.recognize.side_effect = recognize

        async def scenario():
            return await asyncio.gather(
                _extractor(first).extract_text_from_image(b"a"),
                _extractor(second).extract_text_from_image(b"b"),
            )

        results = asyncio.run(scenario())

        assert [r.amount for r in results] == [12.50, 12.50]


class TestOCRService:

    @patch('app.services.ocr.pytesseract.image_to_string')
    def test_recognize_strips_text_and_reports_progress(self, mock_ocr):
        mock_ocr.return_value = "  Total: $4.00 \n\n"
        seen = []

        text = OCRService(language="eng").recognize(_png_bytes(), progress=seen.append)

        assert text == "Total: $4.00"
        assert seen == [0.0, 1.0]
        assert mock_ocr.call_args.kwargs["lang"] == "eng"

    def test_unreadable_image(self):
        with pytest.raises(RecognitionError, match="OCR failed"):
            OCRService().recognize(b"not an image")

    @patch('app.services.ocr.pytesseract.image_to_string')
    def test_tesseract_missing(self, mock_ocr):
        import pytesseract
        mock_ocr.side_effect = pytesseract.TesseractNotFoundError()

        with pytest.raises(RecognitionError):
            OCRService().recognize(_png_bytes())
