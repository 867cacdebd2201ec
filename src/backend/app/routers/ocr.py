"""
OCR API router for receipt scanning and expense form prefill.
"""

from fastapi import APIRouter, HTTPException, UploadFile, File
import logging

from app.config import settings
from app.models.receipt import (
    ExtractedReceiptData,
    ExtractionResult,
    ParseTextRequest,
    ValidationReport,
)
from app.services.errors import AlreadyProcessingError, RecognitionError
from app.services.ocr import OCRService, ReceiptExtractor
from app.services.parser import ReceiptParser

router = APIRouter(prefix="/ocr", tags=["ocr"])
logger = logging.getLogger(__name__)

ALLOWED_TYPES = [
    "image/jpeg", "image/jpg", "image/png", "image/webp", "image/bmp", "image/tiff"
]


def _build_result(parser: ReceiptParser, text: str, data: ExtractedReceiptData) -> ExtractionResult:
    return ExtractionResult(
        text=text,
        data=data,
        prefill=parser.format_for_form(data),
        validation=parser.validate_extracted_data(data),
        confidence=parser.calculate_confidence(data),
    )


@router.post("/extract", response_model=ExtractionResult)
async def extract_receipt(file: UploadFile = File(...)):
    """
    Scan a receipt image and prefill the expense form.

    This endpoint:
    1. Accepts an image upload (JPG, PNG, WEBP, BMP, TIFF)
    2. Runs OCR
    3. Extracts amount, date, description, vendor and category
    4. Returns the form prefill and the validation report

    Args:
        file: Uploaded receipt image

    Returns:
        Extraction result with recognized text and parsed fields
    """
    try:
        # Validate file type
        if file.content_type not in ALLOWED_TYPES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file type: {file.content_type}. Allowed: JPG, PNG, WEBP, BMP, TIFF"
            )

        # Validate file size
        file_data = await file.read()
        file_size_mb = len(file_data) / (1024 * 1024)

        if file_size_mb > settings.MAX_UPLOAD_MB:
            raise HTTPException(
                status_code=400,
                detail=f"File too large: {file_size_mb:.2f}MB. Maximum: {settings.MAX_UPLOAD_MB}MB"
            )

        if not file_data:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")

        parser = ReceiptParser()
        extractor = ReceiptExtractor(engine=OCRService(), parser=parser)

        logger.debug("Running OCR on uploaded file", extra={"upload_filename": file.filename})
        text, data = await extractor.recognize(file_data)

        return _build_result(parser, text, data)

    except HTTPException:
        raise
    except AlreadyProcessingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RecognitionError as e:
        logger.warning("OCR failed for uploaded file", extra={
            "upload_filename": file.filename,
            "error": str(e)
        })
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/parse", response_model=ExtractionResult)
async def parse_receipt_text(request: ParseTextRequest):
    """Extract fields from text that was already recognized."""
    parser = ReceiptParser()
    data = parser.parse_expense_data(request.text)
    return _build_result(parser, request.text, data)


@router.post("/validate", response_model=ValidationReport)
async def validate_receipt_data(data: ExtractedReceiptData):
    """Check a (possibly hand-corrected) record before submission."""
    return ReceiptParser().validate_extracted_data(data)
