"""
Pydantic models for extracted receipt data.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class ExtractedReceiptData(BaseModel):
    """Fields recovered from one pass over raw OCR text."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    amount: Optional[float] = None
    date: Optional[str] = None  # YYYY-MM-DD
    description: str = ""
    category: str = ""
    vendor: str = ""


class FormPrefill(BaseModel):
    """Extracted data projected onto the expense submission form."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    amount: str = ""
    currency: str
    category: str = ""
    description: str = ""
    expense_date: str = Field(default="", alias="expenseDate")
    vendor: str = ""


class ValidationReport(BaseModel):
    """Completeness check result shown to the user before submission."""
    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(alias="isValid")
    errors: List[str] = Field(default_factory=list)


class ParseTextRequest(BaseModel):
    """Request body for parsing already-recognized text."""
    text: str


class ExtractionResult(BaseModel):
    """Model for OCR API responses."""
    text: str
    data: ExtractedReceiptData
    prefill: FormPrefill
    validation: ValidationReport
    confidence: float = Field(ge=0.0, le=1.0)
