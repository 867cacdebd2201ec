"""
Receipt parser service for extracting structured data from OCR text.
"""

import math
import re
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, List, Optional

from app.config import settings
from app.models.receipt import ExtractedReceiptData, FormPrefill, ValidationReport
from app.utils.keywords import CategoryRules, load_rules
from app.utils.money import CURRENCY_CODES, CURRENCY_SYMBOLS, format_amount, parse_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern paired with the function that turns a match into a value."""
    name: str
    pattern: str
    example: str
    parse: Callable[[re.Match], Any]
    notes: Optional[str] = None
    flags: int = re.IGNORECASE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


CURRENCY = (
    r'(?:[' + re.escape(CURRENCY_SYMBOLS) + r']'
    r'|(?<![A-Za-z])(?:' + '|'.join(CURRENCY_CODES) + r')(?![A-Za-z]))'
)
NUMBER = r'(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d{2})?|\d+(?:\.\d{2})?)'
MONTH = r'(?P<month>(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*)\.?'

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}

TITLE_CASE_LINE = re.compile(r'^[A-Z][a-z]+(?: [A-Z][a-z]+)*$')
STREET_ADDRESS_LINE = re.compile(
    r'^\d+\s+[A-Za-z0-9 .\-]*\b(?:street|st|avenue|ave|road|rd|boulevard|blvd|'
    r'drive|dr|lane|ln|way|court|ct)\b\.?',
    re.IGNORECASE,
)
DESCRIPTION_STOPWORDS = ('total', 'amount', 'tax')


def _amount_from_match(match: re.Match) -> Optional[float]:
    return parse_money(match.group('amount'))


def _parse_with_formats(value: str, formats: List[str]) -> Optional[str]:
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt).strftime('%Y-%m-%d')
        except ValueError:
            continue
    return None


def _numeric_date_from_match(match: re.Match) -> Optional[str]:
    # Month-first, falling back to day-first when the month would be out of range
    value = match.group(0).replace('-', '/')
    return _parse_with_formats(value, ['%m/%d/%Y', '%m/%d/%y', '%d/%m/%Y', '%d/%m/%y'])


def _iso_date_from_match(match: re.Match) -> Optional[str]:
    value = match.group(0).replace('-', '/')
    return _parse_with_formats(value, ['%Y/%m/%d'])


def _named_month_date_from_match(match: re.Match) -> Optional[str]:
    month = MONTHS[match.group('month')[:3].lower()]
    year_str = match.group('year')
    if len(year_str) == 2:
        year = datetime.strptime(year_str, '%y').year
    elif len(year_str) == 4:
        year = int(year_str)
    else:
        return None
    try:
        return date(year, month, int(match.group('day'))).isoformat()
    except ValueError:
        return None


class ReceiptParser:
    """Service for parsing receipt text and extracting structured data."""

    def __init__(self, rules: Optional[CategoryRules] = None, default_currency: Optional[str] = None):
        """
        Initialize parser with regex patterns and keyword rules.

        Args:
            rules: Category and vendor keyword tables; loaded from
                settings.CATEGORY_RULES_PATH (or defaults) when omitted
            default_currency: Currency code assigned to form prefills
        """
        self.rules = rules if rules is not None else load_rules(settings.CATEGORY_RULES_PATH)
        self.default_currency = default_currency or settings.DEFAULT_CURRENCY
        self._init_patterns()

    def _init_patterns(self):
        """Initialize regex patterns for parsing, in priority order."""

        self.amount_patterns = [
            PatternSpec(
                name='currency_prefix',
                pattern=CURRENCY + r'[ \t]*' + NUMBER,
                example='$12.50',
                parse=_amount_from_match,
                notes='Currency symbol or code before the number',
            ),
            PatternSpec(
                name='currency_suffix',
                pattern=NUMBER + r'[ \t]*' + CURRENCY,
                example='12.50 EUR',
                parse=_amount_from_match,
                notes='Currency symbol or code after the number',
            ),
            PatternSpec(
                name='total_label',
                pattern=r'\btotal\b[:\s]*' + CURRENCY + r'?[ \t]*' + NUMBER,
                example='Total: 45.00',
                parse=_amount_from_match,
                notes='Subtotal is not a total',
            ),
            PatternSpec(
                name='amount_label',
                pattern=r'\bamount\b[:\s]*' + CURRENCY + r'?[ \t]*' + NUMBER,
                example='Amount: 45.00',
                parse=_amount_from_match,
            ),
        ]

        self.date_patterns = [
            PatternSpec(
                name='numeric_dmy',
                pattern=r'(?<!\d)\d{1,2}[/-]\d{1,2}[/-]\d{2,4}(?!\d)',
                example='03/15/2024',
                parse=_numeric_date_from_match,
                notes='Ambiguous day/month order',
            ),
            PatternSpec(
                name='numeric_ymd',
                pattern=r'(?<!\d)\d{4}[/-]\d{1,2}[/-]\d{1,2}(?!\d)',
                example='2024-03-15',
                parse=_iso_date_from_match,
            ),
            PatternSpec(
                name='day_month_name_year',
                pattern=r'(?<!\d)(?P<day>\d{1,2})\s+' + MONTH + r'\s+(?P<year>\d{2,4})(?!\d)',
                example='25 Dec 2023',
                parse=_named_month_date_from_match,
            ),
            PatternSpec(
                name='month_name_day_year',
                pattern=r'\b' + MONTH + r'\s+(?P<day>\d{1,2}),?\s+(?P<year>\d{2,4})(?!\d)',
                example='Dec 25, 2023',
                parse=_named_month_date_from_match,
            ),
        ]

    def _first_match(
        self,
        specs: List[PatternSpec],
        text: str,
        field_name: str,
        fall_through: bool = True
    ) -> Any:
        """
        Evaluate specs in order and return the value of the first match.

        With fall_through, a match whose value does not parse lets the next
        spec try; without it, the first match decides and may yield None.
        """
        for spec in specs:
            match = spec.compiled.search(text)
            if not match:
                continue
            value = spec.parse(match)
            if value is None:
                logger.debug("Pattern matched but value did not parse", extra={
                    "field": field_name,
                    "pattern": spec.name,
                    "raw": match.group(0),
                })
                if not fall_through:
                    return None
                continue
            logger.debug("Field extracted", extra={"field": field_name, "pattern": spec.name})
            return value
        return None

    def parse_expense_data(self, text: str) -> ExtractedReceiptData:
        """
        Parse receipt text and extract all available fields.

        Args:
            text: OCR-extracted text from receipt

        Returns:
            ExtractedReceiptData; fields that could not be recovered are
            None (amount, date) or empty strings
        """
        text = text or ""
        lines = [line.strip() for line in text.split('\n') if line.strip()]

        vendor = self.extract_vendor(lines)
        data = ExtractedReceiptData(
            amount=self.extract_amount(text),
            date=self.extract_date(text),
            description=self.extract_description(lines, vendor=vendor),
            category=self.extract_category(text),
            vendor=vendor,
        )

        logger.debug("Parsed receipt text", extra={
            "lines": len(lines),
            "has_amount": data.amount is not None,
            "has_date": data.date is not None,
            "category": data.category,
        })
        return data

    def extract_amount(self, text: str) -> Optional[float]:
        """
        Extract the expense amount.

        The first pattern that matches wins. If its number is not positive
        the amount is left absent; later patterns are not consulted.
        """
        return self._first_match(self.amount_patterns, text, 'amount', fall_through=False)

    def extract_date(self, text: str) -> Optional[str]:
        """
        Extract receipt date.

        Returns:
            Date in YYYY-MM-DD format or None
        """
        return self._first_match(self.date_patterns, text, 'date')

    @staticmethod
    def _is_meaningful_line(line: str) -> bool:
        if len(line) <= 10:
            return False
        if line.isdigit():
            return False
        if not re.search(r'[^\W_]', line):
            return False
        line_lower = line.lower()
        return not any(word in line_lower for word in DESCRIPTION_STOPWORDS)

    def extract_description(self, lines: List[str], vendor: str = "") -> str:
        """
        Pick the line that best describes the purchase.

        Candidates are lines longer than 10 characters that carry letters or
        digits and do not mention totals, amounts or tax. The vendor line and
        street addresses are passed over when another candidate exists.
        """
        candidates = [line for line in lines if self._is_meaningful_line(line)]
        if not candidates:
            return ""

        preferred = [
            line for line in candidates
            if line != vendor and not STREET_ADDRESS_LINE.match(line)
        ]
        return (preferred or candidates)[0]

    def extract_vendor(self, lines: List[str]) -> str:
        """First line with a business keyword or made only of Title Case words."""
        for line in lines:
            if self.rules.has_vendor_keyword(line) or TITLE_CASE_LINE.match(line):
                return line
        return ""

    def extract_category(self, text: str) -> str:
        return self.rules.classify(text)

    def detect_currency(self, amount: Optional[float]) -> str:
        """
        Currency for the form prefill.

        Always the configured default: OCR text carries no reliable currency
        evidence for the form, so the amount is not inspected.
        """
        return self.default_currency

    def format_for_form(self, data: ExtractedReceiptData) -> FormPrefill:
        """Project extracted data onto the expense submission form."""
        return FormPrefill(
            amount=format_amount(data.amount),
            currency=self.detect_currency(data.amount),
            category=data.category or "",
            description=data.description or "",
            expense_date=data.date or "",
            vendor=data.vendor or "",
        )

    def validate_extracted_data(self, data: ExtractedReceiptData) -> ValidationReport:
        """
        Check the required fields. All checks run; errors keep check order.
        """
        errors = []

        if not self._is_valid_amount(data.amount):
            errors.append('Amount could not be extracted or is invalid')

        if not data.date:
            errors.append('Date could not be extracted')

        if not data.description:
            errors.append('Description could not be extracted')

        return ValidationReport(is_valid=not errors, errors=errors)

    @staticmethod
    def _is_valid_amount(amount: Optional[float]) -> bool:
        if amount is None or isinstance(amount, bool):
            return False
        try:
            value = float(amount)
        except (TypeError, ValueError):
            return False
        return math.isfinite(value) and value > 0

    def calculate_confidence(self, data: ExtractedReceiptData) -> float:
        """Share of populated fields, rounded to two decimals."""
        populated = [
            self._is_valid_amount(data.amount),
            bool(data.date),
            bool(data.description),
            bool(data.vendor),
            bool(data.category),
        ]
        return round(sum(populated) / len(populated), 2)
