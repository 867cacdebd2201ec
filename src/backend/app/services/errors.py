"""
Errors raised by the receipt extraction services.

Regex misses and unparseable dates are not errors; they leave the
corresponding field empty.
"""


class ExtractionError(Exception):
    """Base class for extraction failures surfaced to callers."""


class AlreadyProcessingError(ExtractionError):
    """An extractor instance was asked to run while a recognition is in flight."""

    def __init__(self, message: str = "OCR is already processing another image"):
        super().__init__(message)


class RecognitionError(ExtractionError):
    """The OCR engine failed to produce text for an image."""
