"""
Exceptions raised by the invoice normalization pipeline.

Only missing input and failed extraction calls are exceptions. Bad field values
and total mismatches are recorded as warning codes on the result instead.
"""
from __future__ import annotations

from typing import Any, Optional


class InvoiceProcessingError(Exception):
    """Base exception for all invoice processing errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class MissingInputError(InvoiceProcessingError):
    """Raised when no image or text was supplied for an invoice."""

    def __init__(self, message: str = "No invoice image or text provided", source: Optional[str] = None):
        super().__init__(message)
        self.source = source
        if source:
            self.details["source"] = source

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.source:
            base_msg = f"{base_msg} (source: {self.source})"
        return base_msg


class ExtractionError(InvoiceProcessingError):
    """Raised when the extraction service fails or returns an unusable response."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        response_text: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.original_error = original_error
        if stage:
            self.details["stage"] = stage
        if response_text:
            # First 500 chars are enough to see what came back
            self.details["response_sample"] = response_text[:500]
        if original_error is not None:
            self.details["original_error"] = str(original_error)
            self.details["error_type"] = type(original_error).__name__
