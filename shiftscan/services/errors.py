"""
Exceptions raised by the extraction pipeline and the storage layer.

Only ExtractionValidationError, ConfigurationError and a vision-tier
CompletionServiceError ever leave the orchestrator. AcquisitionError and
text-tier CompletionServiceError are caught there and turn into a fallthrough.
"""

from typing import Any, List, Optional


class ShiftScanError(Exception):
    """Base class for all pipeline errors."""


class AcquisitionError(ShiftScanError):
    """OCR engine failed or was unreachable."""


class CompletionServiceError(ShiftScanError):
    """Completion call failed, came back empty, or returned malformed JSON."""

    def __init__(self, message: str, tier: Optional[str] = None):
        super().__init__(message)
        self.tier = tier


class ExtractionValidationError(ShiftScanError):
    """Candidate extract does not match the ShiftReportExtract schema."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class ConfigurationError(ShiftScanError):
    """Completion-service credentials are missing."""


class DuplicateReceiptConflict(ShiftScanError):
    """Insert hit the receipt_hash uniqueness constraint."""

    def __init__(self, receipt_hash: str):
        super().__init__(f"Shift report with receipt_hash {receipt_hash} already exists")
        self.receipt_hash = receipt_hash
