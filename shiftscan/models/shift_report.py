"""
Pydantic models for shift report extracts.

ShiftReportExtract is the contract every extraction tier must satisfy.
validate_extract() is the single entry point used by the orchestrator.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from shiftscan.services.errors import ExtractionValidationError

# Overall confidence when no section could be extracted
NO_SECTION_CONFIDENCE = 0.2

# Used for a present section whose producer left confidence empty
DEFAULT_SECTION_CONFIDENCE = 0.5

Confidence = Optional[float]


class ExtractionMethod(str, Enum):
    """Which tier produced the extract."""
    DETERMINISTIC = "deterministic"
    AI_TEXT = "ai_text"
    AI_VISION = "ai_vision"


class ExtractModel(BaseModel):
    """Base for all extract models: unknown keys are dropped."""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)


class StoreMetadata(ExtractModel):
    store_name: Optional[str] = None
    store_address: Optional[str] = None
    register_id: Optional[str] = None
    operator_id: Optional[str] = None
    till_id: Optional[str] = None
    # ISO strings where the source allows it; may be a bare date or time otherwise
    report_printed_at: Optional[str] = None
    shift_start: Optional[str] = None
    shift_end: Optional[str] = None
    report_date: Optional[str] = None
    confidence: Confidence = Field(default=None, ge=0, le=1)

    @field_validator('register_id', 'operator_id', 'till_id', mode='before')
    @classmethod
    def _ids_as_text(cls, value):
        # Registers print numeric ids; the model may return them as numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class Balances(ExtractModel):
    beginning_balance: Optional[Decimal] = None
    ending_balance: Optional[Decimal] = None
    closing_accountability: Optional[Decimal] = None
    cashier_counted: Optional[Decimal] = None
    cash_variance: Optional[Decimal] = None  # positive = over, negative = short
    confidence: Confidence = Field(default=None, ge=0, le=1)


class SalesSummary(ExtractModel):
    gross_sales: Optional[Decimal] = None
    net_sales: Optional[Decimal] = None
    refunds: Optional[Decimal] = None
    discounts: Optional[Decimal] = None
    tax_total: Optional[Decimal] = None
    total_transactions: Optional[int] = None
    customers_count: Optional[int] = None
    confidence: Confidence = Field(default=None, ge=0, le=1)


class Fuel(ExtractModel):
    fuel_sales: Optional[Decimal] = None
    fuel_gross: Optional[Decimal] = None
    fuel_gallons: Optional[Decimal] = None
    confidence: Confidence = Field(default=None, ge=0, le=1)


class InsideSales(ExtractModel):
    inside_sales: Optional[Decimal] = None
    merchandise_sales: Optional[Decimal] = None
    prepays_initiated: Optional[Decimal] = None
    prepays_pumped: Optional[Decimal] = None
    confidence: Confidence = Field(default=None, ge=0, le=1)


class Tender(ExtractModel):
    type: str
    count: Optional[int] = None
    amount: Optional[Decimal] = None


class Tenders(ExtractModel):
    cash: Optional[Tender] = None
    credit: Optional[Tender] = None
    debit: Optional[Tender] = None
    check: Optional[Tender] = None
    ebt: Optional[Tender] = None
    other: Optional[Tender] = None
    total_tenders: Optional[Decimal] = None
    confidence: Confidence = Field(default=None, ge=0, le=1)


class SafeActivity(ExtractModel):
    safe_drop_count: Optional[int] = None
    safe_drop_amount: Optional[Decimal] = None
    safe_loan_count: Optional[int] = None
    safe_loan_amount: Optional[Decimal] = None
    paid_in_count: Optional[int] = None
    paid_in_amount: Optional[Decimal] = None
    paid_out_count: Optional[int] = None
    paid_out_amount: Optional[Decimal] = None
    confidence: Confidence = Field(default=None, ge=0, le=1)


class DepartmentSale(ExtractModel):
    department_name: str
    quantity: Optional[int] = None
    amount: Decimal
    confidence: Confidence = Field(default=None, ge=0, le=1)


class ItemSale(ExtractModel):
    item_name: str
    sku: Optional[str] = None
    quantity: Optional[int] = None
    amount: Decimal
    confidence: Confidence = Field(default=None, ge=0, le=1)


class ShiftReportException(ExtractModel):
    """Register exception line: void, no_sale, drive_off, ..."""
    type: str
    count: int = 0
    amount: Optional[Decimal] = None

    @field_validator('count', mode='before')
    @classmethod
    def _missing_count_is_zero(cls, value):
        return 0 if value is None else value


# Object sections that carry their own confidence
SECTION_FIELDS = (
    'store_metadata',
    'balances',
    'sales_summary',
    'fuel',
    'inside_sales',
    'tenders',
    'safe_activity',
)

# List sections: a non-empty list scores as the mean of its lines
LINE_SECTION_FIELDS = ('department_sales', 'item_sales')


class ShiftReportExtract(ExtractModel):
    """Canonical structured record for one shift report."""
    raw_text: str

    store_metadata: Optional[StoreMetadata] = None
    balances: Optional[Balances] = None
    sales_summary: Optional[SalesSummary] = None
    fuel: Optional[Fuel] = None
    inside_sales: Optional[InsideSales] = None
    tenders: Optional[Tenders] = None
    safe_activity: Optional[SafeActivity] = None

    department_sales: List[DepartmentSale] = Field(default_factory=list)
    item_sales: List[ItemSale] = Field(default_factory=list)
    exceptions: List[ShiftReportException] = Field(default_factory=list)

    extraction_method: ExtractionMethod
    extraction_confidence: float = Field(default=NO_SECTION_CONFIDENCE, ge=0, le=1)

    @field_validator('department_sales', 'item_sales', 'exceptions', mode='before')
    @classmethod
    def _null_list_is_empty(cls, value):
        return [] if value is None else value

    @model_validator(mode='after')
    def _sync_overall_confidence(self):
        # Overall confidence is always derived, never taken from the producer
        self.extraction_confidence = compute_extraction_confidence(self)
        return self

    def section_confidences(self) -> Dict[str, float]:
        """Confidence of every present section, keyed by section name."""
        confidences = {}

        for name in SECTION_FIELDS:
            section = getattr(self, name)
            if section is not None:
                confidence = section.confidence
                confidences[name] = DEFAULT_SECTION_CONFIDENCE if confidence is None else confidence

        for name in LINE_SECTION_FIELDS:
            lines = getattr(self, name)
            if lines:
                line_confidences = [
                    DEFAULT_SECTION_CONFIDENCE if line.confidence is None else line.confidence
                    for line in lines
                ]
                confidences[name] = sum(line_confidences) / len(line_confidences)

        return confidences


def compute_extraction_confidence(extract: ShiftReportExtract) -> float:
    """Mean of the present sections' confidences, or the floor if none are present."""
    confidences = extract.section_confidences()
    if not confidences:
        return NO_SECTION_CONFIDENCE
    return round(sum(confidences.values()) / len(confidences), 4)


def validate_extract(data: Dict[str, Any]) -> ShiftReportExtract:
    """
    Validate a candidate extract against the schema.

    Args:
        data: Plain dict (parser output or decoded completion JSON)

    Returns:
        Validated ShiftReportExtract

    Raises:
        ExtractionValidationError: on missing required fields, wrong types,
            unknown extraction_method or out-of-range confidence
    """
    if not isinstance(data, dict):
        raise ExtractionValidationError(
            f"Extract must be a JSON object, got {type(data).__name__}"
        )

    try:
        return ShiftReportExtract.model_validate(data)
    except ValidationError as e:
        raise ExtractionValidationError(
            f"Extract failed schema validation ({e.error_count()} error(s))",
            errors=e.errors(include_url=False),
        ) from e


class SaveResult(BaseModel):
    """Outcome of ShiftReportStorage.save()."""
    id: str
    status: str  # created | replaced_duplicate | quality_upgrade
    upload_count: int
    receipt_hash: str
    report_date: date


class ShiftReportSummary(BaseModel):
    """Compact view of one stored report."""
    id: str
    report_date: str
    shift_start: Optional[str] = None
    shift_end: Optional[str] = None
    gross_sales: Optional[Decimal] = None
    net_sales: Optional[Decimal] = None
    fuel_sales: Optional[Decimal] = None
    inside_sales: Optional[Decimal] = None
    cash_variance: Optional[Decimal] = None
    customers_count: Optional[int] = None
    top_departments: List[Dict[str, Any]] = Field(default_factory=list)
    top_items: List[Dict[str, Any]] = Field(default_factory=list)
    tender_breakdown: List[Dict[str, Any]] = Field(default_factory=list)
