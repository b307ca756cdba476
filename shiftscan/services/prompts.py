"""
Extraction prompts for the completion tiers.

Both prompts describe the same JSON shape as ShiftReportExtract minus
raw_text / extraction_method, which the orchestrator stamps itself.
"""

EXTRACT_SCHEMA_DESCRIPTION = """{
  "store_metadata": {
    "store_name": "string or null",
    "store_address": "string or null",
    "register_id": "string or null",
    "operator_id": "string or null",
    "till_id": "string or null",
    "report_date": "YYYY-MM-DD or null",
    "shift_start": "ISO datetime or null",
    "shift_end": "ISO datetime or null",
    "report_printed_at": "ISO datetime or null",
    "confidence": 0-1
  },
  "balances": {
    "beginning_balance": number or null,
    "ending_balance": number or null,
    "closing_accountability": number or null,
    "cashier_counted": number or null,
    "cash_variance": number or null (positive = over, negative = short),
    "confidence": 0-1
  },
  "sales_summary": {
    "gross_sales": number or null,
    "net_sales": number or null,
    "refunds": number or null,
    "discounts": number or null,
    "tax_total": number or null,
    "total_transactions": integer or null,
    "customers_count": integer or null,
    "confidence": 0-1
  },
  "fuel": {
    "fuel_sales": number or null,
    "fuel_gross": number or null,
    "fuel_gallons": number or null,
    "confidence": 0-1
  },
  "inside_sales": {
    "inside_sales": number or null,
    "merchandise_sales": number or null,
    "prepays_initiated": number or null,
    "prepays_pumped": number or null,
    "confidence": 0-1
  },
  "tenders": {
    "cash": {"type": "cash", "count": integer or null, "amount": number} or null,
    "credit": {"type": "credit", "count": integer or null, "amount": number} or null,
    "debit": {"type": "debit", "count": integer or null, "amount": number} or null,
    "check": {"type": "check", "count": integer or null, "amount": number} or null,
    "ebt": {"type": "ebt", "count": integer or null, "amount": number} or null,
    "other": {"type": "other", "count": integer or null, "amount": number} or null,
    "total_tenders": number or null,
    "confidence": 0-1
  },
  "safe_activity": {
    "safe_drop_count": integer or null,
    "safe_drop_amount": number or null,
    "safe_loan_count": integer or null,
    "safe_loan_amount": number or null,
    "paid_in_count": integer or null,
    "paid_in_amount": number or null,
    "paid_out_count": integer or null,
    "paid_out_amount": number or null,
    "confidence": 0-1
  },
  "department_sales": [
    {"department_name": "exact name", "quantity": integer or null, "amount": number, "confidence": 0-1}
  ],
  "item_sales": [
    {"item_name": "exact name", "sku": "string or null", "quantity": integer or null, "amount": number, "confidence": 0-1}
  ],
  "exceptions": [
    {"type": "void|no_sale|refund|discount|drive_off|other", "count": integer, "amount": number or null}
  ]
}"""

_RULES = """RULES:
1. Use null for any section or field that is not on the report. Do not guess.
2. All monetary values are plain numbers (no "$", no thousands separators).
3. Shortages are negative cash_variance values; overages are positive.
4. List every department and item line you can read, using the exact names printed.
5. Give each section a confidence between 0 and 1 for how sure you are of it.
6. Do not include any field that is not listed in the structure."""

TEXT_EXTRACTION_PROMPT = f"""You are extracting data from the OCR text of a gas station / convenience store shift report.
The OCR text may contain misread characters and broken lines; repair them where the intended value is clear.

Return a JSON object with exactly this structure:
{EXTRACT_SCHEMA_DESCRIPTION}

{_RULES}

Respond ONLY with valid JSON."""

VISION_EXTRACTION_PROMPT = f"""You are reading a photo of a gas station / convenience store shift report printed by a POS register.

Return a JSON object with exactly this structure:
{EXTRACT_SCHEMA_DESCRIPTION}

Also add a top-level "raw_text" field containing a line-by-line transcription of the printed report.

{_RULES}

Respond ONLY with valid JSON."""


def text_user_message(ocr_text: str) -> str:
    """User turn for the text tier."""
    return f"Extract all data from this shift report:\n\n{ocr_text}"
