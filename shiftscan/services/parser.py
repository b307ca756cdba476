"""
Deterministic parser for OCR text from POS shift reports.

Every section is driven by an ordered table of FieldRule entries
(section, field, pattern, extractor). New register formats are supported by
adding rules to the tables, not by touching parse().

Precision over recall: a section is only emitted when at least two of its
rules matched. A single hit is treated as OCR noise.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from shiftscan.models.shift_report import ExtractionMethod, ShiftReportExtract
from shiftscan.utils.money import parse_count, parse_money

logger = logging.getLogger(__name__)

# Money token as printed on registers: 1,245.67 / 1245 / 12.5
AMOUNT = r'\$?\s*([\d,]+\.?\d*)'

# Optional "count" column before an amount: "CREDIT  42  $1,234.00"
COUNT_AMOUNT = r'(?:(\d+)\s+)?\$?\s*([\d,]+\.?\d*)'

DATE = r'\d{1,2}[/-]\d{1,2}[/-]\d{2,4}'
TIME = r'\d{1,2}:\d{2}(?::\d{2})?\s*(?:[ap]\.?m\.?)?'

MIN_FIELDS_PER_SECTION = 2
RICH_SECTION_FIELDS = 3

# section -> (confidence with >= 3 fields, confidence with exactly 2)
SECTION_CONFIDENCE = {
    'store_metadata': (0.7, 0.4),
    'balances': (0.7, 0.4),
    'sales_summary': (0.7, 0.4),
    'fuel': (0.7, 0.3),
    'inside_sales': (0.7, 0.3),
    'tenders': (0.7, 0.3),
    'safe_activity': (0.7, 0.3),
}

SECTION_ORDER = tuple(SECTION_CONFIDENCE)

Extractor = Callable[[re.Match], Optional[Dict[str, Any]]]


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with example and notes for documentation."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    flags: int = re.IGNORECASE | re.MULTILINE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


@dataclass(frozen=True)
class FieldRule:
    """One row of a section table: which fields a pattern fills and how."""
    section: str
    spec: PatternSpec
    extractor: Extractor


@dataclass(frozen=True)
class LineBlockSpec:
    """A repeating "name  qty  amount" block under a header line."""
    section: str
    name_field: str
    header: PatternSpec
    line_confidence: float


# -------------------- extractors --------------------

def money(field_name: str, group: int = 1) -> Extractor:
    def extract(match: re.Match):
        value = parse_money(match.group(group))
        return {field_name: value} if value is not None else None
    return extract


def count(field_name: str, group: int = 1) -> Extractor:
    def extract(match: re.Match):
        value = parse_count(match.group(group))
        return {field_name: value} if value is not None else None
    return extract


def text(field_name: str, group: int = 1) -> Extractor:
    def extract(match: re.Match):
        value = match.group(group).strip()
        return {field_name: value} if value else None
    return extract


def counted_amount(count_field: str, amount_field: str) -> Extractor:
    """Optional count (group 1) + amount (group 2) into two flat fields."""
    def extract(match: re.Match):
        amount = parse_money(match.group(2))
        if amount is None:
            return None
        return {count_field: parse_count(match.group(1)), amount_field: amount}
    return extract


def tender(tender_type: str) -> Extractor:
    """Optional count (group 1) + amount (group 2) into a nested tender."""
    def extract(match: re.Match):
        amount = parse_money(match.group(2))
        if amount is None:
            return None
        return {tender_type: {
            'type': tender_type,
            'count': parse_count(match.group(1)),
            'amount': amount,
        }}
    return extract


def cash_variance(match: re.Match) -> Optional[Dict[str, Any]]:
    """
    Signed variance: positive = over, negative = short.

    "($12.50)", "-12.50" and "12.50-" are negative; a bare amount after a
    "SHORT" label is negative too.
    """
    label = re.sub(r'\s+', '', match.group(1).lower())
    value = parse_money(match.group(2).strip(), allow_negative=True)
    if value is None:
        return None
    if label == 'short' and value > 0:
        value = -value
    return {'cash_variance': value}


def time_range(match: re.Match) -> Optional[Dict[str, Any]]:
    return {'shift_start': match.group(1).strip(), 'shift_end': match.group(2).strip()}


# -------------------- rule tables --------------------

STORE_METADATA_RULES = [
    FieldRule('store_metadata', PatternSpec(
        name='register_id',
        pattern=r'\bregister\s*(?:#|no\.?|id)?\s*[:#]?\s*([A-Z]?\d+[A-Z0-9\-]*)\b',
        example='REGISTER #: 02',
    ), text('register_id')),
    FieldRule('store_metadata', PatternSpec(
        name='operator_id',
        pattern=r'\b(?:operator|cashier|clerk)\s*(?:#|no\.?|id)?\s*[:#]\s*(\w+)',
        example='CASHIER: 1047',
    ), text('operator_id')),
    FieldRule('store_metadata', PatternSpec(
        name='till_id',
        pattern=r'\btill\s*(?:#|no\.?|id)?\s*[:#]?\s*([A-Z]?\d+[A-Z0-9\-]*)\b',
        example='TILL 3',
    ), text('till_id')),
    FieldRule('store_metadata', PatternSpec(
        name='printed_at',
        pattern=rf'\bprinted(?:\s*(?:at|on))?[:\s]*({DATE}(?:\s+{TIME})?)',
        example='PRINTED: 10/14/2026 06:02 AM',
    ), text('report_printed_at')),
    FieldRule('store_metadata', PatternSpec(
        name='shift_start',
        pattern=rf'\bshift\s*(?:start|begin|open)(?:ed)?[:\s]*((?:{DATE}\s+)?{TIME})',
        example='SHIFT START: 10:00 PM',
    ), text('shift_start')),
    FieldRule('store_metadata', PatternSpec(
        name='shift_end',
        pattern=rf'\bshift\s*(?:end|close)(?:d)?[:\s]*((?:{DATE}\s+)?{TIME})',
        example='SHIFT END: 06:00 AM',
    ), text('shift_end')),
    FieldRule('store_metadata', PatternSpec(
        name='shift_time_range',
        pattern=rf'({TIME})\s*(?:to|-|–)\s*({TIME})',
        example='10:00 PM - 06:00 AM',
        notes='Fills start/end only when the explicit labels were absent',
    ), time_range),
    FieldRule('store_metadata', PatternSpec(
        name='labelled_report_date',
        pattern=rf'\b(?:report\s*|business\s*)?date[:\s]*({DATE})',
        example='DATE: 10/14/2026',
    ), text('report_date')),
    FieldRule('store_metadata', PatternSpec(
        name='any_date',
        pattern=rf'({DATE})',
        example='10/14/26',
        notes='First date anywhere on the report',
    ), text('report_date')),
]

BALANCE_RULES = [
    FieldRule('balances', PatternSpec(
        name='beginning_balance',
        pattern=rf'\b(?:beginning|opening|starting|start)\s*(?:balance|drawer|bank)[:\s]*{AMOUNT}',
        example='BEGINNING BALANCE: $200.00',
    ), money('beginning_balance')),
    FieldRule('balances', PatternSpec(
        name='ending_balance',
        pattern=rf'\b(?:ending|closing|end)\s*(?:balance|drawer|bank)[:\s]*{AMOUNT}',
        example='ENDING BALANCE: $1,612.40',
    ), money('ending_balance')),
    FieldRule('balances', PatternSpec(
        name='closing_accountability',
        pattern=rf'\baccountab(?:ility|le)[:\s]*{AMOUNT}',
        example='CLOSING ACCOUNTABILITY: $1,624.90',
    ), money('closing_accountability')),
    FieldRule('balances', PatternSpec(
        name='cashier_counted',
        pattern=rf'\b(?:cashier\s*counted|counted\s*cash|cash\s*counted|actual\s*cash|counted)[:\s]*{AMOUNT}',
        example='CASHIER COUNTED: $1,612.40',
    ), money('cashier_counted')),
    FieldRule('balances', PatternSpec(
        name='cash_variance',
        pattern=r'\b(?:cash\s*)?(over\s*/\s*short|o/s|short|over|variance)\b[: \t]*(\(?[ \t]*-?[ \t]*\$?[ \t]*[\d,]+\.?\d*[ \t]*\)?-?)',
        example='CASH SHORT: ($12.50)',
    ), cash_variance),
]

SALES_SUMMARY_RULES = [
    FieldRule('sales_summary', PatternSpec(
        name='gross_sales',
        pattern=rf'\bgross\s*sales[:\s]*{AMOUNT}',
        example='GROSS SALES: $1,245.67',
    ), money('gross_sales')),
    FieldRule('sales_summary', PatternSpec(
        name='net_sales',
        pattern=rf'\bnet\s*sales[:\s]*{AMOUNT}',
        example='NET SALES: $1,150.20',
    ), money('net_sales')),
    FieldRule('sales_summary', PatternSpec(
        name='total_sales',
        pattern=rf'\btotal\s*sales[:\s]*{AMOUNT}',
        example='TOTAL SALES 1,245.67',
        notes='Only used when no gross sales line was found',
    ), money('gross_sales')),
    FieldRule('sales_summary', PatternSpec(
        name='refunds',
        pattern=rf'\brefunds?[:\s]*{AMOUNT}',
        example='REFUNDS: $8.99',
    ), money('refunds')),
    FieldRule('sales_summary', PatternSpec(
        name='discounts',
        pattern=rf'\bdiscounts?[:\s]*{AMOUNT}',
        example='DISCOUNTS: $14.25',
    ), money('discounts')),
    FieldRule('sales_summary', PatternSpec(
        name='tax_total',
        pattern=rf'\b(?:sales\s*)?tax(?:es)?(?:\s*total)?[:\s]*{AMOUNT}',
        example='SALES TAX: $72.23',
    ), money('tax_total')),
    FieldRule('sales_summary', PatternSpec(
        name='total_transactions',
        pattern=r'\b(?:total\s*)?(?:transactions?|trans)(?:\s*count)?[:\s#]*(\d[\d,]*)(?![\d.])',
        example='TRANSACTIONS: 142',
    ), count('total_transactions')),
    FieldRule('sales_summary', PatternSpec(
        name='customers_count',
        pattern=r'\bcustomers?(?:\s*count)?[:\s#]*(\d[\d,]*)(?![\d.])',
        example='CUSTOMERS: 118',
    ), count('customers_count')),
]

FUEL_RULES = [
    FieldRule('fuel', PatternSpec(
        name='fuel_sales',
        pattern=rf'\bfuel\s*(?:sales)?[:\s]*{AMOUNT}',
        example='FUEL SALES: $3,410.55',
    ), money('fuel_sales')),
    FieldRule('fuel', PatternSpec(
        name='fuel_gross',
        pattern=rf'\bfuel\s*gross[:\s]*{AMOUNT}',
        example='FUEL GROSS: $3,455.10',
    ), money('fuel_gross')),
    FieldRule('fuel', PatternSpec(
        name='fuel_gallons',
        pattern=r'\b(?:fuel\s*|total\s*)?(?:gallons?|gals?)[:\s]*([\d,]+\.?\d*)',
        example='GALLONS: 1,021.440',
    ), money('fuel_gallons')),
]

INSIDE_SALES_RULES = [
    FieldRule('inside_sales', PatternSpec(
        name='inside_sales',
        pattern=rf'\binside\s*(?:sales)?[:\s]*{AMOUNT}',
        example='INSIDE SALES: $1,245.67',
    ), money('inside_sales')),
    FieldRule('inside_sales', PatternSpec(
        name='merchandise_sales',
        pattern=rf'\bmerch(?:andise)?(?:\s*sales)?[:\s]*{AMOUNT}',
        example='MERCHANDISE: $980.10',
    ), money('merchandise_sales')),
    FieldRule('inside_sales', PatternSpec(
        name='prepays_initiated',
        pattern=rf'\bprepays?\s*(?:initiated|init)?[:\s]*{AMOUNT}',
        example='PREPAY INITIATED: $600.00',
    ), money('prepays_initiated')),
    FieldRule('inside_sales', PatternSpec(
        name='prepays_pumped',
        pattern=rf'\bprepays?\s*pumped[:\s]*{AMOUNT}',
        example='PREPAY PUMPED: $583.20',
    ), money('prepays_pumped')),
]

TENDER_RULES = [
    FieldRule('tenders', PatternSpec(
        name='cash_tender',
        pattern=rf'(?:^|\s)cash(?:\s*tenders?)?[:\s]+{COUNT_AMOUNT}',
        example='CASH  37  $612.40',
    ), tender('cash')),
    FieldRule('tenders', PatternSpec(
        name='credit_tender',
        pattern=rf'\bcredit(?:\s*cards?)?[:\s]+{COUNT_AMOUNT}',
        example='CREDIT 88 $3,120.77',
    ), tender('credit')),
    FieldRule('tenders', PatternSpec(
        name='debit_tender',
        pattern=rf'\bdebit(?:\s*cards?)?[:\s]+{COUNT_AMOUNT}',
        example='DEBIT 21 $655.05',
    ), tender('debit')),
    FieldRule('tenders', PatternSpec(
        name='check_tender',
        pattern=rf'\bchecks?\b[:\s]+{COUNT_AMOUNT}',
        example='CHECK 1 $45.00',
    ), tender('check')),
    FieldRule('tenders', PatternSpec(
        name='ebt_tender',
        pattern=rf'\bebt\b[:\s]+{COUNT_AMOUNT}',
        example='EBT 2 $31.18',
    ), tender('ebt')),
    FieldRule('tenders', PatternSpec(
        name='other_tender',
        pattern=rf'\bother\s*tenders?[:\s]+{COUNT_AMOUNT}',
        example='OTHER TENDER 1 $10.00',
    ), tender('other')),
    FieldRule('tenders', PatternSpec(
        name='total_tenders',
        pattern=rf'\btotal\s*tenders?[:\s]*{AMOUNT}',
        example='TOTAL TENDERS: $4,429.40',
    ), money('total_tenders')),
]

SAFE_ACTIVITY_RULES = [
    FieldRule('safe_activity', PatternSpec(
        name='safe_drops',
        pattern=rf'\b(?:safe\s*)?drops?\b[:\s]+{COUNT_AMOUNT}',
        example='SAFE DROPS: 4 $800.00',
    ), counted_amount('safe_drop_count', 'safe_drop_amount')),
    FieldRule('safe_activity', PatternSpec(
        name='safe_loans',
        pattern=rf'\b(?:safe\s*)?loans?\b[:\s]+{COUNT_AMOUNT}',
        example='SAFE LOANS: 1 $100.00',
    ), counted_amount('safe_loan_count', 'safe_loan_amount')),
    FieldRule('safe_activity', PatternSpec(
        name='paid_in',
        pattern=rf'\bpaid\s*ins?\b[:\s]+{COUNT_AMOUNT}',
        example='PAID IN: 1 $20.00',
    ), counted_amount('paid_in_count', 'paid_in_amount')),
    FieldRule('safe_activity', PatternSpec(
        name='paid_out',
        pattern=rf'\bpaid\s*outs?\b[:\s]+{COUNT_AMOUNT}',
        example='PAID OUT: 2 $64.00',
    ), counted_amount('paid_out_count', 'paid_out_amount')),
]

SECTION_RULES: List[FieldRule] = (
    STORE_METADATA_RULES
    + BALANCE_RULES
    + SALES_SUMMARY_RULES
    + FUEL_RULES
    + INSIDE_SALES_RULES
    + TENDER_RULES
    + SAFE_ACTIVITY_RULES
)

# (type tag, pattern) -> count in group 1, optional amount in group 2
EXCEPTION_PATTERNS = [
    ('no_sale', PatternSpec(
        name='no_sale',
        pattern=r'\bno[\s\-]*sales?\b[:\s]+(\d+)()',
        example='NO SALE: 4',
    )),
    ('void', PatternSpec(
        name='void',
        pattern=r'\bvoids?\b[:\s]+(\d+)(?:\s+\$?\s*([\d,]+\.\d{2}))?',
        example='VOIDS: 3 $12.00',
    )),
    ('drive_off', PatternSpec(
        name='drive_off',
        pattern=r'\bdrive[\s\-]*offs?\b[:\s]+(\d+)(?:\s+\$?\s*([\d,]+\.\d{2}))?',
        example='DRIVE OFFS: 1 $42.10',
    )),
]

LINE_BLOCKS = [
    LineBlockSpec(
        section='department_sales',
        name_field='department_name',
        header=PatternSpec(
            name='department_header',
            pattern=r'^\s*(?:department|dept\.?|category)(?:\s+(?:sales|summary|report|totals?))?\s*:?\s*$',
            example='DEPARTMENT SALES',
        ),
        line_confidence=0.6,
    ),
    LineBlockSpec(
        section='item_sales',
        name_field='item_name',
        header=PatternSpec(
            name='item_header',
            pattern=r'^\s*(?:item|plu)(?:\s+(?:sales|summary|report|detail))?\s*:?\s*$',
            example='ITEM SALES',
        ),
        line_confidence=0.5,
    ),
]

# "TOBACCO    5   $123.45" / "Cigarettes: $456.78"
SALE_LINE_PATTERN = PatternSpec(
    name='sale_line',
    pattern=r"^\s*([A-Za-z][A-Za-z\s&/'.\-]*?)[:\s]+(?:(\d+)\s+)?\$?\s*([\d,]+\.\d{2})\s*$",
    example='TOBACCO    5   $123.45',
)

# Summary lines that look like sale lines but are not departments/items
SALE_LINE_STOP_WORDS = (
    'total', 'net', 'gross', 'tax', 'cash', 'credit', 'debit',
    'tender', 'change', 'balance', 'over', 'short', 'variance',
)

MAX_BLOCK_LINES = 80
MAX_LEADING_NOISE_LINES = 3

DATE_FORMATS = ('%m/%d/%Y', '%m-%d-%Y', '%m/%d/%y', '%m-%d-%y', '%Y-%m-%d')
TIME_FORMATS = ('%I:%M %p', '%I:%M%p', '%I:%M:%S %p', '%I:%M:%S%p', '%H:%M', '%H:%M:%S')


class ShiftReportParser:
    """Regex-table parser producing a deterministic ShiftReportExtract."""

    def __init__(
        self,
        section_rules: Optional[List[FieldRule]] = None,
        exception_patterns: Optional[List[Tuple[str, PatternSpec]]] = None,
        line_blocks: Optional[List[LineBlockSpec]] = None,
    ):
        self.section_rules = section_rules if section_rules is not None else SECTION_RULES
        self.exception_patterns = exception_patterns if exception_patterns is not None else EXCEPTION_PATTERNS
        self.line_blocks = line_blocks if line_blocks is not None else LINE_BLOCKS

    def parse(self, text: str, _debug: Optional[Dict[str, Any]] = None) -> ShiftReportExtract:
        """
        Parse OCR text into a ShiftReportExtract.

        Never raises: a section whose patterns misbehave is logged and skipped.

        Args:
            text: Raw OCR text
            _debug: Optional dict that receives the pattern names matched per section

        Returns:
            Extract with extraction_method = deterministic. Sections that did
            not reach the two-field minimum are absent.
        """
        text = text or ""
        logger.debug("Parsing OCR text with deterministic parser", extra={"text_length": len(text)})

        if _debug is not None:
            _debug.setdefault('patterns_matched', {})

        result: Dict[str, Any] = {
            'raw_text': text,
            'extraction_method': ExtractionMethod.DETERMINISTIC.value,
        }

        for section in SECTION_ORDER:
            parsed = self._parse_section(text, section, _debug)
            if parsed is not None:
                result[section] = parsed

        if 'store_metadata' in result:
            self._normalize_shift_times(result['store_metadata'])

        for block in self.line_blocks:
            result[block.section] = self._parse_line_block(text, block)

        result['exceptions'] = self._parse_exceptions(text)

        return ShiftReportExtract.model_validate(result)

    def _parse_section(
        self,
        text: str,
        section: str,
        _debug: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Apply every rule of one section; emit it only with >= 2 matched rules."""
        values: Dict[str, Any] = {}
        matched: List[str] = []

        try:
            for rule in self.section_rules:
                if rule.section != section:
                    continue

                match = rule.spec.compiled.search(text)
                if not match:
                    continue

                extracted = rule.extractor(match)
                if not extracted:
                    continue

                # Earlier rules win; later rules for the same field are fallbacks
                new_fields = {k: v for k, v in extracted.items() if k not in values}
                if not new_fields:
                    continue

                values.update(new_fields)
                matched.append(rule.spec.name)

        except (re.error, ValueError, ArithmeticError, IndexError):
            logger.warning("Error parsing section", extra={"section": section}, exc_info=True)
            return None

        if len(matched) < MIN_FIELDS_PER_SECTION:
            return None

        rich, sparse = SECTION_CONFIDENCE[section]
        values['confidence'] = rich if len(matched) >= RICH_SECTION_FIELDS else sparse

        if _debug is not None:
            _debug['patterns_matched'][section] = matched

        return values

    def _parse_line_block(self, text: str, block: LineBlockSpec) -> List[Dict[str, Any]]:
        """
        Extract "name qty? amount" lines under a block header.

        The block runs from the header to the first blank line, or to the first
        non-sale line once at least one sale line was read.
        """
        header = block.header.compiled.search(text)
        if not header:
            return []

        lines = text[header.end():].splitlines()
        entries: List[Dict[str, Any]] = []
        noise = 0

        for line in lines[:MAX_BLOCK_LINES]:
            if not line.strip():
                if entries:
                    break
                continue

            match = SALE_LINE_PATTERN.compiled.match(line)
            if not match:
                if entries:
                    break
                noise += 1
                if noise > MAX_LEADING_NOISE_LINES:
                    break
                continue

            name = re.sub(r'\s+', ' ', match.group(1)).strip(" .:-")
            if not name or any(word in name.lower() for word in SALE_LINE_STOP_WORDS):
                continue

            amount = parse_money(match.group(3))
            if amount is None:
                continue

            entries.append({
                block.name_field: name,
                'quantity': parse_count(match.group(2)),
                'amount': amount,
                'confidence': block.line_confidence,
            })

        return entries

    def _parse_exceptions(self, text: str) -> List[Dict[str, Any]]:
        exceptions = []
        for exception_type, spec in self.exception_patterns:
            match = spec.compiled.search(text)
            if not match:
                continue
            exceptions.append({
                'type': exception_type,
                'count': parse_count(match.group(1)) or 0,
                'amount': parse_money(match.group(2)) if match.group(2) else None,
            })
        return exceptions

    def _normalize_shift_times(self, meta: Dict[str, Any]) -> None:
        """
        Turn printed dates/times into ISO strings where possible.

        A bare shift time is anchored on the report date. An end time earlier
        than the start time is an overnight shift and rolls to the next day.
        """
        report_day = _parse_date(meta.get('report_date'))
        if report_day:
            meta['report_date'] = report_day.date().isoformat()

        printed = _parse_datetime(meta.get('report_printed_at'))
        if printed:
            meta['report_printed_at'] = printed.isoformat()
            report_day = report_day or printed.replace(hour=0, minute=0, second=0)

        start = self._anchor_time(meta.get('shift_start'), report_day)
        end = self._anchor_time(meta.get('shift_end'), report_day)

        if start and end and end <= start and not _has_date(meta.get('shift_end')):
            end += timedelta(days=1)

        if start:
            meta['shift_start'] = start.isoformat()
        if end:
            meta['shift_end'] = end.isoformat()

    @staticmethod
    def _anchor_time(value: Optional[str], day: Optional[datetime]) -> Optional[datetime]:
        if not value:
            return None
        full = _parse_datetime(value)
        if full:
            return full
        clock = _parse_time(value)
        if clock and day:
            return day.replace(hour=clock.hour, minute=clock.minute, second=clock.second)
        return None


def _clean_clock(value: str) -> str:
    return re.sub(r'([ap])\.?m\.?', r'\1m', value.strip().lower()).upper()


def _has_date(value: Optional[str]) -> bool:
    return bool(value and re.search(DATE, value))


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    cleaned = _clean_clock(value)
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse "MM/DD/YYYY HH:MM[ AM]" style stamps; None if no date part."""
    if not value:
        return None
    match = re.match(rf'\s*({DATE})\s*(.*)$', value)
    if not match:
        return None
    day = _parse_date(match.group(1))
    if not day:
        return None
    if not match.group(2).strip():
        return day
    clock = _parse_time(match.group(2))
    if not clock:
        return day
    return day.replace(hour=clock.hour, minute=clock.minute, second=clock.second)
