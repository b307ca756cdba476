"""
Storage service for shift reports in Supabase (PostgREST).

Reports are keyed by receipt_hash, the SHA-256 of the recognized text, so a
re-photographed receipt lands on the same row. A repeat upload never creates a
second row: it replaces the stored extract (same or lower confidence) or
upgrades it (strictly higher confidence).
"""

import hashlib
import logging
import uuid
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from postgrest.exceptions import APIError

from shiftscan.models.shift_report import SaveResult, ShiftReportExtract, ShiftReportSummary
from shiftscan.services.errors import DuplicateReceiptConflict
from shiftscan.utils.money import decimal_to_str, str_to_decimal
from shiftscan.utils.supabase import get_supabase_client

logger = logging.getLogger(__name__)

REPORTS_TABLE = 'shift_reports'
DEPARTMENTS_TABLE = 'shift_report_departments'
ITEMS_TABLE = 'shift_report_items'
EXCEPTIONS_TABLE = 'shift_report_exceptions'
CHILD_TABLES = (DEPARTMENTS_TABLE, ITEMS_TABLE, EXCEPTIONS_TABLE)

# PostgreSQL unique_violation
UNIQUE_VIOLATION = '23505'

STATUS_CREATED = 'created'
STATUS_REPLACED = 'replaced_duplicate'
STATUS_UPGRADED = 'quality_upgrade'

REASON_INITIAL = 'initial'
REASON_REPLACE = 'duplicate-replace'
REASON_UPGRADE = 'quality-upgrade'

SUMMARY_TOP_N = 5
SUMMARY_TENDERS = ('cash', 'credit', 'debit')
TENDER_TYPES = ('cash', 'credit', 'debit', 'check', 'ebt', 'other')

DATE_FORMATS = ('%Y-%m-%d', '%m/%d/%Y', '%m/%d/%y', '%m-%d-%Y', '%m-%d-%y')


def calculate_receipt_hash(raw_text: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded text."""
    return hashlib.sha256((raw_text or "").encode('utf-8')).hexdigest()


def calculate_file_hash(file_data: bytes) -> str:
    """SHA-256 hex digest of the uploaded file bytes."""
    return hashlib.sha256(file_data).hexdigest()


def _parse_timestamp(value: Optional[str]) -> Optional[date]:
    """ISO datetime / ISO date / printed date -> date, None when unparseable."""
    if not value or not isinstance(value, str):
        return None

    cleaned = value.strip()
    if cleaned.endswith('Z'):
        cleaned = cleaned[:-1] + '+00:00'

    try:
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned.split()[0], fmt).date()
        except ValueError:
            continue
    return None


def derive_report_date(extract: ShiftReportExtract, now: Optional[datetime] = None) -> date:
    """
    Business date the report is attributed to.

    Shift end wins so an overnight shift lands on the day it ended, then
    printed-at, then the printed report date, then today.
    """
    meta = extract.store_metadata
    if meta is not None:
        for field_name in ('shift_end', 'report_printed_at', 'report_date'):
            value = getattr(meta, field_name)
            if not value:
                continue
            parsed = _parse_timestamp(value)
            if parsed is not None:
                return parsed
            logger.warning("Unparseable report date candidate", extra={
                "field": field_name,
                "value": value,
            })

    return (now or datetime.now()).date()


class ShiftReportStorage:
    """Persists validated extracts and serves the reporting queries."""

    def __init__(self, supabase=None):
        """Initialize storage service (client injected in tests)."""
        self.supabase = supabase if supabase is not None else get_supabase_client()

    # -------------------- save / dedup --------------------

    def save(
        self,
        store_id: str,
        extract: ShiftReportExtract,
        file_hash: Optional[str] = None
    ) -> SaveResult:
        """
        Create, replace or upgrade the stored report for this extract.

        Args:
            store_id: Store the report belongs to
            extract: Validated extract
            file_hash: Hash of the uploaded bytes, used as the key when the
                extract has no text to hash

        Returns:
            SaveResult with status created | replaced_duplicate | quality_upgrade
        """
        receipt_hash = self.receipt_hash_for(extract, file_hash)
        report_date = derive_report_date(extract)
        row = self._report_row(store_id, extract, receipt_hash, report_date)

        existing = self._find_by_hash(receipt_hash)

        if existing is None:
            try:
                return self._create(row, extract, report_date)
            except DuplicateReceiptConflict:
                # A concurrent upload of the same receipt won the insert
                logger.warning("Receipt hash conflict on insert, retrying as update", extra={
                    "receipt_hash": receipt_hash
                })
                existing = self._find_by_hash(receipt_hash)
                if existing is None:
                    raise

        return self._update(existing, row, extract, report_date)

    def receipt_hash_for(self, extract: ShiftReportExtract, file_hash: Optional[str] = None) -> str:
        if not extract.raw_text.strip() and file_hash:
            return file_hash
        return calculate_receipt_hash(extract.raw_text)

    def _find_by_hash(self, receipt_hash: str) -> Optional[Dict[str, Any]]:
        response = self.supabase.table(REPORTS_TABLE).select(
            'id, receipt_hash, upload_count, extraction_confidence'
        ).eq('receipt_hash', receipt_hash).limit(1).execute()
        return response.data[0] if response.data else None

    def _create(self, row: Dict[str, Any], extract: ShiftReportExtract, report_date: date) -> SaveResult:
        report_id = str(uuid.uuid4())
        data = {
            **row,
            'id': report_id,
            'upload_count': 1,
            'last_upload_reason': REASON_INITIAL,
        }

        try:
            self.supabase.table(REPORTS_TABLE).insert(data).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateReceiptConflict(row['receipt_hash']) from e
            raise

        self._insert_children(report_id, extract)

        logger.info("Shift report created", extra={
            "report_id": report_id,
            "receipt_hash": row['receipt_hash'],
            "report_date": report_date.isoformat(),
        })

        return SaveResult(
            id=report_id,
            status=STATUS_CREATED,
            upload_count=1,
            receipt_hash=row['receipt_hash'],
            report_date=report_date,
        )

    def _update(
        self,
        existing: Dict[str, Any],
        row: Dict[str, Any],
        extract: ShiftReportExtract,
        report_date: date
    ) -> SaveResult:
        report_id = existing['id']
        stored_confidence = float(existing.get('extraction_confidence') or 0)
        is_upgrade = extract.extraction_confidence > stored_confidence
        upload_count = int(existing.get('upload_count') or 1) + 1

        data = {k: v for k, v in row.items() if k != 'store_id'}
        data['upload_count'] = upload_count
        data['last_upload_reason'] = REASON_UPGRADE if is_upgrade else REASON_REPLACE

        self.supabase.table(REPORTS_TABLE).update(data).eq('id', report_id).execute()

        for table in CHILD_TABLES:
            self.supabase.table(table).delete().eq('shift_report_id', report_id).execute()
        self._insert_children(report_id, extract)

        status = STATUS_UPGRADED if is_upgrade else STATUS_REPLACED
        logger.info("Shift report re-uploaded", extra={
            "report_id": report_id,
            "status": status,
            "upload_count": upload_count,
            "previous_confidence": stored_confidence,
            "new_confidence": extract.extraction_confidence,
        })

        return SaveResult(
            id=report_id,
            status=status,
            upload_count=upload_count,
            receipt_hash=row['receipt_hash'],
            report_date=report_date,
        )

    def _insert_children(self, report_id: str, extract: ShiftReportExtract) -> None:
        departments = [{
            'id': str(uuid.uuid4()),
            'shift_report_id': report_id,
            'department_name': d.department_name,
            'quantity': d.quantity,
            'amount': decimal_to_str(d.amount),
        } for d in extract.department_sales]

        items = [{
            'id': str(uuid.uuid4()),
            'shift_report_id': report_id,
            'item_name': i.item_name,
            'sku': i.sku,
            'quantity': i.quantity,
            'amount': decimal_to_str(i.amount),
        } for i in extract.item_sales]

        exceptions = [{
            'id': str(uuid.uuid4()),
            'shift_report_id': report_id,
            'type': e.type,
            'count': e.count,
            'amount': decimal_to_str(e.amount),
        } for e in extract.exceptions]

        for table, rows in ((DEPARTMENTS_TABLE, departments), (ITEMS_TABLE, items), (EXCEPTIONS_TABLE, exceptions)):
            if rows:
                self.supabase.table(table).insert(rows).execute()

    def _report_row(
        self,
        store_id: str,
        extract: ShiftReportExtract,
        receipt_hash: str,
        report_date: date
    ) -> Dict[str, Any]:
        """Flatten an extract into a shift_reports row (Decimals as strings)."""
        meta = extract.store_metadata
        balances = extract.balances
        sales = extract.sales_summary
        fuel = extract.fuel
        inside = extract.inside_sales
        tenders = extract.tenders
        safe = extract.safe_activity

        def value(section, name):
            raw = getattr(section, name) if section is not None else None
            return decimal_to_str(raw) if isinstance(raw, Decimal) else raw

        row = {
            'store_id': store_id,
            'receipt_hash': receipt_hash,
            'report_date': report_date.isoformat(),

            'store_name': value(meta, 'store_name'),
            'store_address': value(meta, 'store_address'),
            'register_id': value(meta, 'register_id'),
            'operator_id': value(meta, 'operator_id'),
            'till_id': value(meta, 'till_id'),
            'shift_start': value(meta, 'shift_start'),
            'shift_end': value(meta, 'shift_end'),
            'printed_at': value(meta, 'report_printed_at'),

            'beginning_balance': value(balances, 'beginning_balance'),
            'ending_balance': value(balances, 'ending_balance'),
            'closing_accountability': value(balances, 'closing_accountability'),
            'cashier_counted': value(balances, 'cashier_counted'),
            'cash_variance': value(balances, 'cash_variance'),

            'gross_sales': value(sales, 'gross_sales'),
            'net_sales': value(sales, 'net_sales'),
            'refunds': value(sales, 'refunds'),
            'discounts': value(sales, 'discounts'),
            'tax_total': value(sales, 'tax_total'),
            'total_transactions': value(sales, 'total_transactions'),
            'customers_count': value(sales, 'customers_count'),

            'fuel_sales': value(fuel, 'fuel_sales'),
            'fuel_gross': value(fuel, 'fuel_gross'),
            'fuel_gallons': value(fuel, 'fuel_gallons'),

            'inside_sales': value(inside, 'inside_sales'),
            'merchandise_sales': value(inside, 'merchandise_sales'),
            'prepays_initiated': value(inside, 'prepays_initiated'),
            'prepays_pumped': value(inside, 'prepays_pumped'),

            'total_tenders': value(tenders, 'total_tenders'),

            'safe_drop_count': value(safe, 'safe_drop_count'),
            'safe_drop_amount': value(safe, 'safe_drop_amount'),
            'safe_loan_count': value(safe, 'safe_loan_count'),
            'safe_loan_amount': value(safe, 'safe_loan_amount'),
            'paid_in_count': value(safe, 'paid_in_count'),
            'paid_in_amount': value(safe, 'paid_in_amount'),
            'paid_out_count': value(safe, 'paid_out_count'),
            'paid_out_amount': value(safe, 'paid_out_amount'),

            'raw_text': extract.raw_text,
            'extraction_method': extract.extraction_method,
            'extraction_confidence': extract.extraction_confidence,
        }

        for tender_type in TENDER_TYPES:
            tender = getattr(tenders, tender_type) if tenders is not None else None
            row[f'{tender_type}_count'] = tender.count if tender else None
            row[f'{tender_type}_amount'] = decimal_to_str(tender.amount) if tender else None

        return row

    # -------------------- reads --------------------

    def get_by_id(self, report_id: str) -> Optional[Dict[str, Any]]:
        """Report row with its departments, items and exceptions, or None."""
        response = self.supabase.table(REPORTS_TABLE).select('*').eq('id', report_id).limit(1).execute()
        if not response.data:
            return None

        report = dict(response.data[0])
        report['departments'] = self._children(DEPARTMENTS_TABLE, [report_id])
        report['items'] = self._children(ITEMS_TABLE, [report_id])
        report['exceptions'] = self._children(EXCEPTIONS_TABLE, [report_id])
        return report

    def list_by_store(
        self,
        store_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """Reports for a store, newest business date first, with departments."""
        query = self.supabase.table(REPORTS_TABLE).select('*').eq('store_id', store_id)
        if start_date:
            query = query.gte('report_date', start_date.isoformat())
        if end_date:
            query = query.lte('report_date', end_date.isoformat())

        response = query.order('report_date', desc=True).range(offset, offset + limit - 1).execute()
        reports = [dict(r) for r in response.data or []]
        if not reports:
            return []

        departments = defaultdict(list)
        for dept in self._children(DEPARTMENTS_TABLE, [r['id'] for r in reports]):
            departments[dept['shift_report_id']].append(dept)

        for report in reports:
            report['departments'] = departments.get(report['id'], [])
        return reports

    def get_summary(self, report_id: str) -> Optional[ShiftReportSummary]:
        """Compact view: headline numbers, top 5 departments and items, tender split."""
        response = self.supabase.table(REPORTS_TABLE).select('*').eq('id', report_id).limit(1).execute()
        if not response.data:
            return None
        report = response.data[0]

        departments = _top_by_amount(self._children(DEPARTMENTS_TABLE, [report_id]), SUMMARY_TOP_N)
        items = _top_by_amount(self._children(ITEMS_TABLE, [report_id]), SUMMARY_TOP_N)

        tender_breakdown = []
        for tender_type in SUMMARY_TENDERS:
            amount = str_to_decimal(report.get(f'{tender_type}_amount')) or Decimal('0')
            if amount > 0:
                tender_breakdown.append({'type': tender_type, 'amount': amount})

        return ShiftReportSummary(
            id=report['id'],
            report_date=report['report_date'],
            shift_start=report.get('shift_start'),
            shift_end=report.get('shift_end'),
            gross_sales=str_to_decimal(report.get('gross_sales')),
            net_sales=str_to_decimal(report.get('net_sales')),
            fuel_sales=str_to_decimal(report.get('fuel_sales')),
            inside_sales=str_to_decimal(report.get('inside_sales')),
            cash_variance=str_to_decimal(report.get('cash_variance')),
            customers_count=report.get('customers_count'),
            top_departments=[
                {'name': d['department_name'], 'amount': str_to_decimal(d['amount'])} for d in departments
            ],
            top_items=[
                {'name': i['item_name'], 'amount': str_to_decimal(i['amount'])} for i in items
            ],
            tender_breakdown=tender_breakdown,
        )

    # -------------------- analytics --------------------

    def get_top_items(self, store_id: str, start_date: date, end_date: date, limit: int = 10) -> List[Dict[str, Any]]:
        """Item sales summed by item name over a date range, largest first."""
        report_ids = [r['id'] for r in self._reports_in_range(store_id, start_date, end_date, 'id')]
        totals = _sum_by_name(self._children(ITEMS_TABLE, report_ids), 'item_name')
        return [
            {'item_name': name, 'total_amount': amount, 'total_quantity': quantity}
            for name, amount, quantity in totals[:limit]
        ]

    def get_top_departments(self, store_id: str, start_date: date, end_date: date, limit: int = 10) -> List[Dict[str, Any]]:
        """Department sales summed by department name over a date range, largest first."""
        report_ids = [r['id'] for r in self._reports_in_range(store_id, start_date, end_date, 'id')]
        totals = _sum_by_name(self._children(DEPARTMENTS_TABLE, report_ids), 'department_name')
        return [
            {'department_name': name, 'total_amount': amount, 'total_quantity': quantity}
            for name, amount, quantity in totals[:limit]
        ]

    def get_cash_variance_days(self, store_id: str, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        """Reports that recorded a cash variance, newest first."""
        reports = self._reports_in_range(store_id, start_date, end_date, 'report_date, cash_variance', desc=True)
        return [
            {'date': r['report_date'], 'cash_variance': str_to_decimal(r['cash_variance'])}
            for r in reports
            if r.get('cash_variance') is not None
        ]

    def get_fuel_vs_inside(self, store_id: str, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        """Fuel and inside sales per report, oldest first."""
        reports = self._reports_in_range(store_id, start_date, end_date, 'report_date, fuel_sales, inside_sales')
        return [{
            'date': r['report_date'],
            'fuel_sales': str_to_decimal(r.get('fuel_sales')) or Decimal('0'),
            'inside_sales': str_to_decimal(r.get('inside_sales')) or Decimal('0'),
        } for r in reports]

    def _reports_in_range(
        self,
        store_id: str,
        start_date: date,
        end_date: date,
        columns: str,
        desc: bool = False
    ) -> List[Dict[str, Any]]:
        response = self.supabase.table(REPORTS_TABLE).select(columns).eq(
            'store_id', store_id
        ).gte('report_date', start_date.isoformat()).lte(
            'report_date', end_date.isoformat()
        ).order('report_date', desc=desc).execute()
        return response.data or []

    def _children(self, table: str, report_ids: List[str]) -> List[Dict[str, Any]]:
        if not report_ids:
            return []
        response = self.supabase.table(table).select('*').in_('shift_report_id', report_ids).execute()
        return response.data or []


def _top_by_amount(rows: Iterable[Dict[str, Any]], limit: int) -> List[Dict[str, Any]]:
    ordered = sorted(rows, key=lambda r: str_to_decimal(r.get('amount')) or Decimal('0'), reverse=True)
    return ordered[:limit]


def _sum_by_name(rows: Iterable[Dict[str, Any]], name_field: str) -> List[tuple]:
    """[(name, total_amount, total_quantity)] ordered by amount descending."""
    amounts: Dict[str, Decimal] = defaultdict(Decimal)
    quantities: Dict[str, int] = defaultdict(int)

    for row in rows:
        name = row[name_field]
        amounts[name] += str_to_decimal(row.get('amount')) or Decimal('0')
        quantities[name] += int(row.get('quantity') or 0)

    return sorted(
        ((name, amounts[name], quantities[name]) for name in amounts),
        key=lambda entry: entry[1],
        reverse=True,
    )
