"""
Shift report API router: upload + analysis, reads and analytics.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from shiftscan.config import settings
from shiftscan.services.analysis import ShiftAnalysisService
from shiftscan.services.errors import (
    AcquisitionError,
    CompletionServiceError,
    ConfigurationError,
    ExtractionValidationError,
)
from shiftscan.services.storage import ShiftReportStorage, calculate_file_hash, STATUS_CREATED

router = APIRouter(prefix="/shift-reports", tags=["shift-reports"])
logger = logging.getLogger(__name__)

ALLOWED_TYPES = ["application/pdf", "image/jpeg", "image/jpg", "image/png"]


def get_analysis_service() -> ShiftAnalysisService:
    return ShiftAnalysisService()


def get_storage() -> ShiftReportStorage:
    return ShiftReportStorage()


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


def _require_range(store_id: Optional[str], start_date: Optional[date], end_date: Optional[date]):
    if not store_id or not start_date or not end_date:
        raise _error(400, "MISSING_PARAMS", "store_id, start_date and end_date are required")


@router.post("/upload")
async def upload_shift_report(
    file: Optional[UploadFile] = File(None),
    store_id: Optional[str] = Form(None),
    analysis: ShiftAnalysisService = Depends(get_analysis_service),
    storage: ShiftReportStorage = Depends(get_storage),
):
    """
    Upload a shift report photo or PDF.

    This endpoint:
    1. Validates the file (PDF, JPG, PNG; size limit)
    2. Runs the extraction pipeline (deterministic / text / vision tier)
    3. Saves the extract, deduplicating by receipt hash
    4. Returns the saved report id, dedup status and the extract

    Args:
        file: Uploaded file
        store_id: Store the report belongs to

    Returns:
        Save outcome plus the validated extract
    """
    if file is None:
        raise _error(400, "MISSING_FILE", "No file uploaded")
    if not store_id:
        raise _error(400, "MISSING_STORE", "store_id is required")

    if file.content_type not in ALLOWED_TYPES:
        raise _error(
            400, "INVALID_FILE_TYPE",
            f"Invalid file type: {file.content_type}. Allowed: PDF, JPG, PNG"
        )

    file_data = await file.read()
    file_size_mb = len(file_data) / (1024 * 1024)
    if file_size_mb > settings.MAX_UPLOAD_MB:
        raise _error(
            413, "FILE_TOO_LARGE",
            f"File too large: {file_size_mb:.2f}MB. Maximum: {settings.MAX_UPLOAD_MB}MB"
        )

    try:
        result = await run_in_threadpool(analysis.analyze, file_data, file.content_type)
    except ExtractionValidationError as e:
        logger.warning("Extract failed validation", extra={
            "store_id": store_id,
            "upload_filename": file.filename,
            "validation_errors": e.errors,
        })
        raise _error(422, "PARSE_ERROR", "Could not extract data from report.")
    except ConfigurationError as e:
        raise _error(503, "NOT_CONFIGURED", str(e))
    except (CompletionServiceError, AcquisitionError) as e:
        raise _error(502, "EXTRACTION_FAILED", str(e))

    saved = await run_in_threadpool(
        storage.save, store_id, result.extract, calculate_file_hash(file_data)
    )

    logger.info("Shift report processed", extra={
        "store_id": store_id,
        "report_id": saved.id,
        "status": saved.status,
        "method": result.method,
        "quality_score": result.quality_score,
    })

    return {
        "success": True,
        "report_id": saved.id,
        "status": saved.status,
        "upload_count": saved.upload_count,
        "is_duplicate": saved.status != STATUS_CREATED,
        "method": result.method,
        "quality_score": result.quality_score,
        "extract": result.extract.model_dump(mode="json"),
    }


@router.get("")
def list_shift_reports(
    store_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    storage: ShiftReportStorage = Depends(get_storage),
):
    """List a store's shift reports, newest business date first."""
    if not store_id:
        raise _error(400, "MISSING_STORE", "store_id is required")

    reports = storage.list_by_store(store_id, start_date, end_date, limit=limit, offset=offset)
    return {"reports": reports, "count": len(reports)}


@router.get("/analytics/top-items")
def top_items(
    store_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    storage: ShiftReportStorage = Depends(get_storage),
):
    _require_range(store_id, start_date, end_date)
    return {"items": storage.get_top_items(store_id, start_date, end_date, limit=limit)}


@router.get("/analytics/top-departments")
def top_departments(
    store_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    storage: ShiftReportStorage = Depends(get_storage),
):
    _require_range(store_id, start_date, end_date)
    return {"departments": storage.get_top_departments(store_id, start_date, end_date, limit=limit)}


@router.get("/analytics/cash-variances")
def cash_variances(
    store_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    storage: ShiftReportStorage = Depends(get_storage),
):
    _require_range(store_id, start_date, end_date)
    return {"days": storage.get_cash_variance_days(store_id, start_date, end_date)}


@router.get("/analytics/fuel-vs-inside")
def fuel_vs_inside(
    store_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    storage: ShiftReportStorage = Depends(get_storage),
):
    _require_range(store_id, start_date, end_date)
    return {"days": storage.get_fuel_vs_inside(store_id, start_date, end_date)}


@router.get("/{report_id}")
def get_shift_report(report_id: str, storage: ShiftReportStorage = Depends(get_storage)):
    """Full report with departments, items and exceptions."""
    report = storage.get_by_id(report_id)
    if report is None:
        raise _error(404, "NOT_FOUND", "Shift report not found")
    return report


@router.get("/{report_id}/summary")
def get_shift_report_summary(report_id: str, storage: ShiftReportStorage = Depends(get_storage)):
    summary = storage.get_summary(report_id)
    if summary is None:
        raise _error(404, "NOT_FOUND", "Shift report not found")
    return summary
