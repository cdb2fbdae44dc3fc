"""
Reconciliation API
Upload invoice and payment files, reconcile them, export the result
or hand the work to a background worker. Nothing is stored between requests.
"""

import math
import time
from typing import Any, Dict, List, Optional

from celery.result import AsyncResult
from flask import Flask, Response, jsonify, request
from kombu.exceptions import OperationalError

from celery_app import celery_app
from config import MAX_FILE_SIZE_BYTES, MAX_FILE_SIZE_MB, RATE_LIMITS
from models.transaction import INVOICE_FIELDS, PAYMENT_FIELDS
from services.export_service import (
    EXPORT_SECTIONS,
    export_to_csv,
    export_to_excel,
    export_to_pdf,
    section_rows,
)
from services.matcher import reconcile_rows
from services.record_loader import UserInputError, load_rows, validate_columns
from tasks.reconciliation_tasks import process_reconciliation_task
from utils.error_handlers import PayloadTooLargeError, ServiceUnavailableError, ValidationError
from utils.logger import StructuredLogger
from utils.monitoring import track_reconciliation

logger = StructuredLogger(__name__)

EXPORT_MIMETYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


def _read_upload(field: str, source: str, required_columns) -> List[Dict[str, Any]]:
    """Load one uploaded file into rows, mapping loader problems to 4xx errors"""
    upload = request.files.get(field)
    if upload is None or not upload.filename:
        raise ValidationError(f"Missing required file: {field}", details={"field": field})

    file_bytes = upload.read()
    if len(file_bytes) > MAX_FILE_SIZE_BYTES:
        raise PayloadTooLargeError(
            f"{upload.filename} exceeds the {MAX_FILE_SIZE_MB} MB limit",
            details={"field": field, "size_bytes": len(file_bytes)},
        )

    try:
        rows = load_rows(file_bytes, upload.filename)
        validate_columns(rows, required_columns, source)
    except UserInputError as e:
        raise ValidationError(str(e), details={"field": field, "filename": upload.filename})
    return rows


def _read_time_window() -> Optional[float]:
    raw = request.form.get("time_window_hours", request.args.get("time_window_hours"))
    if raw is None or str(raw).strip() == "":
        return None
    try:
        window = float(raw)
    except ValueError:
        raise ValidationError("time_window_hours must be a number", details={"value": raw})
    if not math.isfinite(window) or window < 0:
        raise ValidationError("time_window_hours must be a finite, non-negative number", details={"value": raw})
    return window


def _read_inputs():
    invoice_rows = _read_upload("invoices", "invoice", INVOICE_FIELDS)
    payment_rows = _read_upload("payments", "payment", PAYMENT_FIELDS)
    return invoice_rows, payment_rows, _read_time_window()


def _run_reconciliation():
    invoice_rows, payment_rows, time_window_hours = _read_inputs()

    start_time = time.time()
    result = reconcile_rows(invoice_rows, payment_rows, time_window_hours)
    duration = time.time() - start_time
    track_reconciliation(result, duration, entrypoint="api")

    logger.info("Reconciliation completed", context={
        "invoice_rows": len(invoice_rows),
        "payment_rows": len(payment_rows),
        "duration_ms": round(duration * 1000, 2),
        **result.summary(),
    })
    return result


def register_reconciliation_api(app: Flask, limiter):
    """Register reconciliation API routes"""

    @app.route("/api/reconcile", methods=["POST"])
    @limiter.limit(RATE_LIMITS.get("/api/reconcile", "10 per minute"))
    def api_reconcile():
        """
        Reconcile uploaded files.

        Form fields:
        - invoices: CSV/XLSX with VOUCHER NO, TIMESTAMP, AMOUNT, PARTY&ADDRESS
        - payments: CSV/XLSX with Transaction_Date, Amount, Status, Payment_Mode, Customer_VPA
        - time_window_hours (optional): exact-match window, default 6
        """
        result = _run_reconciliation()
        return jsonify({"success": True, **result.to_dict()})

    @app.route("/api/reconcile/export", methods=["POST"])
    @limiter.limit(RATE_LIMITS.get("/api/reconcile/export", "20 per minute"))
    def api_export_reconciliation():
        """
        Reconcile uploaded files and download the result.

        Query parameters:
        - format: csv (default), xlsx or pdf
        - section: matched (default), unmatched_invoices, unmatched_payments or all (csv only)

        Example: /api/reconcile/export?format=csv&section=unmatched_payments
        """
        export_format = request.args.get("format", "csv").lower()
        section = request.args.get("section", "matched")

        if export_format not in EXPORT_MIMETYPES:
            raise ValidationError(
                f"Unsupported export format '{export_format}'",
                details={"valid_formats": list(EXPORT_MIMETYPES)},
            )
        if section not in EXPORT_SECTIONS:
            raise ValidationError(
                f"Unknown export section '{section}'",
                details={"valid_sections": list(EXPORT_SECTIONS)},
            )

        result = _run_reconciliation()

        if export_format == "csv":
            _, columns, stem = EXPORT_SECTIONS[section]
            content = export_to_csv(section_rows(result, section), columns=columns)
            filename = f"{stem}.csv"
        elif export_format == "xlsx":
            content = export_to_excel(result)
            filename = "reconciliation_report.xlsx"
        else:
            content = export_to_pdf(result)
            filename = "reconciliation_report.pdf"

        return Response(
            content,
            mimetype=EXPORT_MIMETYPES[export_format],
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.route("/api/reconcile/async", methods=["POST"])
    @limiter.limit(RATE_LIMITS.get("/api/reconcile/async", "10 per minute"))
    def api_reconcile_async():
        """Queue a reconciliation on the background worker"""
        invoice_rows, payment_rows, time_window_hours = _read_inputs()

        try:
            task = process_reconciliation_task.delay(invoice_rows, payment_rows, time_window_hours)
        except OperationalError as e:
            logger.error("Could not queue reconciliation task", error=e)
            raise ServiceUnavailableError("Background worker is not reachable")

        logger.info("Reconciliation task queued", context={"task_id": task.id})
        return jsonify({
            "success": True,
            "task_id": task.id,
            "status": "queued",
            "status_url": f"/api/tasks/{task.id}",
        }), 202

    @app.route("/api/tasks/<task_id>", methods=["GET"])
    @limiter.limit(RATE_LIMITS.get("/api/tasks/<task_id>", "60 per minute"))
    def api_task_status(task_id: str):
        """Report state, progress and (once finished) the result of a queued reconciliation"""
        try:
            task = AsyncResult(task_id, app=celery_app)
            state = task.state
            info = task.info
        except OperationalError as e:
            logger.error("Could not reach result backend", context={"task_id": task_id}, error=e)
            raise ServiceUnavailableError("Result backend is not reachable")

        body: Dict[str, Any] = {"task_id": task_id, "state": state}
        if state == "SUCCESS":
            body["result"] = info
        elif state == "FAILURE":
            body["error"] = str(info)
        elif isinstance(info, dict):
            body.update({"progress": info.get("progress"), "message": info.get("message")})
        return jsonify(body)
