"""
Celery tasks for reconciliation processing
Enables async/background reconciliation
"""

import time
import logging
from typing import Any, Dict, List, Optional

from celery_app import celery_app
from services.matcher import reconcile_rows
from utils.monitoring import track_reconciliation

logger = logging.getLogger(__name__)


def _report_progress(task, progress: int, message: str) -> None:
    # Direct calls (no worker request) have no task id to attach state to
    if task.request.called_directly:
        return
    task.update_state(state="PROCESSING", meta={"progress": progress, "message": message})


@celery_app.task(bind=True, name='tasks.process_reconciliation')
def process_reconciliation_task(self, invoice_rows: List[Dict[str, Any]],
                                payment_rows: List[Dict[str, Any]],
                                time_window_hours: Optional[float] = None) -> Dict[str, Any]:
    """
    Process reconciliation asynchronously

    Args:
        invoice_rows: Invoice rows as produced by the record loader
        payment_rows: Payment rows as produced by the record loader
        time_window_hours: Exact-match window, configured default when None

    Returns:
        Dictionary with reconciliation results
    """
    try:
        _report_progress(self, 10, f'Matching {len(invoice_rows)} invoices against {len(payment_rows)} payments...')

        start_time = time.time()
        result = reconcile_rows(invoice_rows, payment_rows, time_window_hours)
        track_reconciliation(result, time.time() - start_time, entrypoint="task")

        _report_progress(self, 90, "Finalizing...")

        return result.to_dict()
    except Exception as e:
        logger.error(f"Reconciliation task failed: {str(e)}", exc_info=True)
        raise
