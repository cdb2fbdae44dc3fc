"""
Invoice / Payment Matcher
Two-pass reconciliation over an amount-indexed lookup:
  1. exact match: same amount and timestamps within the time window
  2. amount-only match: same amount, used when no temporally-close invoice exists
Both passes pick the first qualifying invoice in input order (first-fit).
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from config import RECONCILE_TIME_WINDOW_HOURS
from models.transaction import (
    CENTS,
    InvoiceRecord,
    MatchedPair,
    MatchType,
    PaymentRecord,
    ReconciliationResult,
)
from services.record_parser import parse_invoice_rows, parse_payment_rows

logger = logging.getLogger(__name__)


def amount_key(amount: Decimal) -> str:
    """Canonical 2-decimal string used to bucket amounts"""
    return f"{amount.quantize(CENTS, rounding=ROUND_HALF_UP):f}"


def build_amount_index(invoices: Iterable[InvoiceRecord]) -> Dict[str, List[InvoiceRecord]]:
    """Group invoices by amount key, keeping input order inside each bucket"""
    index: Dict[str, List[InvoiceRecord]] = {}
    for invoice in invoices:
        index.setdefault(amount_key(invoice.amount), []).append(invoice)
    return index


def reconcile(invoices: Sequence[InvoiceRecord], payments: Sequence[PaymentRecord],
              time_window_hours: float = 6) -> ReconciliationResult:
    """
    Pair invoices with payments

    Args:
        invoices: Invoice records in input order
        payments: Payment records in input order
        time_window_hours: Maximum |payment - invoice| distance for an exact match (inclusive)

    Returns:
        ReconciliationResult with pairs sorted by voucher number
    """
    if math.isnan(time_window_hours) or time_window_hours < 0:
        raise ValueError(f"time_window_hours must be a non-negative number: {time_window_hours}")

    # Float seconds: timedelta cannot hold very large or infinite windows
    window_seconds = time_window_hours * 3600
    index = build_amount_index(invoices)
    consumed = [False] * len(payments)
    failed_payments = [payment for payment in payments if payment.is_failure]

    exact_matches: List[MatchedPair] = []
    for position, payment in enumerate(payments):
        if payment.is_failure:
            continue
        bucket = index.get(amount_key(payment.amount))
        if not bucket:
            continue
        for bucket_idx, invoice in enumerate(bucket):
            if abs((payment.transaction_date - invoice.timestamp).total_seconds()) <= window_seconds:
                del bucket[bucket_idx]
                exact_matches.append(MatchedPair(invoice, payment, MatchType.EXACT))
                consumed[position] = True
                logger.debug(f"Exact match: {invoice.voucher_no} <- payment row {payment.row_number}")
                break

    amount_only_matches: List[MatchedPair] = []
    for position, payment in enumerate(payments):
        if consumed[position] or payment.is_failure:
            continue
        bucket = index.get(amount_key(payment.amount))
        if bucket:
            invoice = bucket.pop(0)
            amount_only_matches.append(MatchedPair(invoice, payment, MatchType.AMOUNT_ONLY))
            consumed[position] = True
            logger.debug(f"Amount-only match: {invoice.voucher_no} <- payment row {payment.row_number}")

    unmatched_invoices = [invoice for bucket in index.values() for invoice in bucket]
    unmatched_payments = [
        payment for position, payment in enumerate(payments)
        if not consumed[position] and not payment.is_failure
    ]

    # Stable sort: for equal voucher numbers exact matches stay ahead
    matched = sorted(exact_matches + amount_only_matches, key=lambda pair: pair.invoice.voucher_no)

    result = ReconciliationResult(
        matched=matched,
        unmatched_invoices=unmatched_invoices,
        unmatched_payments=unmatched_payments,
        exact_match_count=len(exact_matches),
        amount_only_match_count=len(amount_only_matches),
        failed_payments=failed_payments,
        time_window_hours=time_window_hours,
    )

    logger.info(
        f"Reconciled {len(invoices)} invoices against {len(payments)} payments: "
        f"{result.exact_match_count} exact, {result.amount_only_match_count} amount-only, "
        f"{len(unmatched_invoices)} unmatched invoices, {len(unmatched_payments)} unmatched payments",
        extra={"failed_payments": len(failed_payments), "time_window_hours": time_window_hours},
    )
    return result


def reconcile_rows(invoice_rows: Iterable[Mapping[str, Any]], payment_rows: Iterable[Mapping[str, Any]],
                   time_window_hours: Optional[float] = None) -> ReconciliationResult:
    """
    Parse loader rows and reconcile them.

    Rows that cannot be parsed are left out of matching and returned in
    ``result.skipped``.
    """
    if time_window_hours is None:
        time_window_hours = RECONCILE_TIME_WINDOW_HOURS

    invoices, skipped_invoices = parse_invoice_rows(invoice_rows)
    payments, skipped_payments = parse_payment_rows(payment_rows)

    result = reconcile(invoices, payments, time_window_hours)
    result.skipped = skipped_invoices + skipped_payments
    return result
