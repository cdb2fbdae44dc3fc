"""
Record Parser
Turns loader rows into typed invoice and payment records.
One malformed row is reported and skipped; it never aborts the batch.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from models.transaction import (
    CENTS,
    INVOICE_AMOUNT,
    INVOICE_PARTY_ADDRESS,
    INVOICE_TIMESTAMP,
    INVOICE_VOUCHER_NO,
    PAYMENT_AMOUNT,
    PAYMENT_CUSTOMER_VPA,
    PAYMENT_MODE,
    PAYMENT_STATUS,
    PAYMENT_TRANSACTION_DATE,
    InvoiceRecord,
    PaymentRecord,
    SkippedRecord,
)

logger = logging.getLogger(__name__)


class RecordError(ValueError):
    """Base class for faults confined to a single input record"""

    def __init__(self, message: str, field_name: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.field_name = field_name
        self.value = value


class MalformedDateError(RecordError):
    """Timestamp matches neither the invoice nor the payment format"""


class MalformedAmountError(RecordError):
    """Amount is not a finite number"""


class MissingFieldError(RecordError):
    """A required column is absent from the row"""


# Invoice exports use DD/MM/YY HH:MM, gateway exports use YYYY-MM-DD HH:MM:SS
INVOICE_DATE_FORMATS = [
    "%d/%m/%y %H:%M",
    "%d/%m/%y %H:%M:%S",
]

PAYMENT_DATE_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
]

# Stripped before amount conversion
AMOUNT_NOISE = [",", "₹", "$", "£", "€", "INR", "Rs.", "Rs"]


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an invoice or payment timestamp.

    A value containing "/" is read as an invoice timestamp (DD/MM/YY HH:MM),
    anything else as a payment timestamp (YYYY-MM-DD HH:MM:SS).
    Two-digit invoice years always fall in 2000-2099.

    Raises:
        MalformedDateError: value matches neither format
    """
    if isinstance(value, datetime):
        return value
    if value is None:
        raise MalformedDateError("Timestamp is empty", value=value)

    text = " ".join(str(value).split())
    if not text:
        raise MalformedDateError("Timestamp is empty", value=value)

    is_invoice_format = "/" in text
    formats = INVOICE_DATE_FORMATS if is_invoice_format else PAYMENT_DATE_FORMATS

    for fmt in formats:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if is_invoice_format and parsed.year < 2000:
            parsed = parsed.replace(year=parsed.year + 100)
        return parsed

    raise MalformedDateError(f"Unrecognised timestamp: {text!r}", value=value)


def parse_amount(value: Any) -> Decimal:
    """
    Parse a currency amount into a Decimal.

    Thousands separators, whitespace and common currency symbols are ignored.

    Raises:
        MalformedAmountError: value is empty, not numeric or not finite
    """
    if isinstance(value, bool) or value is None:
        raise MalformedAmountError(f"Invalid amount: {value!r}", value=value)

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    else:
        text = str(value).strip()
        for token in AMOUNT_NOISE:
            text = text.replace(token, "")
        text = text.replace(" ", "")
        if not text:
            raise MalformedAmountError("Amount is empty", value=value)
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise MalformedAmountError(f"Invalid amount: {value!r}", value=value)

    if not amount.is_finite():
        raise MalformedAmountError(f"Amount is not finite: {value!r}", value=value)

    try:
        amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise MalformedAmountError(f"Amount out of range: {value!r}", value=value)

    return amount


def _require(row: Mapping[str, Any], key: str) -> Any:
    if key not in row:
        raise MissingFieldError(f"Missing required field: {key}", field_name=key)
    return row[key]


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def invoice_from_row(row: Mapping[str, Any], row_number: Optional[int] = None) -> InvoiceRecord:
    """Build an InvoiceRecord from a loader row"""
    voucher_no = _text(_require(row, INVOICE_VOUCHER_NO))
    raw_timestamp = _require(row, INVOICE_TIMESTAMP)
    raw_amount = _require(row, INVOICE_AMOUNT)
    party_address = _text(_require(row, INVOICE_PARTY_ADDRESS))

    try:
        timestamp = parse_timestamp(raw_timestamp)
    except MalformedDateError as e:
        e.field_name = INVOICE_TIMESTAMP
        raise
    try:
        amount = parse_amount(raw_amount)
    except MalformedAmountError as e:
        e.field_name = INVOICE_AMOUNT
        raise

    return InvoiceRecord(
        voucher_no=voucher_no,
        timestamp=timestamp,
        amount=amount,
        party_address=party_address,
        row_number=row_number,
        raw=dict(row),
    )


def payment_from_row(row: Mapping[str, Any], row_number: Optional[int] = None) -> PaymentRecord:
    """Build a PaymentRecord from a loader row"""
    raw_date = _require(row, PAYMENT_TRANSACTION_DATE)
    raw_amount = _require(row, PAYMENT_AMOUNT)
    status = _text(_require(row, PAYMENT_STATUS))
    payment_mode = _text(_require(row, PAYMENT_MODE))
    customer_vpa = _text(_require(row, PAYMENT_CUSTOMER_VPA))

    try:
        transaction_date = parse_timestamp(raw_date)
    except MalformedDateError as e:
        e.field_name = PAYMENT_TRANSACTION_DATE
        raise
    try:
        amount = parse_amount(raw_amount)
    except MalformedAmountError as e:
        e.field_name = PAYMENT_AMOUNT
        raise

    return PaymentRecord(
        transaction_date=transaction_date,
        amount=amount,
        status=status,
        payment_mode=payment_mode,
        customer_vpa=customer_vpa,
        row_number=row_number,
        raw=dict(row),
    )


def _parse_rows(rows: Iterable[Mapping[str, Any]], source: str, builder) -> Tuple[List[Any], List[SkippedRecord]]:
    records = []
    skipped: List[SkippedRecord] = []

    for row_number, row in enumerate(rows, 1):
        try:
            records.append(builder(row, row_number))
        except RecordError as e:
            logger.warning(
                f"Skipping {source} row {row_number}: {e.message}",
                extra={"source": source, "row_number": row_number, "error_code": type(e).__name__},
            )
            skipped.append(
                SkippedRecord(
                    source=source,
                    row_number=row_number,
                    row=dict(row),
                    error_code=type(e).__name__,
                    message=e.message,
                )
            )

    return records, skipped


def parse_invoice_rows(rows: Iterable[Mapping[str, Any]]) -> Tuple[List[InvoiceRecord], List[SkippedRecord]]:
    """
    Parse invoice rows, isolating malformed ones

    Returns:
        (records, skipped) where skipped lists rows that could not be parsed
    """
    return _parse_rows(rows, "invoice", invoice_from_row)


def parse_payment_rows(rows: Iterable[Mapping[str, Any]]) -> Tuple[List[PaymentRecord], List[SkippedRecord]]:
    """
    Parse payment rows, isolating malformed ones

    Returns:
        (records, skipped) where skipped lists rows that could not be parsed
    """
    return _parse_rows(rows, "payment", payment_from_row)
