"""
Transaction Data Models
Invoice and payment records, matched pairs and the reconciliation result
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import List, Dict, Any, Optional


# === Field-name contract with the record loader ===

INVOICE_VOUCHER_NO = "VOUCHER NO"
INVOICE_TIMESTAMP = "TIMESTAMP"
INVOICE_AMOUNT = "AMOUNT"
INVOICE_PARTY_ADDRESS = "PARTY&ADDRESS"

PAYMENT_TRANSACTION_DATE = "Transaction_Date"
PAYMENT_AMOUNT = "Amount"
PAYMENT_STATUS = "Status"
PAYMENT_MODE = "Payment_Mode"
PAYMENT_CUSTOMER_VPA = "Customer_VPA"

INVOICE_FIELDS = (INVOICE_VOUCHER_NO, INVOICE_TIMESTAMP, INVOICE_AMOUNT, INVOICE_PARTY_ADDRESS)
PAYMENT_FIELDS = (
    PAYMENT_TRANSACTION_DATE,
    PAYMENT_AMOUNT,
    PAYMENT_STATUS,
    PAYMENT_MODE,
    PAYMENT_CUSTOMER_VPA,
)

INVOICE_TIMESTAMP_FORMAT = "%d/%m/%y %H:%M"
PAYMENT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

CENTS = Decimal("0.01")


class PaymentStatus(str, Enum):
    """Known payment gateway statuses. Any other value is kept verbatim."""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class MatchType(str, Enum):
    """How an invoice and a payment were paired"""
    EXACT = "ExactMatch"
    AMOUNT_ONLY = "AmountOnlyMatch"

    @property
    def label(self) -> str:
        return MATCH_TYPE_LABELS[self]


MATCH_TYPE_LABELS = {
    MatchType.EXACT: "Exact Match",
    MatchType.AMOUNT_ONLY: "Amount Match Only",
}


def format_amount(amount: Decimal) -> str:
    """Render an amount with two decimal places"""
    return f"{amount.quantize(CENTS, rounding=ROUND_HALF_UP):f}"


@dataclass(frozen=True)
class InvoiceRecord:
    """
    A single invoice row

    Attributes:
        voucher_no: Voucher number shown to the user
        timestamp: Invoice date and time
        amount: Invoice amount
        party_address: Free-text party name and address
        row_number: 1-based position in the uploaded file
        raw: The row the record was parsed from
    """
    voucher_no: str
    timestamp: datetime
    amount: Decimal
    party_address: str = ""
    row_number: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voucher_no": self.voucher_no,
            "timestamp": self.timestamp.strftime(INVOICE_TIMESTAMP_FORMAT),
            "amount": format_amount(self.amount),
            "party_address": self.party_address,
            "row_number": self.row_number,
        }


@dataclass(frozen=True)
class PaymentRecord:
    """
    A single payment gateway row

    Attributes:
        transaction_date: Settlement date and time
        amount: Payment amount
        status: Gateway status (SUCCESS, FAILURE or any other value)
        payment_mode: Payment channel, e.g. UPI
        customer_vpa: Payer identifier
        row_number: 1-based position in the uploaded file
        raw: The row the record was parsed from
    """
    transaction_date: datetime
    amount: Decimal
    status: str = PaymentStatus.SUCCESS.value
    payment_mode: str = ""
    customer_vpa: str = ""
    row_number: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_failure(self) -> bool:
        return self.status == PaymentStatus.FAILURE.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_date": self.transaction_date.strftime(PAYMENT_TIMESTAMP_FORMAT),
            "amount": format_amount(self.amount),
            "status": self.status,
            "payment_mode": self.payment_mode,
            "customer_vpa": self.customer_vpa,
            "row_number": self.row_number,
        }


@dataclass(frozen=True)
class MatchedPair:
    """An invoice paired with the payment that settles it"""
    invoice: InvoiceRecord
    payment: PaymentRecord
    match_type: MatchType

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoice": self.invoice.to_dict(),
            "payment": self.payment.to_dict(),
            "match_type": self.match_type.value,
        }


@dataclass(frozen=True)
class SkippedRecord:
    """
    A row excluded from matching because it could not be parsed

    Attributes:
        source: "invoice" or "payment"
        row_number: 1-based position in the uploaded file
        row: The offending row as received
        error_code: Name of the parse error raised for the row
        message: Human readable reason
    """
    source: str
    row_number: int
    row: Dict[str, Any] = field(compare=False)
    error_code: str = ""
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "row_number": self.row_number,
            "row": dict(self.row),
            "error_code": self.error_code,
            "message": self.message,
        }


@dataclass
class ReconciliationResult:
    """
    Result of reconciliation process

    Attributes:
        matched: Pairs sorted by invoice voucher number
        unmatched_invoices: Invoices with no payment, in amount-bucket order
        unmatched_payments: Non-failed payments with no invoice, in input order
        exact_match_count: Number of pairs found within the time window
        amount_only_match_count: Number of pairs found on amount alone
        failed_payments: FAILURE payments, excluded from matching
        skipped: Rows that could not be parsed
        time_window_hours: Window used for exact matches
    """
    matched: List[MatchedPair] = field(default_factory=list)
    unmatched_invoices: List[InvoiceRecord] = field(default_factory=list)
    unmatched_payments: List[PaymentRecord] = field(default_factory=list)
    exact_match_count: int = 0
    amount_only_match_count: int = 0
    failed_payments: List[PaymentRecord] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)
    time_window_hours: Optional[float] = None

    def summary(self) -> Dict[str, Any]:
        return {
            "matched": len(self.matched),
            "exact_matches": self.exact_match_count,
            "amount_only_matches": self.amount_only_match_count,
            "unmatched_invoices": len(self.unmatched_invoices),
            "unmatched_payments": len(self.unmatched_payments),
            "failed_payments": len(self.failed_payments),
            "skipped_records": len(self.skipped),
            "time_window_hours": self.time_window_hours,
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation used by the API and background tasks"""
        return {
            "matched": [pair.to_dict() for pair in self.matched],
            "unmatched_invoices": [inv.to_dict() for inv in self.unmatched_invoices],
            "unmatched_payments": [pay.to_dict() for pay in self.unmatched_payments],
            "exact_match_count": self.exact_match_count,
            "amount_only_match_count": self.amount_only_match_count,
            "skipped": [rec.to_dict() for rec in self.skipped],
            "summary": self.summary(),
        }
