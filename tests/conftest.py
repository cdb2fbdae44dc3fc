"""Shared fixtures for the reconciliation test-suite."""
import io
from datetime import datetime
from decimal import Decimal

import pytest

from models.transaction import InvoiceRecord, PaymentRecord


@pytest.fixture
def make_invoice():
    """Factory for InvoiceRecord with sensible defaults."""
    counter = {"row": 0}

    def _make(voucher_no="INV-001", timestamp=datetime(2024, 1, 10, 10, 0), amount="100.00",
              party_address="Acme Traders, Pune"):
        counter["row"] += 1
        return InvoiceRecord(
            voucher_no=voucher_no,
            timestamp=timestamp,
            amount=Decimal(amount),
            party_address=party_address,
            row_number=counter["row"],
        )

    return _make


@pytest.fixture
def make_payment():
    """Factory for PaymentRecord with sensible defaults."""
    counter = {"row": 0}

    def _make(transaction_date=datetime(2024, 1, 10, 12, 0), amount="100.00", status="SUCCESS",
              payment_mode="UPI", customer_vpa="acme@okbank"):
        counter["row"] += 1
        return PaymentRecord(
            transaction_date=transaction_date,
            amount=Decimal(amount),
            status=status,
            payment_mode=payment_mode,
            customer_vpa=customer_vpa,
            row_number=counter["row"],
        )

    return _make


@pytest.fixture
def invoice_rows():
    return [
        {"VOUCHER NO": "INV-002", "TIMESTAMP": "10/01/24 10:00", "AMOUNT": "100.00",
         "PARTY&ADDRESS": "Acme Traders, Pune"},
        {"VOUCHER NO": "INV-001", "TIMESTAMP": "10/01/24 09:00", "AMOUNT": "250.50",
         "PARTY&ADDRESS": "Globex, Mumbai"},
        {"VOUCHER NO": "INV-003", "TIMESTAMP": "11/01/24 15:30", "AMOUNT": "75",
         "PARTY&ADDRESS": "Initech, Delhi"},
    ]


@pytest.fixture
def payment_rows():
    return [
        {"Transaction_Date": "2024-01-10 12:00:00", "Amount": "100.00", "Status": "SUCCESS",
         "Payment_Mode": "UPI", "Customer_VPA": "acme@okbank"},
        {"Transaction_Date": "2024-01-15 09:00:00", "Amount": "250.5", "Status": "SUCCESS",
         "Payment_Mode": "UPI", "Customer_VPA": "globex@okbank"},
        {"Transaction_Date": "2024-01-11 15:00:00", "Amount": "75.00", "Status": "FAILURE",
         "Payment_Mode": "CARD", "Customer_VPA": "initech@okbank"},
        {"Transaction_Date": "2024-01-12 08:00:00", "Amount": "999.00", "Status": "SUCCESS",
         "Payment_Mode": "NETBANKING", "Customer_VPA": "unknown@okbank"},
    ]


def rows_to_csv(rows):
    """Render rows as CSV bytes with a header line."""
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(_csv_cell(row[h]) for h in headers))
    return ("\n".join(lines) + "\n").encode("utf-8")


def _csv_cell(value):
    text = str(value)
    if any(ch in text for ch in ',"\n'):
        return '"' + text.replace('"', '""') + '"'
    return text


@pytest.fixture
def invoice_csv(invoice_rows):
    return rows_to_csv(invoice_rows)


@pytest.fixture
def payment_csv(payment_rows):
    return rows_to_csv(payment_rows)


@pytest.fixture
def app():
    from app import create_app
    return create_app({"TESTING": True, "RATELIMIT_ENABLED": False})


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def upload_form(invoice_csv, payment_csv):
    """Multipart form with both uploads; built fresh for each request."""
    def _form(**extra):
        data = {
            "invoices": (io.BytesIO(invoice_csv), "invoices.csv"),
            "payments": (io.BytesIO(payment_csv), "payments.csv"),
        }
        data.update(extra)
        return data

    return _form
