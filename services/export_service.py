"""
Export Service
Renders a reconciliation result as CSV, Excel and PDF
"""

import io
from typing import List, Dict, Any, Optional
from datetime import datetime
import logging

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch

from config import PDF_MAX_ROWS
from models.transaction import (
    INVOICE_TIMESTAMP,
    INVOICE_TIMESTAMP_FORMAT,
    PAYMENT_TIMESTAMP_FORMAT,
    PAYMENT_TRANSACTION_DATE,
    ReconciliationResult,
    format_amount,
)

logger = logging.getLogger(__name__)


MATCHED_COLUMNS = [
    "Invoice No",
    "Invoice Date",
    "Invoice Amount",
    "Payment Date",
    "Payment Amount",
    "Payment Mode",
    "Customer VPA",
    "Match Type",
]
UNMATCHED_INVOICE_COLUMNS = ["Voucher No", "Timestamp", "Amount", "Party & Address"]
UNMATCHED_PAYMENT_COLUMNS = ["Transaction Date", "Amount", "Payment Mode", "Customer VPA"]


def _uploaded_timestamp(raw: Dict[str, Any], column: str, parsed: datetime, fmt: str) -> str:
    """Timestamp text as uploaded, falling back to the parsed value for records built in code"""
    value = raw.get(column)
    if value is None or str(value).strip() == "":
        return parsed.strftime(fmt)
    return str(value).strip()


def _invoice_timestamp(invoice) -> str:
    return _uploaded_timestamp(invoice.raw, INVOICE_TIMESTAMP, invoice.timestamp, INVOICE_TIMESTAMP_FORMAT)


def _payment_timestamp(payment) -> str:
    return _uploaded_timestamp(
        payment.raw, PAYMENT_TRANSACTION_DATE, payment.transaction_date, PAYMENT_TIMESTAMP_FORMAT
    )


def matched_rows(result: ReconciliationResult) -> List[Dict[str, Any]]:
    return [
        {
            "Invoice No": pair.invoice.voucher_no,
            "Invoice Date": _invoice_timestamp(pair.invoice),
            "Invoice Amount": format_amount(pair.invoice.amount),
            "Payment Date": _payment_timestamp(pair.payment),
            "Payment Amount": format_amount(pair.payment.amount),
            "Payment Mode": pair.payment.payment_mode,
            "Customer VPA": pair.payment.customer_vpa,
            "Match Type": pair.match_type.label,
        }
        for pair in result.matched
    ]


def unmatched_invoice_rows(result: ReconciliationResult) -> List[Dict[str, Any]]:
    return [
        {
            "Voucher No": invoice.voucher_no,
            "Timestamp": _invoice_timestamp(invoice),
            "Amount": format_amount(invoice.amount),
            "Party & Address": invoice.party_address,
        }
        for invoice in result.unmatched_invoices
    ]


def unmatched_payment_rows(result: ReconciliationResult) -> List[Dict[str, Any]]:
    return [
        {
            "Transaction Date": _payment_timestamp(payment),
            "Amount": format_amount(payment.amount),
            "Payment Mode": payment.payment_mode,
            "Customer VPA": payment.customer_vpa,
        }
        for payment in result.unmatched_payments
    ]


def all_rows(result: ReconciliationResult) -> List[Dict[str, Any]]:
    """All three sections in one list, each row tagged with its Record Type"""
    rows: List[Dict[str, Any]] = []
    for record_type, section in (
        ("Matched Transaction", matched_rows(result)),
        ("Unmatched Invoice", unmatched_invoice_rows(result)),
        ("Unmatched Payment", unmatched_payment_rows(result)),
    ):
        rows.extend({"Record Type": record_type, **row} for row in section)
    return rows


ALL_COLUMNS = ["Record Type"] + list(dict.fromkeys(
    MATCHED_COLUMNS + UNMATCHED_INVOICE_COLUMNS + UNMATCHED_PAYMENT_COLUMNS
))

# section -> (row builder, columns, download filename stem)
EXPORT_SECTIONS = {
    "matched": (matched_rows, MATCHED_COLUMNS, "matched_transactions"),
    "unmatched_invoices": (unmatched_invoice_rows, UNMATCHED_INVOICE_COLUMNS, "unmatched_invoices"),
    "unmatched_payments": (unmatched_payment_rows, UNMATCHED_PAYMENT_COLUMNS, "unmatched_payments"),
    "all": (all_rows, ALL_COLUMNS, "reconciliation_results"),
}

# Titles used for Excel sheets and PDF sections
SECTION_TITLES = {
    "matched": "Matched Transactions",
    "unmatched_invoices": "Unmatched Invoices",
    "unmatched_payments": "Unmatched Payments",
}


def section_rows(result: ReconciliationResult, section: str) -> List[Dict[str, Any]]:
    """Rows for one export section; raises ValueError for unknown sections"""
    if section not in EXPORT_SECTIONS:
        raise ValueError(
            f"Unknown export section '{section}'. Valid sections: {', '.join(EXPORT_SECTIONS)}"
        )
    builder, _, _ = EXPORT_SECTIONS[section]
    return builder(result)


def export_to_csv(data: List[Dict[str, Any]], columns: Optional[List[str]] = None) -> str:
    """
    Export rows to CSV text

    Args:
        data: List of dictionaries to export
        columns: Column order; also used for the header of an empty export

    Returns:
        CSV content
    """
    try:
        df = pd.DataFrame(data, columns=columns)
        return df.to_csv(index=False)
    except Exception as e:
        logger.error(f"Error exporting to CSV: {e}", exc_info=True)
        raise


def _write_sheet(ws, data: List[Dict[str, Any]], headers: List[str]) -> None:
    # Style for headers
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=12)
    header_alignment = Alignment(horizontal="center", vertical="center")
    stripe_fill = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = header_alignment
        cell.border = thin_border

    for row_idx, row_data in enumerate(data, 2):
        for col_idx, header in enumerate(headers, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=row_data.get(header, ""))
            cell.border = thin_border
            # Alternate row colors
            if row_idx % 2 == 0:
                cell.fill = stripe_fill

    # Auto-adjust column widths
    for col_idx, header in enumerate(headers, 1):
        max_length = max([len(str(header))] + [len(str(row.get(header, ""))) for row in data])
        ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 2, 50)


def export_to_excel(result: ReconciliationResult) -> bytes:
    """
    Export a result to an Excel workbook with one sheet per section

    Returns:
        .xlsx content
    """
    try:
        wb = Workbook()
        wb.remove(wb.active)

        for section, title in SECTION_TITLES.items():
            builder, columns, _ = EXPORT_SECTIONS[section]
            _write_sheet(wb.create_sheet(title=title), builder(result), columns)

        output = io.BytesIO()
        wb.save(output)
        logger.info("Excel workbook exported", extra={"summary": result.summary()})
        return output.getvalue()
    except Exception as e:
        logger.error(f"Error exporting to Excel: {e}", exc_info=True)
        raise


def export_to_pdf(result: ReconciliationResult, title: str = "Reconciliation Report") -> bytes:
    """
    Export a result to a PDF report: summary followed by one table per non-empty section

    Args:
        result: Reconciliation result
        title: Report title

    Returns:
        PDF content
    """
    try:
        output = io.BytesIO()
        doc = SimpleDocTemplate(output, pagesize=landscape(A4))
        elements = []
        styles = getSampleStyleSheet()

        elements.append(Paragraph(title, styles['Title']))
        elements.append(Spacer(1, 0.2 * inch))
        elements.append(
            Paragraph(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", styles['Normal'])
        )
        summary = result.summary()
        elements.append(Paragraph(
            f"Exact matches: {summary['exact_matches']} | "
            f"Amount-only matches: {summary['amount_only_matches']} | "
            f"Unmatched invoices: {summary['unmatched_invoices']} | "
            f"Unmatched payments: {summary['unmatched_payments']}",
            styles['Normal'],
        ))
        elements.append(Spacer(1, 0.2 * inch))

        has_rows = False
        for section, section_title in SECTION_TITLES.items():
            builder, columns, _ = EXPORT_SECTIONS[section]
            data = builder(result)
            if not data:
                continue
            has_rows = True

            elements.append(Paragraph(section_title, styles['Heading2']))
            table_data = [columns]
            for row in data[:PDF_MAX_ROWS]:
                table_data.append([str(row.get(header, "")) for header in columns])
            if len(data) > PDF_MAX_ROWS:
                table_data.append(["...", f"({len(data) - PDF_MAX_ROWS} more rows)"] + [""] * (len(columns) - 2))

            table = Table(table_data, repeatRows=1)
            table.setStyle(TableStyle([
                ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
                ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
                ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
                ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                ('FONTSIZE', (0, 0), (-1, -1), 8),
                ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
                ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.beige]),
                ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
            ]))
            elements.append(table)
            elements.append(Spacer(1, 0.2 * inch))

        if not has_rows:
            elements.append(Paragraph("No data available", styles['Normal']))

        doc.build(elements)
        logger.info("PDF report exported", extra={"summary": summary})
        return output.getvalue()
    except Exception as e:
        logger.error(f"Error exporting to PDF: {e}", exc_info=True)
        raise
