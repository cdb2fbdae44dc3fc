"""
Record Loader
Reads uploaded CSV / Excel files into ordered lists of row dictionaries
"""

import io
import os
import zipfile
import logging
from typing import Any, Dict, Iterable, List

import pandas as pd

from config import ALLOWED_EXTENSIONS, MAX_CSV_ROWS, MAX_EXCEL_ROWS

logger = logging.getLogger(__name__)


class UserInputError(Exception):
    """Custom exception type for user-facing validation errors."""
    pass


def _frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    df.columns = [str(col).strip() for col in df.columns]
    df = df.fillna("")

    rows = []
    for record in df.to_dict(orient="records"):
        # Rows with only separators (",,,") carry no data
        if all(str(value).strip() == "" for value in record.values()):
            continue
        rows.append(record)
    return rows


def csv_to_rows(file_bytes: bytes) -> List[Dict[str, Any]]:
    """
    Parse CSV with a header row. Every cell is kept as text.
    """
    text = file_bytes.decode("utf-8-sig", errors="ignore")
    if not text.strip():
        raise UserInputError("CSV file is empty")

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise UserInputError(f"Could not read CSV file: {e}")

    if len(df) > MAX_CSV_ROWS:
        raise UserInputError(
            f"CSV file has too many rows ({len(df)}). "
            f"Maximum allowed is {MAX_CSV_ROWS} rows. "
            "Please split the file into smaller parts before uploading."
        )

    return _frame_to_rows(df)


def excel_to_rows(file_bytes: bytes) -> List[Dict[str, Any]]:
    """
    Parse the first sheet of an .xlsx workbook with a header row.
    """
    try:
        df = pd.read_excel(io.BytesIO(file_bytes), engine="openpyxl", dtype=str)
    except (ValueError, KeyError, OSError, zipfile.BadZipFile) as e:
        raise UserInputError(f"Could not read Excel file: {e}")

    # Guardrail: avoid accidentally processing extremely large sheets
    if len(df) > MAX_EXCEL_ROWS:
        raise UserInputError(
            f"Excel file has too many rows ({len(df)}). "
            f"Maximum allowed is {MAX_EXCEL_ROWS} rows. "
            "Please split the file into smaller parts before uploading."
        )

    return _frame_to_rows(df)


def load_rows(file_bytes: bytes, filename: str) -> List[Dict[str, Any]]:
    """
    Load an uploaded file into row dictionaries keyed by header name

    Args:
        file_bytes: Raw upload content
        filename: Original filename, used to pick the reader

    Returns:
        Rows in file order
    """
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise UserInputError(
            f"Unsupported file type '{ext or filename}'. "
            f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    rows = excel_to_rows(file_bytes) if ext == ".xlsx" else csv_to_rows(file_bytes)
    logger.info(f"Loaded {len(rows)} rows from {filename}")
    return rows


def validate_columns(rows: List[Dict[str, Any]], required: Iterable[str], source: str) -> None:
    """Fail fast when an upload lacks one of the contract columns"""
    if not rows:
        return
    missing = [col for col in required if col not in rows[0]]
    if missing:
        raise UserInputError(
            f"{source.capitalize()} file is missing required columns: {', '.join(missing)}"
        )
