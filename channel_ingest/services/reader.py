"""Format detection and decoding of uploaded files into a row matrix.

Every vendor parser starts from a RawTable: the first sheet of a workbook or
the rows of a CSV file, as plain Python lists with blank spreadsheet cells
normalized to None.
"""

import csv
import io
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import pandas as pd

from channel_ingest.services.coercion import clean_text, is_blank
from channel_ingest.services.errors import UnsupportedFormatError

logger = logging.getLogger(__name__)

WORKBOOK_EXTENSIONS = {".xlsx", ".xls"}
CSV_EXTENSIONS = {".csv"}

# Container signatures; portals sometimes save a workbook under a .csv name
_XLSX_MAGIC = b"PK\x03\x04"
_XLS_MAGIC = b"\xd0\xcf\x11\xe0"


@dataclass
class RawTable:
    """Rows of one uploaded sheet, header row included."""

    rows: list[list[Any]]
    source_format: str
    filename: str

    def header(self, index: int = 0) -> list[str]:
        """Return the header row at ``index`` as trimmed strings."""
        if index >= len(self.rows):
            return []
        return [clean_text(cell) for cell in self.rows[index]]

    def data_rows(self, header_index: int = 0) -> Iterator[tuple[int, list[Any]]]:
        """Yield ``(row_number, cells)`` for rows below the header.

        Row numbers are 1-based positions in the file, so they match what the
        user sees in a spreadsheet application.
        """
        for offset, row in enumerate(self.rows[header_index + 1 :], start=header_index + 2):
            yield offset, row

    @property
    def data_row_count(self) -> int:
        return max(len(self.rows) - 1, 0)


def get_extension(filename: str) -> str:
    """Return the lowercase extension including the dot, or an empty string."""
    if not filename or "." not in filename:
        return ""
    return "." + filename.rsplit(".", 1)[-1].lower()


def sniff_workbook(content: bytes) -> str | None:
    """Identify a workbook container from its leading bytes."""
    if content.startswith(_XLSX_MAGIC):
        return ".xlsx"
    if content.startswith(_XLS_MAGIC):
        return ".xls"
    return None


def decode_text(content: bytes) -> str:
    """Decode CSV bytes, tolerating a BOM and legacy single-byte exports."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _frame_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    df = df.astype(object).where(pd.notna(df), None)
    return df.values.tolist()


def read_workbook_rows(content: bytes) -> list[list[Any]]:
    """Read the first sheet of an XLSX/XLS workbook without header inference."""
    df = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None)
    return _frame_to_rows(df)


def read_csv_rows(text: str) -> list[list[Any]]:
    """Parse CSV text into rows of strings."""
    if "\x00" in text:
        raise ValueError("content is binary, not CSV text")
    return list(csv.reader(io.StringIO(text)))


def _has_content(rows: list[list[Any]]) -> bool:
    return any(not all(is_blank(cell) for cell in row) for row in rows)


def read_table(content: bytes | str, filename: str) -> RawTable:
    """Decode an upload into a RawTable.

    Workbook extensions are read as workbooks and CSV as text. Files with no
    recognized extension are tried as a workbook first and then as CSV text.
    A string is taken to be already-decoded CSV text.

    Raises:
        UnsupportedFormatError: If no decoding path succeeds or the file holds
            no non-blank row.
    """
    if isinstance(content, str):
        try:
            rows = read_csv_rows(content)
        except (csv.Error, ValueError) as e:
            raise UnsupportedFormatError(filename, ["csv"], str(e)) from e
        return _checked(RawTable(rows=rows, source_format="csv", filename=filename), ["csv"])

    extension = get_extension(filename)
    sniffed = sniff_workbook(content)

    if extension in CSV_EXTENSIONS and sniffed is None:
        plan = ["csv"]
    elif extension in WORKBOOK_EXTENSIONS or sniffed is not None:
        plan = ["workbook"] if sniffed is not None else ["workbook", "csv"]
    else:
        plan = ["workbook", "csv"]

    attempted: list[str] = []
    reasons: list[str] = []
    for step in plan:
        if step == "workbook":
            fmt = sniffed or (extension if extension in WORKBOOK_EXTENSIONS else ".xlsx")
            attempted.append(fmt.lstrip("."))
            try:
                rows = read_workbook_rows(content)
            except Exception as e:
                logger.debug("Workbook decode failed for %s: %s", filename, e)
                reasons.append(str(e))
                continue
            table = RawTable(rows=rows, source_format=fmt.lstrip("."), filename=filename)
            return _checked(table, attempted)

        attempted.append("csv")
        try:
            rows = read_csv_rows(decode_text(content))
        except (csv.Error, ValueError) as e:
            logger.debug("CSV decode failed for %s: %s", filename, e)
            reasons.append(str(e))
            continue
        return _checked(RawTable(rows=rows, source_format="csv", filename=filename), attempted)

    raise UnsupportedFormatError(filename, attempted, "; ".join(reasons) or None)


def _checked(table: RawTable, attempted: list[str]) -> RawTable:
    if not _has_content(table.rows):
        raise UnsupportedFormatError(table.filename, attempted, "file contains no rows")
    logger.debug(
        "Read %s as %s: %d data rows",
        table.filename,
        table.source_format,
        table.data_row_count,
    )
    return table
