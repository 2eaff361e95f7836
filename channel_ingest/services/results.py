"""Canonical parse result shared by every vendor parser.

A parse produces a ParsedUpload envelope of ``{header, lines, warnings}``.
Vendor parsers build LineRecord subclasses and hand them to assemble(),
which applies the provenance fields, numbers the lines, resolves the
reporting period and recomputes the header summary from what survived.
"""

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any

import pandas as pd

from channel_ingest.services.columns import ColumnMap, RowReader
from channel_ingest.services.errors import EmptyResultError, RowCoercionWarning
from channel_ingest.services.reader import RawTable

logger = logging.getLogger(__name__)


class Platform(str, Enum):
    """Marketplaces that send upload files."""

    AMAZON = "amazon"
    BIGBASKET = "bigbasket"
    BLINKIT = "blinkit"
    CITY_MALL = "city-mall"
    FLIPKART_GROCERY = "flipkart-grocery"
    SWIGGY = "swiggy"
    ZEPTO = "zepto"


class UploadKind(str, Enum):
    """What an upload file describes."""

    INVENTORY = "inventory"
    PURCHASE_ORDER = "purchase-order"
    SECONDARY_SALES = "secondary-sales"


class PeriodType(str, Enum):
    """How an upload is placed in time."""

    DAILY = "daily"
    RANGE = "range"
    TWO_MONTH = "2-month"

    @classmethod
    def parse(cls, value: "str | PeriodType") -> "PeriodType":
        """Parse a period type, accepting the legacy "date-range" spelling.

        Raises:
            ValueError: If the value names no period type.
        """
        if isinstance(value, PeriodType):
            return value
        text = value.strip().lower()
        if text == "date-range":
            return cls.RANGE
        return cls(text)


@dataclass
class UploadContext:
    """Caller-supplied context passed through to the result header."""

    business_unit: str = ""
    period_type: PeriodType = PeriodType.DAILY
    report_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    uploaded_by: str = "system"


@dataclass
class LineRecord:
    """Fields every normalized line carries, whatever the vendor.

    Vendor parsers subclass this and map their identifying columns onto
    ``sku`` and ``product_name`` so the skip rule and summary apply uniformly.
    """

    line_number: int = 0
    sku: str = ""
    product_name: str = ""
    brand: str = ""
    quantity: float = 0
    total_value: float = 0.0
    attachment_path: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HeaderSummary:
    """Upload header: caller context plus aggregates over the final lines."""

    platform: str
    kind: str
    business_unit: str
    period_type: str
    report_date: date | None
    period_start: date | None
    period_end: date | None
    uploaded_by: str
    filename: str
    currency: str = "INR"
    total_items: int = 0
    total_quantity: float = 0
    total_value: float = 0.0
    unique_products: int = 0
    unique_brands: int = 0
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParsedUpload:
    """Canonical envelope returned by every parser.

    ``warnings`` may name rows that are absent from ``lines`` when the
    uncoercible cell left the row with nothing to keep.
    """

    header: HeaderSummary
    lines: list[LineRecord]
    warnings: list[RowCoercionWarning] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": asdict(self.header),
            "lines": [line.to_dict() for line in self.lines],
            "warnings": [warning.to_dict() for warning in self.warnings],
        }

    def as_items_summary(self) -> dict[str, Any]:
        """Render the older ``{items, summary}`` shape."""
        summary = asdict(self.header)
        summary.update(summary.pop("extras"))
        return {
            "items": [line.to_dict() for line in self.lines],
            "summary": summary,
        }


def should_skip(line: LineRecord) -> bool:
    """Return True for lines with no identifying data or no quantity and value."""
    if not (line.sku.strip() or line.product_name.strip()):
        return True
    return not line.quantity and not line.total_value


def sum_field(lines: list[LineRecord], name: str) -> float:
    """Sum a numeric line attribute, treating None as zero."""
    return round(sum(getattr(line, name, None) or 0 for line in lines), 2)


def unique_values(lines: list[LineRecord], name: str) -> list[str]:
    """Distinct non-empty values of a line attribute, in first-seen order."""
    seen: dict[str, None] = {}
    for line in lines:
        value = getattr(line, name, "")
        if value:
            seen.setdefault(value, None)
    return list(seen)


def two_month_window(today: date, months: int) -> tuple[date, date]:
    """Rolling window of ``months`` calendar months ending ``today``."""
    start = (pd.Timestamp(today) - pd.DateOffset(months=months)).date()
    return start, today


def resolve_period(
    context: UploadContext,
    line_dates: list[date],
    lookback_months: int = 2,
) -> tuple[date | None, date | None, date | None]:
    """Work out ``(report_date, period_start, period_end)`` for an upload.

    Daily uploads stamp one report date: the caller's, else the latest line
    date, else today. Range uploads keep caller bounds and derive missing ones
    from the line dates. Two-month uploads keep caller bounds and fill missing
    ones from the rolling lookback window ending today; line dates are not
    consulted.
    """
    today = date.today()
    if context.period_type == PeriodType.DAILY:
        report_date = context.report_date or (max(line_dates) if line_dates else today)
        return report_date, context.period_start, context.period_end

    if context.period_type == PeriodType.TWO_MONTH:
        window_start, window_end = two_month_window(today, lookback_months)
        return (
            context.report_date or today,
            context.period_start or window_start,
            context.period_end or window_end,
        )

    start = context.period_start or (min(line_dates) if line_dates else None)
    end = context.period_end or (max(line_dates) if line_dates else None)
    return context.report_date or today, start, end


def summarize(lines: list[LineRecord]) -> dict[str, Any]:
    """Aggregate the header totals over retained lines."""
    return {
        "total_items": len(lines),
        "total_quantity": sum(line.quantity for line in lines),
        "total_value": round(sum(line.total_value for line in lines), 2),
        "unique_products": len({line.sku or line.product_name for line in lines}),
        "unique_brands": len({line.brand for line in lines if line.brand}),
    }


def assemble(
    platform: Platform,
    kind: UploadKind,
    context: UploadContext,
    filename: str,
    lines: list[LineRecord],
    warnings: list[RowCoercionWarning],
    *,
    rows_seen: int = 0,
    noun: str = "items",
    line_dates: list[date] | None = None,
    extras: dict[str, Any] | None = None,
    currency: str = "INR",
    lookback_months: int = 2,
) -> ParsedUpload:
    """Build the canonical envelope from retained lines.

    Args:
        platform: Vendor the file came from.
        kind: What the file describes.
        context: Caller context passed through to the header.
        filename: Uploaded filename, stamped on every line as provenance.
        lines: Lines that survived the skip rule.
        warnings: Row coercion diagnostics collected during the parse.
        rows_seen: Data rows examined, reported when nothing survived.
        noun: What the lines are called in the empty-result message.
        line_dates: Dates carried by the lines, for deriving the period.
        extras: Vendor-specific header fields, computed from ``lines``.
        currency: Currency of monetary fields.
        lookback_months: Window length for two-month uploads.

    Returns:
        The ParsedUpload envelope.

    Raises:
        EmptyResultError: If ``lines`` is empty.
    """
    source = f"{platform.value} {kind.value}"
    if not lines:
        raise EmptyResultError(source, noun, rows_seen)

    for index, line in enumerate(lines, start=1):
        if not line.line_number:
            line.line_number = index
        line.attachment_path = filename

    report_date, period_start, period_end = resolve_period(
        context, line_dates or [], lookback_months
    )
    header = HeaderSummary(
        platform=platform.value,
        kind=kind.value,
        business_unit=context.business_unit,
        period_type=context.period_type.value,
        report_date=report_date,
        period_start=period_start,
        period_end=period_end,
        uploaded_by=context.uploaded_by,
        filename=filename,
        currency=currency,
        extras=extras or {},
        **summarize(lines),
    )

    if warnings:
        logger.warning("[%s] %d cells could not be coerced in %s", source, len(warnings), filename)
    logger.info(
        "[%s] parsed %s: %d lines from %d rows, %d warnings",
        source,
        filename,
        len(lines),
        rows_seen,
        len(warnings),
    )
    return ParsedUpload(header=header, lines=lines, warnings=warnings)


@dataclass
class RowBatch:
    """Lines kept from a table, with the diagnostics raised while reading it."""

    lines: list[LineRecord]
    warnings: list[RowCoercionWarning]
    rows_seen: int

    @property
    def skipped_count(self) -> int:
        """Number of non-blank rows dropped by the skip rule."""
        return self.rows_seen - len(self.lines)


def collect_lines(
    table: RawTable,
    columns: ColumnMap,
    build: Callable[[RowReader], LineRecord | None],
    header_index: int = 0,
    stop: Callable[[RowReader], bool] | None = None,
) -> RowBatch:
    """Run ``build`` over every data row below ``header_index``.

    Blank rows are ignored. ``build`` may return None to drop a row it
    cannot use; every other line still passes through the skip rule.
    Reading ends early at the first row for which ``stop`` is true.

    Warnings raised while building a row are kept even when that row is
    then dropped, so they explain why a file row is missing from the lines.
    """
    lines: list[LineRecord] = []
    warnings: list[RowCoercionWarning] = []
    rows_seen = 0

    for row_number, cells in table.data_rows(header_index):
        row = RowReader(cells, columns, row_number, warnings)
        if row.is_blank():
            continue
        if stop is not None and stop(row):
            break
        rows_seen += 1
        line = build(row)
        if line is None or should_skip(line):
            continue
        lines.append(line)

    batch = RowBatch(lines=lines, warnings=warnings, rows_seen=rows_seen)
    logger.debug(
        "Kept %d of %d rows from %s, %d skipped",
        len(batch.lines),
        batch.rows_seen,
        table.filename,
        batch.skipped_count,
    )
    return batch
