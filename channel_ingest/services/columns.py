"""Header resolution shared by all vendor parsers.

Every marketplace exports the same concepts under different column names
("Qty", "quantity-sold", "Sales (Qty) - Units"). A VendorSchema lists, per
canonical field, the accepted header variants in priority order; the
resolver turns a header row into a ColumnMap once per file and RowReader
reads typed values out of each data row through it.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from channel_ingest.services.coercion import (
    clean_text,
    is_blank,
    parse_date,
    parse_int,
    parse_number,
)
from channel_ingest.services.errors import MissingRequiredColumnsError, RowCoercionWarning

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^0-9a-z%]+")

MATCH_EXACT = "exact"
MATCH_WORDS = "words"
MATCH_SUBSTRING = "substring"


def normalize_header(value: Any) -> str:
    """Lowercase a header cell and collapse punctuation runs to single spaces.

    "Seller-SKU" and "seller_sku" both become "seller sku"; "MRP (₹)" becomes
    "mrp". Percent signs survive so "IGST (%)" stays distinct from "IGST (₹)".
    """
    return _NON_WORD.sub(" ", clean_text(value).lower()).strip()


@dataclass
class VendorSchema:
    """Accepted header variants and mandatory fields for one vendor format.

    Attributes:
        name: Source label used in log lines and error messages.
        columns: Canonical field -> header variants, most specific first.
        excludes: Canonical field -> tokens that disqualify a header
            (keeps "Sub Category" away from "category").
        positions: Canonical field -> column index used when no header
            variant matches (fixed-layout PO exports).
        required: Fields that must all resolve.
        required_any: Groups of fields of which at least one must resolve.
    """

    name: str
    columns: dict[str, list[str]]
    excludes: dict[str, list[str]] = field(default_factory=dict)
    positions: dict[str, int] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    required_any: list[list[str]] = field(default_factory=list)


@dataclass
class ColumnMap:
    """Resolved column index for each canonical field (None when absent)."""

    indexes: dict[str, int | None]
    headers: list[str]

    def get(self, name: str) -> int | None:
        return self.indexes.get(name)

    def has(self, name: str) -> bool:
        return self.indexes.get(name) is not None

    def matched(self) -> dict[str, str]:
        """Canonical field -> header text it resolved to."""
        return {
            name: self.headers[idx] if idx < len(self.headers) else f"#{idx}"
            for name, idx in self.indexes.items()
            if idx is not None
        }

    def missing(self) -> list[str]:
        return [name for name, idx in self.indexes.items() if idx is None]


def _is_excluded(header: str, excludes: list[str], mode: str) -> bool:
    if mode == MATCH_SUBSTRING:
        return any(token in header for token in excludes)
    tokens = header.split()
    return any(token in tokens for token in excludes)


def _matches(header: str, variant: str, mode: str) -> bool:
    if mode == MATCH_EXACT:
        return header == variant
    if mode == MATCH_WORDS:
        return f" {variant} " in f" {header} "
    return variant in header or variant.replace(" ", "") in header.replace(" ", "")


def _find_column(
    headers: list[str],
    possible_names: list[str],
    claimed: set[int],
    excludes: list[str],
    mode: str,
) -> int | None:
    """Find a column index by checking possible names in order.

    Args:
        headers: Normalized header cells.
        possible_names: Accepted variants, most specific first.
        claimed: Indexes already assigned to another field.
        excludes: Tokens that disqualify a header for this field.
        mode: MATCH_EXACT compares whole headers, MATCH_WORDS looks for the
            variant as a run of whole words, MATCH_SUBSTRING accepts it
            anywhere in the header ("SKUs", "TotalSales").

    Returns:
        The first matching index, or None.
    """
    for name in possible_names:
        variant = normalize_header(name)
        if not variant:
            continue
        for idx, header in enumerate(headers):
            if idx in claimed or not header or _is_excluded(header, excludes, mode):
                continue
            if _matches(header, variant, mode):
                return idx
    return None


def resolve_columns(headers: list[str], schema: VendorSchema) -> ColumnMap:
    """Map a header row onto the schema's canonical fields.

    Exact header matches are assigned first, then whole-word containment,
    then plain substring containment, then positional fallbacks. Schemas
    with fixed positions skip the substring pass. A header is never
    assigned to two fields.

    Raises:
        MissingRequiredColumnsError: If a required field, or every field of a
            required_any group, is left unresolved.
    """
    normalized = [normalize_header(h) for h in headers]
    indexes: dict[str, int | None] = {name: None for name in schema.columns}
    claimed: set[int] = set()

    modes = [MATCH_EXACT, MATCH_WORDS]
    if not schema.positions:
        modes.append(MATCH_SUBSTRING)
    for mode in modes:
        for name, variants in schema.columns.items():
            if indexes[name] is not None:
                continue
            idx = _find_column(
                normalized, variants, claimed, schema.excludes.get(name, []), mode
            )
            if idx is not None:
                indexes[name] = idx
                claimed.add(idx)

    for name, position in schema.positions.items():
        if indexes.get(name) is None and position not in claimed:
            indexes[name] = position
            claimed.add(position)

    column_map = ColumnMap(indexes=indexes, headers=list(headers))
    logger.debug(
        "[%s] column map: %s, unresolved: %s",
        schema.name,
        column_map.matched(),
        column_map.missing(),
    )

    missing = [name for name in schema.required if column_map.get(name) is None]
    for group in schema.required_any:
        if all(column_map.get(name) is None for name in group):
            missing.append(" or ".join(group))
    if missing:
        raise MissingRequiredColumnsError(
            schema.name, missing, [h for h in headers if h]
        )
    return column_map


def find_header_row(
    rows: list[list[Any]],
    keywords: Iterable[str],
    min_matches: int,
    max_scan: int = 10,
) -> int | None:
    """Find the first row within ``max_scan`` rows mentioning enough keywords.

    Some exports (Amazon sales reports in particular) put a title block above
    the real header row.
    """
    keywords = [normalize_header(k) for k in keywords]
    for idx, row in enumerate(rows[:max_scan]):
        joined = "|".join(normalize_header(cell) for cell in row)
        if sum(1 for keyword in keywords if keyword in joined) >= min_matches:
            return idx
    return None


def find_row(
    rows: list[list[Any]],
    predicate: Callable[[list[str]], bool],
    start: int = 0,
) -> int | None:
    """Return the index of the first row whose trimmed cells satisfy ``predicate``."""
    for idx in range(start, len(rows)):
        if predicate([clean_text(cell) for cell in rows[idx]]):
            return idx
    return None


class RowReader:
    """Typed, never-raising access to one data row through a ColumnMap.

    Missing columns read as the neutral default for the requested type.
    A non-blank cell that fails to coerce also reads as the default and is
    recorded as a RowCoercionWarning.
    """

    def __init__(
        self,
        cells: list[Any],
        columns: ColumnMap,
        row_number: int,
        warnings: list[RowCoercionWarning],
    ) -> None:
        self.cells = cells
        self.columns = columns
        self.row_number = row_number
        self.warnings = warnings

    def cell(self, index: int | None) -> Any:
        if index is None or index < 0 or index >= len(self.cells):
            return None
        return self.cells[index]

    def raw(self, name: str) -> Any:
        return self.cell(self.columns.get(name))

    def is_blank(self) -> bool:
        return all(is_blank(cell) for cell in self.cells)

    def warn(self, name: str, value: Any, message: str) -> None:
        self.warnings.append(
            RowCoercionWarning(
                row_number=self.row_number, field=name, value=value, message=message
            )
        )

    def text(self, name: str, default: str = "") -> str:
        return clean_text(self.raw(name)) or default

    def optional_text(self, name: str) -> str | None:
        return clean_text(self.raw(name)) or None

    def number(self, name: str) -> float:
        """Numeric value, 0 when absent or unparseable."""
        return self.number_at(self.columns.get(name), name)

    def number_at(self, index: int | None, name: str) -> float:
        value = self.cell(index)
        number = parse_number(value)
        if number is None:
            if not is_blank(value):
                self.warn(name, value, f"Invalid number: {value!r}")
            return 0.0
        return number

    def integer(self, name: str) -> int:
        """Whole count, 0 when absent or unparseable."""
        value = self.raw(name)
        number = parse_int(value)
        if number is None:
            if not is_blank(value):
                self.warn(name, value, f"Invalid quantity: {value!r}")
            return 0
        return number

    def money(self, name: str) -> float | None:
        """Optional monetary value, None when absent or unparseable."""
        value = self.raw(name)
        number = parse_number(value)
        if number is None and not is_blank(value):
            self.warn(name, value, f"Invalid amount: {value!r}")
        return number

    def date(self, name: str) -> date | None:
        """Optional date, None when absent or unparseable."""
        value = self.raw(name)
        parsed = parse_date(value)
        if parsed is None and not is_blank(value):
            self.warn(name, value, f"Invalid date format: {value!r}")
        return parsed
