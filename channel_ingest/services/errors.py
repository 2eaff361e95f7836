"""Error taxonomy for channel upload ingestion.

Format and schema problems abort a parse and are raised as subclasses of
IngestionError. Row-level problems never abort; they are collected as
RowCoercionWarning diagnostics on the parse result.
"""

from dataclasses import dataclass
from typing import Any


class IngestionError(Exception):
    """Base class for errors that abort a parse."""

    status_code = 400
    error_type = "INGESTION_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnsupportedFormatError(IngestionError):
    """Raised when an upload cannot be decoded as any supported format."""

    status_code = 400
    error_type = "UNSUPPORTED_FORMAT"

    def __init__(
        self,
        filename: str,
        attempted: list[str],
        reason: str | None = None,
    ) -> None:
        self.filename = filename
        self.attempted = attempted
        message = (
            f"Could not read '{filename}' as any supported format "
            f"(tried: {', '.join(attempted)})"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MissingRequiredColumnsError(IngestionError):
    """Raised when the header row lacks columns the vendor format requires."""

    status_code = 422
    error_type = "MISSING_REQUIRED_COLUMNS"

    def __init__(self, source: str, missing: list[str], found: list[str]) -> None:
        self.source = source
        self.missing = missing
        self.found = found
        super().__init__(
            f"[{source}] Missing required columns: {', '.join(missing)}. "
            f"Columns found in file: {', '.join(found) or 'none'}"
        )


class EmptyResultError(IngestionError):
    """Raised when a readable file yields no line after the skip rule."""

    status_code = 422
    error_type = "EMPTY_RESULT"

    def __init__(self, source: str, noun: str = "items", rows_seen: int = 0) -> None:
        self.source = source
        self.rows_seen = rows_seen
        super().__init__(
            f"[{source}] No valid {noun} found in file "
            f"({rows_seen} data rows checked)"
        )


@dataclass
class RowCoercionWarning:
    """A cell that could not be coerced; the row was kept with a default."""

    row_number: int
    field: str
    value: Any
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row_number,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
            "message": self.message,
        }
