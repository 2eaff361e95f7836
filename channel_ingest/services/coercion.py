"""Tolerant cell coercion shared by every vendor parser.

None of these helpers raise on bad input. Blank cells and values that cannot
be coerced both come back as None; callers that need to tell the two apart
check is_blank() first (see RowReader in columns.py).
"""

import math
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any

# Excel's day zero once the 1900 leap-year bug is accounted for
EXCEL_EPOCH = date(1899, 12, 30)
# Serial for 9999-12-31, the last date Excel can represent
MAX_EXCEL_SERIAL = 2958465

_CURRENCY_TOKENS = ("₹", "$", "INR", "Rs.", "Rs", "%")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_DAY_FIRST_DASH = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4}|\d{2})$")
_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")

# Tried after the day-first and serial forms
_FALLBACK_FORMATS = [
    "%m/%d/%Y",  # 01/15/2026
    "%Y/%m/%d",  # 2026/01/15
    "%b %d, %Y",  # Aug 4, 2025
    "%B %d, %Y",  # August 4, 2025
    "%d %b %Y",  # 4 Aug 2025
    "%d-%b-%Y",  # 04-Aug-2025
    "%d-%b-%y",  # 04-Aug-25
    "%d.%m.%Y",  # 04.08.2025
]


def is_blank(value: Any) -> bool:
    """Return True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def clean_text(value: Any) -> str:
    """Render a cell as trimmed text.

    Spreadsheet readers hand integral codes back as floats (12345.0), which
    would otherwise leak into SKU and EAN fields as "12345.0".
    """
    if is_blank(value):
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def parse_number(value: Any) -> float | None:
    """Parse a numeric cell, stripping currency symbols and separators.

    Returns None when the cell is blank or not a finite number.
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip()
    for token in _CURRENCY_TOKENS:
        text = text.replace(token, "")
    text = text.replace(",", "").replace("\xa0", "").replace(" ", "")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_int(value: Any) -> int | None:
    """Parse an integer count, truncating any fractional part."""
    number = parse_number(value)
    if number is None:
        return None
    return int(number)


def excel_serial_to_date(serial: float) -> date | None:
    """Convert an Excel serial day number to a calendar date."""
    if not math.isfinite(serial) or serial < 1 or serial > MAX_EXCEL_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def _build_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Any) -> date | None:
    """Parse a date cell from the formats vendor exports use.

    Trial order:
    - date/datetime objects (spreadsheet date cells)
    - YYYY-MM-DD
    - DD-MM-YYYY / D-M-YYYY / DD-MM-YY (day first, as Zepto and Flipkart send)
    - Excel serial numbers, numeric or numeric text
    - ISO datetimes and the remaining formats in _FALLBACK_FORMATS

    Returns None when nothing matches.
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if isinstance(value, numbers.Real):
        return excel_serial_to_date(float(value))

    text = str(value).strip()

    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _build_date(year, month, day)

    match = _DAY_FIRST_DASH.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        if year < 100:
            year += 2000 if year < 50 else 1900
        return _build_date(year, month, day)

    if _NUMERIC.match(text):
        return excel_serial_to_date(float(text))

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    return None


def split_multiline(value: Any) -> list[str]:
    """Split a combined cell such as "18\\n0" (IGST % over cess %) into parts."""
    text = clean_text(value)
    if not text:
        return []
    return [part.strip() for part in text.splitlines()]
