"""Tests for tolerant cell coercion helpers."""

import math
from datetime import date, datetime

from channel_ingest.services.coercion import (
    clean_text,
    excel_serial_to_date,
    is_blank,
    parse_date,
    parse_int,
    parse_number,
    split_multiline,
)


class TestIsBlank:
    """Tests for is_blank."""

    def test_none_and_nan_are_blank(self) -> None:
        """Test that None and NaN count as blank."""
        assert is_blank(None)
        assert is_blank(float("nan"))

    def test_whitespace_is_blank(self) -> None:
        """Test that whitespace-only strings count as blank."""
        assert is_blank("")
        assert is_blank("   ")

    def test_zero_is_not_blank(self) -> None:
        """Test that a zero value is real data."""
        assert not is_blank(0)
        assert not is_blank("0")


class TestCleanText:
    """Tests for clean_text."""

    def test_strips_whitespace(self) -> None:
        """Test that surrounding whitespace is removed."""
        assert clean_text("  Widget ") == "Widget"

    def test_integral_float_drops_decimal(self) -> None:
        """Test that codes read as floats keep their integer form."""
        assert clean_text(8901234567890.0) == "8901234567890"

    def test_fractional_float_kept(self) -> None:
        """Test that real fractions are not truncated."""
        assert clean_text(1.5) == "1.5"

    def test_blank_becomes_empty_string(self) -> None:
        """Test that blank cells become an empty string."""
        assert clean_text(None) == ""
        assert clean_text(float("nan")) == ""

    def test_midnight_datetime_renders_as_date(self) -> None:
        """Test that date cells read as datetimes render as ISO dates."""
        assert clean_text(datetime(2025, 8, 4)) == "2025-08-04"


class TestParseNumber:
    """Tests for parse_number."""

    def test_plain_numbers(self) -> None:
        """Test parsing of ints, floats and numeric strings."""
        assert parse_number(5) == 5.0
        assert parse_number("10.50") == 10.5

    def test_currency_and_separators(self) -> None:
        """Test that rupee signs and thousands separators are stripped."""
        assert parse_number("₹1,234.50") == 1234.5
        assert parse_number("Rs. 99") == 99.0
        assert parse_number("18%") == 18.0

    def test_invalid_returns_none(self) -> None:
        """Test that non-numeric text yields None instead of raising."""
        assert parse_number("abc") is None
        assert parse_number("") is None
        assert parse_number(None) is None

    def test_non_finite_returns_none(self) -> None:
        """Test that infinities are rejected."""
        assert parse_number(math.inf) is None
        assert parse_number("inf") is None

    def test_bool_is_not_a_number(self) -> None:
        """Test that booleans are not treated as numbers."""
        assert parse_number(True) is None


class TestParseInt:
    """Tests for parse_int."""

    def test_truncates_fraction(self) -> None:
        """Test that fractional counts are truncated."""
        assert parse_int("7.9") == 7

    def test_invalid_returns_none(self) -> None:
        """Test that invalid counts yield None."""
        assert parse_int("seven") is None


class TestParseDate:
    """Tests for parse_date."""

    def test_excel_serial(self) -> None:
        """Test that Excel serial 45000 is 2023-03-15."""
        assert parse_date(45000) == date(2023, 3, 15)
        assert parse_date("45000") == date(2023, 3, 15)

    def test_day_first_dash(self) -> None:
        """Test that DD-MM-YYYY is read day first."""
        assert parse_date("05-03-2024") == date(2024, 3, 5)

    def test_slash_dates_are_month_first(self) -> None:
        """Test that MM/DD/YYYY cells parse and day-first slashes do not."""
        assert parse_date("08/15/2025") == date(2025, 8, 15)
        assert parse_date("04/08/2025") == date(2025, 4, 8)
        assert parse_date("15/08/2025") is None

    def test_iso_date(self) -> None:
        """Test parsing of YYYY-MM-DD."""
        assert parse_date("2025-08-15") == date(2025, 8, 15)

    def test_iso_datetime(self) -> None:
        """Test that ISO datetimes keep their date part."""
        assert parse_date("2025-08-15T10:30:00") == date(2025, 8, 15)

    def test_month_name_formats(self) -> None:
        """Test parsing of month-name formats."""
        assert parse_date("Aug 4, 2025") == date(2025, 8, 4)
        assert parse_date("04-Aug-2025") == date(2025, 8, 4)

    def test_date_objects_pass_through(self) -> None:
        """Test that spreadsheet date cells are accepted as-is."""
        assert parse_date(datetime(2025, 1, 2, 13, 0)) == date(2025, 1, 2)
        assert parse_date(date(2025, 1, 2)) == date(2025, 1, 2)

    def test_invalid_returns_none(self) -> None:
        """Test that unparseable and impossible dates yield None."""
        assert parse_date("not a date") is None
        assert parse_date("31-02-2024") is None
        assert parse_date(None) is None


class TestExcelSerialToDate:
    """Tests for excel_serial_to_date."""

    def test_out_of_range(self) -> None:
        """Test that serials outside Excel's range are rejected."""
        assert excel_serial_to_date(0) is None
        assert excel_serial_to_date(3_000_000) is None


class TestSplitMultiline:
    """Tests for split_multiline."""

    def test_splits_on_newline(self) -> None:
        """Test that combined IGST/cess cells split into parts."""
        assert split_multiline("18\n0") == ["18", "0"]

    def test_blank_is_empty(self) -> None:
        """Test that a blank cell yields no parts."""
        assert split_multiline(None) == []
