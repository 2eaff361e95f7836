"""Tests for inventory snapshot parsers."""

from io import BytesIO

import pandas as pd
import pytest

from channel_ingest.services.errors import EmptyResultError, MissingRequiredColumnsError
from channel_ingest.services.inventory import (
    AmazonInventoryLine,
    parse_amazon_inventory,
    parse_bigbasket_inventory,
    parse_blinkit_inventory,
)


class TestAmazonInventory:
    """Tests for parse_amazon_inventory."""

    CONTENT = (
        b"ASIN,Product Name,SKU,FNSKU,Brand,Units Available,Reserved Quantity,"
        b"Inbound Quantity,Researching Quantity,Unfulfillable Quantity,Cost Per Unit\n"
        b"B001,Jivo Canola Oil,JC-1L,X001,Jivo,10,2,5,0,1,150\n"
        b"B002,Jivo Olive Oil,JO-1L,X002,Jivo,4,0,0,1,0,400\n"
    )

    def test_parses_buckets(self) -> None:
        """Test that every availability bucket is read."""
        parsed = parse_amazon_inventory(self.CONTENT, "fba.csv")

        line = parsed.lines[0]
        assert isinstance(line, AmazonInventoryLine)
        assert line.asin == "B001"
        assert line.sku == "JC-1L"
        assert line.fnsku == "X001"
        assert line.quantity == 10
        assert line.reserved_quantity == 2
        assert line.inbound_quantity == 5
        assert line.unfulfillable_quantity == 1
        assert line.cost_per_unit == 150.0

    def test_value_falls_back_to_cost(self) -> None:
        """Test that a missing value column is units times unit cost."""
        parsed = parse_amazon_inventory(self.CONTENT, "fba.csv")
        assert parsed.lines[0].total_value == 1500.0
        assert parsed.header.total_value == 3100.0

    def test_defaults(self) -> None:
        """Test the condition and channel defaults."""
        parsed = parse_amazon_inventory(self.CONTENT, "fba.csv")
        assert parsed.lines[0].condition == "New"
        assert parsed.lines[0].fulfillment_channel == "FBA"

    def test_bucket_totals(self) -> None:
        """Test that the header sums each bucket."""
        parsed = parse_amazon_inventory(self.CONTENT, "fba.csv")
        assert parsed.header.extras == {
            "total_units_available": 14,
            "total_reserved_quantity": 2,
            "total_inbound_quantity": 5,
            "total_researching_quantity": 1,
            "total_unfulfillable_quantity": 1,
        }
        assert parsed.header.kind == "inventory"

    def test_sku_falls_back_to_asin(self) -> None:
        """Test that a row without SKU is identified by its ASIN."""
        content = b"ASIN,Units Available\nB009,3\n"
        parsed = parse_amazon_inventory(content, "fba.csv")
        assert parsed.lines[0].sku == "B009"

    def test_missing_available_column(self) -> None:
        """Test that a file without units available is rejected."""
        with pytest.raises(MissingRequiredColumnsError):
            parse_amazon_inventory(b"ASIN,Reserved Quantity\nB001,1\n", "fba.csv")


class TestBlinkitInventory:
    """Tests for parse_blinkit_inventory."""

    def test_parses_rows(self) -> None:
        """Test mapping of stock buckets and their totals."""
        content = (
            b"sku_id,product_name,category,subcategory,brand,stock_on_hand,"
            b"reserved_quantity,available_quantity,inbound_quantity,outbound_quantity,"
            b"damaged_quantity,expired_quantity\n"
            b"BK1,Jivo Oil,Oils,Edible,Jivo,20,3,17,5,2,1,0\n"
            b"BK2,Jivo Ghee,Dairy,Ghee,Jivo,0,0,0,0,0,0,0\n"
        )

        parsed = parse_blinkit_inventory(content, "blinkit.csv")

        assert len(parsed.lines) == 1
        line = parsed.lines[0]
        assert line.quantity == 20
        assert line.category == "Oils"
        assert line.subcategory == "Edible"
        assert line.available_quantity == 17
        assert parsed.header.extras["total_stock_on_hand"] == 20
        assert parsed.header.extras["total_damaged_quantity"] == 1
        assert parsed.header.total_quantity == 20


class TestBigBasketInventory:
    """Tests for parse_bigbasket_inventory."""

    def test_xlsx_upload(self) -> None:
        """Test a workbook upload with SOH and SOH value."""
        rows = [
            ["city", "sku_id", "brand_name", "sku_name", "top_category_name", "soh", "soh_value"],
            ["Mumbai", 1001, "Jivo", "Jivo Canola Oil", "Foodgrains", 12, 2400.5],
            ["Pune", 1002, "Jivo", "Jivo Olive Oil", "Foodgrains", 0, 0],
        ]
        buffer = BytesIO()
        pd.DataFrame(rows).to_excel(buffer, index=False, header=False, engine="openpyxl")

        parsed = parse_bigbasket_inventory(buffer.getvalue(), "bb.xlsx")

        assert len(parsed.lines) == 1
        line = parsed.lines[0]
        assert line.sku == "1001"
        assert line.city == "Mumbai"
        assert line.quantity == 12
        assert line.total_value == 2400.5
        assert line.top_category_name == "Foodgrains"

    def test_all_zero_rows_are_empty(self) -> None:
        """Test that a file of zero rows is an empty result."""
        content = b"sku_id,sku_name,soh,soh_value\n1,Oil,0,0\n"
        with pytest.raises(EmptyResultError) as exc_info:
            parse_bigbasket_inventory(content, "bb.csv")

        assert exc_info.value.rows_seen == 1
