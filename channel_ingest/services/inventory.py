"""Inventory snapshot parsers.

- Amazon: ASIN/SKU/FNSKU with availability buckets (available, reserved,
  inbound, researching, unfulfillable) and unit cost
- Blinkit: stock on hand with available/reserved/inbound/outbound/damaged/
  expired quantities
- BigBasket: city, SKU, brand, category levels, SOH and SOH value
"""

import logging
from dataclasses import dataclass

from channel_ingest.config import settings
from channel_ingest.services.columns import RowReader, VendorSchema, resolve_columns
from channel_ingest.services.reader import read_table
from channel_ingest.services.results import (
    LineRecord,
    ParsedUpload,
    Platform,
    UploadContext,
    UploadKind,
    assemble,
    collect_lines,
    sum_field,
)

logger = logging.getLogger(__name__)

_OTHER_BUCKETS = [
    "reserved",
    "inbound",
    "outbound",
    "researching",
    "unfulfillable",
    "damaged",
    "expired",
]

AMAZON_INVENTORY_SCHEMA = VendorSchema(
    name="amazon inventory",
    columns={
        "asin": ["asin", "item_id"],
        "product_name": ["product_name", "item_name"],
        "sku": ["sku", "seller_sku"],
        "fnsku": ["fnsku", "amazon_sku"],
        "category": ["category", "product_category"],
        "brand": ["brand", "manufacturer"],
        "size": ["size", "dimensions"],
        "unit": ["unit", "uom"],
        "warehouse_location": ["warehouse_location", "fulfillment_center", "location"],
        "condition": ["condition", "item_condition"],
        "fulfillment_channel": ["fulfillment_channel", "channel"],
        "units_available": ["units_available", "available_qty", "quantity"],
        "reserved_quantity": ["reserved_quantity", "reserved"],
        "inbound_quantity": ["inbound_quantity", "inbound"],
        "researching_quantity": ["researching_quantity", "researching"],
        "unfulfillable_quantity": ["unfulfillable_quantity", "unfulfillable"],
        "supplier_name": ["supplier_name", "vendor"],
        "cost_per_unit": ["cost_per_unit", "unit_cost", "cost"],
        "total_value": ["total_value", "value"],
        "last_updated_at": ["last_updated_at", "last_updated", "updated_at"],
    },
    excludes={
        "units_available": _OTHER_BUCKETS,
        "unit": ["cost", "per"],
    },
    required=["units_available"],
    required_any=[["asin", "sku", "product_name"]],
)

BLINKIT_INVENTORY_SCHEMA = VendorSchema(
    name="blinkit inventory",
    columns={
        "sku_id": ["sku_id"],
        "product_name": ["product_name"],
        "category": ["category"],
        "subcategory": ["subcategory", "sub_category"],
        "brand": ["brand"],
        "size": ["size"],
        "unit": ["unit"],
        "stock_on_hand": ["stock_on_hand"],
        "reserved_quantity": ["reserved_quantity"],
        "available_quantity": ["available_quantity"],
        "inbound_quantity": ["inbound_quantity"],
        "outbound_quantity": ["outbound_quantity"],
        "damaged_quantity": ["damaged_quantity"],
        "expired_quantity": ["expired_quantity"],
        "last_updated_at": ["last_updated_at", "last_updated"],
        "warehouse_location": ["warehouse_location"],
        "supplier_name": ["supplier_name"],
    },
    excludes={"category": ["sub"]},
    required=["stock_on_hand"],
    required_any=[["sku_id", "product_name"]],
)

BIGBASKET_INVENTORY_SCHEMA = VendorSchema(
    name="bigbasket inventory",
    columns={
        "city": ["city"],
        "sku_id": ["sku_id"],
        "brand_name": ["brand_name", "brand"],
        "sku_name": ["sku_name"],
        "sku_weight": ["sku_weight"],
        "sku_pack_type": ["sku_pack_type"],
        "sku_description": ["sku_description"],
        "top_category_name": ["top_category_name"],
        "mid_category_name": ["mid_category_name"],
        "leaf_category_name": ["leaf_category_name"],
        "soh": ["soh"],
        "soh_value": ["soh_value"],
    },
    excludes={"soh": ["value"]},
    required=["soh"],
    required_any=[["sku_id", "sku_name"]],
)


@dataclass
class AmazonInventoryLine(LineRecord):
    """One Amazon inventory row. ``quantity`` is units available."""

    asin: str = ""
    fnsku: str = ""
    category: str = ""
    size: str = ""
    unit: str = ""
    warehouse_location: str = ""
    condition: str = "New"
    fulfillment_channel: str = "FBA"
    reserved_quantity: int = 0
    inbound_quantity: int = 0
    researching_quantity: int = 0
    unfulfillable_quantity: int = 0
    supplier_name: str = ""
    cost_per_unit: float | None = None
    last_updated_at: str = ""


@dataclass
class BlinkitInventoryLine(LineRecord):
    """One Blinkit inventory row. ``quantity`` is stock on hand."""

    category: str = ""
    subcategory: str = ""
    size: str = ""
    unit: str = ""
    reserved_quantity: int = 0
    available_quantity: int = 0
    inbound_quantity: int = 0
    outbound_quantity: int = 0
    damaged_quantity: int = 0
    expired_quantity: int = 0
    last_updated_at: str = ""
    warehouse_location: str = ""
    supplier_name: str = ""


@dataclass
class BigBasketInventoryLine(LineRecord):
    """One BigBasket inventory row. ``quantity`` is SOH, ``total_value`` SOH value."""

    city: str = ""
    sku_weight: str = ""
    sku_pack_type: str = ""
    sku_description: str = ""
    top_category_name: str = ""
    mid_category_name: str = ""
    leaf_category_name: str = ""


def _build_amazon_line(row: RowReader) -> AmazonInventoryLine:
    asin = row.text("asin")
    available = row.integer("units_available")
    cost_per_unit = row.money("cost_per_unit")
    total_value = row.number("total_value") or available * (cost_per_unit or 0)

    return AmazonInventoryLine(
        sku=row.text("sku") or asin,
        product_name=row.text("product_name"),
        brand=row.text("brand"),
        quantity=available,
        total_value=round(total_value, 2),
        asin=asin,
        fnsku=row.text("fnsku"),
        category=row.text("category"),
        size=row.text("size"),
        unit=row.text("unit"),
        warehouse_location=row.text("warehouse_location"),
        condition=row.text("condition", "New"),
        fulfillment_channel=row.text("fulfillment_channel", "FBA"),
        reserved_quantity=row.integer("reserved_quantity"),
        inbound_quantity=row.integer("inbound_quantity"),
        researching_quantity=row.integer("researching_quantity"),
        unfulfillable_quantity=row.integer("unfulfillable_quantity"),
        supplier_name=row.text("supplier_name"),
        cost_per_unit=cost_per_unit,
        last_updated_at=row.text("last_updated_at"),
    )


def parse_amazon_inventory(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse an Amazon FBA inventory report.

    Args:
        content: Uploaded file content (CSV, XLSX or XLS).
        filename: Uploaded filename.
        context: Business unit, period and uploader.

    Returns:
        ParsedUpload whose header sums every availability bucket.
    """
    context = context or UploadContext()
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), AMAZON_INVENTORY_SCHEMA)
    batch = collect_lines(table, columns, _build_amazon_line)

    return assemble(
        Platform.AMAZON,
        UploadKind.INVENTORY,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="inventory records",
        extras={
            "total_units_available": sum_field(batch.lines, "quantity"),
            "total_reserved_quantity": sum_field(batch.lines, "reserved_quantity"),
            "total_inbound_quantity": sum_field(batch.lines, "inbound_quantity"),
            "total_researching_quantity": sum_field(batch.lines, "researching_quantity"),
            "total_unfulfillable_quantity": sum_field(batch.lines, "unfulfillable_quantity"),
        },
        currency=settings.currency,
    )


def _build_blinkit_line(row: RowReader) -> BlinkitInventoryLine:
    return BlinkitInventoryLine(
        sku=row.text("sku_id"),
        product_name=row.text("product_name"),
        brand=row.text("brand"),
        quantity=row.integer("stock_on_hand"),
        category=row.text("category"),
        subcategory=row.text("subcategory"),
        size=row.text("size"),
        unit=row.text("unit"),
        reserved_quantity=row.integer("reserved_quantity"),
        available_quantity=row.integer("available_quantity"),
        inbound_quantity=row.integer("inbound_quantity"),
        outbound_quantity=row.integer("outbound_quantity"),
        damaged_quantity=row.integer("damaged_quantity"),
        expired_quantity=row.integer("expired_quantity"),
        last_updated_at=row.text("last_updated_at"),
        warehouse_location=row.text("warehouse_location"),
        supplier_name=row.text("supplier_name"),
    )


def parse_blinkit_inventory(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Blinkit inventory CSV."""
    context = context or UploadContext()
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), BLINKIT_INVENTORY_SCHEMA)
    batch = collect_lines(table, columns, _build_blinkit_line)

    return assemble(
        Platform.BLINKIT,
        UploadKind.INVENTORY,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="inventory records",
        extras={
            "total_stock_on_hand": sum_field(batch.lines, "quantity"),
            "total_available_quantity": sum_field(batch.lines, "available_quantity"),
            "total_reserved_quantity": sum_field(batch.lines, "reserved_quantity"),
            "total_inbound_quantity": sum_field(batch.lines, "inbound_quantity"),
            "total_outbound_quantity": sum_field(batch.lines, "outbound_quantity"),
            "total_damaged_quantity": sum_field(batch.lines, "damaged_quantity"),
            "total_expired_quantity": sum_field(batch.lines, "expired_quantity"),
        },
        currency=settings.currency,
    )


def _build_bigbasket_line(row: RowReader) -> BigBasketInventoryLine:
    return BigBasketInventoryLine(
        sku=row.text("sku_id"),
        product_name=row.text("sku_name") or row.text("sku_description"),
        brand=row.text("brand_name"),
        quantity=row.number("soh"),
        total_value=row.number("soh_value"),
        city=row.text("city"),
        sku_weight=row.text("sku_weight"),
        sku_pack_type=row.text("sku_pack_type"),
        sku_description=row.text("sku_description"),
        top_category_name=row.text("top_category_name"),
        mid_category_name=row.text("mid_category_name"),
        leaf_category_name=row.text("leaf_category_name"),
    )


def parse_bigbasket_inventory(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a BigBasket inventory CSV (SOH by city and SKU)."""
    context = context or UploadContext()
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), BIGBASKET_INVENTORY_SCHEMA)
    batch = collect_lines(table, columns, _build_bigbasket_line)

    return assemble(
        Platform.BIGBASKET,
        UploadKind.INVENTORY,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="inventory records",
        currency=settings.currency,
    )
