"""Secondary sales report parsers for marketplace sell-through files.

This module contains parsers for the sales reports each platform exports:
- Amazon: seller sales report with SKU/ASIN, quantity, sales and fee columns
- BigBasket: date_range, city, brand, slugs, source SKU, quantity, MRP, sales
- Blinkit: item, manufacturer, city, category, date, qty sold, MRP
- Flipkart Grocery: one row per product with one quantity column per day
- Swiggy: BRAND, ORDERED_DATE, CITY, PRODUCT_NAME, UNITS_SOLD, GMV, ...
- Zepto: Date (DD-MM-YYYY), SKU Number/Name, EAN, units, MRP, GMV
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from channel_ingest.config import settings
from channel_ingest.services.coercion import clean_text, parse_date
from channel_ingest.services.columns import (
    RowReader,
    VendorSchema,
    find_header_row,
    resolve_columns,
)
from channel_ingest.services.errors import MissingRequiredColumnsError
from channel_ingest.services.reader import read_table
from channel_ingest.services.results import (
    LineRecord,
    ParsedUpload,
    PeriodType,
    Platform,
    UploadContext,
    UploadKind,
    assemble,
    collect_lines,
    sum_field,
)

logger = logging.getLogger(__name__)

AMAZON_SALES_SCHEMA = VendorSchema(
    name="amazon secondary-sales",
    columns={
        "sku": ["sku", "seller-sku", "seller sku", "product sku", "item sku"],
        "asin": ["asin", "product-id", "amazon-product-id"],
        "product_name": ["product-name", "title", "item-name", "product title"],
        "quantity": ["quantity", "quantity-sold", "units sold", "qty", "quantity shipped"],
        "unit_price": ["unit-price", "price", "selling-price", "item-price"],
        "total_sales": ["total-sales", "sales-amount", "gross-sales", "amount"],
        "commission_rate": ["commission-rate", "referral-fee-rate", "fee-rate"],
        "commission_amount": [
            "commission-amount",
            "commission",
            "referral-fee",
            "amazon-fees",
            "fees",
        ],
        "transaction_date": [
            "transaction-date",
            "sale-date",
            "order-date",
            "posted-date",
            "date",
        ],
        "order_id": ["order-id", "amazon-order-id", "transaction-id"],
        "category": ["category", "product-category", "item-category", "category-name"],
        "brand": ["brand", "brand-name", "manufacturer"],
        "customer_location": ["ship-city", "customer-location", "destination", "city"],
        "fulfillment_method": [
            "fulfillment-method",
            "fulfilled-by",
            "fulfillment",
            "ship-method",
        ],
    },
    excludes={
        "total_sales": ["commission", "fee", "fees"],
        "commission_amount": ["rate"],
    },
    required=["quantity"],
    required_any=[["sku", "product_name"]],
)

# Keyword hints for locating the header row below a report title block
AMAZON_SALES_HEADER_HINTS = ["sku", "asin", "product", "quantity", "sales", "amount", "date"]

BIGBASKET_SALES_SCHEMA = VendorSchema(
    name="bigbasket secondary-sales",
    columns={
        "date_range": ["date_range"],
        "city": ["source_city_name", "city"],
        "brand": ["brand_name", "brand"],
        "top_slug": ["top_slug"],
        "mid_slug": ["mid_slug"],
        "leaf_slug": ["leaf_slug"],
        "sku": ["source_sku_id", "sku_id"],
        "product_name": ["sku_description", "sku_name"],
        "sku_weight": ["sku_weight"],
        "quantity": ["total_quantity", "quantity"],
        "total_mrp": ["total_mrp", "mrp"],
        "total_sales": ["total_sales", "sales"],
    },
    required=["quantity"],
    required_any=[["sku", "product_name"]],
)

BLINKIT_SALES_SCHEMA = VendorSchema(
    name="blinkit secondary-sales",
    columns={
        "item_id": ["item_id"],
        "item_name": ["item_name"],
        "manufacturer_id": ["manufacturer_id"],
        "manufacturer_name": ["manufacturer_name"],
        "city_id": ["city_id"],
        "city_name": ["city_name", "city"],
        "category": ["category"],
        "date": ["date"],
        "qty_sold": ["qty_sold", "quantity"],
        "mrp": ["mrp"],
    },
    required=["qty_sold"],
    required_any=[["item_id", "item_name"]],
)

ZEPTO_SALES_SCHEMA = VendorSchema(
    name="zepto secondary-sales",
    columns={
        "date": ["Date"],
        "sku_number": ["SKU Number"],
        "sku_name": ["SKU Name"],
        "ean": ["EAN"],
        "sku_category": ["SKU Category", "Category"],
        "sku_sub_category": ["SKU Sub Category", "Sub Category"],
        "brand_name": ["Brand Name", "Brand"],
        "manufacturer_name": ["Manufacturer Name"],
        "manufacturer_id": ["Manufacturer ID"],
        "city": ["City"],
        "sales_qty_units": ["Sales (Qty) - Units", "Units"],
        "mrp": ["MRP"],
        "gmv": ["Gross Merchandise Value", "GMV"],
    },
    excludes={"sku_category": ["sub"]},
    required=["sales_qty_units"],
    required_any=[["sku_number", "sku_name"]],
)

SWIGGY_SALES_SCHEMA = VendorSchema(
    name="swiggy secondary-sales",
    columns={
        "brand": ["BRAND"],
        "ordered_date": ["ORDERED_DATE"],
        "city": ["CITY"],
        "area_name": ["AREA_NAME"],
        "store_id": ["STORE_ID"],
        "l1_category": ["L1_CATEGORY"],
        "l2_category": ["L2_CATEGORY"],
        "l3_category": ["L3_CATEGORY"],
        "product_name": ["PRODUCT_NAME"],
        "variant": ["VARIANT"],
        "item_code": ["ITEM_CODE"],
        "combo": ["COMBO"],
        "combo_item_code": ["COMBO_ITEM_CODE"],
        "combo_units_sold": ["COMBO_UNITS_SOLD"],
        "base_mrp": ["BASE_MRP"],
        "units_sold": ["UNITS_SOLD"],
        "gmv": ["GMV"],
    },
    excludes={
        "item_code": ["combo"],
        "units_sold": ["combo"],
        "combo": ["item", "units"],
    },
    required=["brand", "ordered_date", "city", "product_name"],
)

FLIPKART_SALES_SCHEMA = VendorSchema(
    name="flipkart-grocery secondary-sales",
    columns={
        "tenant_id": ["tenant id", "tenant"],
        "retailer_name": ["retailer name"],
        "retailer_code": ["retailer code"],
        "fsn": ["fsn"],
        "product_name": ["product name", "product title"],
        "category": ["category"],
        "sub_category": ["sub category", "subcategory"],
        "brand": ["brand"],
        "mrp": ["mrp"],
        "selling_price": ["selling price"],
    },
    excludes={"category": ["sub"]},
    required_any=[["fsn", "product_name"]],
)

_DATE_HEADER = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$|^\d{4}-\d{2}-\d{2}$")


@dataclass
class AmazonSalesLine(LineRecord):
    """One Amazon sales row."""

    asin: str = ""
    category: str = ""
    unit_price: float | None = None
    commission_rate: float | None = None
    commission_amount: float | None = None
    net_amount: float = 0.0
    transaction_date: date | None = None
    order_id: str = ""
    customer_location: str = ""
    fulfillment_method: str = "FBA"


@dataclass
class BigBasketSalesLine(LineRecord):
    """One BigBasket sales row. ``sku`` is the source SKU id."""

    date_range: str = ""
    city: str = ""
    top_slug: str = ""
    mid_slug: str = ""
    leaf_slug: str = ""
    sku_weight: str = ""
    total_mrp: float = 0.0


@dataclass
class BlinkitSalesLine(LineRecord):
    """One Blinkit sales row. ``sku`` is the Blinkit item id."""

    manufacturer_id: str = ""
    manufacturer_name: str = ""
    city_id: str = ""
    city_name: str = ""
    category: str = ""
    sale_date: date | None = None
    mrp: float | None = None


@dataclass
class ZeptoSalesLine(LineRecord):
    """One Zepto sales row. ``sku`` is the SKU number."""

    sale_date: date | None = None
    ean: str = ""
    category: str = ""
    sub_category: str = ""
    manufacturer_name: str = ""
    manufacturer_id: str = ""
    city: str = ""
    mrp: float | None = None


@dataclass
class SwiggySalesLine(LineRecord):
    """One Swiggy sales row. ``sku`` is the item code."""

    ordered_date: date | None = None
    city: str = ""
    area_name: str = ""
    store_id: str = ""
    l1_category: str = ""
    l2_category: str = ""
    l3_category: str = ""
    variant: str = ""
    combo: str = ""
    combo_item_code: str = ""
    combo_units_sold: int = 0
    base_mrp: float = 0.0


@dataclass
class DailySales:
    """Units sold on one day, from one Flipkart date column."""

    date: date
    label: str
    qty: int


@dataclass
class FlipkartSalesLine(LineRecord):
    """One Flipkart product row, its date columns folded into ``sales_data``.

    ``sku`` is the FSN; ``quantity`` sums the daily entries and
    ``total_value`` is that sum times the selling price.
    """

    tenant_id: str = ""
    retailer_name: str = ""
    retailer_code: str = ""
    category: str = ""
    sub_category: str = ""
    mrp: float = 0.0
    selling_price: float = 0.0
    sales_data: list[DailySales] = field(default_factory=list)


def _context(context: UploadContext | None) -> UploadContext:
    return context or UploadContext()


def _build_amazon_line(row: RowReader) -> AmazonSalesLine:
    sku = row.text("sku")
    quantity = max(0.0, row.number("quantity"))
    unit_price = row.number("unit_price")
    total_sales = row.number("total_sales") or quantity * unit_price
    commission_rate = row.number("commission_rate")
    commission_amount = row.number("commission_amount") or (
        total_sales * commission_rate / 100
    )

    return AmazonSalesLine(
        sku=sku,
        product_name=row.text("product_name") or sku,
        brand=row.text("brand"),
        quantity=quantity,
        total_value=round(total_sales, 2),
        asin=row.text("asin"),
        category=row.text("category"),
        unit_price=unit_price or None,
        commission_rate=commission_rate or None,
        commission_amount=round(commission_amount, 2) or None,
        net_amount=round(total_sales - commission_amount, 2),
        transaction_date=row.date("transaction_date"),
        order_id=row.text("order_id"),
        customer_location=row.text("customer_location"),
        fulfillment_method=row.text("fulfillment_method", "FBA"),
    )


def parse_amazon_secondary_sales(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse an Amazon secondary sales report.

    Amazon reports may start with a title block, so the header row is the
    first of the leading rows that mentions at least three of the usual
    column keywords.

    Args:
        content: Uploaded file content (CSV, XLSX or XLS).
        filename: Uploaded filename.
        context: Business unit, period and uploader.

    Returns:
        ParsedUpload with one AmazonSalesLine per sale row.

    Raises:
        UnsupportedFormatError: If the file cannot be read.
        MissingRequiredColumnsError: If no quantity or product column exists.
        EmptyResultError: If no row has a product and a quantity or amount.
    """
    context = _context(context)
    table = read_table(content, filename)

    header_index = find_header_row(
        table.rows, AMAZON_SALES_HEADER_HINTS, 3, settings.header_scan_rows
    )
    if header_index is None:
        logger.debug("No Amazon header row found in %s, using the first row", filename)
        header_index = 0

    columns = resolve_columns(table.header(header_index), AMAZON_SALES_SCHEMA)
    batch = collect_lines(table, columns, _build_amazon_line, header_index)

    return assemble(
        Platform.AMAZON,
        UploadKind.SECONDARY_SALES,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="sales items",
        line_dates=[line.transaction_date for line in batch.lines if line.transaction_date],
        extras={
            "total_commission": sum_field(batch.lines, "commission_amount"),
            "total_net_amount": sum_field(batch.lines, "net_amount"),
        },
        currency=settings.currency,
    )


def _build_bigbasket_line(row: RowReader) -> BigBasketSalesLine:
    return BigBasketSalesLine(
        sku=row.text("sku"),
        product_name=row.text("product_name"),
        brand=row.text("brand"),
        quantity=row.number("quantity"),
        total_value=row.number("total_sales"),
        date_range=row.text("date_range"),
        city=row.text("city"),
        top_slug=row.text("top_slug"),
        mid_slug=row.text("mid_slug"),
        leaf_slug=row.text("leaf_slug"),
        sku_weight=row.text("sku_weight"),
        total_mrp=row.number("total_mrp"),
    )


def _date_range_label(context: UploadContext, lines: list[BigBasketSalesLine]) -> str:
    """Human label for the reporting window of a BigBasket upload."""
    if context.period_type != PeriodType.DAILY and context.period_start and context.period_end:
        return f"{context.period_start.isoformat()} to {context.period_end.isoformat()}"
    if context.report_date:
        return context.report_date.isoformat()
    for line in lines:
        if line.date_range:
            return line.date_range
    return "Unknown"


def parse_bigbasket_secondary_sales(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a BigBasket secondary sales CSV.

    Args:
        content: Uploaded file content.
        filename: Uploaded filename.
        context: Business unit, period and uploader.

    Returns:
        ParsedUpload whose header carries a ``date_range`` label and MRP total.
    """
    context = _context(context)
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), BIGBASKET_SALES_SCHEMA)
    batch = collect_lines(table, columns, _build_bigbasket_line)

    return assemble(
        Platform.BIGBASKET,
        UploadKind.SECONDARY_SALES,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="sales items",
        extras={
            "date_range": _date_range_label(context, batch.lines),
            "total_mrp": sum_field(batch.lines, "total_mrp"),
        },
        currency=settings.currency,
    )


def _build_blinkit_line(row: RowReader) -> BlinkitSalesLine:
    quantity = row.number("qty_sold")
    mrp = row.money("mrp")
    return BlinkitSalesLine(
        sku=row.text("item_id"),
        product_name=row.text("item_name"),
        quantity=quantity,
        total_value=round(quantity * (mrp or 0), 2),
        manufacturer_id=row.text("manufacturer_id"),
        manufacturer_name=row.text("manufacturer_name"),
        city_id=row.text("city_id"),
        city_name=row.text("city_name"),
        category=row.text("category"),
        sale_date=row.date("date"),
        mrp=mrp,
    )


def parse_blinkit_secondary_sales(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Blinkit secondary sales export.

    Blinkit reports MRP but no sales value, so ``total_value`` is the
    MRP value of the units sold.
    """
    context = _context(context)
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), BLINKIT_SALES_SCHEMA)
    batch = collect_lines(table, columns, _build_blinkit_line)

    return assemble(
        Platform.BLINKIT,
        UploadKind.SECONDARY_SALES,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="sales items",
        line_dates=[line.sale_date for line in batch.lines if line.sale_date],
        currency=settings.currency,
    )


def _build_zepto_line(row: RowReader) -> ZeptoSalesLine:
    return ZeptoSalesLine(
        sku=row.text("sku_number"),
        product_name=row.text("sku_name"),
        brand=row.text("brand_name"),
        quantity=row.integer("sales_qty_units"),
        total_value=row.number("gmv"),
        sale_date=row.date("date"),
        ean=row.text("ean"),
        category=row.text("sku_category"),
        sub_category=row.text("sku_sub_category"),
        manufacturer_name=row.text("manufacturer_name"),
        manufacturer_id=row.text("manufacturer_id"),
        city=row.text("city"),
        mrp=row.money("mrp"),
    )


def parse_zepto_secondary_sales(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Zepto secondary sales report.

    Dates in the ``Date`` column are day-first (DD-MM-YYYY).
    """
    context = _context(context)
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), ZEPTO_SALES_SCHEMA)
    batch = collect_lines(table, columns, _build_zepto_line)

    return assemble(
        Platform.ZEPTO,
        UploadKind.SECONDARY_SALES,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="sales items",
        line_dates=[line.sale_date for line in batch.lines if line.sale_date],
        currency=settings.currency,
    )


def parse_swiggy_secondary_sales(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Swiggy Instamart secondary sales report.

    The ordered date is needed to partition sales by day, so a missing one
    falls back to the caller's report date and then to today.

    Raises:
        MissingRequiredColumnsError: If BRAND, ORDERED_DATE, CITY or
            PRODUCT_NAME is absent.
    """
    context = _context(context)
    fallback_date = context.report_date or date.today()

    def build(row: RowReader) -> SwiggySalesLine:
        return SwiggySalesLine(
            sku=row.text("item_code"),
            product_name=row.text("product_name"),
            brand=row.text("brand"),
            quantity=row.integer("units_sold"),
            total_value=row.number("gmv"),
            ordered_date=row.date("ordered_date") or fallback_date,
            city=row.text("city"),
            area_name=row.text("area_name"),
            store_id=row.text("store_id"),
            l1_category=row.text("l1_category"),
            l2_category=row.text("l2_category"),
            l3_category=row.text("l3_category"),
            variant=row.text("variant"),
            combo=row.text("combo"),
            combo_item_code=row.text("combo_item_code"),
            combo_units_sold=row.integer("combo_units_sold"),
            base_mrp=row.number("base_mrp"),
        )

    table = read_table(content, filename)
    columns = resolve_columns(table.header(), SWIGGY_SALES_SCHEMA)
    batch = collect_lines(table, columns, build)

    total_base_mrp = sum_field(batch.lines, "base_mrp")
    avg_base_mrp = round(total_base_mrp / len(batch.lines), 2) if batch.lines else 0.0

    return assemble(
        Platform.SWIGGY,
        UploadKind.SECONDARY_SALES,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="sales items",
        line_dates=[line.ordered_date for line in batch.lines if line.ordered_date],
        extras={"total_base_mrp": total_base_mrp, "avg_base_mrp": avg_base_mrp},
        currency=settings.currency,
    )


def _parse_date_header(value: Any) -> date | None:
    """Parse a Flipkart date column header.

    Flipkart writes slash dates day first (15/08/2025).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_text(value)
    if not text or not (_DATE_HEADER.match(text) or "/" in text):
        return None
    try:
        return datetime.strptime(text, "%d/%m/%Y").date()
    except ValueError:
        return parse_date(text)


def find_date_columns(header: list[Any], claimed: set[int]) -> list[tuple[int, date, str]]:
    """Locate the per-day quantity columns of a Flipkart sales sheet.

    Args:
        header: Raw header cells (date cells may be real dates).
        claimed: Indexes already resolved to product attributes.

    Returns:
        ``(index, date, header_text)`` for each date column, in sheet order.
    """
    columns = []
    for idx, cell in enumerate(header):
        if idx in claimed:
            continue
        parsed = _parse_date_header(cell)
        if parsed is not None:
            columns.append((idx, parsed, clean_text(cell)))
    return columns


def parse_flipkart_secondary_sales(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Flipkart Grocery secondary sales sheet.

    Each row is one product and each date header column holds the units
    sold that day. Days with positive quantity become ``sales_data``
    entries; the line quantity is their sum and the value is that sum
    times the selling price.

    Two-month uploads without caller bounds cover the configured lookback
    window ending today. Daily and range uploads take their dates from the
    date columns.

    Raises:
        MissingRequiredColumnsError: If the sheet has no date columns or no
            FSN/product column.
    """
    context = _context(context)
    table = read_table(content, filename)
    raw_header = table.rows[0]
    columns = resolve_columns(table.header(), FLIPKART_SALES_SCHEMA)

    claimed = {idx for idx in columns.indexes.values() if idx is not None}
    date_columns = find_date_columns(raw_header, claimed)
    logger.debug("Found %d date columns in %s", len(date_columns), filename)
    if not date_columns:
        raise MissingRequiredColumnsError(
            FLIPKART_SALES_SCHEMA.name, ["date columns"], [h for h in table.header() if h]
        )

    def build(row: RowReader) -> FlipkartSalesLine:
        sales_data = []
        for idx, day, label in date_columns:
            qty = int(row.number_at(idx, label))
            if qty > 0:
                sales_data.append(DailySales(date=day, label=label, qty=qty))
        quantity = sum(entry.qty for entry in sales_data)
        selling_price = row.number("selling_price")

        return FlipkartSalesLine(
            sku=row.text("fsn"),
            product_name=row.text("product_name"),
            brand=row.text("brand"),
            quantity=quantity,
            total_value=round(quantity * selling_price, 2),
            tenant_id=row.text("tenant_id"),
            retailer_name=row.text("retailer_name"),
            retailer_code=row.text("retailer_code"),
            category=row.text("category"),
            sub_category=row.text("sub_category"),
            mrp=row.number("mrp"),
            selling_price=selling_price,
            sales_data=sales_data,
        )

    batch = collect_lines(table, columns, build)

    return assemble(
        Platform.FLIPKART_GROCERY,
        UploadKind.SECONDARY_SALES,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="sales items",
        line_dates=[day for _, day, _ in date_columns],
        extras={"date_columns": len(date_columns)},
        currency=settings.currency,
        lookback_months=settings.flipkart_lookback_months,
    )
