"""Purchase order parsers for marketplace PO exports.

This module contains parsers for the PO documents each platform sends:
- Flipkart Grocery: label/value metadata block, then a line table after "S. no."
- Zepto: flat CSV with PO No., article, quantity, cost, combined IGST/cess cell
- City Mall: flat CSV with a Total footer row and combined IGST/cess cells
- Blinkit: flat CSV that may hold several POs, keyed by po_number
- Swiggy: label block ("PO No :", "PO Date :", ...) over a fixed-layout item table
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any

from channel_ingest.config import settings
from channel_ingest.services.coercion import (
    clean_text,
    parse_date,
    parse_int,
    parse_number,
    split_multiline,
)
from channel_ingest.services.columns import (
    ColumnMap,
    RowReader,
    VendorSchema,
    find_row,
    normalize_header,
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
    unique_values,
)

logger = logging.getLogger(__name__)

# Flipkart Grocery metadata labels (normalized) -> header field
FLIPKART_PO_LABELS = {
    "po": "po_number",
    "nature of supply": "nature_of_supply",
    "nature of transaction": "nature_of_transaction",
    "po expiry": "po_expiry_date",
    "category": "category",
    "order date": "order_date",
    "supplier name": "supplier_name",
    "supplier address": "supplier_address",
    "supplier contact": "supplier_contact",
    "email": "supplier_email",
    "billed to address": "billed_to_address",
    "shipped to address": "shipped_to_address",
    "mode of payment": "mode_of_payment",
    "contract ref id": "contract_ref_id",
    "contract version": "contract_version",
    "credit term": "credit_term",
}
FLIPKART_PO_DATE_FIELDS = {"po_expiry_date", "order_date"}
FLIPKART_PO_STOP_MARKERS = ("Total Quantity", "Important Notification")

FLIPKART_PO_LINE_SCHEMA = VendorSchema(
    name="flipkart-grocery purchase-order",
    columns={
        "hsn_code": ["HSN/SA Code", "HSN"],
        "fsn_isbn": ["FSN/ISBN13", "FSN/ISBN", "FSN"],
        "quantity": ["Quantity"],
        "pending_quantity": ["Pending Quantity"],
        "uom": ["UOM"],
        "title": ["Title"],
        "brand": ["Brand"],
        "type": ["Type"],
        "ean": ["EAN"],
        "vertical": ["Vertical"],
        "required_by_date": ["Required by Date"],
        "supplier_mrp": ["Supplier MRP"],
        "supplier_price": ["Supplier Price"],
        "taxable_value": ["Taxable Value"],
        "igst_rate": ["IGST Rate"],
        "igst_amount_per_unit": ["IGST Amount Per Unit", "IGST Amount"],
        "sgst_rate": ["SGST Rate"],
        "sgst_amount_per_unit": ["SGST Amount Per Unit", "SGST Amount"],
        "cgst_rate": ["CGST Rate"],
        "cgst_amount_per_unit": ["CGST Amount Per Unit", "CGST Amount"],
        "cess_rate": ["CESS Rate"],
        "cess_amount_per_unit": ["CESS Amount Per Unit", "CESS Amount"],
        "tax_amount": ["Tax Amount"],
        "total_amount": ["Total Amount"],
    },
    excludes={
        "quantity": ["pending"],
        "tax_amount": ["igst", "sgst", "cgst", "cess"],
    },
    positions={
        "hsn_code": 1,
        "fsn_isbn": 2,
        "quantity": 3,
        "pending_quantity": 4,
        "uom": 5,
        "title": 6,
        "brand": 8,
        "type": 9,
        "ean": 10,
        "vertical": 11,
        "required_by_date": 12,
        "supplier_mrp": 13,
        "supplier_price": 14,
        "taxable_value": 15,
        "igst_rate": 16,
        "igst_amount_per_unit": 17,
        "sgst_rate": 18,
        "sgst_amount_per_unit": 19,
        "cgst_rate": 20,
        "cgst_amount_per_unit": 21,
        "cess_rate": 22,
        "cess_amount_per_unit": 23,
        "tax_amount": 24,
        "total_amount": 25,
    },
    required=["quantity"],
    required_any=[["fsn_isbn", "title"]],
)

ZEPTO_PO_SCHEMA = VendorSchema(
    name="zepto purchase-order",
    columns={
        "po_number": ["PO No."],
        "article_name": ["Article Name"],
        "brand": ["Brand"],
        "sku_id": ["SKU Id"],
        "article_id": ["Article Id"],
        "hsn_code": ["HSN Code"],
        "ean_no": ["EAN No.", "EAN"],
        "quantity": ["Quantity"],
        "cost_price": ["Base Cost Price (₹)", "Cost Price"],
        "igst_cess": ["IGST (%) cess (%)"],
        "mrp": ["MRP (₹)"],
        "total_amount": ["Total Amount (₹)"],
    },
    required=["quantity"],
    required_any=[["sku_id", "article_id", "article_name"]],
)

CITY_MALL_PO_SCHEMA = VendorSchema(
    name="city-mall purchase-order",
    columns={
        "serial": ["S.No", "S. No"],
        "article_id": ["Article Id"],
        "article_name": ["Article Name"],
        "hsn_code": ["HSN Code"],
        "mrp": ["MRP (₹)"],
        "base_cost_price": ["Base Cost Price (₹)"],
        "quantity": ["Quantity"],
        "base_amount": ["Base Amount (₹)"],
        "igst_cess_percent": ["IGST (%) cess (%)"],
        "igst_cess_amount": ["IGST (₹) cess"],
        "total_amount": ["Total Amount (₹)"],
    },
    required=["quantity"],
    required_any=[["article_id", "article_name"]],
)

BLINKIT_PO_SCHEMA = VendorSchema(
    name="blinkit purchase-order",
    columns={
        "po_number": ["po_number"],
        "item_id": ["item_id"],
        "name": ["name"],
        "remaining_quantity": ["remaining_quantity"],
        "upc": ["upc"],
        "uom_text": ["uom_text"],
        "cost_price": ["cost_price"],
        "cgst_value": ["cgst_value"],
        "sgst_value": ["sgst_value"],
        "igst_value": ["igst_value"],
        "cess_value": ["cess_value"],
        "tax_value": ["tax_value"],
        "landing_rate": ["landing_rate"],
        "mrp": ["mrp"],
        "margin_percentage": ["margin_percentage"],
        "total_amount": ["total_amount"],
        "po_state": ["po_state"],
    },
    required=["po_number", "item_id", "name", "remaining_quantity"],
)

# Swiggy item table: fixed positions under a two-row merged header
SWIGGY_PO_POSITIONS = {
    "item_code": 1,
    "item_description": 2,
    "hsn_code": 4,
    "quantity": 5,
    "mrp": 6,
    "unit_base_cost": 8,
    "taxable_value": 9,
    "cgst_rate": 10,
    "cgst_amount": 12,
    "sgst_rate": 13,
    "sgst_amount": 15,
    "igst_rate": 16,
    "igst_amount": 17,
    "cess_rate": 19,
    "cess_amount": 20,
    "additional_cess": 21,
    "line_total": 22,
}
SWIGGY_PO_NUMBER_PREFIXES = ("JCNPO", "SOTY-")
SWIGGY_PO_DATE_LABELS = {
    "po date": "po_date",
    "po release date": "po_release_date",
    "expected delivery date": "expected_delivery_date",
    "po expiry date": "po_expiry_date",
}
SWIGGY_METADATA_ROWS = 20


@dataclass
class FlipkartPOLine(LineRecord):
    """One Flipkart Grocery PO line. ``sku`` is the FSN/ISBN, ``product_name`` the title."""

    hsn_code: str = ""
    pending_quantity: int = 0
    uom: str = ""
    type: str = ""
    ean: str = ""
    vertical: str = ""
    required_by_date: date | None = None
    supplier_mrp: float | None = None
    supplier_price: float | None = None
    taxable_value: float | None = None
    igst_rate: float | None = None
    igst_amount_per_unit: float | None = None
    sgst_rate: float | None = None
    sgst_amount_per_unit: float | None = None
    cgst_rate: float | None = None
    cgst_amount_per_unit: float | None = None
    cess_rate: float | None = None
    cess_amount_per_unit: float | None = None
    tax_amount: float | None = None


@dataclass
class ZeptoPOLine(LineRecord):
    """One Zepto PO line. ``sku`` is the SKU id, falling back to the article id."""

    po_number: str = ""
    sap_id: str = ""
    hsn_code: str = ""
    ean_no: str = ""
    asn_qty: int = 0
    grn_qty: int = 0
    remaining_qty: int = 0
    cost_price: float | None = None
    cgst: float = 0.0
    sgst: float = 0.0
    igst: float = 0.0
    cess: float = 0.0
    mrp: float | None = None
    cost_value: float = 0.0
    tax_amount: float = 0.0


@dataclass
class CityMallPOLine(LineRecord):
    """One City Mall PO line. ``sku`` is the article id."""

    hsn_code: str = ""
    mrp: float | None = None
    base_cost_price: float | None = None
    base_amount: float | None = None
    igst_percent: float = 0.0
    cess_percent: float = 0.0
    igst_amount: float = 0.0
    cess_amount: float = 0.0


@dataclass
class BlinkitPOLine(LineRecord):
    """One Blinkit PO line. ``quantity`` is the remaining quantity."""

    po_number: str = ""
    product_upc: str = ""
    grammage: str = ""
    basic_cost_price: float = 0.0
    cgst_percent: float = 0.0
    sgst_percent: float = 0.0
    igst_percent: float = 0.0
    cess_percent: float = 0.0
    tax_amount: float = 0.0
    landing_rate: float = 0.0
    mrp: float = 0.0
    margin_percent: float = 0.0
    status: str = "Active"


@dataclass
class SwiggyPOLine(LineRecord):
    """One Swiggy PO line. ``line_number`` keeps the serial printed on the PO."""

    hsn_code: str = ""
    mrp: float | None = None
    unit_base_cost: float | None = None
    taxable_value: float | None = None
    cgst_rate: float | None = None
    cgst_amount: float | None = None
    sgst_rate: float | None = None
    sgst_amount: float | None = None
    igst_rate: float | None = None
    igst_amount: float | None = None
    cess_rate: float | None = None
    cess_amount: float | None = None
    additional_cess: float | None = None


def generate_po_number(prefix: str, suffix: str = "") -> str:
    """Build a placeholder PO number for exports that do not carry one."""
    number = f"{prefix}{datetime.now().strftime('%Y%m%d%H%M%S')}"
    return f"{number}_{suffix}" if suffix else number


def _next_value(cells: list[str], start: int, span: int = 2) -> str:
    """First non-blank cell to the right of ``start`` within ``span`` cells."""
    for cell in cells[start + 1 : start + 1 + span]:
        if cell:
            return cell
    return ""


def _read_flipkart_po_metadata(rows: list[list[Any]]) -> dict[str, Any]:
    """Collect the label/value pairs printed above the Flipkart line table.

    GSTIN appears several times: on the "Billed by" row it belongs to the
    supplier; on the "BILLED TO ADDRESS" row the first is the billing GSTIN
    and the second the shipping GSTIN.
    """
    meta: dict[str, Any] = {name: "" for name in FLIPKART_PO_LABELS.values()}
    meta.update(supplier_gstin="", billed_to_gstin="", shipped_to_gstin="")

    for row in rows:
        cells = [clean_text(cell) for cell in row]
        if not cells or not any(cells):
            continue
        if "PURCHASE ORDER #" in cells[0].upper():
            meta["po_number"] = cells[0].split("#", 1)[1].strip()

        gstins = []
        for j, cell in enumerate(cells):
            label = normalize_header(cell)
            if label == "gstin":
                value = _next_value(cells, j)
                if value:
                    gstins.append(value)
                continue
            name = FLIPKART_PO_LABELS.get(label)
            if name is None:
                continue
            value = _next_value(cells, j)
            if value and normalize_header(value) not in FLIPKART_PO_LABELS:
                meta[name] = value

        first = normalize_header(cells[0])
        if first == "billed by" and gstins:
            meta["supplier_gstin"] = gstins[0]
        elif first == "billed to address" and gstins:
            meta["billed_to_gstin"] = gstins[0]
            meta["shipped_to_gstin"] = gstins[1] if len(gstins) > 1 else ""

    for name in FLIPKART_PO_DATE_FIELDS:
        meta[name] = parse_date(meta[name]) if meta[name] else None
    return meta


def _is_flipkart_line_header(cells: list[str]) -> bool:
    return bool(cells) and normalize_header(cells[0]) == "s no" and any(
        normalize_header(cell) == "hsn sa code" for cell in cells
    )


def _is_flipkart_footer(row: RowReader) -> bool:
    first = clean_text(row.cell(0))
    return not first or any(marker in first for marker in FLIPKART_PO_STOP_MARKERS)


def _build_flipkart_po_line(row: RowReader) -> FlipkartPOLine | None:
    serial = parse_int(row.cell(0))
    if not serial or serial <= 0:
        return None
    return FlipkartPOLine(
        line_number=serial,
        sku=row.text("fsn_isbn"),
        product_name=row.text("title"),
        brand=row.text("brand"),
        quantity=row.integer("quantity"),
        total_value=row.number("total_amount"),
        hsn_code=row.text("hsn_code"),
        pending_quantity=row.integer("pending_quantity"),
        uom=row.text("uom"),
        type=row.text("type"),
        ean=row.text("ean"),
        vertical=row.text("vertical"),
        required_by_date=row.date("required_by_date"),
        supplier_mrp=row.money("supplier_mrp"),
        supplier_price=row.money("supplier_price"),
        taxable_value=row.money("taxable_value"),
        igst_rate=row.money("igst_rate"),
        igst_amount_per_unit=row.money("igst_amount_per_unit"),
        sgst_rate=row.money("sgst_rate"),
        sgst_amount_per_unit=row.money("sgst_amount_per_unit"),
        cgst_rate=row.money("cgst_rate"),
        cgst_amount_per_unit=row.money("cgst_amount_per_unit"),
        cess_rate=row.money("cess_rate"),
        cess_amount_per_unit=row.money("cess_amount_per_unit"),
        tax_amount=row.money("tax_amount"),
    )


def parse_flipkart_grocery_po(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Flipkart Grocery purchase order.

    The document opens with a metadata block (PO#, supplier, GSTINs,
    addresses, payment terms) and continues with a line table whose header
    starts with "S. no.". Reading stops at the "Total Quantity" or
    "Important Notification" footer.

    Args:
        content: Uploaded file content (CSV, XLSX or XLS).
        filename: Uploaded filename.
        context: Business unit, period and uploader.

    Returns:
        ParsedUpload whose header extras carry the PO metadata and the
        taxable, tax and grand totals.

    Raises:
        MissingRequiredColumnsError: If the line table header is not found.
    """
    context = context or UploadContext()
    table = read_table(content, filename)

    header_index = find_row(table.rows, _is_flipkart_line_header)
    if header_index is None:
        raise MissingRequiredColumnsError(
            FLIPKART_PO_LINE_SCHEMA.name, ["S. no. line table"], table.header()
        )

    meta = _read_flipkart_po_metadata(table.rows[: min(10, header_index)])
    columns = resolve_columns(table.header(header_index), FLIPKART_PO_LINE_SCHEMA)
    batch = collect_lines(
        table, columns, _build_flipkart_po_line, header_index, stop=_is_flipkart_footer
    )

    extras = dict(meta)
    extras.update(
        total_taxable_value=sum_field(batch.lines, "taxable_value"),
        total_tax_amount=sum_field(batch.lines, "tax_amount"),
        total_amount=sum_field(batch.lines, "total_value"),
    )
    return assemble(
        Platform.FLIPKART_GROCERY,
        UploadKind.PURCHASE_ORDER,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="PO lines",
        line_dates=[meta["order_date"]] if meta["order_date"] else [],
        extras=extras,
        currency=settings.currency,
    )


def _brand_from_name(article_name: str) -> str:
    """Zepto article names start with the brand ("Jivo Canola Oil 1L")."""
    words = article_name.split()
    return words[0] if words else ""


def _split_percentages(value: Any) -> tuple[float, float]:
    """Split a combined "IGST\\ncess" cell into two numbers."""
    parts = split_multiline(value)
    first = parse_number(parts[0]) if parts else None
    second = parse_number(parts[1]) if len(parts) > 1 else None
    return first or 0.0, second or 0.0


def parse_zepto_po(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Zepto purchase order CSV.

    The PO number comes from the first non-blank row's "PO No." column; exports
    without one get a generated number. Cost value is cost price times
    quantity and tax is the IGST and cess percentages applied to it.
    """
    context = context or UploadContext()
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), ZEPTO_PO_SCHEMA)

    readers = (RowReader(cells, columns, number, []) for number, cells in table.data_rows())
    first = next(
        (row for row in readers if not row.is_blank()), RowReader([], columns, 2, [])
    )
    po_number = first.text("po_number") or generate_po_number(
        "ZP", first.text("article_id")[:6] or "UNKNOWN"
    )

    def build(row: RowReader) -> ZeptoPOLine:
        article_name = row.text("article_name")
        quantity = row.integer("quantity")
        cost_price = row.money("cost_price")
        igst, cess = _split_percentages(row.raw("igst_cess"))
        cost_value = round((cost_price or 0) * quantity, 2)
        tax_amount = round(cost_value * (igst + cess) / 100, 2)

        return ZeptoPOLine(
            sku=row.text("sku_id") or row.text("article_id"),
            product_name=article_name,
            brand=row.text("brand") or _brand_from_name(article_name),
            quantity=quantity,
            total_value=row.number("total_amount") or round(cost_value + tax_amount, 2),
            po_number=row.text("po_number") or po_number,
            sap_id=row.text("article_id"),
            hsn_code=row.text("hsn_code"),
            ean_no=row.text("ean_no"),
            remaining_qty=quantity,
            cost_price=cost_price,
            igst=igst,
            cess=cess,
            mrp=row.money("mrp"),
            cost_value=cost_value,
            tax_amount=tax_amount,
        )

    batch = collect_lines(table, columns, build)

    return assemble(
        Platform.ZEPTO,
        UploadKind.PURCHASE_ORDER,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="PO lines",
        extras={
            "po_number": po_number,
            "unique_brand_names": unique_values(batch.lines, "brand"),
            "total_cost_value": sum_field(batch.lines, "cost_value"),
            "total_tax_amount": sum_field(batch.lines, "tax_amount"),
            "total_amount": sum_field(batch.lines, "total_value"),
        },
        currency=settings.currency,
    )


def _build_city_mall_line(row: RowReader) -> CityMallPOLine | None:
    article_id = row.text("article_id")
    if article_id.lower() == "total" and not row.text("serial"):
        return None

    igst_percent, cess_percent = _split_percentages(row.raw("igst_cess_percent"))
    igst_amount, cess_amount = _split_percentages(row.raw("igst_cess_amount"))
    return CityMallPOLine(
        line_number=parse_int(row.raw("serial")) or 0,
        sku=article_id,
        product_name=row.text("article_name"),
        quantity=row.integer("quantity"),
        total_value=row.number("total_amount"),
        hsn_code=row.text("hsn_code"),
        mrp=row.money("mrp"),
        base_cost_price=row.money("base_cost_price"),
        base_amount=row.money("base_amount"),
        igst_percent=igst_percent,
        cess_percent=cess_percent,
        igst_amount=igst_amount,
        cess_amount=cess_amount,
    )


def parse_city_mall_po(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a City Mall purchase order CSV.

    City Mall exports carry no PO number, so one is generated. The
    "Total" footer row is ignored.
    """
    context = context or UploadContext()
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), CITY_MALL_PO_SCHEMA)
    batch = collect_lines(table, columns, _build_city_mall_line)

    return assemble(
        Platform.CITY_MALL,
        UploadKind.PURCHASE_ORDER,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="PO lines",
        extras={
            "po_number": generate_po_number("CM"),
            "unique_hsn_codes": unique_values(batch.lines, "hsn_code"),
            "total_base_amount": sum_field(batch.lines, "base_amount"),
            "total_igst_amount": sum_field(batch.lines, "igst_amount"),
            "total_cess_amount": sum_field(batch.lines, "cess_amount"),
            "total_amount": sum_field(batch.lines, "total_value"),
        },
        currency=settings.currency,
    )


def _build_blinkit_po_line(row: RowReader) -> BlinkitPOLine | None:
    po_number = row.text("po_number")
    if not po_number:
        row.warn("po_number", row.raw("po_number"), "PO number is missing; row skipped")
        return None

    return BlinkitPOLine(
        sku=row.text("item_id"),
        product_name=row.text("name"),
        quantity=row.integer("remaining_quantity"),
        total_value=row.number("total_amount"),
        po_number=po_number,
        product_upc=row.text("upc"),
        grammage=row.text("uom_text"),
        basic_cost_price=row.number("cost_price"),
        cgst_percent=row.number("cgst_value"),
        sgst_percent=row.number("sgst_value"),
        igst_percent=row.number("igst_value"),
        cess_percent=row.number("cess_value"),
        tax_amount=row.number("tax_value"),
        landing_rate=row.number("landing_rate"),
        mrp=row.number("mrp"),
        margin_percent=row.number("margin_percentage"),
        status=row.text("po_state", "Active"),
    )


def parse_blinkit_po(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Blinkit purchase order CSV.

    One export can hold lines of several POs. The envelope carries all of
    them; group_by_po_number() splits it into one envelope per PO.

    Raises:
        MissingRequiredColumnsError: If po_number, item_id, name or
            remaining_quantity is absent.
    """
    context = context or UploadContext()
    table = read_table(content, filename)
    columns = resolve_columns(table.header(), BLINKIT_PO_SCHEMA)
    batch = collect_lines(table, columns, _build_blinkit_po_line)

    return assemble(
        Platform.BLINKIT,
        UploadKind.PURCHASE_ORDER,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="PO lines",
        extras={
            "po_numbers": unique_values(batch.lines, "po_number"),
            "total_tax_amount": sum_field(batch.lines, "tax_amount"),
        },
        currency=settings.currency,
    )


def group_by_po_number(parsed: ParsedUpload) -> dict[str, ParsedUpload]:
    """Split a multi-PO envelope into one envelope per PO number.

    Lines are renumbered from 1 within each PO and every summary is
    recomputed from that PO's lines.
    """
    groups: dict[str, list[LineRecord]] = {}
    for line in parsed.lines:
        po_number = getattr(line, "po_number", "")
        groups.setdefault(po_number, []).append(replace(line, line_number=0))

    header = parsed.header
    context = UploadContext(
        business_unit=header.business_unit,
        period_type=PeriodType(header.period_type),
        report_date=header.report_date,
        period_start=header.period_start,
        period_end=header.period_end,
        uploaded_by=header.uploaded_by,
    )
    return {
        po_number: assemble(
            Platform(header.platform),
            UploadKind(header.kind),
            context,
            header.filename,
            lines,
            [],
            rows_seen=len(lines),
            noun="PO lines",
            extras={
                "po_number": po_number,
                "total_tax_amount": sum_field(lines, "tax_amount"),
            },
            currency=header.currency,
        )
        for po_number, lines in groups.items()
    }


def _read_vendor_block(cell: str) -> tuple[str, str, str]:
    """Split a multi-line "Vendor Name : ...\\n<address>\\nGSTIN : ..." cell."""
    lines = [line.strip() for line in cell.splitlines() if line.strip()]
    name = lines[0].split(":", 1)[1].strip() if ":" in lines[0] else ""
    gstin = ""
    address = []
    for line in lines[1:]:
        if "GSTIN" in line:
            gstin = line.split(":", 1)[-1].strip()
        else:
            address.append(line)
    return name, ", ".join(address), gstin


def _find_vendor_name(rows: list[list[Any]], start: int) -> str:
    """Find a vendor name printed in a merged cell near its label."""
    for row in rows[start : start + 5]:
        for cell in row:
            value = clean_text(cell)
            label = normalize_header(value)
            if (
                len(value) > 3
                and ":" not in value
                and parse_date(value) is None
                and not any(
                    word in label.split() for word in ("po", "date", "payment", "expected", "vendor")
                )
            ):
                return value
    return ""


def _read_swiggy_po_metadata(rows: list[list[Any]]) -> dict[str, Any]:
    """Scan the label block above the Swiggy item table."""
    meta: dict[str, Any] = {name: None for name in SWIGGY_PO_DATE_LABELS.values()}
    meta.update(po_number="", payment_terms="", vendor_name="", vendor_address="", vendor_gstin="")

    for i, row in enumerate(rows):
        cells = [clean_text(cell) for cell in row]
        for j, cell in enumerate(cells):
            if not cell:
                continue
            if cell.startswith(SWIGGY_PO_NUMBER_PREFIXES):
                meta["po_number"] = cell
                continue

            label = normalize_header(cell)
            if label == "po no":
                value = _next_value(cells, j, span=9)
                if value:
                    meta["po_number"] = value
            elif label in SWIGGY_PO_DATE_LABELS:
                value = _next_value(cells, j, span=1)
                meta[SWIGGY_PO_DATE_LABELS[label]] = parse_date(value)
            elif "payment terms" in label:
                for value in cells[j + 1 : j + 10]:
                    if value and "PO" not in value and "Date" not in value:
                        meta["payment_terms"] = value
                        break
            elif label.startswith("vendor name"):
                if "\n" in cell:
                    name, address, gstin = _read_vendor_block(cell)
                    meta.update(vendor_name=name, vendor_address=address, vendor_gstin=gstin)
                elif not meta["vendor_name"]:
                    meta["vendor_name"] = _find_vendor_name(rows, i)
            elif "days" in label.split() and not meta["payment_terms"]:
                meta["payment_terms"] = cell

    return meta


def _is_swiggy_item_header(cells: list[str]) -> bool:
    return "S." in cells and "Item Code" in cells and "Item Desc" in cells


def _build_swiggy_po_line(row: RowReader) -> SwiggyPOLine | None:
    if len(row.cells) < 10:
        return None
    serial = parse_int(row.cell(0))
    if not serial or serial <= 0:
        return None
    item_code = row.text("item_code")
    quantity = row.integer("quantity")
    if not item_code or quantity <= 0:
        return None

    return SwiggyPOLine(
        line_number=serial,
        sku=item_code,
        product_name=row.text("item_description").replace("\n", " "),
        quantity=quantity,
        total_value=row.number("line_total"),
        hsn_code=row.text("hsn_code"),
        mrp=row.money("mrp"),
        unit_base_cost=row.money("unit_base_cost"),
        taxable_value=row.money("taxable_value"),
        cgst_rate=row.money("cgst_rate"),
        cgst_amount=row.money("cgst_amount"),
        sgst_rate=row.money("sgst_rate"),
        sgst_amount=row.money("sgst_amount"),
        igst_rate=row.money("igst_rate"),
        igst_amount=row.money("igst_amount"),
        cess_rate=row.money("cess_rate"),
        cess_amount=row.money("cess_amount"),
        additional_cess=row.money("additional_cess"),
    )


def parse_swiggy_po(
    content: bytes | str, filename: str, context: UploadContext | None = None
) -> ParsedUpload:
    """Parse a Swiggy Instamart purchase order workbook.

    Header fields are read from labelled cells ("PO No :", "PO Date :",
    "Payment Terms", "Vendor Name", ...). Items follow a two-row header
    containing "S.", "Item Code" and "Item Desc" and are read by position.
    A missing vendor name becomes "N/A" and a missing PO number is generated.

    Raises:
        MissingRequiredColumnsError: If the item table header is not found.
    """
    context = context or UploadContext()
    table = read_table(content, filename)

    header_index = find_row(table.rows, _is_swiggy_item_header)
    if header_index is None:
        raise MissingRequiredColumnsError(
            "swiggy purchase-order", ["S. / Item Code / Item Desc item table"], []
        )

    meta = _read_swiggy_po_metadata(table.rows[: min(SWIGGY_METADATA_ROWS, header_index)])
    meta["po_number"] = meta["po_number"] or generate_po_number("SW_")
    meta["vendor_name"] = meta["vendor_name"] or "N/A"

    columns = ColumnMap(indexes=dict(SWIGGY_PO_POSITIONS), headers=table.header(header_index))
    # The row under the header carries the "No" half of "S. No"
    batch = collect_lines(table, columns, _build_swiggy_po_line, header_index + 1)

    tax_fields = ["cgst_amount", "sgst_amount", "igst_amount", "cess_amount", "additional_cess"]
    extras = dict(meta)
    extras.update(
        total_taxable_value=sum_field(batch.lines, "taxable_value"),
        total_tax_amount=round(sum(sum_field(batch.lines, name) for name in tax_fields), 2),
        total_amount=sum_field(batch.lines, "total_value"),
    )
    return assemble(
        Platform.SWIGGY,
        UploadKind.PURCHASE_ORDER,
        context,
        filename,
        batch.lines,
        batch.warnings,
        rows_seen=batch.rows_seen,
        noun="PO lines",
        line_dates=[meta["po_date"]] if meta["po_date"] else [],
        extras=extras,
        currency=settings.currency,
    )
