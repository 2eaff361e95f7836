"""Storage of parsed uploads as UploadBatch/UploadLine rows."""

import logging
import uuid
from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from channel_ingest.models.upload import UploadBatch, UploadLine
from channel_ingest.services.purchase_orders import group_by_po_number
from channel_ingest.services.results import LineRecord, ParsedUpload, Platform, UploadKind

logger = logging.getLogger(__name__)

_LINE_COLUMNS = ("line_number", "sku", "product_name", "brand", "quantity", "total_value")


def build_upload_line(line: LineRecord) -> UploadLine:
    """Map a normalized line onto an UploadLine, keeping every field in ``data``."""
    data: dict[str, Any] = jsonable_encoder(line.to_dict())
    return UploadLine(
        **{name: getattr(line, name) for name in _LINE_COLUMNS},
        data=data,
    )


def build_upload_batch(parsed: ParsedUpload) -> UploadBatch:
    """Build an UploadBatch with its lines from a parse result.

    The batch gets its id up front so callers can report it before the
    transaction commits. It is not attached to any session.
    """
    header = parsed.header
    batch = UploadBatch(
        id=uuid.uuid4(),
        platform=header.platform,
        kind=header.kind,
        business_unit=header.business_unit,
        period_type=header.period_type,
        report_date=header.report_date,
        period_start=header.period_start,
        period_end=header.period_end,
        filename=header.filename,
        uploaded_by=header.uploaded_by,
        currency=header.currency,
        total_items=header.total_items,
        total_quantity=header.total_quantity,
        total_value=header.total_value,
        unique_products=header.unique_products,
        unique_brands=header.unique_brands,
        extras=jsonable_encoder(header.extras),
        warning_count=len(parsed.warnings),
    )
    batch.lines = [build_upload_line(line) for line in parsed.lines]
    return batch


async def save_parsed_upload(session: AsyncSession, parsed: ParsedUpload) -> UploadBatch:
    """Persist a parse result as one batch plus its lines.

    Args:
        session: Database session. The caller owns the transaction.
        parsed: Result returned by a vendor parser.

    Returns:
        The flushed UploadBatch.
    """
    batch = build_upload_batch(parsed)
    session.add(batch)
    await session.flush()
    logger.info(
        "Stored %s %s upload %s with %d lines",
        batch.platform,
        batch.kind,
        batch.filename,
        len(batch.lines),
    )
    return batch


def split_for_storage(parsed: ParsedUpload) -> list[ParsedUpload]:
    """Return the envelopes to store as separate batches.

    A Blinkit purchase order export can hold several POs; each PO number is
    stored as its own batch. Every other upload is stored as one batch.
    """
    header = parsed.header
    if header.kind == UploadKind.PURCHASE_ORDER.value and header.platform == Platform.BLINKIT.value:
        return list(group_by_po_number(parsed).values())
    return [parsed]


async def save_upload(session: AsyncSession, parsed: ParsedUpload) -> list[UploadBatch]:
    """Persist a parse result as one batch per stored envelope.

    Returns:
        The flushed batches, in PO order for split uploads.
    """
    return [await save_parsed_upload(session, part) for part in split_for_storage(parsed)]
