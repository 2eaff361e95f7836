"""FastAPI routes for channel upload files."""

import logging
import uuid
from datetime import date
from pathlib import PurePath
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from channel_ingest.config import settings
from channel_ingest.database import get_db
from channel_ingest.services.persistence import save_upload
from channel_ingest.services.registry import Parser, get_parser, supported_uploads
from channel_ingest.services.results import (
    ParsedUpload,
    PeriodType,
    Platform,
    UploadContext,
    UploadKind,
)

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = settings.max_upload_size_mb * 1024 * 1024

EXCEL_CONTENT_TYPES = frozenset(
    {
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }
)

CONTENT_TYPES_BY_EXTENSION = {
    ".csv": frozenset({"text/csv", "application/csv", "text/plain"}),
    ".xlsx": EXCEL_CONTENT_TYPES,
    ".xls": EXCEL_CONTENT_TYPES,
}

SUPPORTED_EXTENSIONS = set(CONTENT_TYPES_BY_EXTENSION)

router = APIRouter(prefix="/upload", tags=["upload"])


class UploadPair(BaseModel):
    """A registered upload kind and platform."""

    kind: str = Field(description="Upload kind (inventory, secondary-sales, purchase-order)")
    platform: str = Field(description="Platform the file comes from")


class PreviewResponse(BaseModel):
    """Parse result returned without storing anything."""

    header: dict[str, Any] = Field(description="Upload header and summary totals")
    lines: list[dict[str, Any]] = Field(description="Normalized lines")
    warnings: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Cells that could not be coerced",
    )


class UploadResponse(BaseModel):
    """Response schema for a stored upload."""

    message: str = Field(description="Status message")
    upload_id: uuid.UUID = Field(description="Identifier of the first stored upload batch")
    upload_ids: list[uuid.UUID] = Field(description="Every batch stored for the file")
    header: dict[str, Any] = Field(description="Upload header and summary totals")
    warning_count: int = Field(description="Number of cells that could not be coerced")


def validate_file_extension(filename: str) -> str:
    """Return the lowercase extension of a marketplace export.

    Raises:
        HTTPException: If the filename is missing or not CSV/Excel.
    """
    if not filename:
        raise HTTPException(status_code=400, detail="Filename is required")

    extension = PurePath(filename).suffix.lower()
    if extension not in CONTENT_TYPES_BY_EXTENSION:
        supported = ", ".join(sorted(CONTENT_TYPES_BY_EXTENSION))
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{extension or filename}'. Supported types: {supported}",
        )
    return extension


def validate_content_type(content_type: str | None, extension: str) -> None:
    """Check the declared content type against the extension.

    Media type parameters such as ``charset`` are ignored.

    Raises:
        HTTPException: If the content type belongs to another format.
    """
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    # Browsers and scripts often send octet-stream for any file
    if not media_type or media_type == "application/octet-stream":
        return

    if media_type not in CONTENT_TYPES_BY_EXTENSION.get(extension, frozenset()):
        raise HTTPException(
            status_code=400,
            detail=f"Content type '{content_type}' does not match file extension '{extension}'",
        )


async def validate_file_size(file: UploadFile) -> bytes:
    """Read the upload, rejecting empty files and files over the size cap.

    Raises:
        HTTPException: If the file is empty or too large.
    """
    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    if len(contents) > MAX_FILE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds maximum allowed size of {settings.max_upload_size_mb}MB",
        )
    return contents


def validate_business_unit(business_unit: str) -> str:
    """Return the business unit if it is one of the configured tags.

    Raises:
        HTTPException: If the business unit is unknown.
    """
    value = business_unit.strip().lower()
    if value not in settings.business_units:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown business unit '{business_unit}'. "
            f"Allowed: {', '.join(settings.business_units)}",
        )
    return value


def validate_period_type(period_type: str) -> PeriodType:
    """Parse the period type form field.

    Raises:
        HTTPException: If the value names no period type.
    """
    try:
        return PeriodType.parse(period_type)
    except ValueError:
        allowed = ", ".join(p.value for p in PeriodType)
        raise HTTPException(
            status_code=400,
            detail=f"Unknown period type '{period_type}'. Allowed: {allowed}",
        ) from None


def resolve_parser(kind: str, platform: str) -> Parser:
    """Look up the parser for a path's kind and platform.

    Raises:
        HTTPException: 404 if no parser is registered for the pair.
    """
    try:
        parser = get_parser(UploadKind(kind.lower()), Platform(platform.lower()))
    except ValueError:
        parser = None

    if parser is None:
        raise HTTPException(
            status_code=404,
            detail=f"No parser for {kind} uploads from {platform}",
        )
    return parser


async def _parse_upload(
    kind: str,
    platform: str,
    file: UploadFile,
    business_unit: str,
    period_type: str,
    report_date: date | None,
    start_date: date | None,
    end_date: date | None,
    uploaded_by: str,
) -> ParsedUpload:
    parser = resolve_parser(kind, platform)

    filename = file.filename or ""
    extension = validate_file_extension(filename)
    validate_content_type(file.content_type, extension)
    contents = await validate_file_size(file)

    context = UploadContext(
        business_unit=validate_business_unit(business_unit),
        period_type=validate_period_type(period_type),
        report_date=report_date,
        period_start=start_date,
        period_end=end_date,
        uploaded_by=uploaded_by or "system",
    )
    return parser(contents, filename, context)


@router.get("/parsers", response_model=list[UploadPair])
async def list_parsers() -> list[UploadPair]:
    """List every upload kind and platform with a registered parser."""
    return [UploadPair(**pair) for pair in supported_uploads()]


@router.post("/{kind}/{platform}/preview", response_model=PreviewResponse)
async def preview_upload(
    kind: str,
    platform: str,
    file: Annotated[UploadFile, File(description="CSV or Excel file to parse")],
    business_unit: Annotated[str, Form(description="Business unit tag")],
    period_type: Annotated[str, Form(description="daily, range or 2-month")] = "daily",
    report_date: Annotated[date | None, Form()] = None,
    start_date: Annotated[date | None, Form()] = None,
    end_date: Annotated[date | None, Form()] = None,
    uploaded_by: Annotated[str, Form()] = "system",
) -> PreviewResponse:
    """Parse an upload file and return the normalized result without storing it.

    Raises:
        HTTPException: 400 on request validation errors, 404 for an
            unknown kind/platform pair.
    """
    parsed = await _parse_upload(
        kind,
        platform,
        file,
        business_unit,
        period_type,
        report_date,
        start_date,
        end_date,
        uploaded_by,
    )
    return PreviewResponse(**parsed.to_dict())


@router.post("/{kind}/{platform}", response_model=UploadResponse)
async def upload_file(
    kind: str,
    platform: str,
    file: Annotated[UploadFile, File(description="CSV or Excel file to upload")],
    db: Annotated[AsyncSession, Depends(get_db)],
    business_unit: Annotated[str, Form(description="Business unit tag")],
    period_type: Annotated[str, Form(description="daily, range or 2-month")] = "daily",
    report_date: Annotated[date | None, Form()] = None,
    start_date: Annotated[date | None, Form()] = None,
    end_date: Annotated[date | None, Form()] = None,
    uploaded_by: Annotated[str, Form()] = "system",
) -> UploadResponse:
    """Parse an upload file and store it as batches with their lines.

    Blinkit purchase order files are stored as one batch per PO number;
    every other file is one batch.

    Parse failures are raised as IngestionError and rendered by the
    application's exception handler; nothing is stored for them.
    """
    parsed = await _parse_upload(
        kind,
        platform,
        file,
        business_unit,
        period_type,
        report_date,
        start_date,
        end_date,
        uploaded_by,
    )
    batches = await save_upload(db, parsed)
    header = parsed.to_dict()["header"]

    return UploadResponse(
        message=(
            f"File processed successfully. {parsed.header.total_items} lines stored "
            f"in {len(batches)} batches."
        ),
        upload_id=batches[0].id,
        upload_ids=[batch.id for batch in batches],
        header=header,
        warning_count=len(parsed.warnings),
    )
