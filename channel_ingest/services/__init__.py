"""Parsing and storage services for channel uploads."""

from channel_ingest.services.errors import (
    EmptyResultError,
    IngestionError,
    MissingRequiredColumnsError,
    RowCoercionWarning,
    UnsupportedFormatError,
)
from channel_ingest.services.persistence import save_parsed_upload, save_upload
from channel_ingest.services.registry import PARSERS, get_parser, supported_uploads
from channel_ingest.services.results import (
    HeaderSummary,
    LineRecord,
    ParsedUpload,
    PeriodType,
    Platform,
    UploadContext,
    UploadKind,
)

__all__ = [
    "EmptyResultError",
    "HeaderSummary",
    "IngestionError",
    "LineRecord",
    "MissingRequiredColumnsError",
    "PARSERS",
    "ParsedUpload",
    "PeriodType",
    "Platform",
    "RowCoercionWarning",
    "UnsupportedFormatError",
    "UploadContext",
    "UploadKind",
    "get_parser",
    "save_parsed_upload",
    "save_upload",
    "supported_uploads",
]
