"""SQLAlchemy models for persisted channel uploads."""

from channel_ingest.models.upload import UploadBatch, UploadLine

__all__ = [
    "UploadBatch",
    "UploadLine",
]
