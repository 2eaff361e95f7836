"""FastAPI routes for channel uploads."""

from channel_ingest.api.upload import router as upload_router

__all__ = ["upload_router"]
