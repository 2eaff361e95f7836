"""FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from channel_ingest.api.upload import router as upload_router
from channel_ingest.config import settings
from channel_ingest.database import create_upload_tables
from channel_ingest.services.errors import IngestionError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging at the configured level."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the upload tables on startup when configured to."""
    if settings.create_tables_on_startup:
        await create_upload_tables()
        logger.info("Upload tables are in place")
    yield


app = FastAPI(
    title="Channel Ingest",
    description="Normalizes marketplace inventory, sales and purchase order uploads",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(upload_router)


@app.exception_handler(IngestionError)
async def ingestion_error_handler(request: Request, exc: IngestionError) -> JSONResponse:
    """Render a parse failure as JSON with the error's status code."""
    logger.warning("Upload rejected on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.error_type},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    uvicorn.run(
        "channel_ingest.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )
