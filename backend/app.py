"""
FastAPI application entry point for the founders backend.

Run with ``uvicorn backend.app:app`` or ``python -m backend.app``.
"""

from __future__ import annotations

import logging
import mimetypes
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import Settings, get_settings
from backend.dependencies import get_blob_store, get_record_store, reset_clients
from backend.errors import FoundersError, StorageError
from backend.routes import router
from backend.storage import BlobStore, LocalBlobStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    blobs = get_blob_store()
    if isinstance(blobs, LocalBlobStore):
        blobs.ensure_directory()
    get_record_store()
    logger.info("Founders backend started")
    yield
    reset_clients()
    logger.info("Founders backend stopped")


async def handle_founders_error(request: Request, exc: FoundersError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error(
            "%s %s failed: %s %s",
            request.method,
            request.url.path,
            exc.error_code,
            exc.context,
            exc_info=exc,
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Founders Admin Backend", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(FoundersError, handle_founders_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router, prefix=settings.api_prefix)

    prefix = settings.uploads_url_prefix.rstrip("/")

    @app.get(prefix + "/{filename}", include_in_schema=False)
    def serve_upload(filename: str, blobs: BlobStore = Depends(get_blob_store)):
        data = blobs.read(f"{prefix}/{filename}")
        media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return Response(content=data, media_type=media_type)

    return app


app = create_app()


def main() -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
