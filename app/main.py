from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles
from contextlib import asynccontextmanager
import uvicorn
import logging

from app.storage.metadata import JsonFileMetadataStore, MetadataStore
from app.storage.blobs import LocalBlobStore
from app.settings import Settings, get_settings
from app.routers.images import router as image_router
from app.image_service.models import HealthResponse
from app.middleware import reject_foreign_origins, require_api_key
from app.exceptions import add_exception_handlers

log = logging.getLogger("image-service")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Builds the default stores unless they were injected into create_app.
    """
    settings: Settings = app.state.settings
    if app.state.metadata_store is None:
        app.state.metadata_store = JsonFileMetadataStore(settings.data_file)
    if app.state.blob_store is None:
        app.state.blob_store = LocalBlobStore(
            settings.uploads_dir,
            public_base_url=settings.public_base_url,
            max_bytes=settings.max_upload_bytes,
        )
    log.info("%s ready", settings.app_title)
    yield
    log.info("%s shutting down", settings.app_title)

def create_app(
    settings: Optional[Settings] = None,
    metadata_store: Optional[MetadataStore] = None,
    blob_store: Optional[LocalBlobStore] = None,
) -> FastAPI:
    """Builds the application around one settings object and the given stores."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_title,
        lifespan=lifespan,
        description="Image Catalog Service",
    )
    app.state.settings = settings
    app.state.metadata_store = metadata_store
    app.state.blob_store = blob_store

    # Add exception handlers
    add_exception_handlers(app)

    # Middleware runs outermost-last: origin check, then CORS, then API key
    app.middleware("http")(require_api_key)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(reject_foreign_origins)

    # Add the routers
    app.include_router(image_router, prefix="/api")

    # Check Health
    @app.get("/api/health", response_model=HealthResponse)
    async def health():
        """Liveness probe"""
        return HealthResponse()

    uploads_dir = blob_store.directory if blob_store is not None else settings.uploads_dir
    app.mount("/uploads", StaticFiles(directory=uploads_dir, check_dir=False), name="uploads")
    return app

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper())

app = create_app(settings)

if __name__ == "__main__":
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
