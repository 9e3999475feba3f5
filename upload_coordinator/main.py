"""
Main FastAPI application entry point
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import router
from .core import Settings, UploadCoordinatorError, get_settings
from .services import UploadCoordinator
from .storage import BlobStore, build_blob_store

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


async def upload_error_handler(request: Request, exc: UploadCoordinatorError):
    """Render coordinator errors with their status code and a client-safe body"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(settings: Optional[Settings] = None, store: Optional[BlobStore] = None) -> FastAPI:
    """
    Build the application.

    Settings and the blob store are created here, once, and shared by every
    request through app.state. Tests pass their own of both.
    """
    settings = settings or get_settings()
    store = store or build_blob_store(settings)
    coordinator = UploadCoordinator(store, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup/shutdown"""
        logger.info(f"Starting {settings.APP_TITLE} ({settings.STORAGE_BACKEND} backend)")
        if settings.AUTO_CREATE_BUCKET:
            await coordinator.ensure_bucket()
        logger.info(f"Server ready at http://{settings.SERVER_HOST}:{settings.SERVER_PORT}")
        yield
        logger.info(f"Shutting down {settings.APP_TITLE}")

    app = FastAPI(
        title=settings.APP_TITLE,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(UploadCoordinatorError, upload_error_handler)
    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": settings.APP_TITLE,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/docs",
            "health": "/health",
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "healthy", "storage": settings.STORAGE_BACKEND}

    return app


def main():
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
