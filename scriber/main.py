"""
Main FastAPI application for Scriber.
Wires the API routers, exception handlers and the background job queue.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scriber import __version__
from scriber.api import (
    admin_router,
    auth_router,
    meetings_router,
    minutes_router,
    notifications_router,
    segments_router,
    shares_router,
    speakers_router,
    templates_router,
    uploads_router,
    usage_router,
    users_router,
)
from scriber.core.config import AUDIO_SETTINGS, EXPORT_SETTINGS, get_settings
from scriber.core.database import close_database, get_database_manager, init_database
from scriber.services.queue_service import get_queue_service
from scriber.utils.exceptions import ScriberError

settings = get_settings()


def configure_logging() -> None:
    """Log to stdout and, outside test mode, to the configured log file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.log_file and not settings.test_mode:
        log_dir = os.path.dirname(settings.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file))

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Scriber application...")

    os.makedirs(settings.upload_dir, exist_ok=True)
    os.makedirs(settings.chunk_dir, exist_ok=True)

    try:
        init_database()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    queue_service = get_queue_service()
    queue_service.start()
    logger.info("Queue service started successfully")

    yield

    logger.info("Shutting down Scriber application...")
    try:
        queue_service.stop()
        logger.info("Queue service stopped")
    except Exception as e:
        logger.error(f"Error stopping queue service: {e}")
    close_database()


app = FastAPI(
    title="Scriber",
    description="Meeting transcription with speaker diarization and AI minutes",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(users_router, prefix="/api/users", tags=["users"])
app.include_router(uploads_router, prefix="/api/uploads", tags=["uploads"])
app.include_router(meetings_router, prefix="/api/meetings", tags=["meetings"])
app.include_router(speakers_router, prefix="/api/speakers", tags=["speakers"])
app.include_router(segments_router, prefix="/api/segments", tags=["segments"])
app.include_router(minutes_router, prefix="/api/minutes", tags=["minutes"])
app.include_router(templates_router, prefix="/api/templates", tags=["templates"])
app.include_router(shares_router, prefix="/api/shares", tags=["shares"])
app.include_router(
    notifications_router, prefix="/api/notifications", tags=["notifications"]
)
app.include_router(usage_router, prefix="/api/usage", tags=["usage"])
app.include_router(admin_router, prefix="/api/admin", tags=["admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    if not get_database_manager().health_check():
        raise HTTPException(status_code=503, detail="Service unavailable")
    return {
        "status": "healthy",
        "version": __version__,
        "ai_enabled": settings.ai_enabled,
    }


@app.get("/info")
async def app_info():
    """Application information."""
    return {
        "name": "Scriber",
        "version": __version__,
        "description": "Meeting transcription with speaker diarization and AI minutes",
        "features": [
            "Speaker diarization",
            "AI meeting minutes",
            "Transcript editing with history",
            "Shareable links",
            "Multiple export formats",
            "Queue-based processing",
        ],
        "supported_formats": AUDIO_SETTINGS["supported_formats"],
        "export_formats": EXPORT_SETTINGS["formats"],
    }


@app.exception_handler(ScriberError)
async def scriber_exception_handler(request: Request, exc: ScriberError):
    """Handle application exceptions with the status carried by the exception class."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """Handle malformed request payloads."""
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request",
            "details": {"errors": errors},
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "HTTP_ERROR", "message": exc.detail},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_SERVER_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


if __name__ == "__main__":
    uvicorn.run(
        "scriber.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
