"""
Uploads API router for Scriber.
Handles single-file and chunked recording uploads.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user, get_upload_service, require_active_subscription
from scriber.core.config import SECURITY_SETTINGS
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.upload_service import UploadService
from scriber.utils.exceptions import FileUploadError, ScriberError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter()


class InitiateChunkedUpload(BaseModel):
    filename: str = Field(..., min_length=1, max_length=500)
    total_size: int = Field(..., ge=1)
    total_chunks: int = Field(..., ge=1, le=SECURITY_SETTINGS["max_upload_chunks"])
    mime_type: Optional[str] = Field(None, max_length=100)
    language: Optional[str] = Field(None, max_length=10)
    title: Optional[str] = Field(None, max_length=500)


class CompleteChunkedUpload(BaseModel):
    language: Optional[str] = Field(None, max_length=10)
    duration: Optional[float] = Field(None, gt=0)


@router.post("", status_code=201)
async def upload_file(
    file: UploadFile = File(...),
    language: Optional[str] = Form(None),
    duration: Optional[float] = Form(None),
    title: Optional[str] = Form(None),
    current_user: User = Depends(require_active_subscription),
    db: Session = Depends(get_database),
    uploads: UploadService = Depends(get_upload_service),
):
    """
    Upload a recording and start transcription.

    Args:
        file: Audio file
        language: Spoken language code
        duration: Client-measured duration in seconds, used if the file duration cannot be read
        title: Meeting title, defaults to the file name

    Returns:
        Meeting ID, job ID and duration
    """
    try:
        if not file.filename:
            raise ValidationError("No file provided", field="file")
        content = await file.read()
        return await asyncio.to_thread(
            uploads.handle_upload,
            db,
            current_user.id,
            file.filename,
            content,
            language=language,
            client_duration=duration,
            title=title,
        )
    except ScriberError:
        raise
    except Exception as e:
        logger.error(f"File upload failed: {e}")
        raise FileUploadError(f"Failed to upload file: {str(e)}")


@router.post("/chunked/initiate", status_code=201)
async def initiate_chunked_upload(
    payload: InitiateChunkedUpload,
    current_user: User = Depends(require_active_subscription),
    db: Session = Depends(get_database),
    uploads: UploadService = Depends(get_upload_service),
):
    return uploads.initiate_chunked(
        db,
        current_user.id,
        payload.filename,
        payload.total_size,
        payload.total_chunks,
        mime_type=payload.mime_type,
        language=payload.language,
        title=payload.title,
    )


@router.post("/chunked/{upload_id}/chunk/{chunk_index}")
async def upload_chunk(
    upload_id: str,
    chunk_index: int,
    chunk: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    uploads: UploadService = Depends(get_upload_service),
):
    data = await chunk.read()
    return await asyncio.to_thread(
        uploads.store_chunk, db, upload_id, current_user.id, chunk_index, data
    )


@router.get("/chunked/{upload_id}/status")
async def get_upload_status(
    upload_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    uploads: UploadService = Depends(get_upload_service),
):
    return uploads.get_status(db, upload_id, current_user.id)


@router.post("/chunked/{upload_id}/complete")
def complete_chunked_upload(
    upload_id: str,
    payload: Optional[CompleteChunkedUpload] = Body(None),
    current_user: User = Depends(require_active_subscription),
    db: Session = Depends(get_database),
    uploads: UploadService = Depends(get_upload_service),
):
    """Assemble the uploaded chunks and start transcription."""
    payload = payload or CompleteChunkedUpload()
    return uploads.complete_chunked(
        db,
        upload_id,
        current_user.id,
        language=payload.language,
        client_duration=payload.duration,
    )
