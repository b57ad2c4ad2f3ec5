"""
Meetings API router for Scriber.
Handles meeting listing, detail, management, processing control, audio and exports.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse, Response, StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user, get_queue
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.access import get_owned_meeting
from scriber.services.ai_provider import mime_type_for
from scriber.services.audio_processor import AudioProcessor
from scriber.services.export_service import ExportService
from scriber.services.meeting_service import MeetingService
from scriber.services.quality_service import QualityService
from scriber.services.queue_service import QueueService
from scriber.utils.exceptions import (
    AudioProcessingError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)
router = APIRouter()

STREAM_CHUNK_SIZE = 64 * 1024


class MeetingRename(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)


class BatchDelete(BaseModel):
    ids: List[int] = Field(..., max_length=500)


@router.get("")
async def list_meetings(
    search: Optional[str] = Query(None, max_length=200),
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    cursor: Optional[int] = None,
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    """
    List the user's meetings, newest first.

    Returns:
        Page of meetings with ``next_cursor`` and ``has_more``
    """
    return MeetingService().list_meetings(
        db,
        current_user.id,
        search=search,
        status=status,
        start_date=start_date,
        end_date=end_date,
        cursor=cursor,
        limit=limit,
    )


@router.post("/batch-delete")
async def batch_delete_meetings(
    payload: BatchDelete,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return MeetingService().delete_many(db, payload.ids, current_user.id)


@router.get("/jobs/{job_id}")
async def get_job_status(
    job_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    queue: QueueService = Depends(get_queue),
):
    """Progress of a single processing job."""
    status = queue.get_job_status(db, job_id, current_user.id)
    if status is None:
        raise NotFoundError("Job not found", resource="job")
    return status


@router.get("/{meeting_id}")
async def get_meeting(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return MeetingService().get_meeting(db, meeting_id, current_user.id)


@router.patch("/{meeting_id}")
async def rename_meeting(
    meeting_id: int,
    payload: MeetingRename,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return MeetingService().rename(db, meeting_id, current_user.id, payload.title).to_dict()


@router.delete("/{meeting_id}")
async def delete_meeting(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    MeetingService().delete(db, meeting_id, current_user.id)
    return {"success": True, "message": "Meeting deleted"}


@router.get("/{meeting_id}/status")
async def get_meeting_status(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    queue: QueueService = Depends(get_queue),
):
    return MeetingService().get_status(db, meeting_id, current_user.id, queue)


@router.get("/{meeting_id}/quality")
async def get_quality_report(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    """Transcript quality metrics with a letter grade and recommendations."""
    return QualityService().get_report(db, meeting_id, current_user.id)


@router.post("/{meeting_id}/quality/recalculate")
async def recalculate_quality(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return QualityService().recalculate(db, meeting_id, current_user.id)


@router.post("/{meeting_id}/retry")
async def retry_meeting(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    queue: QueueService = Depends(get_queue),
):
    """Resume processing from the first missing stage."""
    result = queue.retry(db, meeting_id, current_user.id)
    if not result["success"] and result["message"] == "FILE_MISSING":
        raise ValidationError("FILE_MISSING", details={"meeting_id": meeting_id})
    return result


@router.post("/{meeting_id}/cancel")
async def cancel_meeting(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    queue: QueueService = Depends(get_queue),
):
    get_owned_meeting(db, meeting_id, current_user.id)
    return queue.cancel(db, meeting_id, current_user.id)


@router.get("/{meeting_id}/audio")
async def stream_audio(
    meeting_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    """
    Stream the meeting recording with HTTP Range support.

    Accepts the access token as ``?token=`` so that audio elements can play it.
    """
    meeting = get_owned_meeting(db, meeting_id, current_user.id)
    if not meeting.file_path or not os.path.exists(meeting.file_path):
        raise NotFoundError("Audio file not found", resource="audio")

    file_path = meeting.file_path
    file_size = os.path.getsize(file_path)
    media_type = mime_type_for(file_path)

    try:
        byte_range = AudioProcessor.parse_range_header(request.headers.get("range"), file_size)
    except AudioProcessingError:
        return Response(
            status_code=416, headers={"Content-Range": f"bytes */{file_size}"}
        )

    if byte_range is None:
        return FileResponse(
            file_path, media_type=media_type, headers={"Accept-Ranges": "bytes"}
        )

    start, end = byte_range
    length = end - start + 1

    def iter_file():
        with open(file_path, "rb") as f:
            f.seek(start)
            remaining = length
            while remaining > 0:
                data = f.read(min(STREAM_CHUNK_SIZE, remaining))
                if not data:
                    break
                remaining -= len(data)
                yield data

    return StreamingResponse(
        iter_file(),
        status_code=206,
        media_type=media_type,
        headers={
            "Content-Range": f"bytes {start}-{end}/{file_size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(length),
        },
    )


@router.get("/{meeting_id}/export/{export_format}")
def export_meeting(
    meeting_id: int,
    export_format: str,
    include_minutes: bool = True,
    include_transcript: bool = True,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    """Download the meeting as pdf, txt, md, json, csv, srt or vtt."""
    content, content_type, filename = ExportService().export_meeting(
        db,
        meeting_id,
        current_user.id,
        export_format,
        include_minutes=include_minutes,
        include_transcript=include_transcript,
    )
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
