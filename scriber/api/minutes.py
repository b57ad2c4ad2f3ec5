"""
Minutes API router for Scriber.
Handles minutes generation, review, versioning and translation.
"""

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user, get_minutes_service, get_queue
from scriber.core.database import get_database
from scriber.models.segment import TranscriptSegment
from scriber.models.user import User
from scriber.services.access import get_owned_meeting
from scriber.services.minutes_service import DEFAULT_TEMPLATE, MinutesService
from scriber.services.queue_service import QueueService
from scriber.utils.exceptions import MinutesError, NotFoundError, ScriberError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter()


class GenerateMinutes(BaseModel):
    template: Optional[Union[int, str]] = DEFAULT_TEMPLATE


class MinutesUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class MinutesStatusUpdate(BaseModel):
    status: str


class TranslateMinutes(BaseModel):
    language: str = Field(..., min_length=2, max_length=50)


@router.post("/{meeting_id}/generate", status_code=202)
async def generate_minutes(
    meeting_id: int,
    payload: Optional[GenerateMinutes] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    queue: QueueService = Depends(get_queue),
):
    """
    Queue minutes generation for a transcribed meeting.

    Args:
        meeting_id: Meeting ID
        payload: Built-in template name or a user template id

    Returns:
        The queued job ID
    """
    get_owned_meeting(db, meeting_id, current_user.id)
    has_transcript = (
        db.query(TranscriptSegment.id)
        .filter(TranscriptSegment.meeting_id == meeting_id)
        .first()
        is not None
    )
    if not has_transcript:
        raise ValidationError("No transcript available for this meeting")

    template = payload.template if payload else DEFAULT_TEMPLATE
    job_id = queue.submit_minutes(meeting_id, current_user.id, template)
    return {"success": True, "meeting_id": meeting_id, "job_id": job_id}


@router.get("/{meeting_id}")
async def get_minutes(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    minutes_service: MinutesService = Depends(get_minutes_service),
):
    minutes = minutes_service.get(db, meeting_id, current_user.id)
    if not minutes:
        raise NotFoundError("Minutes not found", resource="minutes")
    return minutes.to_dict()


@router.put("/{meeting_id}")
async def update_minutes(
    meeting_id: int,
    payload: MinutesUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    minutes_service: MinutesService = Depends(get_minutes_service),
):
    """Save edited minutes. The previous content becomes a new version."""
    return minutes_service.update(db, meeting_id, current_user.id, payload.content).to_dict()


@router.patch("/{meeting_id}/status")
async def update_minutes_status(
    meeting_id: int,
    payload: MinutesStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    minutes_service: MinutesService = Depends(get_minutes_service),
):
    minutes = minutes_service.update_status(db, meeting_id, current_user.id, payload.status)
    return minutes.to_dict()


@router.get("/{meeting_id}/versions")
async def get_minutes_versions(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    minutes_service: MinutesService = Depends(get_minutes_service),
):
    versions = minutes_service.get_versions(db, meeting_id, current_user.id)
    return [version.to_dict() for version in versions]


@router.post("/{meeting_id}/versions/{version}/revert")
async def revert_minutes(
    meeting_id: int,
    version: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    minutes_service: MinutesService = Depends(get_minutes_service),
):
    return minutes_service.revert_to_version(db, meeting_id, current_user.id, version).to_dict()


@router.post("/{meeting_id}/translate")
def translate_minutes(
    meeting_id: int,
    payload: TranslateMinutes,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    minutes_service: MinutesService = Depends(get_minutes_service),
):
    try:
        return minutes_service.translate(db, meeting_id, current_user.id, payload.language)
    except ScriberError:
        raise
    except Exception as e:
        logger.error(f"Minutes translation failed for meeting {meeting_id}: {e}")
        raise MinutesError(f"Translation failed: {str(e)}")
