"""
Speakers API router for Scriber.
Handles listing, renaming, merging and confirming the speakers of a meeting.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user, get_speaker_identifier
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.access import get_owned_meeting
from scriber.services.speaker_identifier import SpeakerIdentifier
from scriber.services.speaker_service import SpeakerService

logger = logging.getLogger(__name__)
router = APIRouter()


class SpeakerRename(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class SpeakerMerge(BaseModel):
    source_id: int
    target_id: int


@router.get("/meeting/{meeting_id}")
async def list_speakers(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return SpeakerService().list_for_meeting(db, meeting_id, current_user.id)


@router.post("/merge")
async def merge_speakers(
    payload: SpeakerMerge,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    """Move all segments of the source speaker to the target and delete the source."""
    return SpeakerService().merge(db, payload.source_id, payload.target_id, current_user.id)


@router.patch("/{speaker_id}")
async def rename_speaker(
    speaker_id: int,
    payload: SpeakerRename,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return SpeakerService().rename(db, speaker_id, current_user.id, payload.name)


@router.post("/{speaker_id}/confirm")
async def confirm_speaker(
    speaker_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return SpeakerService().confirm(db, speaker_id, current_user.id)


@router.post("/meeting/{meeting_id}/identify")
def identify_speakers(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    identifier: SpeakerIdentifier = Depends(get_speaker_identifier),
):
    """Suggest real names for the meeting's speakers from the transcript."""
    get_owned_meeting(db, meeting_id, current_user.id)
    return {"identified": identifier.identify_from_context(db, meeting_id)}
