"""
Segments API router for Scriber.
Manual transcript corrections with edit history.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.segment_service import SegmentService

logger = logging.getLogger(__name__)
router = APIRouter()


class SegmentTextUpdate(BaseModel):
    text: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


class SegmentSpeakerUpdate(BaseModel):
    speaker_id: int


@router.get("/{segment_id}")
async def get_segment(
    segment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return SegmentService().get_segment(db, segment_id, current_user.id).to_dict()


@router.patch("/{segment_id}")
async def update_segment_text(
    segment_id: int,
    payload: SegmentTextUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    segment = SegmentService().update_text(
        db, segment_id, current_user.id, payload.text, reason=payload.reason
    )
    return segment.to_dict()


@router.get("/{segment_id}/history")
async def get_segment_history(
    segment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    edits = SegmentService().get_history(db, segment_id, current_user.id)
    return [edit.to_dict() for edit in edits]


@router.post("/{segment_id}/revert/{edit_id}")
async def revert_segment(
    segment_id: int,
    edit_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    """Restore the text the segment had before the given edit."""
    return SegmentService().revert(db, segment_id, current_user.id, edit_id).to_dict()


@router.patch("/{segment_id}/speaker")
async def reassign_segment_speaker(
    segment_id: int,
    payload: SegmentSpeakerUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    segment = SegmentService().reassign_speaker(
        db, segment_id, current_user.id, payload.speaker_id
    )
    return segment.to_dict()
