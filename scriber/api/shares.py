"""
Shares API router for Scriber.
Owner-side share link management and the public shared view.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user
from scriber.core.database import get_database
from scriber.models.share_link import ShareType
from scriber.models.user import User
from scriber.services.share_service import ShareService

logger = logging.getLogger(__name__)
router = APIRouter()


class ShareCreate(BaseModel):
    share_type: str = ShareType.FULL
    expires_in_hours: Optional[int] = Field(None, gt=0)


@router.get("/public/{token}")
async def get_shared_meeting(token: str, db: Session = Depends(get_database)):
    """Public read-only view of a shared meeting. No authentication."""
    return ShareService().get_shared_content(db, token)


@router.post("/meeting/{meeting_id}", status_code=201)
async def create_share_link(
    meeting_id: int,
    payload: Optional[ShareCreate] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    payload = payload or ShareCreate()
    return ShareService().create(
        db,
        meeting_id,
        current_user.id,
        share_type=payload.share_type,
        expires_in_hours=payload.expires_in_hours,
    )


@router.get("/meeting/{meeting_id}")
async def list_share_links(
    meeting_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return ShareService().list_for_meeting(db, meeting_id, current_user.id)


@router.delete("/{share_id}")
async def revoke_share_link(
    share_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    ShareService().revoke(db, share_id, current_user.id)
    return {"success": True}
