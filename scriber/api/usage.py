"""
Usage API router for Scriber.
Weekly usage against plan limits.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.usage_service import UsageService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def get_usage(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    return UsageService().get_user_usage(db, current_user.id)


@router.get("/check")
async def check_upload(
    duration: float = Query(..., ge=0, description="Planned upload duration in seconds"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    """Tell the client whether an upload of this duration would be accepted."""
    return UsageService().check_upload_allowed(db, current_user.id, duration)
