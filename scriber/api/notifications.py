"""
Notifications API router for Scriber.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user, get_notification_service
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.notification_service import NotificationService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    notifications: NotificationService = Depends(get_notification_service),
):
    items = notifications.list_for_user(db, current_user.id, unread_only=unread_only, limit=limit)
    return [notification.to_dict() for notification in items]


@router.get("/unread-count")
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    notifications: NotificationService = Depends(get_notification_service),
):
    return {"count": notifications.unread_count(db, current_user.id)}


@router.post("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    notifications: NotificationService = Depends(get_notification_service),
):
    return {"updated": notifications.mark_all_read(db, current_user.id)}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.mark_read(db, current_user.id, notification_id).to_dict()


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    notifications: NotificationService = Depends(get_notification_service),
):
    notifications.delete(db, current_user.id, notification_id)
    return {"success": True}
