"""
Users API router for Scriber.
Current-user profile and notification preferences.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from scriber.api.deps import get_current_user, get_notification_service
from scriber.core.database import get_database
from scriber.models.user import User
from scriber.services.notification_service import NotificationService
from scriber.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)
router = APIRouter()


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)


class PreferencesUpdate(BaseModel):
    email: Optional[bool] = None
    push: Optional[bool] = None


class DeviceTokenUpdate(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=255)


@router.get("/me")
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    """Current user with subscription and notification preferences."""
    data = current_user.to_dict()
    data["subscription"] = (
        current_user.subscription.to_dict() if current_user.subscription else None
    )
    data["notification_preferences"] = (
        current_user.notification_preference.to_dict()
        if current_user.notification_preference
        else None
    )
    return data


@router.patch("/me")
async def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
):
    if payload.name is not None:
        if not payload.name.strip():
            raise ValidationError("Name cannot be empty", field="name")
        current_user.name = payload.name.strip()
        db.commit()
        db.refresh(current_user)
    return current_user.to_dict()


@router.get("/me/notification-preferences")
async def get_preferences(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.get_preferences(db, current_user.id).to_dict()


@router.put("/me/notification-preferences")
async def update_preferences(
    payload: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    notifications: NotificationService = Depends(get_notification_service),
):
    prefs = notifications.update_preferences(
        db, current_user.id, email=payload.email, push=payload.push
    )
    return prefs.to_dict()


@router.put("/me/device-token")
async def set_device_token(
    payload: DeviceTokenUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
    notifications: NotificationService = Depends(get_notification_service),
):
    """Register the push token of the user's mobile device."""
    prefs = notifications.update_preferences(
        db, current_user.id, device_token=payload.device_token
    )
    return prefs.to_dict()
