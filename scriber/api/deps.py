"""
Shared FastAPI dependencies: authentication guards and service providers.
"""

import logging
from typing import Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from scriber.core.database import get_database
from scriber.core.security import verify_token
from scriber.models.user import User
from scriber.services.minutes_service import MinutesService
from scriber.services.notification_service import NotificationService
from scriber.services.queue_service import QueueService, get_queue_service
from scriber.services.speaker_identifier import SpeakerIdentifier
from scriber.services.upload_service import UploadService
from scriber.services.usage_service import UsageService
from scriber.utils.exceptions import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    token: Optional[str] = Query(None, description="Access token for media elements"),
    db: Session = Depends(get_database),
) -> User:
    """
    Resolve the authenticated user from a Bearer header or ``?token=``.

    The query parameter exists for audio elements, which cannot send headers.
    """
    raw_token = credentials.credentials if credentials else token
    if not raw_token:
        raise AuthenticationError("Not authenticated")

    payload = verify_token(raw_token, token_type="access")
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token subject")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise AuthenticationError("User not found or disabled")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


def require_active_subscription(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_database),
) -> User:
    """Plan-limit guard for uploads. Admins are not subject to plans."""
    if current_user.is_admin:
        return current_user
    if not UsageService().has_active_subscription(db, current_user.id):
        raise ForbiddenError("An active subscription is required")
    return current_user


def get_queue() -> QueueService:
    return get_queue_service()


def get_minutes_service() -> MinutesService:
    return MinutesService()


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_speaker_identifier() -> SpeakerIdentifier:
    return SpeakerIdentifier()


def get_upload_service(queue: QueueService = Depends(get_queue)) -> UploadService:
    return UploadService(queue)
