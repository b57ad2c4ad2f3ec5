"""
Notification service for in-app, email and push delivery.
Handles notification storage, read state, and fan-out according to user preferences.
"""

import logging
import re
import smtplib
from email.message import EmailMessage
from typing import Any, Dict, List, Optional

import requests
from sqlalchemy.orm import Session

from scriber.core.config import get_settings
from scriber.models.notification import (
    Notification,
    NotificationPreference,
    NotificationType,
)
from scriber.models.user import User
from scriber.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)

EXPO_TOKEN_PATTERN = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[.+\]$")


def is_expo_push_token(token: Optional[str]) -> bool:
    return bool(token) and EXPO_TOKEN_PATTERN.match(token) is not None


class NotificationService:
    """
    Notification service for in-app notifications and outbound delivery.
    Delivery failures are logged and never propagated to the caller.
    """

    def __init__(self, http_session: Optional[requests.Session] = None):
        self.settings = get_settings()
        self.http = http_session or requests.Session()

    # In-app notifications

    def create(
        self,
        db: Session,
        user_id: int,
        title: str,
        message: str,
        notification_type: str = NotificationType.SYSTEM,
        meeting_id: Optional[int] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            meeting_id=meeting_id,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    def list_for_user(
        self, db: Session, user_id: int, unread_only: bool = False, limit: int = 50
    ) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read == False)  # noqa: E712
        return (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    def unread_count(self, db: Session, user_id: int) -> int:
        return (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
            .count()
        )

    def _get_owned(self, db: Session, user_id: int, notification_id: int) -> Notification:
        notification = (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .first()
        )
        if not notification:
            raise NotFoundError("Notification not found", resource="notification")
        return notification

    def mark_read(self, db: Session, user_id: int, notification_id: int) -> Notification:
        notification = self._get_owned(db, user_id, notification_id)
        notification.read = True
        db.commit()
        return notification

    def mark_all_read(self, db: Session, user_id: int) -> int:
        updated = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
            .update({Notification.read: True}, synchronize_session="fetch")
        )
        db.commit()
        return updated

    def delete(self, db: Session, user_id: int, notification_id: int) -> None:
        notification = self._get_owned(db, user_id, notification_id)
        db.delete(notification)
        db.commit()

    # Preferences

    def get_preferences(self, db: Session, user_id: int) -> NotificationPreference:
        prefs = (
            db.query(NotificationPreference)
            .filter(NotificationPreference.user_id == user_id)
            .first()
        )
        if not prefs:
            prefs = NotificationPreference(user_id=user_id, email=True, push=True)
            db.add(prefs)
            db.commit()
            db.refresh(prefs)
        return prefs

    def update_preferences(
        self,
        db: Session,
        user_id: int,
        email: Optional[bool] = None,
        push: Optional[bool] = None,
        device_token: Optional[str] = None,
    ) -> NotificationPreference:
        prefs = self.get_preferences(db, user_id)
        if email is not None:
            prefs.email = email
        if push is not None:
            prefs.push = push
        if device_token is not None:
            prefs.device_token = device_token or None
        db.commit()
        return prefs

    # Delivery

    def send_email(self, db: Session, user_id: int, subject: str, body: str) -> bool:
        """
        Send an email to the user if their preferences allow it.

        Without SMTP_HOST the message is only logged.

        Returns:
            True if the message was handed to the SMTP server
        """
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return False
        prefs = self.get_preferences(db, user_id)
        if not prefs.email:
            logger.debug(f"Email disabled for user {user_id}, skipping '{subject}'")
            return False

        if not self.settings.smtp_host:
            logger.info(f"[mock email] to={user.email} subject='{subject}'")
            return False

        message = EmailMessage()
        message["From"] = self.settings.smtp_from
        message["To"] = user.email
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=15) as smtp:
                if self.settings.smtp_port == 587:
                    smtp.starttls()
                if self.settings.smtp_user:
                    smtp.login(self.settings.smtp_user, self.settings.smtp_pass or "")
                smtp.send_message(message)
            logger.info(f"Email '{subject}' sent to user {user_id}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to user {user_id}: {e}")
            return False

    def send_push(
        self,
        db: Session,
        user_id: int,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Send a push notification through the Expo push service.

        Returns:
            True if Expo accepted the message
        """
        prefs = self.get_preferences(db, user_id)
        if not prefs.push or not prefs.device_token:
            return False
        if not is_expo_push_token(prefs.device_token):
            logger.warning(f"Invalid Expo push token for user {user_id}")
            return False

        payload = {
            "to": prefs.device_token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": data or {},
        }
        try:
            response = self.http.post(self.settings.expo_push_url, json=payload, timeout=10)
            response.raise_for_status()
            logger.info(f"Push '{title}' sent to user {user_id}")
            return True
        except requests.RequestException as e:
            logger.error(f"Failed to send push to user {user_id}: {e}")
            return False

    def notify(
        self,
        db: Session,
        user_id: int,
        notification_type: str,
        title: str,
        message: str,
        meeting_id: Optional[int] = None,
        email: bool = False,
        email_body: Optional[str] = None,
    ) -> Notification:
        """
        Fan a notification out to every channel the user accepts.

        The in-app notification is always stored; push and email are best effort.
        """
        notification = self.create(db, user_id, title, message, notification_type, meeting_id)
        self.send_push(db, user_id, title, message, {"meetingId": meeting_id} if meeting_id else None)
        if email:
            self.send_email(db, user_id, title, email_body or message)
        return notification
