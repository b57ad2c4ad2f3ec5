"""
Notification models.
In-app notifications plus per-user delivery preferences for email and push.
"""

from typing import Any, Dict

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from scriber.core.database import Base
from scriber.utils.helpers import utcnow


class NotificationType:
    TRANSCRIPTION_COMPLETE = "TRANSCRIPTION_COMPLETE"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    MINUTES_READY = "MINUTES_READY"
    MINUTES_FAILED = "MINUTES_FAILED"
    SYSTEM = "SYSTEM"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(50), default=NotificationType.SYSTEM, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    meeting_id = Column(
        Integer, ForeignKey("meetings.id", ondelete="SET NULL"), nullable=True
    )
    read = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "meeting_id": self.meeting_id,
            "read": self.read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    email = Column(Boolean, default=True, nullable=False)
    push = Column(Boolean, default=True, nullable=False)
    device_token = Column(String(255), nullable=True)

    user = relationship("User", back_populates="notification_preference")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "push": self.push,
            "has_device_token": bool(self.device_token),
        }
