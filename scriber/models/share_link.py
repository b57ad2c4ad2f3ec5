"""
Share link model for public read-only access to a meeting.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from scriber.core.database import Base
from scriber.utils.helpers import utcnow


class ShareType:
    FULL = "FULL"
    MINUTES = "MINUTES"
    TRANSCRIPT = "TRANSCRIPT"

    ALL = (FULL, MINUTES, TRANSCRIPT)


class ShareLink(Base):
    __tablename__ = "share_links"

    id = Column(Integer, primary_key=True, index=True)
    meeting_id = Column(
        Integer,
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token = Column(String(128), unique=True, nullable=False, index=True)
    share_type = Column(String(20), default=ShareType.FULL, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    meeting = relationship("Meeting", back_populates="share_links")

    def __repr__(self) -> str:
        return f"<ShareLink(id={self.id}, meeting_id={self.meeting_id}, type={self.share_type})>"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or utcnow())

    def includes_minutes(self) -> bool:
        return self.share_type in (ShareType.FULL, ShareType.MINUTES)

    def includes_transcript(self) -> bool:
        return self.share_type in (ShareType.FULL, ShareType.TRANSCRIPT)

    def to_dict(self, share_url: Optional[str] = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "meeting_id": self.meeting_id,
            "token": self.token,
            "share_type": self.share_type,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if share_url:
            data["share_url"] = share_url
        return data
