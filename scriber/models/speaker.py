"""
Speaker model for diarized meeting participants.
Speakers are scoped to a single meeting and referenced by transcript segments.
"""

import logging
from typing import Any, Dict

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from scriber.core.database import Base
from scriber.utils.helpers import utcnow

logger = logging.getLogger(__name__)


class Speaker(Base):
    """
    Speaker identified in a meeting.
    Names come from the model's diarization and can be renamed, merged or confirmed.
    """

    __tablename__ = "speakers"

    id = Column(Integer, primary_key=True, index=True)
    meeting_id = Column(
        Integer,
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    is_unknown = Column(Boolean, default=False, nullable=False)
    is_confirmed = Column(Boolean, default=False, nullable=False)
    name_confidence = Column(Float, default=0.0, nullable=False)  # 0.0-1.0

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    meeting = relationship("Meeting", back_populates="speakers")
    segments = relationship("TranscriptSegment", back_populates="speaker")

    def __repr__(self) -> str:
        return f"<Speaker(id={self.id}, name='{self.name}', meeting_id={self.meeting_id})>"

    @property
    def confidence_level(self) -> str:
        """Get confidence level description."""
        if self.is_confirmed:
            return "confirmed"
        elif self.name_confidence >= 0.8:
            return "high"
        elif self.name_confidence >= 0.5:
            return "medium"
        elif self.name_confidence > 0:
            return "low"
        return "none"

    def rename(self, name: str) -> None:
        self.name = name.strip()
        self.is_unknown = False

    def confirm(self) -> None:
        """Mark the speaker name as verified by the meeting owner."""
        self.is_confirmed = True
        self.name_confidence = 1.0
        self.is_unknown = False

    def to_dict(self, segment_count: int = None) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "meeting_id": self.meeting_id,
            "name": self.name,
            "is_unknown": self.is_unknown,
            "is_confirmed": self.is_confirmed,
            "name_confidence": self.name_confidence,
            "confidence_level": self.confidence_level,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if segment_count is not None:
            data["segment_count"] = segment_count
        return data
