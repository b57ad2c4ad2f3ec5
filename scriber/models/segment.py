"""
Transcript segment and segment edit models.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from scriber.core.database import Base
from scriber.utils.helpers import utcnow


class TranscriptSegment(Base):
    """A single utterance in a meeting transcript."""

    __tablename__ = "transcript_segments"

    id = Column(Integer, primary_key=True, index=True)
    meeting_id = Column(
        Integer,
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    speaker_id = Column(
        Integer, ForeignKey("speakers.id", ondelete="SET NULL"), nullable=True
    )
    start_time = Column(Float, default=0.0, nullable=False)  # seconds
    end_time = Column(Float, default=0.0, nullable=False)  # seconds
    text = Column(Text, nullable=False)
    original_text = Column(Text, nullable=True)  # set on first manual edit
    languages_used = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    meeting = relationship("Meeting", back_populates="segments")
    speaker = relationship("Speaker", back_populates="segments")
    edits = relationship(
        "SegmentEdit",
        back_populates="segment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SegmentEdit.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<TranscriptSegment(id={self.id}, start={self.start_time}, end={self.end_time})>"

    @property
    def speaker_name(self) -> str:
        return self.speaker.name if self.speaker else "Unknown"

    @property
    def duration(self) -> float:
        return max(0.0, (self.end_time or 0.0) - (self.start_time or 0.0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "meeting_id": self.meeting_id,
            "speaker_id": self.speaker_id,
            "speaker": self.speaker_name,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "text": self.text,
            "original_text": self.original_text,
            "languages_used": self.languages_used or [],
        }


class SegmentEdit(Base):
    """History entry for a manual transcript correction."""

    __tablename__ = "segment_edits"

    id = Column(Integer, primary_key=True, index=True)
    segment_id = Column(
        Integer,
        ForeignKey("transcript_segments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_text = Column(Text, nullable=False)
    new_text = Column(Text, nullable=False)
    edited_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    edit_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    segment = relationship("TranscriptSegment", back_populates="edits")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "segment_id": self.segment_id,
            "previous_text": self.previous_text,
            "new_text": self.new_text,
            "edited_by": self.edited_by,
            "edit_reason": self.edit_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
