"""
Meeting model for uploaded recordings and their processing state.
Also holds the generated minutes document and its version history.
"""

import logging
from typing import Any, Dict

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship

from scriber.core.database import Base
from scriber.utils.helpers import format_duration, utcnow

logger = logging.getLogger(__name__)


class MeetingStatus:
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    PROCESSING_TRANSCRIPT = "PROCESSING_TRANSCRIPT"
    TRANSCRIPT_READY = "TRANSCRIPT_READY"
    PROCESSING_MINUTES = "PROCESSING_MINUTES"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    ALL = (
        UPLOADING,
        UPLOADED,
        PROCESSING_TRANSCRIPT,
        TRANSCRIPT_READY,
        PROCESSING_MINUTES,
        COMPLETED,
        FAILED,
        CANCELLED,
    )
    PROCESSING = (UPLOADED, PROCESSING_TRANSCRIPT, PROCESSING_MINUTES)


class MinutesStatus:
    DRAFT = "DRAFT"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"

    ALL = (DRAFT, UNDER_REVIEW, APPROVED)


class Meeting(Base):
    """
    Uploaded meeting recording.
    Owns its speakers, transcript segments, minutes, share links and jobs.
    """

    __tablename__ = "meetings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(500), nullable=False)
    original_file_name = Column(String(500), nullable=True)
    file_path = Column(String(1000), nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Processing status
    status = Column(
        String(50), default=MeetingStatus.UPLOADED, nullable=False, index=True
    )
    language_code = Column(String(10), default="en", nullable=True)
    minutes_lang = Column(String(10), nullable=True)

    # Transcript quality
    inaudible_count = Column(Integer, default=0, nullable=False)
    avg_speaker_confidence = Column(Float, nullable=True)
    quality_score = Column(Integer, nullable=True)  # 0-100
    last_processed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="meetings")
    speakers = relationship(
        "Speaker",
        back_populates="meeting",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Speaker.name",
    )
    segments = relationship(
        "TranscriptSegment",
        back_populates="meeting",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TranscriptSegment.start_time",
    )
    minutes = relationship(
        "Minutes",
        back_populates="meeting",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    share_links = relationship(
        "ShareLink",
        back_populates="meeting",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    jobs = relationship(
        "ProcessingJob",
        back_populates="meeting",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Meeting(id={self.id}, title='{self.title}', status={self.status})>"

    @hybrid_property
    def is_completed(self) -> bool:
        return self.status == MeetingStatus.COMPLETED

    @hybrid_property
    def is_failed(self) -> bool:
        return self.status == MeetingStatus.FAILED

    @property
    def formatted_duration(self) -> str:
        """Duration as HH:MM:SS."""
        return format_duration(self.duration_seconds or 0)

    def update_status(self, status: str) -> None:
        """Move the meeting to a new processing status."""
        if status not in MeetingStatus.ALL:
            raise ValueError(f"Unknown meeting status: {status}")
        logger.info(f"Meeting {self.id}: {self.status} -> {status}")
        self.status = status

    def to_dict(self, include_details: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "original_file_name": self.original_file_name,
            "duration_seconds": self.duration_seconds,
            "formatted_duration": self.formatted_duration,
            "status": self.status,
            "language_code": self.language_code,
            "minutes_lang": self.minutes_lang,
            "inaudible_count": self.inaudible_count,
            "avg_speaker_confidence": self.avg_speaker_confidence,
            "quality_score": self.quality_score,
            "last_processed_at": self.last_processed_at.isoformat()
            if self.last_processed_at
            else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_details:
            data["speakers"] = [speaker.to_dict() for speaker in self.speakers]
            data["transcript"] = [segment.to_dict() for segment in self.segments]
            data["minutes"] = self.minutes.to_dict() if self.minutes else None
        return data


class Minutes(Base):
    """Generated minutes document, one per meeting."""

    __tablename__ = "minutes"

    id = Column(Integer, primary_key=True, index=True)
    meeting_id = Column(
        Integer,
        ForeignKey("meetings.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    content = Column(Text, nullable=False)
    status = Column(String(20), default=MinutesStatus.DRAFT, nullable=False)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    meeting = relationship("Meeting", back_populates="minutes")
    versions = relationship(
        "MinutesVersion",
        back_populates="minutes",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="MinutesVersion.version.desc()",
    )

    def __repr__(self) -> str:
        return f"<Minutes(meeting_id={self.meeting_id}, status={self.status})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "meeting_id": self.meeting_id,
            "content": self.content,
            "status": self.status,
            "reviewer_id": self.reviewer_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class MinutesVersion(Base):
    """Snapshot of minutes content taken before each edit."""

    __tablename__ = "minutes_versions"

    id = Column(Integer, primary_key=True, index=True)
    minutes_id = Column(
        Integer, ForeignKey("minutes.id", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    minutes = relationship("Minutes", back_populates="versions")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "minutes_id": self.minutes_id,
            "content": self.content,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
