"""
Processing job model for the background queue.
Tracks transcription and minutes jobs, their progress, and failures.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from scriber.core.database import Base
from scriber.utils.helpers import utcnow

logger = logging.getLogger(__name__)


class JobType:
    TRANSCRIPTION = "transcription"
    MINUTES = "minutes"


class JobStatus:
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    ACTIVE = (QUEUED, PROCESSING)


class ProcessingJob(Base):
    """
    Background job for a meeting.
    One row per submission; retries create a new row.
    """

    __tablename__ = "processing_jobs"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(String(64), unique=True, nullable=False, index=True)
    meeting_id = Column(
        Integer,
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    job_type = Column(String(50), nullable=False)

    # Status and progress
    status = Column(String(50), default=JobStatus.QUEUED, nullable=False, index=True)
    progress_percentage = Column(Float, default=0.0, nullable=False)
    current_step = Column(String(100), nullable=True)
    options = Column(JSON, nullable=True)

    # Error handling
    error_message = Column(Text, nullable=True)
    attempts = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    meeting = relationship("Meeting", back_populates="jobs")

    def __repr__(self) -> str:
        return f"<ProcessingJob(id={self.id}, job_id='{self.job_id}', type={self.job_type}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status in JobStatus.ACTIVE

    @property
    def processing_time(self) -> Optional[float]:
        """Get processing time in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        elif self.started_at:
            return (utcnow() - self.started_at).total_seconds()
        return None

    def mark_as_started(self) -> None:
        """Mark job as started processing."""
        self.status = JobStatus.PROCESSING
        self.started_at = utcnow()
        self.progress_percentage = 0.0
        self.current_step = "Initializing processing"
        self.attempts = (self.attempts or 0) + 1
        logger.info(f"Started {self.job_type} job {self.job_id}")

    def mark_as_completed(self) -> None:
        """Mark job as completed."""
        self.status = JobStatus.COMPLETED
        self.completed_at = utcnow()
        self.progress_percentage = 100.0
        self.current_step = "Completed"
        logger.info(f"Completed job {self.job_id} in {self.processing_time} seconds")

    def mark_as_failed(self, error_message: str) -> None:
        """Mark job as failed."""
        self.status = JobStatus.FAILED
        self.completed_at = utcnow()
        self.error_message = error_message
        logger.error(f"Job {self.job_id} failed (attempt {self.attempts}): {error_message}")

    def mark_as_cancelled(self) -> None:
        self.status = JobStatus.CANCELLED
        self.completed_at = utcnow()
        logger.info(f"Cancelled job {self.job_id}")

    def update_progress(self, percentage: float, step: Optional[str] = None) -> None:
        """Update job progress."""
        self.progress_percentage = max(0, min(100, percentage))
        if step:
            self.current_step = step

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "meeting_id": self.meeting_id,
            "job_type": self.job_type,
            "status": self.status,
            "progress_percentage": self.progress_percentage,
            "current_step": self.current_step,
            "error_message": self.error_message,
            "attempts": self.attempts,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
