"""
Upload session model for resumable chunked uploads.
"""

from typing import Any, Dict, List

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from scriber.core.database import Base
from scriber.utils.helpers import utcnow


class UploadSession(Base):
    __tablename__ = "upload_sessions"

    id = Column(Integer, primary_key=True, index=True)
    upload_id = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename = Column(String(500), nullable=False)
    mime_type = Column(String(100), nullable=True)
    total_size = Column(Integer, nullable=False)
    total_chunks = Column(Integer, nullable=False)
    received_chunks = Column(JSON, nullable=False, default=list)
    language = Column(String(10), nullable=True)
    title = Column(String(500), nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, completed
    meeting_id = Column(Integer, ForeignKey("meetings.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User")

    def __repr__(self) -> str:
        return f"<UploadSession(upload_id='{self.upload_id}', received={len(self.received_chunks or [])}/{self.total_chunks})>"

    @property
    def missing_chunks(self) -> List[int]:
        received = set(self.received_chunks or [])
        return [i for i in range(self.total_chunks) if i not in received]

    @property
    def is_complete(self) -> bool:
        return not self.missing_chunks

    def mark_chunk_received(self, index: int) -> None:
        received = set(self.received_chunks or [])
        received.add(index)
        # Reassign so the JSON column is flagged dirty
        self.received_chunks = sorted(received)

    def to_dict(self) -> Dict[str, Any]:
        received = self.received_chunks or []
        return {
            "upload_id": self.upload_id,
            "filename": self.filename,
            "total_size": self.total_size,
            "total_chunks": self.total_chunks,
            "received_chunks": received,
            "missing_chunks": self.missing_chunks,
            "progress": round(len(received) / self.total_chunks * 100) if self.total_chunks else 0,
            "status": self.status,
            "meeting_id": self.meeting_id,
        }
