"""
Minutes template model.
User-defined layouts for generated minutes: an ordered list of sections.
"""

from typing import Any, Dict, List

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from scriber.core.database import Base
from scriber.utils.helpers import utcnow


class MinutesTemplate(Base):
    __tablename__ = "minutes_templates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    format = Column(String(50), default="detailed", nullable=False)
    # [{"id", "name", "enabled", "order", "prompt"}]
    sections = Column(JSON, nullable=False, default=list)
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User")

    def __repr__(self) -> str:
        return f"<MinutesTemplate(id={self.id}, name='{self.name}', default={self.is_default})>"

    @property
    def enabled_sections(self) -> List[Dict[str, Any]]:
        """Enabled sections in display order."""
        sections = [s for s in (self.sections or []) if s.get("enabled", True)]
        return sorted(sections, key=lambda s: s.get("order", 0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "format": self.format,
            "sections": self.sections or [],
            "is_default": self.is_default,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
