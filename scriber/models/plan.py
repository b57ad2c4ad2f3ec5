"""
Plan, subscription and weekly usage models.
Plans define upload limits; subscriptions bind a user to a plan and weekly
usage rows count uploads and processed minutes per calendar week.
"""

from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from scriber.core.config import PLAN_DEFAULTS
from scriber.core.database import Base
from scriber.utils.helpers import utcnow


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    max_minutes_per_upload = Column(
        Integer, default=PLAN_DEFAULTS["max_minutes_per_upload"], nullable=False
    )
    max_uploads_per_week = Column(
        Integer, default=PLAN_DEFAULTS["max_uploads_per_week"], nullable=False
    )
    monthly_minutes_limit = Column(
        Integer, default=PLAN_DEFAULTS["monthly_minutes_limit"], nullable=False
    )
    price = Column(Float, default=0.0, nullable=False)
    currency = Column(String(10), default="USD", nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    subscriptions = relationship("Subscription", back_populates="plan")

    def __repr__(self) -> str:
        return f"<Plan(id={self.id}, name='{self.name}')>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "max_minutes_per_upload": self.max_minutes_per_upload,
            "max_uploads_per_week": self.max_uploads_per_week,
            "monthly_minutes_limit": self.monthly_minutes_limit,
            "price": self.price,
            "currency": self.currency,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    starts_at = Column(DateTime, default=utcnow, nullable=False)
    ends_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="subscription")
    plan = relationship("Plan", back_populates="subscriptions")
    weekly_usage = relationship(
        "WeeklyUsage", back_populates="subscription", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Subscription(user_id={self.user_id}, plan_id={self.plan_id}, active={self.active})>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "plan": self.plan.to_dict() if self.plan else None,
            "active": self.active,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
        }


class WeeklyUsage(Base):
    __tablename__ = "weekly_usage"
    __table_args__ = (
        UniqueConstraint("subscription_id", "week_start_date", name="uq_usage_week"),
    )

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(
        Integer, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    week_start_date = Column(DateTime, nullable=False)
    upload_count = Column(Integer, default=0, nullable=False)
    minutes_processed = Column(Integer, default=0, nullable=False)

    subscription = relationship("Subscription", back_populates="weekly_usage")

    def __repr__(self) -> str:
        return (
            f"<WeeklyUsage(subscription_id={self.subscription_id}, "
            f"week={self.week_start_date}, uploads={self.upload_count})>"
        )
