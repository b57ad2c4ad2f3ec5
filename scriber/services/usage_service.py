"""
Usage service for plan limits.
Tracks weekly uploads and processed minutes and enforces per-plan caps.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from scriber.core.config import PLAN_DEFAULTS
from scriber.models.meeting import Meeting
from scriber.models.plan import Subscription, WeeklyUsage
from scriber.models.user import User, UserRole
from scriber.utils.exceptions import UsageLimitError
from scriber.utils.helpers import get_week_start, minutes_from_seconds

logger = logging.getLogger(__name__)


class UsageService:
    """
    Weekly usage accounting.
    Limits are None for admins, who are never counted or blocked.
    """

    def _user_role(self, db: Session, user_id: int) -> Optional[str]:
        user = db.query(User.role).filter(User.id == user_id).first()
        return user.role if user else None

    def _get_or_create_week(
        self, db: Session, subscription: Subscription, week_start: datetime
    ) -> WeeklyUsage:
        usage = (
            db.query(WeeklyUsage)
            .filter(
                WeeklyUsage.subscription_id == subscription.id,
                WeeklyUsage.week_start_date == week_start,
            )
            .first()
        )
        if usage:
            return usage

        usage = WeeklyUsage(
            subscription_id=subscription.id,
            week_start_date=week_start,
            upload_count=0,
            minutes_processed=0,
        )
        db.add(usage)
        try:
            db.commit()
        except IntegrityError:
            # Created concurrently by another request
            db.rollback()
            usage = (
                db.query(WeeklyUsage)
                .filter(
                    WeeklyUsage.subscription_id == subscription.id,
                    WeeklyUsage.week_start_date == week_start,
                )
                .one()
            )
        return usage

    def get_user_usage(self, db: Session, user_id: int) -> Dict[str, Any]:
        """
        Current week's usage and the limits that apply to the user.

        Returns:
            Dict with uploads_this_week, minutes_this_week and the three limits
        """
        if self._user_role(db, user_id) == UserRole.ADMIN:
            return {
                "uploads_this_week": 0,
                "minutes_this_week": 0,
                "max_uploads_per_week": None,
                "max_minutes_per_upload": None,
                "monthly_minutes_limit": None,
                "unlimited": True,
            }

        week_start = get_week_start()
        subscription = (
            db.query(Subscription).filter(Subscription.user_id == user_id).first()
        )

        if not subscription or not subscription.plan:
            meetings = (
                db.query(Meeting.duration_seconds)
                .filter(Meeting.user_id == user_id, Meeting.created_at >= week_start)
                .all()
            )
            return {
                "uploads_this_week": len(meetings),
                "minutes_this_week": sum(
                    minutes_from_seconds(m.duration_seconds) for m in meetings
                ),
                "max_uploads_per_week": PLAN_DEFAULTS["max_uploads_per_week"],
                "max_minutes_per_upload": PLAN_DEFAULTS["max_minutes_per_upload"],
                "monthly_minutes_limit": PLAN_DEFAULTS["monthly_minutes_limit"],
                "unlimited": False,
            }

        weekly = self._get_or_create_week(db, subscription, week_start)
        plan = subscription.plan
        return {
            "uploads_this_week": weekly.upload_count,
            "minutes_this_week": weekly.minutes_processed,
            "max_uploads_per_week": plan.max_uploads_per_week,
            "max_minutes_per_upload": plan.max_minutes_per_upload,
            "monthly_minutes_limit": plan.monthly_minutes_limit,
            "unlimited": False,
        }

    def check_upload_allowed(
        self, db: Session, user_id: int, duration_seconds: float
    ) -> Dict[str, Any]:
        """
        Check an upload of the given duration against the user's limits.

        Returns:
            Dict with ``allowed``, ``reason`` (when refused) and ``usage``
        """
        usage = self.get_user_usage(db, user_id)
        if usage["unlimited"]:
            return {"allowed": True, "reason": None, "usage": usage}

        if usage["uploads_this_week"] >= usage["max_uploads_per_week"]:
            return {
                "allowed": False,
                "reason": f"Weekly upload limit reached ({usage['max_uploads_per_week']} per week)",
                "usage": usage,
            }

        if minutes_from_seconds(duration_seconds) > usage["max_minutes_per_upload"]:
            return {
                "allowed": False,
                "reason": f"File too long (max {usage['max_minutes_per_upload']} minutes per upload)",
                "usage": usage,
            }

        return {"allowed": True, "reason": None, "usage": usage}

    def enforce_upload_limit(self, db: Session, user_id: int, duration_seconds: float) -> None:
        result = self.check_upload_allowed(db, user_id, duration_seconds)
        if not result["allowed"]:
            logger.info(f"Upload refused for user {user_id}: {result['reason']}")
            raise UsageLimitError(result["reason"], details={"usage": result["usage"]})

    def _subscription_for_tracking(self, db: Session, user_id: int) -> Optional[Subscription]:
        if self._user_role(db, user_id) in (None, UserRole.ADMIN):
            return None
        return db.query(Subscription).filter(Subscription.user_id == user_id).first()

    def increment_usage(self, db: Session, user_id: int, duration_seconds: float) -> None:
        subscription = self._subscription_for_tracking(db, user_id)
        if not subscription:
            return
        weekly = self._get_or_create_week(db, subscription, get_week_start())
        weekly.upload_count += 1
        weekly.minutes_processed += minutes_from_seconds(duration_seconds)
        db.commit()

    def decrement_usage(self, db: Session, user_id: int, duration_seconds: float) -> None:
        """Refund a failed upload. Counters never drop below zero."""
        subscription = self._subscription_for_tracking(db, user_id)
        if not subscription:
            return
        weekly = (
            db.query(WeeklyUsage)
            .filter(
                WeeklyUsage.subscription_id == subscription.id,
                WeeklyUsage.week_start_date == get_week_start(),
            )
            .first()
        )
        if not weekly or weekly.upload_count <= 0:
            return
        weekly.upload_count -= 1
        weekly.minutes_processed = max(
            0, weekly.minutes_processed - minutes_from_seconds(duration_seconds)
        )
        db.commit()
        logger.info(f"Refunded usage for user {user_id}")

    def has_active_subscription(self, db: Session, user_id: int) -> bool:
        subscription = (
            db.query(Subscription)
            .filter(Subscription.user_id == user_id, Subscription.active == True)  # noqa: E712
            .first()
        )
        return subscription is not None
