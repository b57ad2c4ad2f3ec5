"""
Admin service for platform statistics, user management and plans.
"""

import logging
import math
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from scriber.core.config import get_settings
from scriber.models.meeting import Meeting
from scriber.models.plan import Plan, Subscription, WeeklyUsage
from scriber.models.user import User, UserRole
from scriber.services.auth_service import AuthService
from scriber.utils.exceptions import NotFoundError, ValidationError
from scriber.utils.helpers import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {
        "name": "Free",
        "max_minutes_per_upload": 5,
        "max_uploads_per_week": 1,
        "monthly_minutes_limit": 60,
        "price": 0.0,
        "currency": "USD",
    },
    {
        "name": "Pro",
        "max_minutes_per_upload": 60,
        "max_uploads_per_week": 100,
        "monthly_minutes_limit": 1200,
        "price": 9.99,
        "currency": "USD",
    },
    {
        "name": "Business",
        "max_minutes_per_upload": 180,
        "max_uploads_per_week": 500,
        "monthly_minutes_limit": 6000,
        "price": 29.99,
        "currency": "USD",
    },
]

PLAN_FIELDS = (
    "name",
    "max_minutes_per_upload",
    "max_uploads_per_week",
    "monthly_minutes_limit",
    "price",
    "currency",
)


class AdminService:
    # Statistics

    def get_stats(self, db: Session) -> Dict[str, Any]:
        """Platform-wide counters for the admin dashboard."""
        user_count = db.query(func.count(User.id)).scalar()
        meeting_count = db.query(func.count(Meeting.id)).scalar()
        completed = (
            db.query(func.count(Meeting.id))
            .filter(Meeting.is_completed)
            .scalar()
        )
        failed = (
            db.query(func.count(Meeting.id))
            .filter(Meeting.is_failed)
            .scalar()
        )
        new_users = (
            db.query(func.count(User.id))
            .filter(User.created_at >= utcnow() - timedelta(days=7))
            .scalar()
        )
        total_seconds = (
            db.query(func.coalesce(func.sum(Meeting.duration_seconds), 0))
            .filter(Meeting.is_completed)
            .scalar()
        )
        by_plan = (
            db.query(Plan.id, Plan.name, func.count(Subscription.id))
            .join(Subscription, Subscription.plan_id == Plan.id)
            .group_by(Plan.id, Plan.name)
            .all()
        )

        return {
            "user_count": user_count,
            "meeting_count": meeting_count,
            "completed_meetings": completed,
            "failed_meetings": failed,
            "success_rate": round(completed / meeting_count * 100) if meeting_count else 0,
            "new_users_last_7_days": new_users,
            "subscriptions_by_plan": [
                {"plan_id": plan_id, "plan_name": name, "count": count}
                for plan_id, name, count in by_plan
            ],
            "total_minutes_processed": round((total_seconds or 0) / 60),
        }

    # Users

    def _get_user(self, db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found", resource="user")
        return user

    def list_users(
        self, db: Session, page: int = 1, limit: int = 20, search: Optional[str] = None
    ) -> Dict[str, Any]:
        page = max(1, page)
        limit = max(1, min(limit, 100))

        query = db.query(User)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(User.email.ilike(pattern), User.name.ilike(pattern)))

        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        meeting_counts = dict(
            db.query(Meeting.user_id, func.count(Meeting.id))
            .filter(Meeting.user_id.in_([user.id for user in users]))
            .group_by(Meeting.user_id)
            .all()
        ) if users else {}

        return {
            "users": [
                {
                    **user.to_dict(),
                    "meeting_count": meeting_counts.get(user.id, 0),
                    "plan": user.subscription.plan.name
                    if user.subscription and user.subscription.plan
                    else None,
                }
                for user in users
            ],
            "total": total,
            "page": page,
            "limit": limit,
            "page_count": math.ceil(total / limit),
        }

    def get_user_detail(self, db: Session, user_id: int) -> Dict[str, Any]:
        """User profile with subscription, meeting totals and recent weekly usage."""
        user = self._get_user(db, user_id)
        meeting_total, seconds = (
            db.query(func.count(Meeting.id), func.coalesce(func.sum(Meeting.duration_seconds), 0))
            .filter(Meeting.user_id == user_id)
            .one()
        )
        status_breakdown = (
            db.query(Meeting.status, func.count(Meeting.id))
            .filter(Meeting.user_id == user_id)
            .group_by(Meeting.status)
            .all()
        )
        recent_meetings = (
            db.query(Meeting)
            .filter(Meeting.user_id == user_id)
            .order_by(Meeting.created_at.desc())
            .limit(10)
            .all()
        )

        weekly_usage: List[Dict[str, Any]] = []
        if user.subscription:
            rows = (
                db.query(WeeklyUsage)
                .filter(WeeklyUsage.subscription_id == user.subscription.id)
                .order_by(WeeklyUsage.week_start_date.desc())
                .limit(12)
                .all()
            )
            weekly_usage = [
                {
                    "week_start_date": row.week_start_date.isoformat(),
                    "upload_count": row.upload_count,
                    "minutes_processed": row.minutes_processed,
                }
                for row in rows
            ]

        return {
            "user": user.to_dict(),
            "subscription": user.subscription.to_dict() if user.subscription else None,
            "stats": {
                "total_meetings": meeting_total,
                "total_minutes": round((seconds or 0) / 60),
                "status_breakdown": {status: count for status, count in status_breakdown},
            },
            "recent_meetings": [meeting.to_dict() for meeting in recent_meetings],
            "weekly_usage": weekly_usage,
        }

    def update_user_plan(self, db: Session, user_id: int, plan_id: int) -> Subscription:
        user = self._get_user(db, user_id)
        plan = db.query(Plan).filter(Plan.id == plan_id).first()
        if not plan:
            raise NotFoundError("Plan not found", resource="plan")

        subscription = user.subscription
        if subscription:
            subscription.plan_id = plan.id
            subscription.active = True
        else:
            subscription = Subscription(user_id=user.id, plan_id=plan.id, active=True)
            db.add(subscription)
        db.commit()
        db.refresh(subscription)
        logger.info(f"User {user_id} moved to plan {plan.name}")
        return subscription

    def set_user_status(self, db: Session, user_id: int, active: bool) -> User:
        user = self._get_user(db, user_id)
        if user.is_admin and not active:
            raise ValidationError("Cannot disable admin users")
        user.is_active = active
        db.commit()
        db.refresh(user)
        logger.info(f"User {user_id} {'enabled' if active else 'disabled'}")
        return user

    # Plans

    def _get_plan(self, db: Session, plan_id: int) -> Plan:
        plan = db.query(Plan).filter(Plan.id == plan_id).first()
        if not plan:
            raise NotFoundError("Plan not found", resource="plan")
        return plan

    def _ensure_unique_name(self, db: Session, name: str, exclude_id: Optional[int] = None) -> None:
        query = db.query(Plan).filter(Plan.name == name)
        if exclude_id is not None:
            query = query.filter(Plan.id != exclude_id)
        if query.first():
            raise ValidationError("A plan with this name already exists", field="name")

    def list_plans(self, db: Session) -> List[Dict[str, Any]]:
        rows = (
            db.query(Plan, func.count(Subscription.id))
            .outerjoin(Subscription, Subscription.plan_id == Plan.id)
            .group_by(Plan.id)
            .order_by(Plan.price.asc(), Plan.name.asc())
            .all()
        )
        return [{**plan.to_dict(), "subscriber_count": count} for plan, count in rows]

    def create_plan(self, db: Session, data: Dict[str, Any]) -> Plan:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Plan name is required", field="name")
        self._ensure_unique_name(db, name)

        plan = Plan(**{key: data[key] for key in PLAN_FIELDS if data.get(key) is not None})
        plan.name = name
        db.add(plan)
        db.commit()
        db.refresh(plan)
        logger.info(f"Created plan {plan.name}")
        return plan

    def update_plan(self, db: Session, plan_id: int, data: Dict[str, Any]) -> Plan:
        plan = self._get_plan(db, plan_id)
        if data.get("name") is not None:
            name = data["name"].strip()
            if not name:
                raise ValidationError("Plan name is required", field="name")
            if name != plan.name:
                self._ensure_unique_name(db, name, exclude_id=plan.id)
            plan.name = name
        for key in PLAN_FIELDS[1:]:
            if data.get(key) is not None:
                setattr(plan, key, data[key])
        db.commit()
        db.refresh(plan)
        return plan

    def delete_plan(self, db: Session, plan_id: int) -> None:
        plan = self._get_plan(db, plan_id)
        subscribers = (
            db.query(func.count(Subscription.id)).filter(Subscription.plan_id == plan.id).scalar()
        )
        if subscribers:
            raise ValidationError(
                f"Cannot delete plan with {subscribers} active subscribers. Migrate them first."
            )
        db.delete(plan)
        db.commit()
        logger.info(f"Deleted plan {plan_id}")

    # Seeding

    def seed_defaults(
        self,
        db: Session,
        admin_email: Optional[str] = None,
        admin_password: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create the default plans and, when credentials are configured, an admin account.

        Existing plans are left untouched; an existing admin email is promoted to ADMIN.
        """
        settings = get_settings()
        admin_email = (admin_email or settings.admin_email or "").strip().lower() or None
        admin_password = admin_password or settings.admin_password

        created_plans = []
        for defaults in DEFAULT_PLANS:
            if not db.query(Plan).filter(Plan.name == defaults["name"]).first():
                db.add(Plan(**defaults))
                created_plans.append(defaults["name"])
        db.flush()

        admin_created = False
        if admin_email and admin_password:
            admin = db.query(User).filter(User.email == admin_email).first()
            if admin:
                admin.role = UserRole.ADMIN
            else:
                admin = AuthService().create_user(
                    db, admin_email, admin_password, name="Administrator", role=UserRole.ADMIN
                )
                pro = db.query(Plan).filter(Plan.name == "Pro").first()
                if pro:
                    db.query(Subscription).filter(Subscription.user_id == admin.id).update(
                        {Subscription.plan_id: pro.id}, synchronize_session="fetch"
                    )
                admin_created = True

        db.commit()
        logger.info(
            f"Seed complete: plans created {created_plans or 'none'}, "
            f"admin {'created' if admin_created else 'unchanged'}"
        )
        return {"plans_created": created_plans, "admin_created": admin_created}
