"""
Tests for weekly usage accounting and plan limits.
"""

import pytest

from scriber.models.plan import Plan, Subscription
from scriber.services.usage_service import UsageService
from scriber.utils.exceptions import UsageLimitError


class TestUsageService:
    def setup_method(self):
        self.service = UsageService()

    def test_new_user_is_on_free_plan(self, db, user):
        usage = self.service.get_user_usage(db, user.id)
        assert usage["uploads_this_week"] == 0
        assert usage["max_uploads_per_week"] == 1
        assert usage["max_minutes_per_upload"] == 5
        assert usage["unlimited"] is False

    def test_first_upload_allowed(self, db, user):
        result = self.service.check_upload_allowed(db, user.id, 240)
        assert result["allowed"] is True
        assert result["reason"] is None

    def test_weekly_limit(self, db, user):
        self.service.increment_usage(db, user.id, 120)

        result = self.service.check_upload_allowed(db, user.id, 60)

        assert result["allowed"] is False
        assert "Weekly upload limit" in result["reason"]
        assert result["usage"]["uploads_this_week"] == 1
        assert result["usage"]["minutes_this_week"] == 2

    def test_duration_limit_rounds_up_minutes(self, db, user):
        assert self.service.check_upload_allowed(db, user.id, 300)["allowed"] is True
        result = self.service.check_upload_allowed(db, user.id, 301)
        assert result["allowed"] is False
        assert "max 5 minutes" in result["reason"]

    def test_enforce_raises_usage_limit_error(self, db, user):
        with pytest.raises(UsageLimitError) as exc_info:
            self.service.enforce_upload_limit(db, user.id, 3600)
        assert exc_info.value.status_code == 403
        assert "usage" in exc_info.value.details

    def test_admins_are_unlimited_and_not_counted(self, db, admin):
        self.service.increment_usage(db, admin.id, 36000)
        usage = self.service.get_user_usage(db, admin.id)
        assert usage["unlimited"] is True
        assert usage["max_uploads_per_week"] is None
        assert usage["uploads_this_week"] == 0
        assert self.service.check_upload_allowed(db, admin.id, 36000)["allowed"] is True

    def test_decrement_refunds_and_never_goes_negative(self, db, user):
        self.service.increment_usage(db, user.id, 120)
        self.service.decrement_usage(db, user.id, 120)
        self.service.decrement_usage(db, user.id, 120)

        usage = self.service.get_user_usage(db, user.id)

        assert usage["uploads_this_week"] == 0
        assert usage["minutes_this_week"] == 0

    def test_plan_change_applies_new_limits(self, db, user):
        pro = Plan(name="Pro", max_minutes_per_upload=60, max_uploads_per_week=100, monthly_minutes_limit=1200)
        db.add(pro)
        db.flush()
        subscription = db.query(Subscription).filter(Subscription.user_id == user.id).one()
        subscription.plan_id = pro.id
        db.commit()
        db.expire_all()

        self.service.increment_usage(db, user.id, 600)

        result = self.service.check_upload_allowed(db, user.id, 3000)
        assert result["allowed"] is True
        assert result["usage"]["max_uploads_per_week"] == 100

    def test_has_active_subscription(self, db, user):
        assert self.service.has_active_subscription(db, user.id) is True
        assert self.service.has_active_subscription(db, 999) is False
