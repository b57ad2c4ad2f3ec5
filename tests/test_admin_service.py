"""
Tests for admin statistics, user management, plans and seeding.
"""

import pytest

from scriber.models.meeting import MeetingStatus
from scriber.models.plan import Plan, Subscription
from scriber.models.user import User, UserRole
from scriber.services.admin_service import DEFAULT_PLANS, AdminService
from scriber.utils.exceptions import NotFoundError, ValidationError


@pytest.fixture
def service():
    return AdminService()


class TestStats:
    def test_counts_and_success_rate(self, db, user, other_user, make_meeting, service):
        make_meeting(user, status=MeetingStatus.COMPLETED, duration=600)
        make_meeting(user, title="Second", status=MeetingStatus.COMPLETED, duration=300)
        make_meeting(other_user, status=MeetingStatus.FAILED)

        stats = service.get_stats(db)

        assert stats["user_count"] == 2
        assert stats["meeting_count"] == 3
        assert stats["completed_meetings"] == 2
        assert stats["failed_meetings"] == 1
        assert stats["success_rate"] == 67
        assert stats["total_minutes_processed"] == 15
        assert stats["new_users_last_7_days"] == 2
        assert stats["subscriptions_by_plan"][0]["plan_name"] == "Free"
        assert stats["subscriptions_by_plan"][0]["count"] == 2

    def test_empty_platform(self, db, service):
        stats = service.get_stats(db)
        assert stats["success_rate"] == 0
        assert stats["meeting_count"] == 0


class TestUsers:
    def test_list_users_with_search_and_pages(self, db, create_user, make_meeting, service):
        alice = create_user(email="alice@example.com", name="Alice")
        create_user(email="bob@example.com", name="Bob")
        create_user(email="carol@corp.com", name="Carol")
        make_meeting(alice)

        page = service.list_users(db, page=1, limit=2)
        assert page["total"] == 3
        assert page["page_count"] == 2
        assert len(page["users"]) == 2

        found = service.list_users(db, search="example.com")
        assert {u["email"] for u in found["users"]} == {"alice@example.com", "bob@example.com"}
        alice_row = next(u for u in found["users"] if u["name"] == "Alice")
        assert alice_row["meeting_count"] == 1
        assert alice_row["plan"] == "Free"
        assert "password_hash" not in alice_row

    def test_user_detail(self, db, user, make_meeting, service):
        make_meeting(user, status=MeetingStatus.COMPLETED)
        make_meeting(user, title="Failed", status=MeetingStatus.FAILED)

        detail = service.get_user_detail(db, user.id)

        assert detail["user"]["email"] == "owner@example.com"
        assert detail["subscription"]["plan"]["name"] == "Free"
        assert detail["stats"]["total_meetings"] == 2
        assert detail["stats"]["total_minutes"] == 4
        assert detail["stats"]["status_breakdown"] == {
            MeetingStatus.COMPLETED: 1,
            MeetingStatus.FAILED: 1,
        }
        assert len(detail["recent_meetings"]) == 2

    def test_unknown_user(self, db, service):
        with pytest.raises(NotFoundError):
            service.get_user_detail(db, 404)

    def test_update_user_plan(self, db, user, service):
        pro = service.create_plan(db, {"name": "Pro", "max_uploads_per_week": 100})

        subscription = service.update_user_plan(db, user.id, pro.id)

        assert subscription.plan_id == pro.id
        assert subscription.active is True
        assert db.query(Subscription).filter(Subscription.user_id == user.id).count() == 1

    def test_update_to_unknown_plan(self, db, user, service):
        with pytest.raises(NotFoundError):
            service.update_user_plan(db, user.id, 999)

    def test_disable_user(self, db, user, service):
        assert service.set_user_status(db, user.id, False).is_active is False

    def test_admins_cannot_be_disabled(self, db, admin, service):
        with pytest.raises(ValidationError):
            service.set_user_status(db, admin.id, False)


class TestPlans:
    def test_create_applies_defaults(self, db, service):
        plan = service.create_plan(db, {"name": " Team ", "price": 19.0})
        assert plan.name == "Team"
        assert plan.price == 19.0
        assert plan.max_uploads_per_week == 1

    def test_duplicate_name(self, db, user, service):
        with pytest.raises(ValidationError):
            service.create_plan(db, {"name": "Free"})

    def test_create_requires_name(self, db, service):
        with pytest.raises(ValidationError):
            service.create_plan(db, {"price": 1.0})

    def test_update_plan(self, db, service):
        plan = service.create_plan(db, {"name": "Team"})
        updated = service.update_plan(db, plan.id, {"max_minutes_per_upload": 90, "name": None})
        assert updated.max_minutes_per_upload == 90
        assert updated.name == "Team"

    def test_rename_to_existing_name(self, db, user, service):
        plan = service.create_plan(db, {"name": "Team"})
        with pytest.raises(ValidationError):
            service.update_plan(db, plan.id, {"name": "Free"})

    def test_list_plans_with_subscriber_counts(self, db, user, other_user, service):
        service.create_plan(db, {"name": "Gold", "price": 50.0})
        plans = service.list_plans(db)
        assert [(p["name"], p["subscriber_count"]) for p in plans] == [("Free", 2), ("Gold", 0)]

    def test_plan_with_subscribers_cannot_be_deleted(self, db, user, service):
        free = db.query(Plan).filter(Plan.name == "Free").one()
        with pytest.raises(ValidationError, match="1 active subscribers"):
            service.delete_plan(db, free.id)

    def test_delete_unused_plan(self, db, service):
        plan = service.create_plan(db, {"name": "Legacy"})
        service.delete_plan(db, plan.id)
        assert db.query(Plan).filter(Plan.name == "Legacy").first() is None


class TestSeed:
    def test_seed_creates_plans_and_admin(self, db, service):
        result = service.seed_defaults(db, "Root@Example.com", "supersecret")

        assert result == {
            "plans_created": [p["name"] for p in DEFAULT_PLANS],
            "admin_created": True,
        }
        admin = db.query(User).filter(User.email == "root@example.com").one()
        assert admin.role == UserRole.ADMIN
        db.expire_all()
        assert admin.subscription.plan.name == "Pro"

    def test_seed_is_idempotent(self, db, service):
        service.seed_defaults(db, "root@example.com", "supersecret")
        result = service.seed_defaults(db, "root@example.com", "supersecret")
        assert result == {"plans_created": [], "admin_created": False}
        assert db.query(Plan).count() == len(DEFAULT_PLANS)

    def test_seed_promotes_existing_user(self, db, user, service):
        result = service.seed_defaults(db, user.email, "whatever1")
        db.refresh(user)
        assert user.role == UserRole.ADMIN
        assert result["admin_created"] is False
        # Free already existed from the user's registration
        assert result["plans_created"] == ["Pro", "Business"]

    def test_seed_without_credentials(self, db, service, settings, monkeypatch):
        monkeypatch.setattr(settings, "admin_email", None)
        monkeypatch.setattr(settings, "admin_password", None)
        result = service.seed_defaults(db)
        assert result["admin_created"] is False
        assert db.query(User).count() == 0
