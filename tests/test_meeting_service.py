"""
Tests for meeting listing, renaming and deletion.
"""

import os

import pytest

from scriber.models.meeting import Meeting, MeetingStatus
from scriber.models.speaker import Speaker
from scriber.services.meeting_service import MeetingService
from scriber.utils.exceptions import NotFoundError, ValidationError


class TestListMeetings:
    def setup_method(self):
        self.service = MeetingService()

    def test_newest_first_with_cursor(self, db, user, make_meeting):
        ids = [make_meeting(user, title=f"Meeting {i}").id for i in range(5)]

        first = self.service.list_meetings(db, user.id, limit=2)
        assert [m["id"] for m in first["items"]] == [ids[4], ids[3]]
        assert first["has_more"] is True
        assert first["next_cursor"] == ids[3]

        second = self.service.list_meetings(db, user.id, cursor=first["next_cursor"], limit=2)
        assert [m["id"] for m in second["items"]] == [ids[2], ids[1]]

        last = self.service.list_meetings(db, user.id, cursor=second["next_cursor"], limit=2)
        assert [m["id"] for m in last["items"]] == [ids[0]]
        assert last["has_more"] is False
        assert last["next_cursor"] is None

    def test_only_own_meetings(self, db, user, other_user, make_meeting):
        make_meeting(user, title="Mine")
        make_meeting(other_user, title="Theirs")
        titles = [m["title"] for m in self.service.list_meetings(db, user.id)["items"]]
        assert titles == ["Mine"]

    def test_search_is_case_insensitive(self, db, user, make_meeting):
        make_meeting(user, title="Budget Review")
        make_meeting(user, title="Standup")
        result = self.service.list_meetings(db, user.id, search="budget")
        assert [m["title"] for m in result["items"]] == ["Budget Review"]

    def test_status_filter(self, db, user, make_meeting):
        make_meeting(user, title="Done", status=MeetingStatus.COMPLETED)
        make_meeting(user, title="Broken", status=MeetingStatus.FAILED)
        result = self.service.list_meetings(db, user.id, status=MeetingStatus.FAILED)
        assert [m["title"] for m in result["items"]] == ["Broken"]

    def test_invalid_status(self, db, user):
        with pytest.raises(ValidationError):
            self.service.list_meetings(db, user.id, status="ARCHIVED")

    def test_invalid_cursor(self, db, user):
        with pytest.raises(ValidationError):
            self.service.list_meetings(db, user.id, cursor=999)

    def test_has_minutes_flag(self, db, user, make_meeting):
        make_meeting(user, title="With", minutes="text")
        make_meeting(user, title="Without")
        flags = {m["title"]: m["has_minutes"] for m in self.service.list_meetings(db, user.id)["items"]}
        assert flags == {"With": True, "Without": False}


class TestMeetingDetail:
    def setup_method(self):
        self.service = MeetingService()

    def test_detail_includes_transcript_and_minutes(self, db, user, make_meeting):
        meeting = make_meeting(user, minutes="# Minutes")

        detail = self.service.get_meeting(db, meeting.id, user.id)

        assert [s["name"] for s in detail["speakers"]] == ["Alice", "Bob"]
        assert [s["text"] for s in detail["transcript"]] == ["Welcome everyone.", "Thanks, let's start."]
        assert detail["minutes"]["content"] == "# Minutes"
        assert detail["formatted_duration"] == "00:02:00"

    def test_cross_user_access_is_not_found(self, db, user, other_user, make_meeting):
        meeting = make_meeting(user)
        with pytest.raises(NotFoundError):
            self.service.get_meeting(db, meeting.id, other_user.id)

    def test_rename(self, db, user, make_meeting):
        meeting = make_meeting(user)
        assert self.service.rename(db, meeting.id, user.id, "  Renamed  ").title == "Renamed"
        with pytest.raises(ValidationError):
            self.service.rename(db, meeting.id, user.id, "")

    def test_status_includes_latest_job(self, db, user, make_meeting, queue_service):
        meeting = make_meeting(user)
        job_id = queue_service.submit_minutes(meeting.id, user.id)

        status = self.service.get_status(db, meeting.id, user.id, queue_service)

        assert status["job"]["job_id"] == job_id
        assert status["meeting_id"] == meeting.id


class TestDelete:
    def setup_method(self):
        self.service = MeetingService()

    def test_delete_removes_rows_and_file(self, db, user, make_meeting):
        meeting = make_meeting(user, title="Delete Me")
        meeting_id, file_path = meeting.id, meeting.file_path
        assert os.path.exists(file_path)

        self.service.delete(db, meeting_id, user.id)

        db.expire_all()
        assert db.query(Meeting).filter(Meeting.id == meeting_id).first() is None
        assert db.query(Speaker).filter(Speaker.meeting_id == meeting_id).count() == 0
        assert not os.path.exists(file_path)

    def test_delete_other_users_meeting(self, db, user, other_user, make_meeting):
        meeting = make_meeting(user)
        with pytest.raises(NotFoundError):
            self.service.delete(db, meeting.id, other_user.id)

    def test_batch_delete_ignores_foreign_ids(self, db, user, other_user, make_meeting):
        mine = [make_meeting(user, title=f"Mine {i}").id for i in range(2)]
        theirs = make_meeting(other_user, title="Theirs").id

        result = self.service.delete_many(db, mine + [theirs, 9999], user.id)

        assert result == {"count": 2}
        db.expire_all()
        assert db.query(Meeting).filter(Meeting.id == theirs).first() is not None

    def test_batch_delete_empty(self, db, user):
        assert self.service.delete_many(db, [], user.id) == {"count": 0}
