"""
Tests for single-file and chunked uploads.
"""

import os

import pytest

from scriber.models.meeting import Meeting, MeetingStatus
from scriber.services.upload_service import UploadService
from scriber.utils.exceptions import (
    FileUploadError,
    NotFoundError,
    UsageLimitError,
    ValidationError,
)

AUDIO = b"ID3" + b"\x00\x01" * 512


@pytest.fixture
def uploads(queue_service, audio_processor):
    return UploadService(queue_service, audio_processor=audio_processor)


class TestSingleUpload:
    def test_upload_creates_meeting_and_processes_it(self, db, user, uploads, settings):
        result = uploads.handle_upload(db, user.id, "Team Sync.mp3", AUDIO, language="de")

        assert result["duration"] == 120.0
        assert result["job_id"]
        meeting = db.query(Meeting).filter(Meeting.id == result["meeting_id"]).one()
        db.refresh(meeting)
        assert meeting.title == "Team_Sync.mp3"
        assert meeting.language_code == "de"
        assert meeting.status == MeetingStatus.COMPLETED
        assert meeting.file_path.startswith(settings.upload_dir)
        with open(meeting.file_path, "rb") as f:
            assert f.read() == AUDIO

    def test_title_override(self, db, user, uploads):
        result = uploads.handle_upload(db, user.id, "a.mp3", AUDIO, title=" Board Meeting ")
        assert db.get(Meeting, result["meeting_id"]).title == "Board Meeting"

    def test_weekly_limit_removes_stored_file(self, db, user, uploads, settings):
        uploads.handle_upload(db, user.id, "first.mp3", AUDIO)
        stored_before = set(os.listdir(settings.upload_dir))

        with pytest.raises(UsageLimitError):
            uploads.handle_upload(db, user.id, "second.mp3", AUDIO)

        assert set(os.listdir(settings.upload_dir)) == stored_before

    def test_unsupported_extension(self, db, user, uploads):
        with pytest.raises(FileUploadError):
            uploads.handle_upload(db, user.id, "notes.docx", AUDIO)

    def test_empty_file(self, db, user, uploads):
        with pytest.raises(FileUploadError, match="empty"):
            uploads.handle_upload(db, user.id, "silence.mp3", b"")

    def test_file_too_large(self, db, user, uploads, monkeypatch):
        monkeypatch.setattr(uploads.settings, "max_file_size", "1MB")
        with pytest.raises(FileUploadError, match="too large"):
            uploads.handle_upload(db, user.id, "huge.mp3", b"x" * (1024 * 1024 + 1))

    def test_admin_is_not_limited(self, db, admin, uploads):
        first = uploads.handle_upload(db, admin.id, "one.mp3", AUDIO)
        second = uploads.handle_upload(db, admin.id, "two.mp3", AUDIO)
        assert first["meeting_id"] != second["meeting_id"]


class TestChunkedUpload:
    def test_full_chunked_flow(self, db, user, uploads, settings):
        parts = [AUDIO[:400], AUDIO[400:800], AUDIO[800:]]
        session = uploads.initiate_chunked(
            db, user.id, "call.m4a", total_size=len(AUDIO), total_chunks=3, title="Client Call"
        )
        upload_id = session["upload_id"]

        # out of order, with a resend
        uploads.store_chunk(db, upload_id, user.id, 2, parts[2])
        uploads.store_chunk(db, upload_id, user.id, 0, b"stale")
        uploads.store_chunk(db, upload_id, user.id, 0, parts[0])
        status = uploads.get_status(db, upload_id, user.id)
        assert status["missing_chunks"] == [1]
        assert status["progress"] == 67

        uploads.store_chunk(db, upload_id, user.id, 1, parts[1])
        result = uploads.complete_chunked(db, upload_id, user.id)

        meeting = db.query(Meeting).filter(Meeting.id == result["meeting_id"]).one()
        assert meeting.title == "Client Call"
        with open(meeting.file_path, "rb") as f:
            assert f.read() == AUDIO
        assert not os.path.exists(os.path.join(settings.chunk_dir, upload_id))
        assert uploads.get_status(db, upload_id, user.id)["status"] == "completed"

    def test_complete_with_missing_chunks(self, db, user, uploads):
        upload_id = uploads.initiate_chunked(db, user.id, "a.mp3", 10, 2)["upload_id"]
        uploads.store_chunk(db, upload_id, user.id, 0, b"data")
        with pytest.raises(ValidationError) as exc_info:
            uploads.complete_chunked(db, upload_id, user.id)
        assert exc_info.value.details["missing_chunks"] == [1]

    def test_chunk_index_out_of_range(self, db, user, uploads):
        upload_id = uploads.initiate_chunked(db, user.id, "a.mp3", 10, 2)["upload_id"]
        with pytest.raises(ValidationError):
            uploads.store_chunk(db, upload_id, user.id, 2, b"data")

    def test_completed_session_rejects_chunks(self, db, user, uploads):
        upload_id = uploads.initiate_chunked(db, user.id, "a.mp3", len(AUDIO), 1)["upload_id"]
        uploads.store_chunk(db, upload_id, user.id, 0, AUDIO)
        uploads.complete_chunked(db, upload_id, user.id)
        with pytest.raises(ValidationError, match="already completed"):
            uploads.store_chunk(db, upload_id, user.id, 0, AUDIO)

    def test_refused_completion_can_be_retried(self, db, user, uploads, settings, monkeypatch):
        uploads.handle_upload(db, user.id, "first.mp3", AUDIO)
        upload_id = uploads.initiate_chunked(db, user.id, "a.mp3", len(AUDIO), 2)["upload_id"]
        uploads.store_chunk(db, upload_id, user.id, 0, AUDIO[:500])
        uploads.store_chunk(db, upload_id, user.id, 1, AUDIO[500:])

        with pytest.raises(UsageLimitError):
            uploads.complete_chunked(db, upload_id, user.id)
        assert uploads.get_status(db, upload_id, user.id)["status"] == "pending"
        assert os.path.isdir(os.path.join(settings.chunk_dir, upload_id))

        monkeypatch.setattr(uploads.usage_service, "enforce_upload_limit", lambda *args: None)
        result = uploads.complete_chunked(db, upload_id, user.id)

        with open(db.get(Meeting, result["meeting_id"]).file_path, "rb") as f:
            assert f.read() == AUDIO
        assert not os.path.exists(os.path.join(settings.chunk_dir, upload_id))

    def test_session_belongs_to_uploader(self, db, user, other_user, uploads):
        upload_id = uploads.initiate_chunked(db, user.id, "a.mp3", 10, 1)["upload_id"]
        with pytest.raises(NotFoundError):
            uploads.store_chunk(db, upload_id, other_user.id, 0, b"data")

    @pytest.mark.parametrize(
        "filename,total_size,total_chunks",
        [("a.exe", 10, 1), ("a.mp3", 0, 1), ("a.mp3", 10, 0), ("a.mp3", 10, 1001)],
    )
    def test_initiate_validation(self, db, user, uploads, filename, total_size, total_chunks):
        with pytest.raises((ValidationError, FileUploadError)):
            uploads.initiate_chunked(db, user.id, filename, total_size, total_chunks)
