"""
Tests for meeting exports.
"""

import csv
import io
import json

import pytest

from scriber.services.export_service import ExportService
from scriber.utils.exceptions import NotFoundError, ValidationError

MINUTES = "# Minutes\n\nThe team agreed to ship."


@pytest.fixture
def export_service():
    return ExportService()


@pytest.fixture
def meeting(user, make_meeting):
    return make_meeting(user, title="Q3 Planning: Kickoff", minutes=MINUTES)


class TestExportService:
    def test_txt(self, db, user, meeting, export_service):
        content, content_type, filename = export_service.export_meeting(
            db, meeting.id, user.id, "txt"
        )
        text = content.decode("utf-8")
        assert content_type.startswith("text/plain")
        assert filename == "Q3_Planning__Kickoff.txt"
        assert "Q3 PLANNING: KICKOFF" in text
        assert "The team agreed to ship." in text
        assert "[00:00:03] Bob: Thanks, let's start." in text

    def test_markdown_without_transcript(self, db, user, meeting, export_service):
        content, _, _ = export_service.export_meeting(
            db, meeting.id, user.id, "md", include_transcript=False
        )
        text = content.decode("utf-8")
        assert text.startswith("# Q3 Planning: Kickoff")
        assert "## Summary & Minutes" in text
        assert "## Full Transcript" not in text

    def test_json(self, db, user, meeting, export_service):
        content, content_type, _ = export_service.export_meeting(
            db, meeting.id, user.id, "JSON", include_minutes=False
        )
        payload = json.loads(content)
        assert content_type == "application/json"
        assert payload["meeting"]["title"] == "Q3 Planning: Kickoff"
        assert payload["meeting"]["duration"] == "00:00:06"
        assert payload["minutes"] is None
        assert [s["speaker"] for s in payload["transcript"]] == ["Alice", "Bob"]

    def test_csv(self, db, user, meeting, export_service):
        content, _, _ = export_service.export_meeting(db, meeting.id, user.id, "csv")
        rows = list(csv.reader(io.StringIO(content.decode("utf-8"))))
        assert rows[0] == ["Start", "End", "Speaker", "Text"]
        assert rows[2] == ["00:00:03", "00:00:06", "Bob", "Thanks, let's start."]

    def test_srt(self, db, user, meeting, export_service):
        content, _, _ = export_service.export_meeting(db, meeting.id, user.id, "srt")
        assert content.decode("utf-8").split("\n\n")[1] == (
            "2\n00:00:03,000 --> 00:00:06,500\nBob: Thanks, let's start."
        )

    def test_vtt(self, db, user, meeting, export_service):
        content, content_type, _ = export_service.export_meeting(db, meeting.id, user.id, "vtt")
        text = content.decode("utf-8")
        assert content_type.startswith("text/vtt")
        assert text.startswith("WEBVTT\n\n")
        assert "00:00:00.000 --> 00:00:03.000\n<v Alice>Welcome everyone." in text

    def test_subtitle_formats_always_include_transcript(self, db, user, meeting, export_service):
        content, _, _ = export_service.export_meeting(
            db, meeting.id, user.id, "srt", include_transcript=False
        )
        assert b"Alice" in content

    def test_pdf(self, db, user, meeting, export_service):
        content, content_type, filename = export_service.export_meeting(
            db, meeting.id, user.id, "pdf"
        )
        assert content.startswith(b"%PDF")
        assert content_type == "application/pdf"
        assert filename.endswith(".pdf")

    def test_pdf_escapes_markup(self, db, user, make_meeting, export_service):
        meeting = make_meeting(
            user,
            title="<b>Ops</b> & Friends",
            segments=(("R&D <lead>", "a < b & c", 0, 1),),
            minutes="Use <tags> & ampersands",
            with_file=False,
        )
        content, _, _ = export_service.export_meeting(db, meeting.id, user.id, "pdf")
        assert content.startswith(b"%PDF")

    def test_unsupported_format(self, db, user, meeting, export_service):
        with pytest.raises(ValidationError):
            export_service.export_meeting(db, meeting.id, user.id, "docx")

    def test_transcript_format_without_segments(self, db, user, make_meeting, export_service):
        meeting = make_meeting(user, segments=(), minutes=MINUTES)
        with pytest.raises(NotFoundError):
            export_service.export_meeting(db, meeting.id, user.id, "vtt")

    def test_other_users_meeting(self, db, other_user, meeting, export_service):
        with pytest.raises(NotFoundError):
            export_service.export_meeting(db, meeting.id, other_user.id, "txt")
