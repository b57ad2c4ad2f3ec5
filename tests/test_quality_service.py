"""
Tests for transcript quality scoring and the quality report.
"""

import pytest

from scriber.models.speaker import Speaker
from scriber.services.quality_service import (
    QualityService,
    quality_grade,
    recommendations_for,
)
from scriber.utils.exceptions import NotFoundError

TWENTY_WORDS = " ".join(["word"] * 20)


class TestQualityReport:
    def setup_method(self):
        self.service = QualityService()

    def test_report_for_short_unconfirmed_transcript(self, db, user, make_meeting):
        meeting = make_meeting(user)

        report = self.service.get_report(db, meeting.id, user.id)

        assert report["title"] == "Weekly Sync"
        assert report["word_count"] == 5
        assert report["segment_count"] == 2
        assert report["speaker_count"] == 2
        assert report["avg_segment_length"] == 2.5
        assert report["details"]["inaudible_penalty"] == 100
        assert report["details"]["length_score"] == pytest.approx(12.5)
        assert report["details"]["speaker_score"] == 50
        # 40 + 0 + 1.875 + 7.5
        assert report["overall_score"] == 49
        assert report["grade"] == "F"
        assert report["recommendations"] == [
            "Confirm speaker identities for better attribution",
            "Transcript has short segments - audio quality may be improved",
        ]

    def test_report_for_clean_confirmed_transcript(self, db, user, make_meeting):
        meeting = make_meeting(
            user,
            segments=(("Alice", TWENTY_WORDS, 0.0, 8.0), ("Bob", TWENTY_WORDS, 8.0, 16.0)),
        )
        for speaker in db.query(Speaker).filter(Speaker.meeting_id == meeting.id):
            speaker.confirm()
        db.commit()

        report = self.service.get_report(db, meeting.id, user.id)

        # 40 + 30 + 15 + 7.5
        assert report["overall_score"] == 93
        assert report["grade"] == "A"
        assert report["recommendations"] == []

    def test_unclear_markers_are_counted_per_occurrence(self, db, user, make_meeting):
        meeting = make_meeting(
            user,
            segments=(
                ("Alice", "[unclear] and [inaudible]", 0.0, 2.0),
                ("Bob", "Then [INAUDIBLE].", 2.0, 3.0),
            ),
        )

        report = self.service.get_report(db, meeting.id, user.id)

        assert report["inaudible_count"] == 3
        assert report["details"]["inaudible_penalty"] == 85

    def test_meeting_without_transcript(self, db, user, make_meeting):
        meeting = make_meeting(user, segments=())

        report = self.service.get_report(db, meeting.id, user.id)

        assert report["overall_score"] == 0
        assert report["segment_count"] == 0
        assert report["grade"] == "F"

    def test_other_users_meeting(self, db, user, other_user, make_meeting):
        meeting = make_meeting(user)
        with pytest.raises(NotFoundError):
            self.service.get_report(db, meeting.id, other_user.id)

    def test_recalculate_refreshes_stored_metrics(self, db, user, make_meeting):
        meeting = make_meeting(
            user,
            segments=(("Alice", "Hello [inaudible]", 0.0, 2.0), ("Bob", "Hi", 2.0, 3.0)),
        )
        assert meeting.quality_score is None

        report = self.service.recalculate(db, meeting.id, user.id)

        db.refresh(meeting)
        assert meeting.inaudible_count == 1
        assert meeting.quality_score == 50
        assert report["quality_score"] == 50


@pytest.mark.parametrize(
    "score,grade", [(100, "A"), (90, "A"), (89, "B"), (75, "C"), (60, "D"), (59, "F"), (0, "F")]
)
def test_quality_grade(score, grade):
    assert quality_grade(score) == grade


def test_single_speaker_recommendation():
    metrics = {
        "inaudible_count": 6,
        "avg_speaker_confidence": 0.9,
        "avg_segment_length": 15,
        "speaker_count": 1,
    }
    assert recommendations_for(metrics) == [
        "Review and correct inaudible sections for better accuracy",
        "Only one speaker detected - verify if more participants exist",
    ]
