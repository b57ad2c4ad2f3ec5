"""
Transcript quality metrics and the per-meeting quality report.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from scriber.models.meeting import Meeting
from scriber.models.segment import TranscriptSegment
from scriber.models.speaker import Speaker
from scriber.services.access import get_owned_meeting
from scriber.services.transcript_parser import is_inaudible
from scriber.utils.helpers import round_half_up

logger = logging.getLogger(__name__)

UNCLEAR_PATTERN = re.compile(r"\[(inaudible|unclear)\]", re.IGNORECASE)

# (minimum score, grade), checked top-down
GRADES = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]

# Words per segment that earns the full length score
IDEAL_SEGMENT_WORDS = 20

WEIGHTS = {
    "inaudible_penalty": 0.4,
    "confidence_score": 0.3,
    "length_score": 0.15,
    "speaker_score": 0.15,
}


def quality_grade(score: float) -> str:
    for minimum, grade in GRADES:
        if score >= minimum:
            return grade
    return "F"


def recommendations_for(metrics: Dict[str, Any]) -> List[str]:
    """Suggestions for the owner, derived from the report metrics."""
    recommendations = []
    if metrics["inaudible_count"] > 5:
        recommendations.append("Review and correct inaudible sections for better accuracy")
    if metrics["avg_speaker_confidence"] < 0.7:
        recommendations.append("Confirm speaker identities for better attribution")
    if metrics["avg_segment_length"] < 10:
        recommendations.append("Transcript has short segments - audio quality may be improved")
    if metrics["speaker_count"] == 1:
        recommendations.append("Only one speaker detected - verify if more participants exist")
    return recommendations


def refresh_transcript_metrics(db: Session, meeting_id: int) -> Optional[Meeting]:
    """
    Recount inaudible segments and the stored quality score of a meeting.

    Uses the same definition as transcription: the share of segments without
    an ``[inaudible]`` marker, rounded half up. Changes are not committed.
    """
    db.flush()
    meeting = db.get(Meeting, meeting_id)
    if not meeting:
        return None
    texts = [
        text
        for (text,) in db.query(TranscriptSegment.text).filter(
            TranscriptSegment.meeting_id == meeting_id
        )
    ]
    total = len(texts)
    inaudible = sum(1 for text in texts if is_inaudible(text))
    meeting.inaudible_count = inaudible
    meeting.quality_score = round_half_up((total - inaudible) / total * 100) if total else None
    return meeting


class QualityService:
    """
    Quality scoring for transcripts.

    The report's ``overall_score`` weighs clarity, speaker confidence, segment
    length and identified speakers. It is separate from the stored
    ``Meeting.quality_score``, which only measures clarity.
    """

    def calculate(self, db: Session, meeting_id: int) -> Dict[str, Any]:
        segments = (
            db.query(TranscriptSegment).filter(TranscriptSegment.meeting_id == meeting_id).all()
        )
        speakers = db.query(Speaker).filter(Speaker.meeting_id == meeting_id).all()

        if not segments:
            return {
                "overall_score": 0,
                "inaudible_count": 0,
                "avg_speaker_confidence": 0.0,
                "word_count": 0,
                "segment_count": 0,
                "speaker_count": len(speakers),
                "avg_segment_length": 0.0,
                "details": {key: 0.0 for key in WEIGHTS},
            }

        word_count = sum(len(segment.text.split()) for segment in segments)
        avg_segment_length = word_count / len(segments)
        inaudible_count = sum(len(UNCLEAR_PATTERN.findall(segment.text)) for segment in segments)

        confidences = [s.name_confidence for s in speakers if s.name_confidence is not None]
        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.5

        details = {
            "inaudible_penalty": float(max(0, 100 - inaudible_count * 5)),
            "confidence_score": avg_confidence * 100,
            "length_score": min(100.0, avg_segment_length / IDEAL_SEGMENT_WORDS * 100),
            "speaker_score": float(min(100, sum(1 for s in speakers if not s.is_unknown) * 25)),
        }
        overall = round_half_up(sum(details[key] * weight for key, weight in WEIGHTS.items()))

        return {
            "overall_score": max(0, min(100, overall)),
            "inaudible_count": inaudible_count,
            "avg_speaker_confidence": avg_confidence,
            "word_count": word_count,
            "segment_count": len(segments),
            "speaker_count": len(speakers),
            "avg_segment_length": round(avg_segment_length, 1),
            "details": details,
        }

    def get_report(self, db: Session, meeting_id: int, user_id: int) -> Dict[str, Any]:
        """
        Quality report for a meeting owned by ``user_id``.

        Returns:
            Metrics with a letter grade and recommendations

        Raises:
            NotFoundError: If the meeting is not owned by the user
        """
        meeting = get_owned_meeting(db, meeting_id, user_id)
        metrics = self.calculate(db, meeting_id)
        return {
            "meeting_id": meeting.id,
            "title": meeting.title,
            "quality_score": meeting.quality_score,
            **metrics,
            "grade": quality_grade(metrics["overall_score"]),
            "recommendations": recommendations_for(metrics),
        }

    def recalculate(self, db: Session, meeting_id: int, user_id: int) -> Dict[str, Any]:
        """Refresh the stored metrics from the current transcript, then report."""
        get_owned_meeting(db, meeting_id, user_id)
        refresh_transcript_metrics(db, meeting_id)
        db.commit()
        logger.info(f"Recalculated quality for meeting {meeting_id}")
        return self.get_report(db, meeting_id, user_id)
