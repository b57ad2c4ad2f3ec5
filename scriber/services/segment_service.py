"""
Segment service for manual transcript corrections.
Keeps an edit history per segment and supports reverting and speaker reassignment.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from scriber.models.meeting import Meeting
from scriber.models.segment import SegmentEdit, TranscriptSegment
from scriber.models.speaker import Speaker
from scriber.services.quality_service import refresh_transcript_metrics
from scriber.utils.exceptions import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class SegmentService:
    def get_segment(self, db: Session, segment_id: int, user_id: int) -> TranscriptSegment:
        """
        Load a segment the user may edit.

        Raises:
            NotFoundError: If the segment does not exist
            ForbiddenError: If the segment belongs to another user's meeting
        """
        segment = db.query(TranscriptSegment).filter(TranscriptSegment.id == segment_id).first()
        if not segment:
            raise NotFoundError("Segment not found", resource="segment")
        owner_id = db.query(Meeting.user_id).filter(Meeting.id == segment.meeting_id).scalar()
        if owner_id != user_id:
            raise ForbiddenError("You do not have access to this segment")
        return segment

    def update_text(
        self,
        db: Session,
        segment_id: int,
        user_id: int,
        text: str,
        reason: Optional[str] = None,
    ) -> TranscriptSegment:
        if text is None or not text.strip():
            raise ValidationError("Segment text cannot be empty", field="text")
        segment = self.get_segment(db, segment_id, user_id)
        new_text = text.strip()
        if new_text == segment.text:
            return segment

        db.add(
            SegmentEdit(
                segment_id=segment.id,
                previous_text=segment.text,
                new_text=new_text,
                edited_by=user_id,
                edit_reason=reason,
            )
        )
        if segment.original_text is None:
            segment.original_text = segment.text
        segment.text = new_text
        refresh_transcript_metrics(db, segment.meeting_id)
        db.commit()
        db.refresh(segment)
        logger.info(f"Segment {segment_id} edited by user {user_id}")
        return segment

    def get_history(self, db: Session, segment_id: int, user_id: int) -> List[SegmentEdit]:
        self.get_segment(db, segment_id, user_id)
        return (
            db.query(SegmentEdit)
            .filter(SegmentEdit.segment_id == segment_id)
            .order_by(SegmentEdit.created_at.desc(), SegmentEdit.id.desc())
            .all()
        )

    def revert(self, db: Session, segment_id: int, user_id: int, edit_id: int) -> TranscriptSegment:
        """Restore the text a segment had before the given edit."""
        self.get_segment(db, segment_id, user_id)
        edit = (
            db.query(SegmentEdit)
            .filter(SegmentEdit.id == edit_id, SegmentEdit.segment_id == segment_id)
            .first()
        )
        if not edit:
            raise NotFoundError("Edit not found", resource="segment_edit")
        return self.update_text(
            db, segment_id, user_id, edit.previous_text, reason=f"Reverted edit {edit_id}"
        )

    def reassign_speaker(
        self, db: Session, segment_id: int, user_id: int, speaker_id: int
    ) -> TranscriptSegment:
        segment = self.get_segment(db, segment_id, user_id)
        speaker = db.query(Speaker).filter(Speaker.id == speaker_id).first()
        if not speaker or speaker.meeting_id != segment.meeting_id:
            raise ValidationError("Speaker does not belong to this meeting", field="speaker_id")
        segment.speaker_id = speaker.id
        db.commit()
        db.refresh(segment)
        return segment
