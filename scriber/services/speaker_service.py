"""
Speaker service for managing meeting speakers.
Handles listing, renaming, merging, and confirming diarized speakers.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from scriber.models.meeting import Meeting
from scriber.models.segment import TranscriptSegment
from scriber.models.speaker import Speaker
from scriber.services.access import get_owned_meeting
from scriber.utils.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class SpeakerService:
    """
    Speaker service for meeting participants.
    Every operation is scoped to meetings owned by the calling user.
    """

    def _segment_count(self, db: Session, speaker_id: int) -> int:
        return (
            db.query(func.count(TranscriptSegment.id))
            .filter(TranscriptSegment.speaker_id == speaker_id)
            .scalar()
        )

    def get_owned_speaker(
        self, db: Session, speaker_id: int, user_id: int, label: str = "Speaker"
    ) -> Speaker:
        speaker = (
            db.query(Speaker)
            .join(Meeting, Speaker.meeting_id == Meeting.id)
            .filter(Speaker.id == speaker_id, Meeting.user_id == user_id)
            .first()
        )
        if not speaker:
            raise NotFoundError(f"{label} not found", resource="speaker")
        return speaker

    def list_for_meeting(self, db: Session, meeting_id: int, user_id: int) -> List[Dict[str, Any]]:
        """
        List the speakers of a meeting with their segment counts.

        Args:
            db: Database session
            meeting_id: Meeting ID
            user_id: Requesting user

        Returns:
            Speaker dicts ordered by name
        """
        get_owned_meeting(db, meeting_id, user_id)
        rows = (
            db.query(Speaker, func.count(TranscriptSegment.id))
            .outerjoin(TranscriptSegment, TranscriptSegment.speaker_id == Speaker.id)
            .filter(Speaker.meeting_id == meeting_id)
            .group_by(Speaker.id)
            .order_by(Speaker.name)
            .all()
        )
        return [speaker.to_dict(segment_count=count) for speaker, count in rows]

    def rename(self, db: Session, speaker_id: int, user_id: int, name: str) -> Dict[str, Any]:
        """
        Rename a speaker across the whole transcript.

        Args:
            db: Database session
            speaker_id: Speaker ID
            user_id: Requesting user
            name: New display name

        Returns:
            Updated speaker dict
        """
        if not name or not name.strip():
            raise ValidationError("Speaker name cannot be empty", field="name")
        speaker = self.get_owned_speaker(db, speaker_id, user_id)
        old_name = speaker.name
        speaker.rename(name)
        db.commit()
        logger.info(f"Renamed speaker {speaker_id}: '{old_name}' -> '{speaker.name}'")
        return speaker.to_dict(segment_count=self._segment_count(db, speaker.id))

    def merge(
        self, db: Session, source_id: int, target_id: int, user_id: int
    ) -> Dict[str, Any]:
        """
        Merge one speaker into another.

        All segments of the source are reassigned to the target and the source
        speaker is deleted.

        Args:
            db: Database session
            source_id: Speaker to remove
            target_id: Speaker to keep
            user_id: Requesting user

        Returns:
            The target speaker dict with its new segment count

        Raises:
            ValidationError: Same speaker, or speakers from different meetings
            NotFoundError: Either speaker missing or not owned
        """
        if source_id == target_id:
            raise ValidationError("Cannot merge a speaker into itself")

        source = self.get_owned_speaker(db, source_id, user_id, "Source speaker")
        target = self.get_owned_speaker(db, target_id, user_id, "Target speaker")

        if source.meeting_id != target.meeting_id:
            raise ValidationError("Speakers must belong to the same meeting")

        moved = (
            db.query(TranscriptSegment)
            .filter(TranscriptSegment.speaker_id == source.id)
            .update({TranscriptSegment.speaker_id: target.id}, synchronize_session="fetch")
        )
        db.delete(source)
        db.commit()
        db.expire_all()

        logger.info(
            f"Merged speaker {source_id} into {target_id} ({moved} segments moved)"
        )
        return target.to_dict(segment_count=self._segment_count(db, target.id))

    def confirm(self, db: Session, speaker_id: int, user_id: int) -> Dict[str, Any]:
        """Mark a speaker's name as confirmed by the owner."""
        speaker = self.get_owned_speaker(db, speaker_id, user_id)
        speaker.confirm()
        db.commit()
        return speaker.to_dict(segment_count=self._segment_count(db, speaker.id))
