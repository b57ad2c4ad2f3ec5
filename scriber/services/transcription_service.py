"""
Transcription service orchestrating AI transcription of a meeting.
Sends audio to the model, parses its output, repairs timestamps, and stores
speakers and transcript segments together with quality metrics.
"""

import logging
import os
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from scriber.core.config import AUDIO_SETTINGS
from scriber.models.meeting import Meeting, MeetingStatus
from scriber.models.notification import NotificationType
from scriber.models.segment import TranscriptSegment
from scriber.models.speaker import Speaker
from scriber.services.ai_provider import get_ai_provider
from scriber.services.audio_processor import AudioProcessor
from scriber.services.notification_service import NotificationService
from scriber.services.speaker_identifier import SpeakerIdentifier
from scriber.services.transcript_parser import (
    apply_offset,
    build_context,
    is_inaudible,
    normalize_segment,
    parse_model_output,
)
from scriber.utils.exceptions import NotFoundError, ScriberError, TranscriptionError
from scriber.utils.helpers import round_half_up, utcnow

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]


class TranscriptionService:
    """
    Transcription service for meetings.
    Owns the meeting status transitions around a transcription run.
    """

    def __init__(
        self,
        provider=None,
        audio_processor: Optional[AudioProcessor] = None,
        notification_service: Optional[NotificationService] = None,
        speaker_identifier: Optional[SpeakerIdentifier] = None,
    ):
        self.provider = provider or get_ai_provider()
        self.audio_processor = audio_processor or AudioProcessor()
        self.notification_service = notification_service or NotificationService()
        self.speaker_identifier = speaker_identifier or SpeakerIdentifier(self.provider)
        self.context_segments = AUDIO_SETTINGS["context_segments"]

    def transcribe(
        self,
        db: Session,
        meeting_id: int,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Transcribe a meeting's audio and persist the transcript.

        Args:
            db: Database session
            meeting_id: Meeting to transcribe
            progress_callback: Optional callback receiving (percentage, step)

        Returns:
            Summary with segment/speaker counts and quality metrics

        Raises:
            NotFoundError: If the meeting does not exist
            TranscriptionError: If the model call or storage fails
        """
        meeting = db.query(Meeting).filter(Meeting.id == meeting_id).first()
        if not meeting:
            raise NotFoundError(f"Meeting {meeting_id} not found", resource="meeting")

        def report(percentage: float, step: str) -> None:
            if progress_callback:
                progress_callback(percentage, step)

        try:
            if not meeting.file_path or not os.path.exists(meeting.file_path):
                raise TranscriptionError(
                    "Audio file is missing", details={"meeting_id": meeting_id}
                )

            meeting.update_status(MeetingStatus.PROCESSING_TRANSCRIPT)
            db.commit()

            report(10, "Preparing audio")
            segments = self._run_model(meeting, report)

            db.refresh(meeting, attribute_names=["status"])
            if meeting.status == MeetingStatus.CANCELLED:
                logger.info(
                    f"Meeting {meeting_id} was cancelled during transcription, result discarded"
                )
                return {"meeting_id": meeting_id, "cancelled": True}

            report(90, "Saving transcript")
            summary = self.store_segments(db, meeting, segments)

            meeting.update_status(MeetingStatus.TRANSCRIPT_READY)
            meeting.last_processed_at = utcnow()
            db.commit()
            summary["identified_speakers"] = self._identify_speakers(db, meeting_id)

            logger.info(
                f"Meeting {meeting_id} transcribed: {summary['segment_count']} segments, "
                f"{summary['speaker_count']} speakers"
            )
            self.notification_service.notify(
                db,
                meeting.user_id,
                NotificationType.TRANSCRIPTION_COMPLETE,
                "Transcription Complete",
                f'Your meeting "{meeting.title}" has been transcribed.',
                meeting_id=meeting.id,
            )
            return summary

        except Exception as e:
            logger.error(f"Transcription failed for meeting {meeting_id}: {e}")
            db.rollback()
            meeting.update_status(MeetingStatus.FAILED)
            meeting.last_processed_at = utcnow()
            db.commit()
            self.notification_service.notify(
                db,
                meeting.user_id,
                NotificationType.TRANSCRIPTION_FAILED,
                "Transcription Failed",
                f'We could not transcribe "{meeting.title}". You can retry from the meeting page.',
                meeting_id=meeting.id,
            )
            if isinstance(e, ScriberError):
                raise
            raise TranscriptionError(f"Transcription failed: {str(e)}")

    def _identify_speakers(self, db: Session, meeting_id: int) -> List[Dict[str, Any]]:
        try:
            return self.speaker_identifier.identify_from_context(db, meeting_id)
        except Exception as e:
            db.rollback()
            logger.error(
                f"Speaker identification failed for meeting {meeting_id} (non-critical): {e}"
            )
            return []

    def _run_model(self, meeting: Meeting, report: ProgressCallback) -> List[Dict[str, Any]]:
        """Send each audio chunk to the model and collect normalized segments."""
        chunks = self.audio_processor.split_for_transcription(
            meeting.file_path, meeting.duration_seconds
        )
        segments: List[Dict[str, Any]] = []
        context = None
        try:
            for chunk in chunks:
                report(
                    10 + 80 * chunk.index / len(chunks),
                    f"Transcribing part {chunk.index + 1} of {len(chunks)}",
                )
                raw_text = self.provider.transcribe(
                    chunk.path,
                    language=meeting.language_code,
                    context=context,
                    chunk_index=chunk.index,
                )
                raw_segments = apply_offset(parse_model_output(raw_text), chunk.offset)
                chunk_segments = [normalize_segment(raw) for raw in raw_segments]
                segments.extend(chunk_segments)
                context = build_context(chunk_segments, self.context_segments)
        finally:
            self.audio_processor.cleanup_chunks(chunks)
        return segments

    def store_segments(
        self, db: Session, meeting: Meeting, segments: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Replace the meeting's transcript with the given normalized segments.

        Speakers are upserted by name within the meeting. Quality metrics are
        written to the meeting but not committed.

        Args:
            db: Database session
            meeting: Target meeting
            segments: Output of ``normalize_segment``

        Returns:
            Summary of what was stored
        """
        db.query(TranscriptSegment).filter(
            TranscriptSegment.meeting_id == meeting.id
        ).delete(synchronize_session="fetch")
        db.query(Speaker).filter(Speaker.meeting_id == meeting.id).delete(
            synchronize_session="fetch"
        )
        db.flush()

        speakers: Dict[str, Speaker] = {}
        new_speaker_confidences: List[float] = []
        inaudible_count = 0

        for seg in segments:
            name = seg["speaker"]
            confidence = seg["confidence"]
            speaker = speakers.get(name)
            if speaker is None:
                speaker = Speaker(
                    meeting_id=meeting.id,
                    name=name,
                    is_unknown="unknown" in name.lower(),
                    is_confirmed=False,
                    name_confidence=confidence,
                )
                db.add(speaker)
                db.flush()
                speakers[name] = speaker
                new_speaker_confidences.append(confidence)
            elif speaker.name_confidence == 0 and confidence > 0:
                speaker.name_confidence = confidence

            if is_inaudible(seg["text"]):
                inaudible_count += 1

            db.add(
                TranscriptSegment(
                    meeting_id=meeting.id,
                    speaker_id=speaker.id,
                    start_time=seg["start_time"],
                    end_time=seg["end_time"],
                    text=seg["text"],
                    languages_used=seg["languages_used"],
                )
            )

        total = len(segments)
        meeting.inaudible_count = inaudible_count
        meeting.avg_speaker_confidence = (
            sum(new_speaker_confidences) / len(new_speaker_confidences)
            if new_speaker_confidences
            else None
        )
        meeting.quality_score = (
            round_half_up((total - inaudible_count) / total * 100) if total else None
        )
        db.flush()
        db.expire(meeting, ["segments", "speakers"])

        return {
            "meeting_id": meeting.id,
            "segment_count": total,
            "speaker_count": len(speakers),
            "inaudible_count": inaudible_count,
            "avg_speaker_confidence": meeting.avg_speaker_confidence,
            "quality_score": meeting.quality_score,
        }
