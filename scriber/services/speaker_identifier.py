"""
Speaker identification from transcript context.
Asks the model for real names behind diarization labels ("Speaker 2") based on
how participants address and introduce each other, then renames the speakers.
"""

import json
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from scriber.models.meeting import Meeting
from scriber.models.segment import TranscriptSegment
from scriber.models.speaker import Speaker
from scriber.services.ai_provider import clean_model_output, get_ai_provider
from scriber.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 15000
# Below this a suggested name gets a "?" suffix
CONFIDENT_THRESHOLD = 0.7
# Below this the speaker stays flagged as unknown
UNKNOWN_THRESHOLD = 0.5

IDENTIFICATION_PROMPT = """You are analyzing a meeting transcript to identify speaker names.

Current speaker labels: {speaker_list}

Analyze the transcript for name clues:
1. How speakers address each other ("Hey John", "Thanks Sarah", "as Mike mentioned")
2. Self-introductions ("I'm John from...", "This is Sarah speaking")
3. References ("John's point is...", "what Sarah said earlier")
4. Sign-offs ("Thanks, John here, signing off")

IMPORTANT RULES:
- Only suggest names you are confident about based on evidence in the transcript
- If you cannot identify a speaker's real name, keep their original label
- Confidence score: 0.0-1.0 (1.0 = certain, 0.7+ = confident, <0.7 = uncertain)

Respond ONLY in valid JSON format:
{{
  "speakers": [
    {{
      "current_label": "Speaker 1",
      "suggested_name": "John",
      "confidence": 0.85,
      "evidence": "Called 'John' at multiple points in conversation"
    }}
  ]
}}

If no names can be identified, return: {{"speakers": []}}

Transcript:
{transcript}"""


def parse_suggestions(raw_text: str) -> List[Dict[str, Any]]:
    """Suggestion dicts from the model's JSON reply."""
    data = json.loads(clean_model_output(raw_text))
    if isinstance(data, list):
        suggestions = data
    elif isinstance(data, dict):
        suggestions = data.get("speakers") or []
    else:
        suggestions = []
    return [s for s in suggestions if isinstance(s, dict)]


def _confidence(value: Any) -> float:
    try:
        return min(1.0, max(0.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


class SpeakerIdentifier:
    """
    Names diarized speakers from what is said in the meeting.
    Runs after transcription; a failed model call never fails the pipeline.
    """

    def __init__(self, provider=None):
        self._provider = provider

    @property
    def provider(self):
        if self._provider is None:
            self._provider = get_ai_provider()
        return self._provider

    def identify_from_context(self, db: Session, meeting_id: int) -> List[Dict[str, Any]]:
        """
        Rename the meeting's speakers using name clues in the transcript.

        Confirmed speakers are left alone. Names suggested with low confidence
        are stored with a ``?`` suffix so the owner knows to check them.

        Args:
            db: Database session
            meeting_id: Transcribed meeting

        Returns:
            One dict per renamed speaker; empty when nothing was identified
            or the model call failed

        Raises:
            NotFoundError: If the meeting does not exist
        """
        meeting = db.query(Meeting).filter(Meeting.id == meeting_id).first()
        if not meeting:
            raise NotFoundError("Meeting not found", resource="meeting")

        segments = (
            db.query(TranscriptSegment)
            .filter(TranscriptSegment.meeting_id == meeting_id)
            .order_by(TranscriptSegment.start_time)
            .all()
        )
        speakers: Dict[str, Speaker] = {}
        for segment in segments:
            if segment.speaker and segment.speaker.name not in speakers:
                speakers[segment.speaker.name] = segment.speaker
        if not speakers:
            return []

        transcript = "\n".join(
            f"{segment.speaker.name if segment.speaker else 'Unknown'}: {segment.text}"
            for segment in segments
        )
        prompt = IDENTIFICATION_PROMPT.format(
            speaker_list=", ".join(speakers),
            transcript=transcript[:MAX_TRANSCRIPT_CHARS],
        )

        try:
            raw_text = self.provider.generate_text(
                prompt, f"Speaker identification for meeting {meeting_id}"
            )
            suggestions = parse_suggestions(raw_text)
        except Exception as e:
            logger.error(f"Speaker identification failed for meeting {meeting_id}: {e}")
            return []

        identified = []
        for suggestion in suggestions:
            speaker = speakers.get(str(suggestion.get("current_label", "")))
            suggested = str(suggestion.get("suggested_name") or "").strip()
            if not speaker or not suggested or speaker.is_confirmed:
                continue
            if suggested == speaker.name:
                continue

            confidence = _confidence(suggestion.get("confidence"))
            if confidence < CONFIDENT_THRESHOLD and not suggested.endswith("?"):
                suggested = f"{suggested}?"

            original_name = speaker.name
            speaker.name = suggested[:255]
            speaker.name_confidence = confidence
            speaker.is_unknown = confidence < UNKNOWN_THRESHOLD
            speaker.is_confirmed = False
            identified.append(
                {
                    "speaker_id": speaker.id,
                    "original_name": original_name,
                    "suggested_name": speaker.name,
                    "confidence": confidence,
                    "evidence": suggestion.get("evidence"),
                }
            )

        if identified:
            db.commit()
            logger.info(
                f"Identified {len(identified)} speakers for meeting {meeting_id}: "
                + ", ".join(f"{s['original_name']} -> {s['suggested_name']}" for s in identified)
            )
        return identified
