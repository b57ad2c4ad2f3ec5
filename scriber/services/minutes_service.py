"""
Minutes service for AI-generated meeting minutes.
Handles generation from the transcript, review workflow, versioning, and translation.
"""

import logging
from typing import List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from scriber.models.meeting import Meeting, MeetingStatus, Minutes, MinutesStatus, MinutesVersion
from scriber.models.notification import NotificationType
from scriber.models.segment import TranscriptSegment
from scriber.models.template import MinutesTemplate
from scriber.services.access import get_owned_meeting
from scriber.services.ai_provider import get_ai_provider
from scriber.services.notification_service import NotificationService
from scriber.utils.exceptions import (
    MinutesError,
    NotFoundError,
    ScriberError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "DETAILED"

TEMPLATE_PROMPTS = {
    "GENERAL_SUMMARY": """You are an expert meeting secretary. Generate a high-quality, professional summary of this meeting.

Format in Markdown:
# Meeting Summary

## Overview
A concise narrative (3-5 paragraphs) describing the core discussions and outcomes.
Focus on specific details: names, dates, numbers, and key arguments presented.

## Key Takeaways
3-5 bullet points of the most critical information.

## Participants
List the speakers identified in the transcript.

Do NOT include action items or tasks; this is purely an informational summary.""",
    "EXECUTIVE": """You are an expert meeting secretary. Generate a concise executive summary.

Format in Markdown:
1. **Executive Summary** (2-3 sentences max)
2. **Key Decisions** (bullet points)
3. **Action Items** (checklist with assignees if mentioned)

Keep it brief and focused on outcomes.""",
    "DETAILED": """You are an expert meeting secretary. Generate comprehensive meeting minutes.

Format in Markdown:
1. **Executive Summary**: Brief overview of purpose and outcome.
2. **Attendees**: List speakers identified in transcript.
3. **Key Discussion Points**: Detailed bullet points by topic.
4. **Action Items**: Checklist with assignees and deadlines if mentioned.
5. **Key Decisions**: Explicit decisions made.
6. **Open Questions**: Unresolved items for follow-up.""",
    "ACTION_ITEMS": """You are an expert meeting secretary. Extract ONLY action items from this meeting.

Format in Markdown as a checklist:
- [ ] **Task description** - Assigned to: [Name if mentioned] - Deadline: [Date if mentioned]

Focus exclusively on tasks, commitments, and follow-ups.""",
    "COMPREHENSIVE": """You are an expert meeting secretary. Generate complete, detailed meeting minutes.

Format in Markdown with the following sections:
# Meeting Minutes
## Executive Summary
## Attendees
## Agenda / Topics Covered
## Detailed Discussion Notes
## Key Decisions Made
## Action Items
- [ ] **Task** - Owner: [Name] - Deadline: [Date if mentioned]
## Open Questions & Follow-ups
## Next Steps

Make the minutes thorough but well-organized with clear headings.""",
}


def build_template_prompt(template: MinutesTemplate) -> str:
    """Prompt for a user-defined template: one Markdown section per enabled section."""
    lines = [
        "You are an expert meeting secretary. Generate meeting minutes in Markdown "
        f'following the "{template.name}" template.',
    ]
    if template.description:
        lines.append(template.description)
    lines.append("")
    lines.append("Use exactly these sections, in this order:")
    for section in template.enabled_sections:
        title = section.get("name") or section.get("id") or "Section"
        hint = section.get("prompt")
        lines.append(f"## {title}" + (f"\n{hint}" if hint else ""))
    return "\n".join(lines)


def format_transcript(segments: List[TranscriptSegment]) -> str:
    return "\n".join(
        f"{segment.speaker.name if segment.speaker else 'Unknown Speaker'}: {segment.text}"
        for segment in segments
    )


class MinutesService:
    """Generates and manages minutes for meetings."""

    def __init__(self, provider=None, notification_service: Optional[NotificationService] = None):
        self.provider = provider or get_ai_provider()
        self.notification_service = notification_service or NotificationService()

    def resolve_prompt(
        self, db: Session, user_id: int, template: Union[str, int, None]
    ) -> str:
        """
        Prompt for a built-in template name or a user template id.

        Unknown names fall back to the detailed template.
        """
        if template is None or template == "":
            return TEMPLATE_PROMPTS[DEFAULT_TEMPLATE]
        if isinstance(template, int) or str(template).isdigit():
            custom = (
                db.query(MinutesTemplate)
                .filter(
                    MinutesTemplate.id == int(template),
                    MinutesTemplate.user_id == user_id,
                )
                .first()
            )
            if not custom:
                raise NotFoundError("Template not found", resource="template")
            return build_template_prompt(custom)
        return TEMPLATE_PROMPTS.get(str(template).upper(), TEMPLATE_PROMPTS[DEFAULT_TEMPLATE])

    def generate(
        self, db: Session, meeting_id: int, template: Union[str, int, None] = DEFAULT_TEMPLATE
    ) -> Optional[Minutes]:
        """
        Generate minutes from the meeting transcript.

        Args:
            db: Database session
            meeting_id: Meeting to summarize
            template: Built-in template name or a user template id

        Returns:
            The stored minutes in DRAFT status, or None if the meeting was
            cancelled while the model was running

        Raises:
            ValidationError: If the meeting has no transcript
            MinutesError: If generation fails
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
        if not segments:
            raise ValidationError("No transcript available for this meeting")

        prompt_header = self.resolve_prompt(db, meeting.user_id, template)

        meeting.update_status(MeetingStatus.PROCESSING_MINUTES)
        db.commit()

        try:
            prompt = f"{prompt_header}\n\nTranscript:\n{format_transcript(segments)}\n"
            content = self.provider.generate_text(
                prompt, f"Minutes generation for meeting {meeting_id}"
            )
            if not content:
                raise MinutesError("Model returned empty minutes")

            db.refresh(meeting, attribute_names=["status"])
            if meeting.status == MeetingStatus.CANCELLED:
                logger.info(f"Meeting {meeting_id} was cancelled during minutes generation")
                return None

            minutes = db.query(Minutes).filter(Minutes.meeting_id == meeting_id).first()
            if minutes:
                minutes.content = content
                minutes.status = MinutesStatus.DRAFT
            else:
                minutes = Minutes(
                    meeting_id=meeting_id, content=content, status=MinutesStatus.DRAFT
                )
                db.add(minutes)

            meeting.update_status(MeetingStatus.COMPLETED)
            db.commit()
            db.refresh(minutes)
            logger.info(f"Minutes generated for meeting {meeting_id}")

        except Exception as e:
            logger.error(f"Minutes generation failed for meeting {meeting_id}: {e}")
            db.rollback()
            meeting.update_status(MeetingStatus.FAILED)
            db.commit()
            self.notification_service.create(
                db,
                meeting.user_id,
                "Minutes Failed",
                f'Minutes could not be generated for "{meeting.title}".',
                NotificationType.MINUTES_FAILED,
                meeting.id,
            )
            if isinstance(e, ScriberError):
                raise
            raise MinutesError(f"Minutes generation failed: {str(e)}")

        self.notification_service.notify(
            db,
            meeting.user_id,
            NotificationType.MINUTES_READY,
            f"Minutes Ready: {meeting.title}",
            f'Your meeting minutes for "{meeting.title}" are ready.',
            meeting_id=meeting.id,
            email=True,
            email_body=(
                f'Your meeting minutes for "{meeting.title}" are ready.\n\n'
                f"Summary:\n{content[:200]}..."
            ),
        )
        return minutes

    def get(self, db: Session, meeting_id: int, user_id: int) -> Optional[Minutes]:
        get_owned_meeting(db, meeting_id, user_id)
        return db.query(Minutes).filter(Minutes.meeting_id == meeting_id).first()

    def _get_existing(self, db: Session, meeting_id: int, user_id: int) -> Minutes:
        minutes = self.get(db, meeting_id, user_id)
        if not minutes:
            raise NotFoundError("Minutes not found", resource="minutes")
        return minutes

    def _next_version(self, db: Session, minutes: Minutes) -> int:
        latest = (
            db.query(func.max(MinutesVersion.version))
            .filter(MinutesVersion.minutes_id == minutes.id)
            .scalar()
        )
        return (latest or 0) + 1

    def update(self, db: Session, meeting_id: int, user_id: int, content: str) -> Minutes:
        """Save an edited version; the previous content is kept as a version."""
        minutes = self._get_existing(db, meeting_id, user_id)
        db.add(
            MinutesVersion(
                minutes_id=minutes.id,
                content=minutes.content,
                version=self._next_version(db, minutes),
            )
        )
        minutes.content = content
        minutes.status = MinutesStatus.UNDER_REVIEW
        db.commit()
        db.refresh(minutes)
        return minutes

    def update_status(self, db: Session, meeting_id: int, user_id: int, status: str) -> Minutes:
        if status not in MinutesStatus.ALL:
            raise ValidationError(f"Invalid minutes status: {status}", field="status")
        minutes = self._get_existing(db, meeting_id, user_id)
        minutes.status = status
        if status == MinutesStatus.APPROVED:
            minutes.reviewer_id = user_id
        db.commit()
        return minutes

    def get_versions(self, db: Session, meeting_id: int, user_id: int) -> List[MinutesVersion]:
        minutes = self._get_existing(db, meeting_id, user_id)
        return (
            db.query(MinutesVersion)
            .filter(MinutesVersion.minutes_id == minutes.id)
            .order_by(MinutesVersion.version.desc())
            .all()
        )

    def revert_to_version(
        self, db: Session, meeting_id: int, user_id: int, version: int
    ) -> Minutes:
        minutes = self._get_existing(db, meeting_id, user_id)
        target = (
            db.query(MinutesVersion)
            .filter(
                MinutesVersion.minutes_id == minutes.id,
                MinutesVersion.version == version,
            )
            .first()
        )
        if not target:
            raise NotFoundError("Version not found", resource="minutes_version")
        return self.update(db, meeting_id, user_id, target.content)

    def translate(
        self, db: Session, meeting_id: int, user_id: int, language: str
    ) -> dict:
        """
        Translate the minutes without overwriting the stored original.

        Returns:
            Dict with the translated content and target language
        """
        if not language or not language.strip():
            raise ValidationError("Target language is required", field="language")
        minutes = self._get_existing(db, meeting_id, user_id)
        prompt = (
            f"You are a professional meeting secretary fluent in {language}.\n\n"
            f"Translate the following meeting minutes into {language}. Keep the Markdown "
            "structure, names, numbers and dates intact. Return only the translation.\n\n"
            f"{minutes.content}"
        )
        translated = self.provider.generate_text(
            prompt, f"Minutes translation for meeting {meeting_id}"
        )
        meeting = minutes.meeting
        meeting.minutes_lang = language
        db.commit()
        return {"meeting_id": meeting_id, "language": language, "content": translated}
