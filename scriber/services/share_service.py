"""
Share service for public read-only meeting links.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from scriber.core.config import SECURITY_SETTINGS, get_settings
from scriber.models.meeting import Meeting
from scriber.models.share_link import ShareLink, ShareType
from scriber.services.access import get_owned_meeting
from scriber.utils.exceptions import NotFoundError, ValidationError
from scriber.utils.helpers import generate_share_token, utcnow

logger = logging.getLogger(__name__)


def build_share_url(token: str) -> str:
    return f"{get_settings().web_url.rstrip('/')}/share/{token}"


class ShareService:
    def create(
        self,
        db: Session,
        meeting_id: int,
        user_id: int,
        share_type: str = ShareType.FULL,
        expires_in_hours: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Create a share link for a meeting.

        Args:
            db: Database session
            meeting_id: Meeting to share
            user_id: Owner of the meeting
            share_type: FULL, MINUTES or TRANSCRIPT
            expires_in_hours: Optional lifetime; links never expire without it

        Returns:
            Share link dict including the public share_url
        """
        get_owned_meeting(db, meeting_id, user_id)

        if share_type not in ShareType.ALL:
            raise ValidationError(f"Invalid share type: {share_type}", field="share_type")
        if expires_in_hours is not None and expires_in_hours <= 0:
            raise ValidationError("Expiry must be a positive number of hours", field="expires_in_hours")

        existing = db.query(ShareLink).filter(ShareLink.meeting_id == meeting_id).count()
        limit = SECURITY_SETTINGS["max_share_links_per_meeting"]
        if existing >= limit:
            raise ValidationError(f"Maximum of {limit} share links per meeting reached")

        link = ShareLink(
            meeting_id=meeting_id,
            token=generate_share_token(SECURITY_SETTINGS["share_token_bytes"]),
            share_type=share_type,
            expires_at=utcnow() + timedelta(hours=expires_in_hours)
            if expires_in_hours
            else None,
        )
        db.add(link)
        db.commit()
        db.refresh(link)
        logger.info(f"Created {share_type} share link {link.id} for meeting {meeting_id}")
        return link.to_dict(share_url=build_share_url(link.token))

    def list_for_meeting(self, db: Session, meeting_id: int, user_id: int) -> List[Dict[str, Any]]:
        get_owned_meeting(db, meeting_id, user_id)
        links = (
            db.query(ShareLink)
            .filter(ShareLink.meeting_id == meeting_id)
            .order_by(ShareLink.created_at.desc(), ShareLink.id.desc())
            .all()
        )
        return [link.to_dict(share_url=build_share_url(link.token)) for link in links]

    def revoke(self, db: Session, share_id: int, user_id: int) -> None:
        link = (
            db.query(ShareLink)
            .join(Meeting, ShareLink.meeting_id == Meeting.id)
            .filter(ShareLink.id == share_id, Meeting.user_id == user_id)
            .first()
        )
        if not link:
            raise NotFoundError("Share link not found", resource="share_link")
        db.delete(link)
        db.commit()
        logger.info(f"Revoked share link {share_id}")

    def get_shared_content(self, db: Session, token: str) -> Dict[str, Any]:
        """Public view of a shared meeting. No authentication."""
        link = db.query(ShareLink).filter(ShareLink.token == token).first()
        if not link:
            raise NotFoundError("Share link not found or invalid", resource="share_link")
        if link.is_expired():
            raise NotFoundError("Share link has expired", resource="share_link")

        meeting = link.meeting
        content: Dict[str, Any] = {
            "title": meeting.title,
            "created_at": meeting.created_at.isoformat() if meeting.created_at else None,
            "share_type": link.share_type,
        }
        if link.includes_minutes():
            content["minutes"] = meeting.minutes.content if meeting.minutes else None
        if link.includes_transcript():
            content["transcript"] = [
                {
                    "speaker": segment.speaker.name if segment.speaker else "Unknown",
                    "text": segment.text,
                    "start_time": segment.start_time,
                    "end_time": segment.end_time,
                }
                for segment in meeting.segments
            ]
        return content
