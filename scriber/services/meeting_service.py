"""
Meeting service for listing and managing a user's meetings.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, selectinload

from scriber.models.meeting import Meeting, MeetingStatus
from scriber.services.access import get_owned_meeting
from scriber.utils.exceptions import ValidationError
from scriber.utils.helpers import safe_remove_file

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class MeetingService:
    def list_meetings(
        self,
        db: Session,
        user_id: int,
        search: Optional[str] = None,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        cursor: Optional[int] = None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """
        List meetings newest first with cursor pagination.

        Args:
            db: Database session
            user_id: Owner
            search: Case-insensitive match on title or original file name
            status: Exact meeting status
            start_date: Created at or after
            end_date: Created at or before
            cursor: ID of the last meeting of the previous page
            limit: Page size

        Returns:
            Dict with ``items``, ``next_cursor`` and ``has_more``
        """
        if status and status not in MeetingStatus.ALL:
            raise ValidationError(f"Invalid status: {status}", field="status")
        limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))

        query = db.query(Meeting).filter(Meeting.user_id == user_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(Meeting.title.ilike(pattern), Meeting.original_file_name.ilike(pattern))
            )
        if status:
            query = query.filter(Meeting.status == status)
        if start_date:
            query = query.filter(Meeting.created_at >= start_date)
        if end_date:
            query = query.filter(Meeting.created_at <= end_date)

        if cursor is not None:
            anchor = (
                db.query(Meeting.created_at, Meeting.id)
                .filter(Meeting.id == cursor, Meeting.user_id == user_id)
                .first()
            )
            if not anchor:
                raise ValidationError("Invalid cursor", field="cursor")
            query = query.filter(
                or_(
                    Meeting.created_at < anchor.created_at,
                    and_(Meeting.created_at == anchor.created_at, Meeting.id < anchor.id),
                )
            )

        meetings = (
            query.options(selectinload(Meeting.minutes))
            .order_by(Meeting.created_at.desc(), Meeting.id.desc())
            .limit(limit + 1)
            .all()
        )
        has_more = len(meetings) > limit
        items = meetings[:limit]
        return {
            "items": [
                {**meeting.to_dict(), "has_minutes": meeting.minutes is not None}
                for meeting in items
            ],
            "next_cursor": items[-1].id if has_more else None,
            "has_more": has_more,
        }

    def get_meeting(self, db: Session, meeting_id: int, user_id: int) -> Dict[str, Any]:
        meeting = get_owned_meeting(db, meeting_id, user_id)
        return meeting.to_dict(include_details=True)

    def rename(self, db: Session, meeting_id: int, user_id: int, title: str) -> Meeting:
        if not title or not title.strip():
            raise ValidationError("Title cannot be empty", field="title")
        meeting = get_owned_meeting(db, meeting_id, user_id)
        meeting.title = title.strip()
        db.commit()
        db.refresh(meeting)
        return meeting

    def delete(self, db: Session, meeting_id: int, user_id: int) -> None:
        """Delete a meeting and, best-effort, its audio file."""
        meeting = get_owned_meeting(db, meeting_id, user_id)
        file_path = meeting.file_path
        db.delete(meeting)
        db.commit()
        safe_remove_file(file_path)
        logger.info(f"Deleted meeting {meeting_id}")

    def delete_many(self, db: Session, meeting_ids: List[int], user_id: int) -> Dict[str, int]:
        """Delete the given meetings that belong to the user; others are ignored."""
        if not meeting_ids:
            return {"count": 0}
        meetings = (
            db.query(Meeting)
            .filter(Meeting.id.in_(meeting_ids), Meeting.user_id == user_id)
            .all()
        )
        file_paths = [meeting.file_path for meeting in meetings]
        for meeting in meetings:
            db.delete(meeting)
        db.commit()
        for file_path in file_paths:
            safe_remove_file(file_path)
        logger.info(f"Batch deleted {len(meetings)} meetings for user {user_id}")
        return {"count": len(meetings)}

    def get_status(
        self, db: Session, meeting_id: int, user_id: int, queue_service
    ) -> Dict[str, Any]:
        meeting = get_owned_meeting(db, meeting_id, user_id)
        job = queue_service.get_job_for_meeting(db, meeting_id)
        return {
            "meeting_id": meeting.id,
            "status": meeting.status,
            "last_processed_at": meeting.last_processed_at.isoformat()
            if meeting.last_processed_at
            else None,
            "job": job.to_dict() if job else None,
        }
