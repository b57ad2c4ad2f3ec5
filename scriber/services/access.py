"""
Ownership lookups shared by the meeting-scoped services.
Resources belonging to another user are reported as missing.
"""

from sqlalchemy.orm import Session

from scriber.models.meeting import Meeting
from scriber.utils.exceptions import NotFoundError


def get_owned_meeting(db: Session, meeting_id: int, user_id: int) -> Meeting:
    """
    Load a meeting owned by ``user_id``.

    Raises:
        NotFoundError: If the meeting does not exist or belongs to someone else
    """
    meeting = (
        db.query(Meeting)
        .filter(Meeting.id == meeting_id, Meeting.user_id == user_id)
        .first()
    )
    if not meeting:
        raise NotFoundError("Meeting not found", resource="meeting")
    return meeting
