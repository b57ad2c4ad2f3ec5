"""
Database models package for Scriber.
Contains all SQLAlchemy models for the application.
"""

from .user import User, UserRole
from .plan import Plan, Subscription, WeeklyUsage
from .meeting import Meeting, MeetingStatus, Minutes, MinutesStatus, MinutesVersion
from .speaker import Speaker
from .segment import TranscriptSegment, SegmentEdit
from .template import MinutesTemplate
from .notification import Notification, NotificationPreference, NotificationType
from .share_link import ShareLink, ShareType
from .processing_job import ProcessingJob, JobStatus, JobType
from .upload_session import UploadSession

__all__ = [
    "User",
    "UserRole",
    "Plan",
    "Subscription",
    "WeeklyUsage",
    "Meeting",
    "MeetingStatus",
    "Minutes",
    "MinutesStatus",
    "MinutesVersion",
    "Speaker",
    "TranscriptSegment",
    "SegmentEdit",
    "MinutesTemplate",
    "Notification",
    "NotificationPreference",
    "NotificationType",
    "ShareLink",
    "ShareType",
    "ProcessingJob",
    "JobStatus",
    "JobType",
    "UploadSession",
]
