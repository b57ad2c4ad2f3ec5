"""
Services package for Scriber.
Contains all business logic and processing services.
"""

from .admin_service import AdminService
from .audio_processor import AudioProcessor
from .auth_service import AuthService
from .export_service import ExportService
from .meeting_service import MeetingService
from .minutes_service import MinutesService
from .notification_service import NotificationService
from .queue_service import QueueService
from .segment_service import SegmentService
from .share_service import ShareService
from .speaker_service import SpeakerService
from .template_service import TemplateService
from .transcription_service import TranscriptionService
from .upload_service import UploadService
from .usage_service import UsageService

__all__ = [
    "AdminService",
    "AudioProcessor",
    "AuthService",
    "ExportService",
    "MeetingService",
    "MinutesService",
    "NotificationService",
    "QueueService",
    "SegmentService",
    "ShareService",
    "SpeakerService",
    "TemplateService",
    "TranscriptionService",
    "UploadService",
    "UsageService",
]
