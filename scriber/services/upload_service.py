"""
Upload service for meeting recordings.
Stores single-file and chunked uploads, creates the meeting and queues transcription.
"""

import logging
import os
import shutil
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from scriber.core.config import SECURITY_SETTINGS, get_settings
from scriber.models.meeting import Meeting, MeetingStatus
from scriber.models.upload_session import UploadSession
from scriber.services.audio_processor import AudioProcessor
from scriber.services.usage_service import UsageService
from scriber.utils.exceptions import FileUploadError, NotFoundError, ValidationError
from scriber.utils.helpers import (
    ensure_directory_exists,
    format_file_size,
    generate_unique_id,
    safe_remove_file,
    sanitize_filename,
)

logger = logging.getLogger(__name__)


class UploadService:
    """
    Upload service.

    The queue service is passed in so that the API layer and tests decide
    how jobs are run.
    """

    def __init__(
        self,
        queue_service,
        audio_processor: Optional[AudioProcessor] = None,
        usage_service: Optional[UsageService] = None,
    ):
        self.settings = get_settings()
        self.queue_service = queue_service
        self.audio_processor = audio_processor or AudioProcessor()
        self.usage_service = usage_service or UsageService()

    def _check_size(self, size: int) -> None:
        max_size = self.settings.max_file_size_bytes
        if size > max_size:
            raise FileUploadError(
                f"File too large: {format_file_size(size)} (max: {format_file_size(max_size)})"
            )

    def _unique_path(self, filename: str) -> str:
        ensure_directory_exists(self.settings.upload_dir)
        return os.path.join(self.settings.upload_dir, f"{generate_unique_id()}_{filename}")

    def handle_upload(
        self,
        db: Session,
        user_id: int,
        filename: str,
        content: bytes,
        language: Optional[str] = None,
        client_duration: Optional[float] = None,
        title: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Store an uploaded recording and start processing it.

        Args:
            db: Database session
            user_id: Uploading user
            filename: Client file name
            content: File bytes
            language: Spoken language code, defaults to ``en``
            client_duration: Duration measured by the client, used when probing fails
            title: Meeting title, defaults to the file name

        Returns:
            Dict with ``meeting_id``, ``job_id`` and ``duration``
        """
        safe_filename = sanitize_filename(filename or "")
        if not safe_filename:
            raise ValidationError("No file provided", field="file")
        self.audio_processor.validate_extension(safe_filename)
        if not content:
            raise FileUploadError("Uploaded file is empty")
        self._check_size(len(content))

        upload_path = self._unique_path(safe_filename)
        with open(upload_path, "wb") as f:
            f.write(content)

        return self._register_file(
            db, user_id, upload_path, safe_filename, language, client_duration, title
        )

    def _register_file(
        self,
        db: Session,
        user_id: int,
        upload_path: str,
        original_name: str,
        language: Optional[str],
        client_duration: Optional[float],
        title: Optional[str],
    ) -> Dict[str, Any]:
        try:
            self.audio_processor.validate_file(upload_path)
            duration = self.audio_processor.get_duration_or_default(
                upload_path, fallback=client_duration
            )
            self.usage_service.enforce_upload_limit(db, user_id, duration)
        except Exception:
            safe_remove_file(upload_path)
            raise

        meeting = Meeting(
            user_id=user_id,
            title=(title or original_name).strip(),
            original_file_name=original_name,
            file_path=upload_path,
            duration_seconds=duration,
            status=MeetingStatus.UPLOADED,
            language_code=language or "en",
        )
        db.add(meeting)
        db.commit()
        db.refresh(meeting)

        self.usage_service.increment_usage(db, user_id, duration)
        job_id = self.queue_service.submit_transcription(meeting.id, user_id)

        logger.info(f"Uploaded {original_name} as meeting {meeting.id} ({duration:.0f}s)")
        return {
            "message": "File uploaded and transcription started",
            "meeting_id": meeting.id,
            "job_id": job_id,
            "duration": duration,
        }

    # Chunked uploads

    def _chunk_dir(self, upload_id: str) -> str:
        return os.path.join(self.settings.chunk_dir, upload_id)

    def _get_session(self, db: Session, upload_id: str, user_id: int) -> UploadSession:
        session = (
            db.query(UploadSession)
            .filter(UploadSession.upload_id == upload_id, UploadSession.user_id == user_id)
            .first()
        )
        if not session:
            raise NotFoundError("Upload session not found", resource="upload")
        return session

    def initiate_chunked(
        self,
        db: Session,
        user_id: int,
        filename: str,
        total_size: int,
        total_chunks: int,
        mime_type: Optional[str] = None,
        language: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Dict[str, Any]:
        safe_filename = sanitize_filename(filename or "")
        if not safe_filename:
            raise ValidationError("Filename is required", field="filename")
        self.audio_processor.validate_extension(safe_filename)
        if total_size is None or total_size < 1:
            raise ValidationError("total_size must be at least 1", field="total_size")
        max_chunks = SECURITY_SETTINGS["max_upload_chunks"]
        if total_chunks is None or not 1 <= total_chunks <= max_chunks:
            raise ValidationError(
                f"total_chunks must be between 1 and {max_chunks}", field="total_chunks"
            )
        self._check_size(total_size)

        upload_id = str(uuid.uuid4())
        ensure_directory_exists(self._chunk_dir(upload_id))
        session = UploadSession(
            upload_id=upload_id,
            user_id=user_id,
            filename=safe_filename,
            mime_type=mime_type,
            total_size=total_size,
            total_chunks=total_chunks,
            received_chunks=[],
            language=language,
            title=title,
        )
        db.add(session)
        db.commit()
        logger.info(f"Initiated chunked upload {upload_id} ({total_chunks} chunks)")
        return {"upload_id": upload_id, "total_chunks": total_chunks}

    def store_chunk(
        self, db: Session, upload_id: str, user_id: int, index: int, data: bytes
    ) -> Dict[str, Any]:
        """Write one chunk. Re-sending an index overwrites it."""
        session = self._get_session(db, upload_id, user_id)
        if session.status != "pending":
            raise ValidationError("Upload session is already completed")
        if not 0 <= index < session.total_chunks:
            raise ValidationError(
                f"Chunk index {index} out of range (0-{session.total_chunks - 1})",
                field="chunk_index",
            )
        if not data:
            raise ValidationError("Chunk data is required", field="chunk")

        chunk_dir = self._chunk_dir(upload_id)
        ensure_directory_exists(chunk_dir)
        with open(os.path.join(chunk_dir, f"{index:05d}.part"), "wb") as f:
            f.write(data)

        session.mark_chunk_received(index)
        db.commit()
        return {
            "upload_id": upload_id,
            "chunk_index": index,
            "received": len(session.received_chunks),
            "total_chunks": session.total_chunks,
        }

    def get_status(self, db: Session, upload_id: str, user_id: int) -> Dict[str, Any]:
        return self._get_session(db, upload_id, user_id).to_dict()

    def complete_chunked(
        self,
        db: Session,
        upload_id: str,
        user_id: int,
        language: Optional[str] = None,
        client_duration: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Assemble all chunks in order and process the result as a single upload."""
        session = self._get_session(db, upload_id, user_id)
        if session.status != "pending":
            raise ValidationError("Upload session is already completed")
        if not session.is_complete:
            raise ValidationError(
                "Upload is missing chunks",
                details={"missing_chunks": session.missing_chunks},
            )

        chunk_dir = self._chunk_dir(upload_id)
        upload_path = self._unique_path(session.filename)
        with open(upload_path, "wb") as out:
            for index in range(session.total_chunks):
                part_path = os.path.join(chunk_dir, f"{index:05d}.part")
                if not os.path.exists(part_path):
                    out.close()
                    safe_remove_file(upload_path)
                    raise FileUploadError(f"Chunk {index} is missing on disk")
                with open(part_path, "rb") as part:
                    shutil.copyfileobj(part, out)
        size = os.path.getsize(upload_path)

        try:
            self._check_size(size)
        except FileUploadError:
            safe_remove_file(upload_path)
            raise

        result = self._register_file(
            db,
            user_id,
            upload_path,
            session.filename,
            language or session.language,
            client_duration,
            session.title,
        )
        # A refused completion keeps its chunks for another attempt
        shutil.rmtree(chunk_dir, ignore_errors=True)
        session.status = "completed"
        session.meeting_id = result["meeting_id"]
        db.commit()
        return result
