"""
Queue service for background meeting processing.
Persists jobs as ProcessingJob rows and runs them on a thread pool.
"""

import logging
import os
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from scriber.core.config import get_settings
from scriber.core.database import get_database_manager
from scriber.models.meeting import Meeting, MeetingStatus, Minutes
from scriber.models.processing_job import JobStatus, JobType, ProcessingJob
from scriber.models.segment import TranscriptSegment
from scriber.utils.exceptions import NotFoundError, QueueError
from scriber.utils.helpers import utcnow

logger = logging.getLogger(__name__)

AUTO_MINUTES_TEMPLATE = "EXECUTIVE"


class ProgressTicker:
    """
    Raises a job's progress on a fixed interval while a model call runs.

    The model calls report nothing while in flight, so progress is simulated:
    ``step`` points every ``interval`` seconds, never above ``ceiling``.
    """

    def __init__(
        self,
        on_tick: Callable[[float], None],
        interval: float = 3.0,
        step: float = 15.0,
        ceiling: float = 90.0,
        start: float = 0.0,
    ):
        self.on_tick = on_tick
        self.interval = interval
        self.step = step
        self.ceiling = ceiling
        self.progress = start
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> float:
        self.progress = min(self.ceiling, self.progress + self.step)
        try:
            self.on_tick(self.progress)
        except Exception as e:
            logger.warning(f"Progress update failed: {e}")
        return self.progress

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            if self.tick() >= self.ceiling:
                break

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()


class QueueService:
    """
    Queue service for transcription and minutes jobs.

    Jobs run on a ThreadPoolExecutor, each with its own database session.
    With ``synchronous=True`` (test mode) jobs run in the submitting thread.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        transcription_service=None,
        minutes_service=None,
        usage_service=None,
        max_workers: Optional[int] = None,
        synchronous: Optional[bool] = None,
    ):
        self.settings = get_settings()
        self.max_workers = max_workers or self.settings.max_workers
        self.synchronous = self.settings.test_mode if synchronous is None else synchronous
        self.progress_interval = self.settings.progress_interval_s

        self.session_factory = session_factory or get_database_manager().get_session
        self._transcription_service = transcription_service
        self._minutes_service = minutes_service
        self._usage_service = usage_service

        self.executor: Optional[ThreadPoolExecutor] = None
        self.active_jobs: Dict[str, Future] = {}
        self.is_running = False
        self._lock = threading.Lock()

    # Services are created lazily so the AI provider is only configured on first use
    @property
    def transcription_service(self):
        if self._transcription_service is None:
            from scriber.services.transcription_service import TranscriptionService

            self._transcription_service = TranscriptionService()
        return self._transcription_service

    @property
    def minutes_service(self):
        if self._minutes_service is None:
            from scriber.services.minutes_service import MinutesService

            self._minutes_service = MinutesService()
        return self._minutes_service

    @property
    def usage_service(self):
        if self._usage_service is None:
            from scriber.services.usage_service import UsageService

            self._usage_service = UsageService()
        return self._usage_service

    def start(self) -> None:
        """Start the worker pool."""
        if self.is_running:
            return
        if not self.synchronous:
            self.executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="scriber-worker"
            )
        self.is_running = True
        logger.info(
            f"Queue service started ({'synchronous' if self.synchronous else f'{self.max_workers} workers'})"
        )

    def stop(self) -> None:
        """Stop the worker pool, cancelling jobs that have not started."""
        if not self.is_running:
            return
        logger.info("Stopping queue service...")
        self.is_running = False
        with self._lock:
            for job_id, future in self.active_jobs.items():
                if not future.done() and future.cancel():
                    logger.info(f"Cancelled job: {job_id}")
        if self.executor:
            self.executor.shutdown(wait=True)
            self.executor = None
        logger.info("Queue service stopped")

    def submit_transcription(
        self, meeting_id: int, user_id: int, skip_minutes: bool = False
    ) -> str:
        """
        Queue a transcription job for a meeting.

        Args:
            meeting_id: Meeting to transcribe
            user_id: Owner, used for usage refunds
            skip_minutes: Do not chain a minutes job after transcription

        Returns:
            Job ID
        """
        return self._submit(
            meeting_id, user_id, JobType.TRANSCRIPTION, {"skip_minutes": skip_minutes}
        )

    def submit_minutes(
        self, meeting_id: int, user_id: int, template: Any = AUTO_MINUTES_TEMPLATE
    ) -> str:
        """Queue a minutes generation job for a meeting."""
        return self._submit(meeting_id, user_id, JobType.MINUTES, {"template": template})

    def _submit(
        self, meeting_id: int, user_id: int, job_type: str, options: Dict[str, Any]
    ) -> str:
        job_id = str(uuid.uuid4())
        db = self.session_factory()
        try:
            db.add(
                ProcessingJob(
                    job_id=job_id,
                    meeting_id=meeting_id,
                    user_id=user_id,
                    job_type=job_type,
                    status=JobStatus.QUEUED,
                    options=options,
                )
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to submit {job_type} job for meeting {meeting_id}: {e}")
            raise QueueError(f"Failed to submit job: {str(e)}")
        finally:
            db.close()

        logger.info(f"Submitted {job_type} job {job_id} for meeting {meeting_id}")
        self._dispatch(job_id)
        return job_id

    def _dispatch(self, job_id: str) -> None:
        if self.synchronous:
            self._execute_job(job_id)
            return
        if not self.is_running or self.executor is None:
            self.start()
        future = self.executor.submit(self._execute_job, job_id)
        with self._lock:
            self.active_jobs[job_id] = future
        future.add_done_callback(lambda f: self._job_completed(job_id, f))

    def _job_completed(self, job_id: str, future: Future) -> None:
        with self._lock:
            self.active_jobs.pop(job_id, None)
        if future.cancelled():
            return
        error = future.exception()
        if error:
            logger.error(f"Job {job_id} raised outside its handler: {error}")

    def _start_ticker(self, job_id: str) -> Optional[ProgressTicker]:
        if self.synchronous:
            return None

        def write_progress(progress: float) -> None:
            db = self.session_factory()
            try:
                job = db.query(ProcessingJob).filter(ProcessingJob.job_id == job_id).first()
                if job and job.status == JobStatus.PROCESSING and job.progress_percentage < progress:
                    job.update_progress(progress)
                    db.commit()
            finally:
                db.close()

        ticker = ProgressTicker(write_progress, interval=self.progress_interval)
        ticker.start()
        return ticker

    def _execute_job(self, job_id: str) -> None:
        """Run a queued job to completion or failure."""
        db = self.session_factory()
        ticker = None
        try:
            job = db.query(ProcessingJob).filter(ProcessingJob.job_id == job_id).first()
            if not job:
                logger.error(f"Job not found: {job_id}")
                return
            if job.status != JobStatus.QUEUED:
                logger.info(f"Skipping job {job_id} in status {job.status}")
                return

            job.mark_as_started()
            db.commit()
            ticker = self._start_ticker(job_id)

            options = job.options or {}
            try:
                if job.job_type == JobType.TRANSCRIPTION:
                    self.transcription_service.transcribe(db, job.meeting_id)
                elif job.job_type == JobType.MINUTES:
                    self.minutes_service.generate(
                        db, job.meeting_id, options.get("template", AUTO_MINUTES_TEMPLATE)
                    )
                else:
                    raise QueueError(f"Unknown job type: {job.job_type}")
            except Exception as e:
                db.rollback()
                db.refresh(job)
                job.mark_as_failed(str(e))
                db.commit()
                if job.job_type == JobType.TRANSCRIPTION:
                    self._refund_usage(db, job)
                return
            finally:
                if ticker:
                    ticker.stop()

            db.refresh(job)
            if job.status == JobStatus.CANCELLED:
                return
            job.mark_as_completed()
            db.commit()

            if job.job_type == JobType.TRANSCRIPTION and not options.get("skip_minutes"):
                self.submit_minutes(job.meeting_id, job.user_id)

        finally:
            db.close()

    def _refund_usage(self, db: Session, job: ProcessingJob) -> None:
        try:
            duration = (
                db.query(Meeting.duration_seconds).filter(Meeting.id == job.meeting_id).scalar()
            )
            if duration:
                self.usage_service.decrement_usage(db, job.user_id, duration)
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to refund usage for job {job.job_id}: {e}")

    def get_job_status(
        self, db: Session, job_id: str, user_id: Optional[int] = None
    ) -> Optional[Dict[str, Any]]:
        """Job as a dict, limited to the given owner when ``user_id`` is set."""
        query = db.query(ProcessingJob).filter(ProcessingJob.job_id == job_id)
        if user_id is not None:
            query = query.filter(ProcessingJob.user_id == user_id)
        job = query.first()
        return job.to_dict() if job else None

    def get_job_for_meeting(self, db: Session, meeting_id: int) -> Optional[ProcessingJob]:
        """Most recent job of a meeting, preferring one still queued or running."""
        active = (
            db.query(ProcessingJob)
            .filter(
                ProcessingJob.meeting_id == meeting_id,
                ProcessingJob.status.in_(JobStatus.ACTIVE),
            )
            .order_by(ProcessingJob.created_at.desc(), ProcessingJob.id.desc())
            .first()
        )
        if active:
            return active
        return (
            db.query(ProcessingJob)
            .filter(ProcessingJob.meeting_id == meeting_id)
            .order_by(ProcessingJob.created_at.desc(), ProcessingJob.id.desc())
            .first()
        )

    def retry(self, db: Session, meeting_id: int, user_id: int) -> Dict[str, Any]:
        """
        Resume processing of a meeting from the first missing stage.

        Returns:
            Dict with ``success``, ``message`` and the new ``job_id`` when one was queued
        """
        meeting = (
            db.query(Meeting)
            .filter(Meeting.id == meeting_id, Meeting.user_id == user_id)
            .first()
        )
        if not meeting:
            raise NotFoundError("Meeting not found", resource="meeting")

        has_transcript = (
            db.query(TranscriptSegment.id)
            .filter(TranscriptSegment.meeting_id == meeting_id)
            .first()
            is not None
        )
        has_minutes = (
            db.query(Minutes.id).filter(Minutes.meeting_id == meeting_id).first() is not None
        )

        if has_transcript and not has_minutes:
            meeting.update_status(MeetingStatus.TRANSCRIPT_READY)
            meeting.last_processed_at = utcnow()
            db.commit()
            job_id = self.submit_minutes(meeting_id, user_id)
            return {"success": True, "message": "Minutes generation queued", "job_id": job_id}

        if has_transcript and has_minutes:
            meeting.update_status(MeetingStatus.COMPLETED)
            db.commit()
            return {"success": True, "message": "Meeting was already complete, status fixed"}

        if not meeting.file_path or not os.path.exists(meeting.file_path):
            return {"success": False, "message": "FILE_MISSING"}

        meeting.update_status(MeetingStatus.UPLOADED)
        meeting.last_processed_at = utcnow()
        db.commit()
        job_id = self.submit_transcription(meeting_id, user_id)
        return {"success": True, "message": "Transcription queued", "job_id": job_id}

    def cancel(self, db: Session, meeting_id: int, user_id: int) -> Dict[str, Any]:
        """Cancel the active job of a meeting and mark the meeting cancelled."""
        job = (
            db.query(ProcessingJob)
            .filter(
                ProcessingJob.meeting_id == meeting_id,
                ProcessingJob.status.in_(JobStatus.ACTIVE),
            )
            .order_by(ProcessingJob.created_at.desc())
            .first()
        )
        if not job:
            return {"success": False, "message": "No active job found for this meeting"}
        if job.user_id != user_id:
            return {"success": False, "message": "Unauthorized to cancel this job"}

        with self._lock:
            future = self.active_jobs.get(job.job_id)
        if future and not future.done():
            future.cancel()

        job.mark_as_cancelled()
        meeting = db.query(Meeting).filter(Meeting.id == meeting_id).first()
        if meeting:
            meeting.update_status(MeetingStatus.CANCELLED)
        db.commit()
        return {"success": True, "message": "Job cancelled successfully"}


_queue_service: Optional[QueueService] = None


def get_queue_service() -> QueueService:
    """Get the global queue service instance."""
    global _queue_service
    if _queue_service is None:
        _queue_service = QueueService()
    return _queue_service
