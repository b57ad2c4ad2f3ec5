"""
Shared fixtures for the Scriber test suite.

Every test gets a fresh in-memory SQLite database. The AI provider is replaced
with a canned fake and the job queue runs synchronously, so a request that
queues work has finished that work by the time it returns.
"""

import json
import os
from unittest.mock import Mock

os.environ.setdefault("TEST_MODE", "true")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("GEMINI_API_KEY", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import scriber.models  # noqa: F401
from scriber.api.deps import (
    get_minutes_service,
    get_notification_service,
    get_queue,
    get_speaker_identifier,
    get_upload_service,
)
from scriber.core.config import get_settings
from scriber.core.database import Base, _enable_sqlite_pragmas, get_database
from scriber.core.security import create_access_token
from scriber.main import app
from scriber.models.meeting import Meeting, MeetingStatus, Minutes
from scriber.models.segment import TranscriptSegment
from scriber.models.speaker import Speaker
from scriber.models.user import UserRole
from scriber.services.audio_processor import AudioProcessor
from scriber.services.auth_service import AuthService
from scriber.services.minutes_service import MinutesService
from scriber.services.notification_service import NotificationService
from scriber.services.queue_service import QueueService
from scriber.services.speaker_identifier import SpeakerIdentifier
from scriber.services.transcription_service import TranscriptionService
from scriber.services.upload_service import UploadService

DEFAULT_MODEL_SEGMENTS = [
    {
        "speakerId": "spk_1",
        "speakerLabel": "Alice",
        "text": "Welcome everyone, let's review the roadmap.",
        "startTime": 0.0,
        "endTime": 4.5,
        "languagesUsed": ["en"],
        "nameConfidence": 0.9,
    },
    {
        "speakerId": "spk_2",
        "speakerLabel": "Speaker 2",
        "text": "The release is planned for March.",
        "startTime": 4.5,
        "endTime": 9.0,
        "languagesUsed": ["en"],
        "nameConfidence": 0.0,
    },
    {
        "speakerId": "spk_1",
        "speakerLabel": "Alice",
        "text": "Great, [inaudible] next week.",
        "startTime": 9.0,
        "endTime": 12.0,
        "languagesUsed": ["en"],
        "nameConfidence": 0.9,
    },
]

DEFAULT_MINUTES = "# Meeting Minutes\n\n## Summary\nThe team reviewed the roadmap."


class FakeProvider:
    """Stands in for the Gemini provider. Exceptions given as results are raised."""

    def __init__(self, transcript=None, text=DEFAULT_MINUTES):
        self.transcript = (
            json.dumps(DEFAULT_MODEL_SEGMENTS) if transcript is None else transcript
        )
        self.text = text
        self.transcribe_calls = []
        self.prompts = []

    def transcribe(self, file_path, language=None, context=None, chunk_index=0):
        self.transcribe_calls.append(
            {"file_path": file_path, "language": language, "context": context}
        )
        if isinstance(self.transcript, Exception):
            raise self.transcript
        return self.transcript

    def generate_text(self, prompt, operation_name="generation"):
        self.prompts.append(prompt)
        if isinstance(self.text, Exception):
            raise self.text
        return self.text


class FakeAudioProcessor(AudioProcessor):
    """Skips libmagic and ffmpeg: every stored file is a two minute recording."""

    duration = 120.0

    def validate_file(self, file_path):
        if not os.path.exists(file_path) or os.path.getsize(file_path) == 0:
            return super().validate_file(file_path)
        return {"file_path": file_path, "file_size": os.path.getsize(file_path)}

    def get_duration(self, file_path):
        return self.duration


@pytest.fixture
def settings(tmp_path, monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "chunk_dir", str(tmp_path / "chunks"))
    monkeypatch.setattr(settings, "web_url", "https://app.example.com")
    monkeypatch.setattr(settings, "smtp_host", None)
    return settings


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_pragmas(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def http_session():
    session = Mock()
    session.post.return_value = Mock(status_code=200, raise_for_status=Mock())
    return session


@pytest.fixture
def notification_service(http_session, settings):
    return NotificationService(http_session=http_session)


@pytest.fixture
def audio_processor(settings):
    return FakeAudioProcessor()


@pytest.fixture
def transcription_service(provider, audio_processor, notification_service):
    return TranscriptionService(provider, audio_processor, notification_service)


@pytest.fixture
def minutes_service(provider, notification_service):
    return MinutesService(provider, notification_service)


@pytest.fixture
def queue_service(session_factory, transcription_service, minutes_service):
    queue = QueueService(
        session_factory=session_factory,
        transcription_service=transcription_service,
        minutes_service=minutes_service,
        synchronous=True,
    )
    queue.start()
    yield queue
    queue.stop()


@pytest.fixture
def client(
    session_factory,
    queue_service,
    minutes_service,
    notification_service,
    audio_processor,
    settings,
):
    def override_get_database():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_database] = override_get_database
    app.dependency_overrides[get_queue] = lambda: queue_service
    app.dependency_overrides[get_minutes_service] = lambda: minutes_service
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_speaker_identifier] = lambda: SpeakerIdentifier(
        minutes_service.provider
    )
    app.dependency_overrides[get_upload_service] = lambda: UploadService(
        queue_service, audio_processor=audio_processor
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(db):
    counter = {"n": 0}

    def _create(email=None, password="password123", role=UserRole.USER, name=None):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        user = AuthService().create_user(db, email, password, name=name, role=role)
        db.commit()
        db.refresh(user)
        return user

    return _create


@pytest.fixture
def user(create_user):
    return create_user(email="owner@example.com", name="Owner")


@pytest.fixture
def other_user(create_user):
    return create_user(email="intruder@example.com", name="Intruder")


@pytest.fixture
def admin(create_user):
    return create_user(email="admin@example.com", role=UserRole.ADMIN, name="Admin")


def auth_headers_for(user):
    token = create_access_token(
        {"sub": str(user.id), "email": user.email, "role": user.role}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(user):
    return auth_headers_for(user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers_for(admin)


@pytest.fixture
def make_meeting(db, settings):
    """
    Build a meeting directly in the database.

    Segments are given as (speaker name, text, start, end) tuples.
    """

    def _make(
        owner,
        title="Weekly Sync",
        status=MeetingStatus.TRANSCRIPT_READY,
        segments=(
            ("Alice", "Welcome everyone.", 0.0, 3.0),
            ("Bob", "Thanks, let's start.", 3.0, 6.5),
        ),
        minutes=None,
        with_file=True,
        duration=120.0,
    ):
        file_path = None
        if with_file:
            os.makedirs(settings.upload_dir, exist_ok=True)
            file_path = os.path.join(settings.upload_dir, f"{title.replace(' ', '_')}.mp3")
            with open(file_path, "wb") as f:
                f.write(b"ID3" + bytes(range(256)) * 4)

        meeting = Meeting(
            user_id=owner.id,
            title=title,
            original_file_name=f"{title}.mp3",
            file_path=file_path,
            duration_seconds=duration,
            status=status,
        )
        db.add(meeting)
        db.flush()

        speakers = {}
        for name, text, start, end in segments:
            if name not in speakers:
                speakers[name] = Speaker(meeting_id=meeting.id, name=name)
                db.add(speakers[name])
                db.flush()
            db.add(
                TranscriptSegment(
                    meeting_id=meeting.id,
                    speaker_id=speakers[name].id,
                    start_time=start,
                    end_time=end,
                    text=text,
                )
            )

        if minutes:
            db.add(Minutes(meeting_id=meeting.id, content=minutes))

        db.commit()
        db.refresh(meeting)
        return meeting

    return _make
