"""
Core configuration management for Scriber.
Handles environment variables, application settings, and processing parameters.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    # Database
    database_url: str = "sqlite:///./scriber.db"

    # Application
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    web_url: str = "http://localhost:3000"

    # Authentication
    jwt_secret: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None

    # Generative AI
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    gemini_max_output_tokens: int = 65536
    ai_max_retries: int = 3
    ai_initial_delay: float = 1.0
    ai_max_delay: float = 30.0

    # File Storage
    upload_dir: str = "./uploads"
    chunk_dir: str = "./uploads/chunks"
    max_file_size: str = "500MB"

    # Audio Processing
    chunk_duration_s: int = 600
    fallback_duration_s: int = 300

    # Queue and Processing
    max_workers: int = 2
    progress_interval_s: float = 3.0

    # Notifications
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_from: str = '"Scriber" <no-reply@scriber.app>'
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"

    # Security
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Logging
    log_level: str = "INFO"
    log_file: str = "./logs/scriber.log"

    # Development
    test_mode: bool = False

    @field_validator("max_file_size")
    @classmethod
    def validate_file_size(cls, v):
        if not v.upper().endswith(("MB", "GB")):
            raise ValueError("max_file_size must end with MB or GB")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @property
    def max_file_size_bytes(self) -> int:
        """Convert max_file_size to bytes."""
        size_str = self.max_file_size.upper()
        if size_str.endswith("MB"):
            return int(size_str[:-2]) * 1024 * 1024
        elif size_str.endswith("GB"):
            return int(size_str[:-2]) * 1024 * 1024 * 1024
        return 500 * 1024 * 1024

    @property
    def ai_enabled(self) -> bool:
        """Whether a generative AI key is configured."""
        return bool(self.gemini_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Audio processing configuration
AUDIO_SETTINGS = {
    "supported_formats": [".mp3", ".m4a", ".wav", ".webm", ".ogg", ".aac", ".flac"],
    "mime_types": {
        "mp3": "audio/mpeg",
        "m4a": "audio/mp4",
        "wav": "audio/wav",
        "webm": "audio/webm",
        "ogg": "audio/ogg",
        "aac": "audio/aac",
        "flac": "audio/flac",
    },
    "default_mime_type": "audio/mpeg",
    "chunk_threshold_ratio": 1.2,  # split only when longer than chunk * ratio
    "context_segments": 5,
}

# Export configuration
EXPORT_SETTINGS = {
    "formats": ["pdf", "txt", "md", "json", "csv", "srt", "vtt"],
    "csv_delimiter": ",",
    "json_indent": 2,
}

# Database settings
DATABASE_SETTINGS = {
    "echo": False,  # Set to True for SQL debugging
    "pool_pre_ping": True,
    "pool_recycle": 3600,
}

# Security settings
SECURITY_SETTINGS = {
    "max_upload_size": 500 * 1024 * 1024,  # 500MB
    "allowed_mime_types": [
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/x-wav",
        "audio/mp4",
        "audio/x-m4a",
        "audio/webm",
        "video/webm",
        "audio/ogg",
        "audio/aac",
        "audio/flac",
        "audio/x-flac",
        "application/octet-stream",
    ],
    "max_share_links_per_meeting": 10,
    "share_token_bytes": 32,
    "max_upload_chunks": 1000,
}

# Limits applied to users without a subscription and to newly seeded plans
PLAN_DEFAULTS = {
    "name": "Free",
    "max_minutes_per_upload": 5,
    "max_uploads_per_week": 1,
    "monthly_minutes_limit": 60,
    "price": 0.0,
    "currency": "USD",
}
