"""
Utility helper functions for common operations.
Provides helper functions for file handling, validation, formatting, and time math.
"""

import logging
import math
import os
import re
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_unique_id() -> str:
    """Generate a unique identifier."""
    return str(uuid.uuid4())


def generate_share_token(num_bytes: int = 32) -> str:
    """Generate a random hex token for public share links."""
    return secrets.token_hex(num_bytes)


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string
    """
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    size = float(size_bytes)

    while size >= 1024.0 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    return f"{size:.1f} {size_names[i]}"


def format_duration(seconds: float) -> str:
    """
    Format duration in HH:MM:SS format.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string
    """
    seconds = max(0.0, seconds or 0.0)
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_subtitle_timestamp(seconds: float, separator: str = ",") -> str:
    """
    Format seconds as HH:MM:SS,mmm (SRT) or HH:MM:SS.mmm (WebVTT).

    Args:
        seconds: Offset in seconds
        separator: Separator placed before the milliseconds

    Returns:
        Formatted timestamp
    """
    total_ms = int(round(max(0.0, seconds or 0.0) * 1000))
    hours, rem = divmod(total_ms, 3600 * 1000)
    minutes, rem = divmod(rem, 60 * 1000)
    secs, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def minutes_from_seconds(seconds: Optional[float]) -> int:
    """Billable minutes for a duration, rounded up."""
    return int(math.ceil((seconds or 0) / 60))


def get_week_start(now: Optional[datetime] = None) -> datetime:
    """Monday 00:00 of the week containing ``now``."""
    now = now or utcnow()
    monday = now - timedelta(days=now.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def validate_email(email: str) -> bool:
    """
    Validate email address format.

    Args:
        email: Email address to validate

    Returns:
        True if valid, False otherwise
    """
    pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    return re.match(pattern, email or "") is not None


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for safe storage.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    invalid_chars = '<>:"|?*'
    for char in invalid_chars:
        filename = filename.replace(char, "_")

    filename = filename.replace(" ", "_")

    # Remove path traversal
    filename = os.path.basename(filename.replace("\\", "/"))

    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[: 255 - len(ext)] + ext

    return filename or "audio"


def get_extension(filename: str) -> str:
    """Lower-cased extension without the dot."""
    return os.path.splitext(filename or "")[1].lower().lstrip(".")


def safe_remove_file(file_path: Optional[str]) -> bool:
    """
    Safely remove a file.

    Args:
        file_path: Path to file to remove

    Returns:
        True if removed, False otherwise
    """
    if not file_path:
        return False
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
            logger.debug(f"Removed file: {file_path}")
            return True
        return False
    except OSError as e:
        logger.warning(f"Failed to remove file {file_path}: {e}")
        return False


def ensure_directory_exists(dir_path: str) -> bool:
    """
    Ensure directory exists, create if necessary.

    Args:
        dir_path: Path to directory

    Returns:
        True if directory exists or was created
    """
    try:
        os.makedirs(dir_path, exist_ok=True)
        return True
    except OSError as e:
        logger.error(f"Failed to create directory {dir_path}: {e}")
        return False
