"""
Audio processor service for uploaded recordings.
Handles file validation, duration probing, and splitting long audio into chunks.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import magic
from pydub import AudioSegment

from scriber.core.config import get_settings, AUDIO_SETTINGS, SECURITY_SETTINGS
from scriber.utils.exceptions import AudioProcessingError, FileUploadError

logger = logging.getLogger(__name__)


class AudioChunk:
    """A slice of a recording written to its own file."""

    def __init__(self, index: int, path: str, offset: float, duration: float, temporary: bool):
        self.index = index
        self.path = path
        self.offset = offset
        self.duration = duration
        self.temporary = temporary

    def __repr__(self) -> str:
        return f"<AudioChunk(index={self.index}, offset={self.offset}, duration={self.duration})>"


class AudioProcessor:
    """
    Audio processor service for handling uploaded audio files.
    Validates uploads and prepares long recordings for the model.
    """

    def __init__(self):
        self.settings = get_settings()
        self.supported_formats = AUDIO_SETTINGS["supported_formats"]
        self.max_file_size = self.settings.max_file_size_bytes
        self.chunk_duration = self.settings.chunk_duration_s

    def validate_extension(self, filename: str) -> str:
        """
        Check the upload's extension against the supported formats.

        Returns:
            Lower-cased extension including the dot
        """
        suffix = Path(filename or "").suffix.lower()
        if suffix not in self.supported_formats:
            raise FileUploadError(
                f"Unsupported file format: {suffix or 'none'}. "
                f"Supported formats: {', '.join(self.supported_formats)}"
            )
        return suffix

    def validate_file(self, file_path: str) -> Dict[str, Any]:
        """
        Validate a stored audio file.

        Args:
            file_path: Path to the uploaded file

        Returns:
            Dictionary containing file information

        Raises:
            FileUploadError: If file validation fails
        """
        path = Path(file_path)
        if not path.exists():
            raise FileUploadError("File does not exist")

        file_size = path.stat().st_size
        if file_size == 0:
            raise FileUploadError("Uploaded file is empty")
        if file_size > self.max_file_size:
            raise FileUploadError(
                f"File size {file_size} bytes exceeds maximum {self.max_file_size} bytes"
            )

        self.validate_extension(path.name)

        mime_type = magic.from_file(str(path), mime=True)
        if mime_type not in SECURITY_SETTINGS["allowed_mime_types"]:
            raise FileUploadError(f"Invalid file type: {mime_type}")

        return {
            "file_path": str(path),
            "file_size": file_size,
            "file_format": path.suffix.lower().lstrip("."),
            "mime_type": mime_type,
        }

    def get_duration(self, file_path: str) -> float:
        """Duration in seconds, read with pydub (ffmpeg for compressed formats)."""
        try:
            audio = AudioSegment.from_file(file_path)
            return len(audio) / 1000.0
        except Exception as e:
            raise AudioProcessingError(f"Could not read audio file: {str(e)}")

    def get_duration_or_default(self, file_path: str, fallback: Optional[float] = None) -> float:
        """Duration in seconds, or a fallback when the file cannot be decoded."""
        try:
            duration = self.get_duration(file_path)
            if duration > 0:
                return duration
        except AudioProcessingError as e:
            logger.warning(f"Could not read duration of {file_path}: {e}")
        if fallback is None:
            fallback = float(self.settings.fallback_duration_s)
        logger.info(f"Using fallback duration {fallback}s for {file_path}")
        return fallback

    def needs_chunking(self, duration: Optional[float]) -> bool:
        return bool(duration) and duration > self.chunk_duration * AUDIO_SETTINGS["chunk_threshold_ratio"]

    def split_for_transcription(
        self, audio_path: str, duration: Optional[float] = None
    ) -> List[AudioChunk]:
        """
        Split a recording into consecutive chunks for the model.

        Recordings that are short enough come back as one chunk pointing at the
        original file.

        Args:
            audio_path: Path to the recording
            duration: Known duration in seconds

        Returns:
            Chunks in playback order
        """
        if not self.needs_chunking(duration):
            return [AudioChunk(0, audio_path, 0.0, duration or 0.0, temporary=False)]

        try:
            audio = AudioSegment.from_file(audio_path)
            chunk_length_ms = self.chunk_duration * 1000
            temp_dir = tempfile.mkdtemp(prefix="scriber_chunks_")
            audio_stem = Path(audio_path).stem

            chunks = []
            for i, start_ms in enumerate(range(0, len(audio), chunk_length_ms)):
                end_ms = min(start_ms + chunk_length_ms, len(audio))
                chunk_path = os.path.join(temp_dir, f"{audio_stem}_chunk_{i + 1:03d}.mp3")
                audio[start_ms:end_ms].export(chunk_path, format="mp3")
                chunks.append(
                    AudioChunk(
                        i,
                        chunk_path,
                        start_ms / 1000.0,
                        (end_ms - start_ms) / 1000.0,
                        temporary=True,
                    )
                )

            logger.info(f"Created {len(chunks)} audio chunks from {audio_path}")
            return chunks

        except Exception as e:
            logger.error(f"Audio chunking failed: {e}")
            raise AudioProcessingError(f"Failed to chunk audio: {str(e)}")

    def cleanup_chunks(self, chunks: List[AudioChunk]) -> None:
        """Delete temporary chunk files."""
        for chunk in chunks:
            if not chunk.temporary:
                continue
            try:
                if os.path.exists(chunk.path):
                    os.remove(chunk.path)
                    logger.debug(f"Removed temporary file: {chunk.path}")
                parent = os.path.dirname(chunk.path)
                if os.path.isdir(parent) and not os.listdir(parent):
                    os.rmdir(parent)
            except OSError as e:
                logger.warning(f"Failed to remove temporary file {chunk.path}: {e}")

    @staticmethod
    def parse_range_header(range_header: Optional[str], file_size: int) -> Optional[Tuple[int, int]]:
        """
        Parse an HTTP ``Range: bytes=start-end`` header.

        Returns:
            Inclusive (start, end) byte positions, or None for a full response
        """
        if not range_header or not range_header.startswith("bytes="):
            return None
        range_spec = range_header[len("bytes="):].split(",")[0].strip()
        start_str, _, end_str = range_spec.partition("-")
        try:
            if start_str:
                start = int(start_str)
                end = int(end_str) if end_str else file_size - 1
            else:
                # suffix range: last N bytes
                length = int(end_str)
                start = max(0, file_size - length)
                end = file_size - 1
        except ValueError:
            return None
        end = min(end, file_size - 1)
        if start > end or start >= file_size:
            raise AudioProcessingError("Requested range not satisfiable")
        return start, end
