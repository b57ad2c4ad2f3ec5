"""
Tests for audio validation, chunk planning and HTTP range parsing.
"""

from unittest.mock import patch

import pytest

from scriber.services.audio_processor import AudioChunk, AudioProcessor
from scriber.utils.exceptions import AudioProcessingError, FileUploadError


@pytest.fixture
def processor(settings):
    return AudioProcessor()


class TestValidation:
    def test_supported_extension(self, processor):
        assert processor.validate_extension("Meeting.MP3") == ".mp3"

    @pytest.mark.parametrize("filename", ["notes.txt", "archive.zip", "noextension", ""])
    def test_unsupported_extension(self, processor, filename):
        with pytest.raises(FileUploadError, match="Unsupported file format"):
            processor.validate_extension(filename)

    def test_missing_file(self, processor, tmp_path):
        with pytest.raises(FileUploadError, match="does not exist"):
            processor.validate_file(str(tmp_path / "missing.mp3"))

    def test_empty_file(self, processor, tmp_path):
        path = tmp_path / "empty.mp3"
        path.write_bytes(b"")
        with pytest.raises(FileUploadError, match="empty"):
            processor.validate_file(str(path))

    def test_file_too_large(self, processor, tmp_path):
        path = tmp_path / "big.mp3"
        path.write_bytes(b"x" * 64)
        processor.max_file_size = 10
        with pytest.raises(FileUploadError, match="exceeds maximum"):
            processor.validate_file(str(path))

    def test_mime_type_is_checked(self, processor, tmp_path):
        path = tmp_path / "fake.mp3"
        path.write_bytes(b"%PDF-1.4 not audio")
        with patch("scriber.services.audio_processor.magic.from_file", return_value="application/pdf"):
            with pytest.raises(FileUploadError, match="Invalid file type"):
                processor.validate_file(str(path))

    def test_valid_file(self, processor, tmp_path):
        path = tmp_path / "ok.mp3"
        path.write_bytes(b"ID3 audio")
        with patch("scriber.services.audio_processor.magic.from_file", return_value="audio/mpeg"):
            info = processor.validate_file(str(path))
        assert info["file_format"] == "mp3"
        assert info["mime_type"] == "audio/mpeg"
        assert info["file_size"] == 9


class TestDuration:
    def test_undecodable_file_raises(self, processor, tmp_path):
        path = tmp_path / "broken.mp3"
        path.write_bytes(b"garbage")
        with patch(
            "scriber.services.audio_processor.AudioSegment.from_file",
            side_effect=Exception("ffmpeg failed"),
        ):
            with pytest.raises(AudioProcessingError):
                processor.get_duration(str(path))

    def test_fallback_duration(self, processor, tmp_path):
        with patch.object(processor, "get_duration", side_effect=AudioProcessingError("bad")):
            assert processor.get_duration_or_default("x.mp3") == 300.0
            assert processor.get_duration_or_default("x.mp3", fallback=42.0) == 42.0


class TestChunking:
    def test_threshold(self, processor):
        assert processor.needs_chunking(None) is False
        assert processor.needs_chunking(720) is False
        assert processor.needs_chunking(721) is True

    def test_short_audio_is_a_single_chunk(self, processor):
        chunks = processor.split_for_transcription("/audio/short.mp3", duration=300)
        assert len(chunks) == 1
        assert chunks[0].path == "/audio/short.mp3"
        assert chunks[0].offset == 0.0
        assert chunks[0].temporary is False

    def test_cleanup_only_removes_temporary_chunks(self, processor, tmp_path):
        original = tmp_path / "original.mp3"
        original.write_bytes(b"keep")
        chunk_dir = tmp_path / "chunks"
        chunk_dir.mkdir()
        temp = chunk_dir / "part.mp3"
        temp.write_bytes(b"drop")

        processor.cleanup_chunks(
            [
                AudioChunk(0, str(original), 0.0, 10.0, temporary=False),
                AudioChunk(1, str(temp), 10.0, 10.0, temporary=True),
            ]
        )

        assert original.exists()
        assert not temp.exists()
        assert not chunk_dir.exists()


class TestRangeHeader:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("bytes=0-99", (0, 99)),
            ("bytes=100-", (100, 999)),
            ("bytes=-100", (900, 999)),
            ("bytes=900-5000", (900, 999)),
            ("bytes=0-0", (0, 0)),
        ],
    )
    def test_valid_ranges(self, header, expected):
        assert AudioProcessor.parse_range_header(header, 1000) == expected

    @pytest.mark.parametrize("header", [None, "", "items=0-10", "bytes=abc-def"])
    def test_full_response(self, header):
        assert AudioProcessor.parse_range_header(header, 1000) is None

    @pytest.mark.parametrize("header", ["bytes=1000-", "bytes=500-100"])
    def test_unsatisfiable(self, header):
        with pytest.raises(AudioProcessingError):
            AudioProcessor.parse_range_header(header, 1000)
