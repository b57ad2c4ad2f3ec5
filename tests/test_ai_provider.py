"""
Tests for the AI provider retry logic and prompt helpers.
"""

from unittest.mock import Mock, patch

import pytest

from scriber.services.ai_provider import (
    GeminiProvider,
    build_transcription_prompt,
    calculate_delay,
    clean_model_output,
    is_retryable_error,
    mime_type_for,
    with_retry,
)
from scriber.utils.exceptions import ConfigurationError


class TestRetryClassification:
    @pytest.mark.parametrize(
        "message",
        ["429 Resource exhausted", "503 Service Unavailable", "Deadline exceeded", "socket hang up"],
    )
    def test_transient_errors_are_retryable(self, message):
        assert is_retryable_error(Exception(message))

    @pytest.mark.parametrize(
        "message",
        ["API key not valid", "403 Forbidden", "404 model not found", "400 invalid request"],
    )
    def test_client_errors_are_not_retryable(self, message):
        assert not is_retryable_error(Exception(message))

    def test_forbidden_rate_limit_message_is_not_retryable(self):
        assert not is_retryable_error(Exception("403 rate limit for forbidden project"))

    def test_unknown_errors_are_not_retryable(self):
        assert not is_retryable_error(ValueError("something odd"))


class TestWithRetry:
    def test_returns_first_success(self):
        operation = Mock(return_value="ok")
        assert with_retry(operation, max_retries=3, sleep=Mock()) == "ok"
        assert operation.call_count == 1

    def test_retries_transient_failures(self):
        operation = Mock(side_effect=[Exception("503 overloaded"), Exception("timeout"), "ok"])
        sleep = Mock()
        assert with_retry(operation, max_retries=3, initial_delay=1, sleep=sleep) == "ok"
        assert operation.call_count == 3
        assert sleep.call_count == 2

    def test_gives_up_after_max_retries(self):
        operation = Mock(side_effect=Exception("429 rate limit"))
        with pytest.raises(Exception, match="429"):
            with_retry(operation, max_retries=2, sleep=Mock())
        assert operation.call_count == 3

    def test_non_retryable_error_raises_immediately(self):
        operation = Mock(side_effect=Exception("401 unauthorized"))
        sleep = Mock()
        with pytest.raises(Exception):
            with_retry(operation, max_retries=5, sleep=sleep)
        assert operation.call_count == 1
        sleep.assert_not_called()

    def test_sleeps_follow_the_backoff_schedule(self):
        operation = Mock(side_effect=[Exception("503"), Exception("503"), Exception("503"), "ok"])
        sleep = Mock()
        with patch("scriber.services.ai_provider.random.uniform", return_value=1.0):
            result = with_retry(
                operation, max_retries=3, initial_delay=1, max_delay=3, sleep=sleep
            )
        assert result == "ok"
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0, 3.0]


class TestDelay:
    def test_delay_grows_with_jitter(self):
        with patch("scriber.services.ai_provider.random.uniform", return_value=1.0):
            assert calculate_delay(0, 1.0, 30.0) == 1.0
            assert calculate_delay(2, 1.0, 30.0) == 4.0

    def test_delay_is_capped(self):
        assert calculate_delay(10, 1.0, 30.0) <= 30.0

    def test_jitter_bounds(self):
        for _ in range(20):
            assert 1.6 <= calculate_delay(1, 1.0, 30.0) <= 2.4


class TestPromptHelpers:
    def test_clean_model_output_strips_fences(self):
        assert clean_model_output('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'
        assert clean_model_output(None) == ""

    def test_prompt_includes_context_and_language(self):
        prompt = build_transcription_prompt("fr", "Alice: bonjour")
        assert "CONTINUATION CONTEXT" in prompt
        assert "Alice: bonjour" in prompt
        assert "primary language: fr" in prompt

    def test_prompt_without_context(self):
        prompt = build_transcription_prompt()
        assert "CONTINUATION CONTEXT" not in prompt
        assert '"speakerId":"spk_1"' in prompt

    def test_mime_type_for_extension(self):
        assert mime_type_for("/tmp/a.m4a") == "audio/mp4"
        assert mime_type_for("/tmp/a.unknown") == "audio/mpeg"


class TestGeminiProvider:
    def test_missing_api_key_is_a_configuration_error(self):
        provider = GeminiProvider(api_key="")
        provider.api_key = None
        with pytest.raises(ConfigurationError):
            provider.generate_text("hello")

    def test_generate_text_uses_model(self):
        provider = GeminiProvider(api_key="test-key", model_name="gemini-test")
        model = Mock()
        model.generate_content.return_value = Mock(text="  summary  ")
        with patch("scriber.services.ai_provider.genai") as genai:
            genai.GenerativeModel.return_value = model
            assert provider.generate_text("prompt") == "summary"
            genai.configure.assert_called_once_with(api_key="test-key")

    def test_transcribe_uploads_and_deletes_file(self, tmp_path):
        audio = tmp_path / "meeting.mp3"
        audio.write_bytes(b"fake audio")
        provider = GeminiProvider(api_key="test-key")
        model = Mock()
        model.generate_content.return_value = Mock(text="[]")
        uploaded = Mock()
        uploaded.name = "files/abc"
        with patch("scriber.services.ai_provider.genai") as genai:
            genai.GenerativeModel.return_value = model
            genai.upload_file.return_value = uploaded
            assert provider.transcribe(str(audio), language="en") == "[]"
            genai.upload_file.assert_called_once()
            genai.delete_file.assert_called_once_with("files/abc")
