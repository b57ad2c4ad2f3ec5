"""
Generative AI provider for transcription, minutes and translation.
Wraps the Google Gemini SDK with retry/backoff for transient failures.
"""

import logging
import os
import random
import re
import time
from typing import Any, Callable, Optional, TypeVar

import google.generativeai as genai
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from scriber.core.config import get_settings, AUDIO_SETTINGS
from scriber.utils.exceptions import ConfigurationError, ExternalServiceError
from scriber.utils.helpers import get_extension

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Checked before the retryable patterns: a 403 never becomes retryable
NON_RETRYABLE_PATTERNS = [
    "invalid api key",
    "api key not valid",
    "authentication",
    "unauthorized",
    "forbidden",
    "not found",
    "invalid request",
    "400",
    "401",
    "403",
    "404",
]

RETRYABLE_PATTERNS = [
    "rate limit",
    "quota exceeded",
    "resource exhausted",
    "503",
    "429",
    "temporarily unavailable",
    "service unavailable",
    "overloaded",
    "timeout",
    "timed out",
    "deadline exceeded",
    "econnreset",
    "etimedout",
    "enotfound",
    "connection reset",
    "connection aborted",
    "socket hang up",
    "network error",
]

FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?|\n?\s*```", re.IGNORECASE)


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether a failed model call is worth retrying.

    Args:
        error: Exception raised by the SDK

    Returns:
        True for rate limits, overload and network failures
    """
    message = f"{type(error).__name__} {error}".lower()
    if any(pattern in message for pattern in NON_RETRYABLE_PATTERNS):
        return False
    return any(pattern in message for pattern in RETRYABLE_PATTERNS)


def calculate_delay(
    attempt: int,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    multiplier: float = 2.0,
) -> float:
    """Exponential backoff with +/-20% jitter, capped at ``max_delay``."""
    delay = initial_delay * (multiplier ** attempt)
    delay *= random.uniform(0.8, 1.2)
    return min(delay, max_delay)


class wait_jittered_exponential(wait_base):
    """Tenacity wait strategy backed by :func:`calculate_delay`."""

    def __init__(self, initial_delay: float, max_delay: float, multiplier: float = 2.0):
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.multiplier = multiplier

    def __call__(self, retry_state: RetryCallState) -> float:
        return calculate_delay(
            retry_state.attempt_number - 1,
            self.initial_delay,
            self.max_delay,
            self.multiplier,
        )


def with_retry(
    operation: Callable[[], T],
    operation_name: str = "AI request",
    max_retries: Optional[int] = None,
    initial_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    multiplier: float = 2.0,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    Run ``operation`` and retry transient failures with exponential backoff.

    Args:
        operation: Zero-argument callable performing the request
        operation_name: Label used in log messages
        max_retries: Retries after the first attempt
        initial_delay: First backoff delay in seconds
        max_delay: Upper bound for a single delay
        multiplier: Backoff multiplier
        sleep: Sleep function, replaceable in tests

    Returns:
        The operation's result

    Raises:
        The last error once retries are exhausted, or immediately when it is not retryable
    """
    settings = get_settings()
    max_retries = settings.ai_max_retries if max_retries is None else max_retries
    initial_delay = settings.ai_initial_delay if initial_delay is None else initial_delay
    max_delay = settings.ai_max_delay if max_delay is None else max_delay

    def log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            f"{operation_name} attempt {retry_state.attempt_number} failed: "
            f"{retry_state.outcome.exception()}. "
            f"Retrying in {retry_state.next_action.sleep:.1f}s..."
        )

    retrying = Retrying(
        retry=retry_if_exception(is_retryable_error),
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_jittered_exponential(initial_delay, max_delay, multiplier),
        sleep=sleep,
        before_sleep=log_retry,
        reraise=True,
    )
    try:
        return retrying(operation)
    except Exception as e:
        attempts = retrying.statistics.get("attempt_number", 1)
        if attempts > 1:
            logger.error(f"{operation_name} failed after {attempts} attempts: {e}")
        raise


def clean_model_output(text: Optional[str]) -> str:
    """Strip markdown code fences the model wraps around JSON."""
    return FENCE_PATTERN.sub("", text or "").strip()


def mime_type_for(file_path: str) -> str:
    """Audio MIME type for the Gemini file API, derived from the extension."""
    return AUDIO_SETTINGS["mime_types"].get(
        get_extension(file_path), AUDIO_SETTINGS["default_mime_type"]
    )


TRANSCRIPTION_PROMPT = """You are a professional audio transcription engine with advanced diarization capabilities.
{context}
## INSTRUCTIONS
1. TRANSCRIPTION: Transcribe the audio verbatim{language}. Mark unintelligible speech as [inaudible].
2. DIARIZATION: Identify distinct speakers by voice characteristics.
   - Assign consistent IDs ("spk_1", "spk_2") to unique voices.
   - If the previous context shows who was speaking at the end, keep that ID when the voice matches.
   - Labels are generic ("Speaker 1", "Speaker 2") unless a name is explicitly stated.
   - nameConfidence is 0.0-1.0: how sure you are of the label when it is a real name.
3. TIMESTAMPS: start/end times in SECONDS (decimal) from the start of this audio.
4. FORMAT: Return ONLY a valid JSON array:
[{{"speakerId":"spk_1","speakerLabel":"Speaker 1","text":"Text spoken...","startTime":0.0,"endTime":3.5,"languagesUsed":["en"],"nameConfidence":0.5}}]"""


def build_transcription_prompt(
    language: Optional[str] = None, context: Optional[str] = None
) -> str:
    context_block = (
        f"\n## CONTINUATION CONTEXT\nPrevious chunk context:\n{context}\n"
        if context
        else ""
    )
    language_hint = (
        f" (primary language: {language}; keep code-switched words in their original language)"
        if language
        else ""
    )
    return TRANSCRIPTION_PROMPT.format(context=context_block, language=language_hint)


class GeminiProvider:
    """
    Google Gemini client used for transcription and text generation.
    Every network call goes through ``with_retry``.
    """

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        self.settings = get_settings()
        self.api_key = api_key or self.settings.gemini_api_key
        self.model_name = model_name or self.settings.gemini_model
        self._configured = False

    def _get_model(self):
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY is not configured")
        if not self._configured:
            genai.configure(api_key=self.api_key)
            self._configured = True
        return genai.GenerativeModel(
            self.model_name,
            generation_config={
                "max_output_tokens": self.settings.gemini_max_output_tokens,
                "temperature": 0.2,
            },
        )

    def transcribe(
        self,
        file_path: str,
        language: Optional[str] = None,
        context: Optional[str] = None,
        chunk_index: int = 0,
    ) -> str:
        """
        Transcribe and diarize an audio file.

        Args:
            file_path: Local audio file (a whole recording or one chunk)
            language: Expected primary language code
            context: Tail of the previous chunk's transcript
            chunk_index: Position of this chunk, used for naming and logs

        Returns:
            Raw model text, expected to contain a JSON array of segments
        """
        if not os.path.exists(file_path):
            raise ExternalServiceError(
                f"Audio file not found: {file_path}", service_name="gemini"
            )

        model = self._get_model()
        mime_type = mime_type_for(file_path)
        label = f"Gemini transcription chunk {chunk_index}"

        uploaded = with_retry(
            lambda: genai.upload_file(
                file_path, mime_type=mime_type, display_name=f"chunk_{chunk_index}"
            ),
            f"{label} upload",
        )
        try:
            prompt = build_transcription_prompt(language, context)
            response = with_retry(
                lambda: model.generate_content([prompt, uploaded]), label
            )
            text = response.text
            logger.info(f"{label}: received {len(text)} characters")
            return text
        finally:
            try:
                genai.delete_file(uploaded.name)
            except Exception as e:
                logger.warning(f"Failed to delete uploaded file {uploaded.name}: {e}")

    def generate_text(self, prompt: str, operation_name: str = "Gemini generation") -> str:
        """Run a text-only prompt and return the model's text."""
        model = self._get_model()
        response = with_retry(lambda: model.generate_content(prompt), operation_name)
        return (response.text or "").strip()


_provider: Optional[GeminiProvider] = None


def get_ai_provider() -> GeminiProvider:
    """Get the shared provider instance."""
    global _provider
    if _provider is None:
        _provider = GeminiProvider()
    return _provider
