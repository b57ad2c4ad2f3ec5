"""
Parsing of model transcription output into transcript segments.
Recovers from markdown-wrapped or malformed JSON and repairs bad timestamps.
"""

import json
import logging
import math
from typing import Any, Dict, List, Optional

from scriber.services.ai_provider import clean_model_output

logger = logging.getLogger(__name__)

UNKNOWN_SPEAKER = "Unknown"
INAUDIBLE_MARKER = "[inaudible]"

# An end time below this is probably minutes.seconds ("1.09" meaning 69s)
MINUTES_SECONDS_THRESHOLD = 10
MIN_SEGMENT_SECONDS = 5


def fallback_segment(text: str) -> Dict[str, Any]:
    """Single segment holding the whole response when it cannot be parsed."""
    return {
        "speakerLabel": UNKNOWN_SPEAKER,
        "text": text,
        "startTime": 0,
        "endTime": 0,
    }


def find_first_json_array(text: str) -> Optional[List[Any]]:
    """
    Decode the first JSON array of objects embedded in ``text``.

    Every ``[`` is tried as a start position, so bracketed prose such as
    ``[2 speakers]`` before the array, or an ``[inaudible]`` note after it,
    is skipped.
    """
    decoder = json.JSONDecoder()
    start = text.find("[")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list) and all(isinstance(item, dict) for item in value):
            return value
        start = text.find("[", start + 1)
    return None


def parse_model_output(raw_text: Optional[str]) -> List[Dict[str, Any]]:
    """
    Turn raw model text into a list of segment dicts.

    Markdown fences are stripped and the first JSON array in the text is used.
    Anything that does not decode to a list of objects becomes one ``Unknown``
    segment carrying the raw response.

    Args:
        raw_text: Model response text

    Returns:
        List of raw segment dicts in model field naming
    """
    raw_text = raw_text or ""
    cleaned = clean_model_output(raw_text)

    data = find_first_json_array(cleaned)
    if data is None:
        try:
            data = json.loads(cleaned)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Could not parse model output as JSON ({e}); using fallback segment")
            return [fallback_segment(raw_text)]
        if isinstance(data, dict):
            data = data.get("segments", [data])
        if not isinstance(data, list):
            logger.warning("Model output is not a JSON array; using fallback segment")
            return [fallback_segment(raw_text)]

    segments = [item for item in data if isinstance(item, dict)]
    if data and not segments:
        return [fallback_segment(raw_text)]
    return segments


def _to_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def repair_timestamps(start: Any, end: Any) -> tuple:
    """
    Return a ``(start, end)`` pair with ``end > start``.

    Missing values become 0. An end earlier than the start and below ten is
    read as minutes.seconds; if the end is still not after the start it is
    set to five seconds past the start.
    """
    start = max(0.0, _to_float(start))
    end = max(0.0, _to_float(end))

    if end < start and end < MINUTES_SECONDS_THRESHOLD:
        mins = math.floor(end)
        secs = round((end - mins) * 100)
        end = float(mins * 60 + secs)

    if end <= start:
        end = start + MIN_SEGMENT_SECONDS

    return start, end


def speaker_label(raw: Dict[str, Any]) -> str:
    label = raw.get("speakerLabel") or raw.get("speaker") or UNKNOWN_SPEAKER
    return str(label).strip() or UNKNOWN_SPEAKER


def speaker_confidence(raw: Dict[str, Any]) -> float:
    value = raw.get("nameConfidence")
    if value is None:
        value = raw.get("confidence")
    return min(1.0, max(0.0, _to_float(value)))


def normalize_segment(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a raw model segment to the stored segment shape.

    Returns:
        Dict with speaker, confidence, start_time, end_time, text, languages_used
    """
    start, end = repair_timestamps(raw.get("startTime"), raw.get("endTime"))
    languages = raw.get("languagesUsed") or raw.get("languages") or []
    if isinstance(languages, str):
        languages = [languages]

    return {
        "speaker": speaker_label(raw),
        "confidence": speaker_confidence(raw),
        "start_time": start,
        "end_time": end,
        "text": str(raw.get("text") or "").strip(),
        "languages_used": [str(lang) for lang in languages],
    }


def apply_offset(segments: List[Dict[str, Any]], offset: float) -> List[Dict[str, Any]]:
    """Shift chunk-relative model timestamps to recording time."""
    if not offset:
        return segments
    shifted = []
    for seg in segments:
        seg = dict(seg)
        seg["startTime"] = _to_float(seg.get("startTime")) + offset
        seg["endTime"] = _to_float(seg.get("endTime")) + offset
        shifted.append(seg)
    return shifted


def is_inaudible(text: str) -> bool:
    return INAUDIBLE_MARKER in (text or "").lower()


def build_context(segments: List[Dict[str, Any]], count: int = 5) -> Optional[str]:
    """Last few normalized segments as a continuation hint for the next chunk."""
    if not segments:
        return None
    return "\n".join(f"{seg['speaker']}: {seg['text']}" for seg in segments[-count:])
