"""
Export service for generating PDF, TXT, Markdown, JSON, CSV, SRT and WebVTT exports.
Handles transcript and minutes formatting and document generation.
"""

import csv
import io
import json
import logging
from typing import Any, Dict, List, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.orm import Session

from scriber.core.config import EXPORT_SETTINGS
from scriber.models.meeting import Meeting
from scriber.models.segment import TranscriptSegment
from scriber.services.access import get_owned_meeting
from scriber.utils.exceptions import ExportError, NotFoundError, ScriberError, ValidationError
from scriber.utils.helpers import (
    format_duration,
    format_subtitle_timestamp,
    sanitize_filename,
    utcnow,
)

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "txt": "text/plain; charset=utf-8",
    "md": "text/markdown; charset=utf-8",
    "json": "application/json",
    "csv": "text/csv; charset=utf-8",
    "srt": "application/x-subrip",
    "vtt": "text/vtt; charset=utf-8",
}

# Formats that make no sense without a transcript
TRANSCRIPT_FORMATS = ("csv", "srt", "vtt")


class ExportService:
    """
    Export service for meetings.
    Every export is built from the meeting, its minutes and its ordered segments.
    """

    def __init__(self):
        self.supported_formats = EXPORT_SETTINGS["formats"]

    def export_meeting(
        self,
        db: Session,
        meeting_id: int,
        user_id: int,
        export_format: str,
        include_minutes: bool = True,
        include_transcript: bool = True,
    ) -> Tuple[bytes, str, str]:
        """
        Export a meeting in the requested format.

        Args:
            db: Database session
            meeting_id: Meeting to export
            user_id: Owner of the meeting
            export_format: One of pdf, txt, md, json, csv, srt, vtt
            include_minutes: Include the minutes (pdf, txt, md, json)
            include_transcript: Include the transcript (pdf, txt, md, json)

        Returns:
            Tuple of (content, content type, download file name)
        """
        export_format = (export_format or "").lower()
        if export_format not in self.supported_formats:
            raise ValidationError(
                f"Unsupported export format: {export_format}", field="format"
            )

        meeting = get_owned_meeting(db, meeting_id, user_id)
        segments = (
            db.query(TranscriptSegment)
            .filter(TranscriptSegment.meeting_id == meeting_id)
            .order_by(TranscriptSegment.start_time)
            .all()
        )
        if export_format in TRANSCRIPT_FORMATS:
            if not segments:
                raise NotFoundError("Meeting or transcript not found", resource="transcript")
            include_transcript = True

        try:
            export_data = self._prepare_export_data(
                meeting, segments, include_minutes, include_transcript
            )
            exporter = getattr(self, f"_export_{export_format}")
            content = exporter(export_data)
        except ScriberError:
            raise
        except Exception as e:
            logger.error(f"Export of meeting {meeting_id} as {export_format} failed: {e}")
            raise ExportError(f"Export failed: {str(e)}")

        filename = f"{sanitize_filename(meeting.title) or 'meeting'}.{export_format}"
        logger.info(f"Exported meeting {meeting_id} as {export_format}")
        return content, CONTENT_TYPES[export_format], filename

    def _prepare_export_data(
        self,
        meeting: Meeting,
        segments: List[TranscriptSegment],
        include_minutes: bool,
        include_transcript: bool,
    ) -> Dict[str, Any]:
        minutes = meeting.minutes
        return {
            "title": meeting.title,
            "meeting_id": meeting.id,
            "date": meeting.created_at.strftime("%Y-%m-%d") if meeting.created_at else "",
            "duration": format_duration(segments[-1].end_time) if segments else None,
            "minutes": minutes.content if include_minutes and minutes else None,
            "segments": [
                {
                    "speaker": segment.speaker.name if segment.speaker else "Unknown",
                    "start_time": segment.start_time,
                    "end_time": segment.end_time,
                    "text": segment.text,
                }
                for segment in segments
            ]
            if include_transcript
            else [],
            "export_timestamp": utcnow().isoformat(),
        }

    def _export_pdf(self, export_data: Dict[str, Any]) -> bytes:
        """Generate PDF export."""
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4)

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "MeetingTitle",
            parent=styles["Heading1"],
            fontSize=20,
            spaceAfter=20,
        )
        heading_style = ParagraphStyle(
            "SectionHeading",
            parent=styles["Heading2"],
            fontSize=14,
            spaceAfter=12,
        )
        speaker_style = ParagraphStyle(
            "SpeakerLine",
            parent=styles["Normal"],
            fontSize=9,
            textColor=colors.HexColor("#4F46E5"),
        )
        normal_style = styles["Normal"]

        story = [Paragraph(escape(export_data["title"]), title_style)]

        metadata = [["Date:", export_data["date"]], ["Meeting ID:", str(export_data["meeting_id"])]]
        if export_data["duration"]:
            metadata.insert(1, ["Duration:", export_data["duration"]])
        metadata_table = Table(metadata, colWidths=[1.5 * inch, 4.5 * inch])
        metadata_table.setStyle(
            TableStyle(
                [
                    ("TEXTCOLOR", (0, 0), (-1, -1), colors.grey),
                    ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                    ("FONTSIZE", (0, 0), (-1, -1), 10),
                    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ]
            )
        )
        story.append(metadata_table)
        story.append(Spacer(1, 20))

        if export_data["minutes"]:
            story.append(Paragraph("Meeting Minutes", heading_style))
            for block in export_data["minutes"].split("\n\n"):
                if block.strip():
                    story.append(
                        Paragraph(escape(block).replace("\n", "<br/>"), normal_style)
                    )
                    story.append(Spacer(1, 6))

        if export_data["segments"]:
            if export_data["minutes"]:
                story.append(PageBreak())
            story.append(Paragraph("Full Transcript", heading_style))
            for segment in export_data["segments"]:
                time = format_duration(segment["start_time"])
                story.append(
                    Paragraph(f"[{time}] {escape(segment['speaker'])}", speaker_style)
                )
                story.append(Paragraph(escape(segment["text"]), normal_style))
                story.append(Spacer(1, 8))

        doc.build(story)
        buffer.seek(0)
        return buffer.getvalue()

    def _export_txt(self, export_data: Dict[str, Any]) -> bytes:
        """Generate TXT export."""
        rule = "=" * 50
        lines = [rule, export_data["title"].upper(), f"Date: {export_data['date']}", rule, ""]

        if export_data["minutes"]:
            lines += ["SUMMARY / MINUTES", "-----------------", export_data["minutes"], ""]

        if export_data["segments"]:
            lines += ["FULL TRANSCRIPT", "---------------"]
            for segment in export_data["segments"]:
                time = format_duration(segment["start_time"])
                lines += [f"[{time}] {segment['speaker']}: {segment['text']}", ""]

        return "\n".join(lines).encode("utf-8")

    def _export_md(self, export_data: Dict[str, Any]) -> bytes:
        lines = [f"# {export_data['title']}", "", f"- **Date:** {export_data['date']}"]
        if export_data["duration"]:
            lines.append(f"- **Duration:** {export_data['duration']}")
        lines += ["", "---", ""]

        if export_data["minutes"]:
            lines += ["## Summary & Minutes", "", export_data["minutes"], ""]
            if export_data["segments"]:
                lines += ["---", ""]

        if export_data["segments"]:
            lines += ["## Full Transcript", ""]
            for segment in export_data["segments"]:
                time = format_duration(segment["start_time"])
                lines += [f"**[{time}] {segment['speaker']}:** {segment['text']}", ""]

        return "\n".join(lines).encode("utf-8")

    def _export_json(self, export_data: Dict[str, Any]) -> bytes:
        payload = {
            "meeting": {
                "id": export_data["meeting_id"],
                "title": export_data["title"],
                "date": export_data["date"],
                "duration": export_data["duration"],
            },
            "minutes": export_data["minutes"],
            "transcript": export_data["segments"],
            "exported_at": export_data["export_timestamp"],
        }
        return json.dumps(
            payload, indent=EXPORT_SETTINGS["json_indent"], ensure_ascii=False
        ).encode("utf-8")

    def _export_csv(self, export_data: Dict[str, Any]) -> bytes:
        """Generate CSV export, one row per segment."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=EXPORT_SETTINGS["csv_delimiter"])
        writer.writerow(["Start", "End", "Speaker", "Text"])
        for segment in export_data["segments"]:
            writer.writerow(
                [
                    format_duration(segment["start_time"]),
                    format_duration(segment["end_time"]),
                    segment["speaker"],
                    segment["text"],
                ]
            )
        return buffer.getvalue().encode("utf-8")

    def _export_srt(self, export_data: Dict[str, Any]) -> bytes:
        blocks = []
        for index, segment in enumerate(export_data["segments"], 1):
            start = format_subtitle_timestamp(segment["start_time"], ",")
            end = format_subtitle_timestamp(segment["end_time"], ",")
            blocks.append(f"{index}\n{start} --> {end}\n{segment['speaker']}: {segment['text']}")
        return "\n\n".join(blocks).encode("utf-8")

    def _export_vtt(self, export_data: Dict[str, Any]) -> bytes:
        blocks = ["WEBVTT"]
        for segment in export_data["segments"]:
            start = format_subtitle_timestamp(segment["start_time"], ".")
            end = format_subtitle_timestamp(segment["end_time"], ".")
            blocks.append(f"{start} --> {end}\n<v {segment['speaker']}>{segment['text']}")
        return "\n\n".join(blocks).encode("utf-8")
