"""
Subtitle adapters for WebVTT and SRT files.

Each cue becomes one entry whose id is the 1-based cue position. Timing
and settings are exposed as entry metadata and never change on export.
"""

import re
from abc import abstractmethod
from typing import Dict, Optional

from ..exceptions import ExportError, FormatParseError
from ..models import (
    ExportArtifact,
    SingleFilePayload,
    Term,
    TranslationEntry,
    TranslationResource,
    UploadPayload,
)
from .format_adapter import FormatAdapter
from .timed_text import SRT, VTT, TimedTextDocument, parse_timed_text, serialize_timed_text
from .upload import decode_text

_SRT_CUE_RE = re.compile(r'^\d+\s*\r?\n\d{2}:\d{2}:\d{2},\d{3}\s*-->\s*\d{2}:\d{2}:\d{2},\d{3}', re.MULTILINE)


class SubtitleAdapter(FormatAdapter):
    """Shared implementation; subclasses set the format constants."""

    FORMAT_ID = ""
    DISPLAY_NAME = ""
    EXTENSIONS: tuple = ()
    KIND = VTT
    RESOURCE_ID = ""
    LABEL_FALLBACK = "Subtitles"
    MIME_TYPE = "text/plain; charset=utf-8"
    EMPTY_MESSAGE = ""

    def __init__(self):
        super().__init__()
        self.document: Optional[TimedTextDocument] = None

    @property
    def format_name(self) -> str:
        return self.FORMAT_ID

    @classmethod
    @abstractmethod
    def _looks_valid(cls, head: str) -> bool:
        """Whether the first bytes of a file with a matching extension look like this format"""

    @classmethod
    def detect(cls, payload: UploadPayload) -> float:
        if not isinstance(payload, SingleFilePayload):
            return 0.0
        if not payload.name.lower().endswith(cls.EXTENSIONS):
            return 0.0
        head = payload.content[:500].decode('utf-8', errors='ignore')
        return 1.0 if cls._looks_valid(head) else 0.5

    def _load(self, payload: UploadPayload) -> None:
        if not isinstance(payload, SingleFilePayload):
            raise FormatParseError(f"{self.DISPLAY_NAME} requires a single file upload", self.FORMAT_ID)
        self.document = parse_timed_text(decode_text(payload.content), self.KIND)
        if not self.document.cues:
            raise FormatParseError(self.EMPTY_MESSAGE, self.FORMAT_ID)

        entries = []
        for cue in self.document.cues:
            entries.append(TranslationEntry(
                id=str(cue.index),
                source_text=cue.text,
                metadata={
                    'startTimestamp': cue.start_timestamp,
                    'endTimestamp': cue.end_timestamp,
                    'cueIndex': cue.index,
                    'cueId': cue.cue_id,
                    'settings': cue.settings,
                },
            ))
        self.project.resources = [TranslationResource(
            id=self.RESOURCE_ID,
            label=self.original_file_name or self.LABEL_FALLBACK,
            entries=entries,
            source_language=self.source_language or None,
            target_language=self.target_language or None,
        )]

    def _export(self, terms_by_slug: Dict[str, Term]) -> ExportArtifact:
        resource = self.project.find_resource(self.RESOURCE_ID)
        if self.document is None or resource is None:
            raise ExportError("No resource found to export", {'format': self.FORMAT_ID})

        texts: Dict[int, str] = {}
        for position, cue in enumerate(self.document.cues):
            entry = resource.find_entry(str(cue.index))
            if entry is not None and entry.target_text:
                texts[position] = self.resolved_target(entry, terms_by_slug)

        content = serialize_timed_text(self.document, texts)
        extension = self.EXTENSIONS[0]
        return ExportArtifact(
            content=content.encode('utf-8'),
            file_name=self._export_name(extension, 'subtitles'),
            mime_type=self.MIME_TYPE,
        )


class VttAdapter(SubtitleAdapter):
    """WebVTT subtitles; NOTE, STYLE and REGION blocks pass through."""

    FORMAT_ID = "vtt"
    DISPLAY_NAME = "WebVTT Subtitles"
    EXTENSIONS = ('.vtt',)
    KIND = VTT
    RESOURCE_ID = "vtt-main"
    MIME_TYPE = "text/vtt; charset=utf-8"
    EMPTY_MESSAGE = "No valid subtitle cues found in the WebVTT file"

    @classmethod
    def _looks_valid(cls, head: str) -> bool:
        return head.lstrip('\ufeff').lstrip().upper().startswith('WEBVTT')


class SrtAdapter(SubtitleAdapter):
    """SubRip subtitles."""

    FORMAT_ID = "srt"
    DISPLAY_NAME = "SRT Subtitles"
    EXTENSIONS = ('.srt',)
    KIND = SRT
    RESOURCE_ID = "srt-main"
    MIME_TYPE = "application/x-subrip; charset=utf-8"
    EMPTY_MESSAGE = "No valid subtitle cues found in the SRT file"

    @classmethod
    def _looks_valid(cls, head: str) -> bool:
        return _SRT_CUE_RE.search(head) is not None
