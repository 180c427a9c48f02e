"""
HTML adapter for single pages and zipped sites.
"""

import re
from typing import Dict, List, Optional

from ..exceptions import ExportError, FormatParseError
from ..models import (
    ArchivePayload,
    ExportArtifact,
    SingleFilePayload,
    Term,
    TranslationEntry,
    TranslationResource,
    UploadPayload,
    VirtualFile,
)
from .format_adapter import FormatAdapter
from .html_document import ParsedHtml, parse_html, serialize_html
from .upload import decode_text, write_zip

RESOURCE_ID = "html-main"
HTML_EXTENSIONS = ('.html', '.htm')

_HTML_INDICATOR_RE = re.compile(r'<(!doctype|html|head|body|div|p|h[1-6])', re.IGNORECASE)


def _is_html_path(path: str) -> bool:
    return path.lower().endswith(HTML_EXTENSIONS)


def _html_files(payload: ArchivePayload) -> List[VirtualFile]:
    return [f for f in payload.tree.visible_files() if _is_html_path(f.path)]


class HtmlAdapter(FormatAdapter):
    """Adapter for HTML pages; each page is one resource."""

    FORMAT_ID = "html"
    DISPLAY_NAME = "HTML"
    EXTENSIONS = HTML_EXTENSIONS

    def __init__(self):
        super().__init__()
        # resource id -> parsed page
        self.pages: Dict[str, ParsedHtml] = {}
        self.is_archive = False

    @property
    def format_name(self) -> str:
        return self.FORMAT_ID

    @classmethod
    def detect(cls, payload: UploadPayload) -> float:
        if isinstance(payload, SingleFilePayload):
            if not _is_html_path(payload.name):
                return 0.0
            head = payload.content[:500].decode('utf-8', errors='ignore')
            return 1.0 if _HTML_INDICATOR_RE.search(head) else 0.7
        return 0.85 if _html_files(payload) else 0.0

    def _resource_for(self, resource_id: str, label: str, parsed: ParsedHtml) -> TranslationResource:
        entries = [
            TranslationEntry(
                id=str(segment.index),
                source_text=segment.source_text,
                metadata={
                    'kind': segment.kind,
                    'attributeName': segment.attribute_name,
                    'tagName': segment.tag_name,
                    'markerId': segment.marker_id,
                },
            )
            for segment in parsed.segments
        ]
        return TranslationResource(
            id=resource_id,
            label=label,
            entries=entries,
            source_language=self.source_language or None,
            target_language=self.target_language or None,
        )

    def _load(self, payload: UploadPayload) -> None:
        self.pages = {}
        if isinstance(payload, SingleFilePayload):
            self.is_archive = False
            parsed = parse_html(decode_text(payload.content))
            if not parsed.segments:
                raise FormatParseError("No translatable content found in the HTML file", self.FORMAT_ID)
            self.pages[RESOURCE_ID] = parsed
            self.project.resources = [self._resource_for(RESOURCE_ID, payload.name, parsed)]
            self.project.metadata = {
                'isFullDocument': parsed.is_full_document,
                'headContent': parsed.head_content,
            }
            return

        self.is_archive = True
        files = _html_files(payload)
        if not files:
            raise FormatParseError("No HTML files found in the archive", self.FORMAT_ID)
        resources = []
        for f in files:
            parsed = parse_html(decode_text(f.content))
            if not parsed.segments:
                continue
            self.pages[f.path] = parsed
            resources.append(self._resource_for(f.path, f.path.split('/')[-1], parsed))
        if not resources:
            raise FormatParseError("No translatable content found in HTML files", self.FORMAT_ID)
        self.project.resources = resources
        self.project.metadata = {}

    def _render(self, resource: TranslationResource, terms_by_slug: Dict[str, Term]) -> Optional[str]:
        parsed = self.pages.get(resource.id)
        if parsed is None:
            return None
        translations = {
            int(entry.id): self.resolved_target(entry, terms_by_slug) if entry.target_text else entry.source_text
            for entry in resource.entries
        }
        return serialize_html(parsed, translations)

    def _export(self, terms_by_slug: Dict[str, Term]) -> ExportArtifact:
        if not self.is_archive:
            resource = self.project.find_resource(RESOURCE_ID)
            content = self._render(resource, terms_by_slug) if resource else None
            if content is None:
                raise ExportError("No content available for export", {'format': self.FORMAT_ID})
            return ExportArtifact(
                content=content.encode('utf-8'),
                file_name=self._export_name('.html', 'page', also_strip=('.htm',)),
                mime_type='text/html; charset=utf-8',
            )

        rendered = {}
        for resource in self.project.resources:
            content = self._render(resource, terms_by_slug)
            if content is not None:
                rendered[resource.id] = content.encode('utf-8')
        files = [(f.path, rendered.get(f.path, f.content)) for f in self._payload.tree.visible_files()]
        return ExportArtifact(
            content=write_zip(files),
            file_name=self._export_name('.zip', 'site'),
            mime_type='application/zip',
        )
