"""
Xcode localization catalog (.xcloc) adapter.

An xcloc bundle is uploaded as a zip holding ``<Name>.xcloc/contents.json``
and ``<Name>.xcloc/Localized Contents/<locale>.xliff``. A bare XLIFF file is
accepted as well. Each XLIFF ``<file>`` becomes a resource, each
``<trans-unit>`` an entry.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

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
from .upload import decode_text, write_zip
from .xliff_document import UnitKey, XliffDocument, parse_xliff, serialize_xliff

CONTENTS_REQUIRED_FIELDS = ('developmentRegion', 'targetLocale', 'version', 'project')
LOCALIZED_CONTENTS_DIR = 'Localized Contents/'
XLIFF_EXTENSIONS = ('.xliff', '.xlf')


def parse_contents_json(content: bytes) -> Dict[str, Any]:
    """Validate the bundle manifest."""
    try:
        data = json.loads(content.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise FormatParseError(f"Failed to parse contents.json: {e}", "xcloc")
    if not isinstance(data, dict) or not all(data.get(key) for key in CONTENTS_REQUIRED_FIELDS):
        raise FormatParseError(
            "Invalid contents.json: missing required fields "
            "(developmentRegion, targetLocale, version, project)", "xcloc")
    return data


def _find_bundle_parts(files: List[VirtualFile]) -> Tuple[Optional[VirtualFile], Optional[VirtualFile]]:
    contents = next((f for f in files if f.path.endswith('contents.json')), None)
    xliff = next((f for f in files
                  if LOCALIZED_CONTENTS_DIR in f.path and f.path.lower().endswith(XLIFF_EXTENSIONS)), None)
    return contents, xliff


def _unique_id(base: str, seen: Dict[str, int]) -> str:
    """``base`` the first time, then ``base#2``, ``base#3``..."""
    count = seen.get(base, 0) + 1
    seen[base] = count
    return base if count == 1 else f"{base}#{count}"


class XclocAdapter(FormatAdapter):
    """Adapter for xcloc bundles and standalone XLIFF 1.2 files."""

    FORMAT_ID = "xcloc"
    DISPLAY_NAME = "Xcode Localization Catalog"
    EXTENSIONS = ('.xcloc', '.xliff', '.xlf')

    def __init__(self):
        super().__init__()
        self.document: Optional[XliffDocument] = None
        self.contents_json: Optional[Dict[str, Any]] = None
        self.xliff_path = ""
        self.is_bundle = True
        # (resource id, entry id) -> (file index, unit index)
        self._unit_keys: Dict[Tuple[str, str], UnitKey] = {}

    @property
    def format_name(self) -> str:
        return self.FORMAT_ID

    @classmethod
    def detect(cls, payload: UploadPayload) -> float:
        if isinstance(payload, SingleFilePayload):
            if not payload.name.lower().endswith(XLIFF_EXTENSIONS):
                return 0.0
            head = payload.content[:2048].decode('utf-8', errors='ignore')
            return 0.9 if '<xliff' in head else 0.5

        files = payload.tree.visible_files()
        contents, xliff = _find_bundle_parts(files)
        if contents and xliff:
            try:
                parse_contents_json(contents.content)
                return 1.0
            except FormatParseError:
                return 0.9
        if payload.original_file_name.lower().endswith('.xcloc.zip'):
            return 0.6
        if contents or xliff:
            return 0.4
        return 0.0

    # ---- Loading ----------------------------------------------------------

    def _load(self, payload: UploadPayload) -> None:
        if isinstance(payload, ArchivePayload):
            self.is_bundle = True
            files = payload.tree.visible_files()
            contents, xliff = _find_bundle_parts(files)
            if contents is None:
                raise FormatParseError("No contents.json found in xcloc bundle", self.FORMAT_ID)
            self.contents_json = parse_contents_json(contents.content)
            if xliff is None:
                raise FormatParseError("No XLIFF file found in Localized Contents/ directory", self.FORMAT_ID)
            self.xliff_path = xliff.path
            raw = decode_text(xliff.content)
        else:
            self.is_bundle = False
            self.contents_json = None
            self.xliff_path = payload.name
            raw = decode_text(payload.content)

        self.document = parse_xliff(raw)
        self._build_project()

    def _build_project(self) -> None:
        self.project.resources = []
        self._unit_keys = {}
        resource_ids: Dict[str, int] = {}

        for file_index, xliff_file in enumerate(self.document.files):
            resource_id = _unique_id(xliff_file.original, resource_ids)
            resource = TranslationResource(
                id=resource_id,
                label=xliff_file.original.split('/')[-1] or resource_id,
                source_language=xliff_file.source_language or None,
                target_language=xliff_file.target_language or None,
            )
            entry_ids: Dict[str, int] = {}
            for unit_index, unit in enumerate(xliff_file.units):
                entry_id = _unique_id(unit.id, entry_ids)
                metadata: Dict[str, Any] = {'fileOriginal': xliff_file.original}
                if unit.state:
                    metadata['state'] = unit.state
                resource.entries.append(TranslationEntry(
                    id=entry_id,
                    source_text=unit.source,
                    target_text=unit.target or "",
                    comment=unit.note,
                    metadata=metadata,
                ))
                self._unit_keys[(resource_id, entry_id)] = (file_index, unit_index)
            self.project.resources.append(resource)

        first = self.document.files[0] if self.document.files else None
        if self.contents_json:
            source = self.contents_json['developmentRegion']
            target = self.contents_json['targetLocale']
            self.project.metadata = {
                'project': self.contents_json['project'],
                'toolInfo': self.contents_json.get('toolInfo'),
            }
        else:
            source = first.source_language if first else ""
            target = first.target_language if first else ""
            self.project.metadata = {}
        self.source_language = source
        self.target_language = target
        self.project.source_language = source or None
        self.project.target_languages = [target] if target else []

    # ---- Export -----------------------------------------------------------

    def _serialize(self, terms_by_slug: Dict[str, Term]) -> str:
        targets: Dict[UnitKey, str] = {}
        notes: Dict[UnitKey, str] = {}
        for resource in self.project.resources:
            for entry in resource.entries:
                key = self._unit_keys.get((resource.id, entry.id))
                if key is None:
                    continue
                targets[key] = self.resolved_target(entry, terms_by_slug)
                if entry.comment is not None:
                    notes[key] = entry.comment
        return serialize_xliff(self.document, targets, notes)

    def _export(self, terms_by_slug: Dict[str, Term]) -> ExportArtifact:
        if self.document is None:
            raise ExportError("Nothing loaded to export", {'format': self.FORMAT_ID})
        xliff_bytes = self._serialize(terms_by_slug).encode('utf-8')

        if not self.is_bundle:
            return ExportArtifact(
                content=xliff_bytes,
                file_name=self._export_name('.xliff', 'translated', also_strip=('.xlf',)),
                mime_type='application/xliff+xml',
            )

        files = []
        for f in self._payload.tree.visible_files():
            files.append((f.path, xliff_bytes if f.path == self.xliff_path else f.content))
        return ExportArtifact(
            content=write_zip(files),
            file_name=self.original_file_name or 'translated.xcloc.zip',
            mime_type='application/zip',
        )
