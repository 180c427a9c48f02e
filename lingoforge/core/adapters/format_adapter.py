"""
Abstract base class for file format adapters.

Each format (XLIFF bundle, PO, VTT/SRT, HTML, plain documents) implements
this interface. The adapter owns a private, format-specific document that
remembers where every translatable value sits in the original bytes, and a
universal TranslationProject that is a projection of that document.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..exceptions import EntryNotFoundError, FormatParseError
from ..models import (
    BatchUpdate,
    EntryUpdate,
    EntryWithResource,
    ExportArtifact,
    Term,
    TranslationEntry,
    TranslationProject,
    TranslationResource,
    UploadPayload,
)
from ..result import Err, Ok, OperationResult, as_operation
from ..terms.templates import build_term_index, resolve_term_templates
from .upload import decode_payload, encode_payload, payload_file_name

logger = logging.getLogger(__name__)


class FormatAdapter(ABC):
    """
    Abstract interface between one file format and the translation engine.

    Lifecycle:
    1. ``load(payload)`` parses the upload once
    2. ``get_project()`` / ``update_entry()`` / ``update_entries()`` edit it
    3. ``export_file(terms)`` rebuilds the original format with translations
    4. ``get_format_data()`` / ``load_from_json()`` persist and restore it

    Public operations return an OperationResult and never raise for user
    errors. Subclasses implement ``_load`` and ``_export`` and may raise
    ``TranslationError`` subclasses from them.
    """

    def __init__(self):
        self.project = TranslationProject()
        self.original_file_name = ""
        self.source_language = ""
        self.target_language = ""
        self._payload: Optional[UploadPayload] = None

    @property
    @abstractmethod
    def format_name(self) -> str:
        """
        Get the format identifier.

        Returns:
            Format id (e.g., "xcloc", "po", "vtt", "html")
        """
        pass

    # ---- Lifecycle --------------------------------------------------------

    @as_operation
    def load(self, payload: UploadPayload) -> None:
        """Parse an upload and build the universal project."""
        self._payload = payload
        self.original_file_name = payload_file_name(payload)
        try:
            self._load(payload)
        except FormatParseError:
            self.project = TranslationProject()
            raise
        logger.info(f"Loaded {self.format_name} file {self.original_file_name!r}: "
                    f"{len(self.project.resources)} resource(s), {self.project.entry_count()} entries")

    @abstractmethod
    def _load(self, payload: UploadPayload) -> None:
        """Parse the payload into the internal document and ``self.project``."""
        pass

    # ---- Data access ------------------------------------------------------

    def get_project(self) -> TranslationProject:
        return self.project

    def get_resource(self, resource_id: str) -> Optional[TranslationResource]:
        return self.project.find_resource(resource_id)

    def get_source_language(self) -> Optional[str]:
        return self.source_language or self.project.source_language or None

    def get_target_languages(self) -> List[str]:
        if self.target_language:
            return [self.target_language]
        return list(self.project.target_languages or [])

    def set_languages(self, source_language: str, target_language: str) -> None:
        self.source_language = source_language
        self.target_language = target_language
        self.project.source_language = source_language
        self.project.target_languages = [target_language]
        for resource in self.project.resources:
            resource.source_language = source_language
            resource.target_language = target_language

    def flatten_entries(self) -> List[EntryWithResource]:
        return [
            EntryWithResource.from_entry(resource.id, entry)
            for resource in self.project.resources
            for entry in resource.entries
        ]

    # ---- Mutations --------------------------------------------------------

    def _require_entry(self, resource_id: str, entry_id: str) -> TranslationEntry:
        resource = self.project.find_resource(resource_id)
        if resource is None:
            raise EntryNotFoundError(f"Resource not found: {resource_id}", resource_id)
        entry = resource.find_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry not found: {entry_id}", resource_id, entry_id)
        return entry

    @as_operation
    def update_entry(self, resource_id: str, entry_id: str, update: EntryUpdate) -> None:
        entry = self._require_entry(resource_id, entry_id)
        self._apply_update(entry, update)

    def update_entries(self, updates: List[BatchUpdate]) -> OperationResult[None]:
        """Apply a batch atomically: nothing changes unless every id resolves."""
        targets = []
        for item in updates:
            try:
                targets.append((self._require_entry(item.resource_id, item.entry_id), item.update))
            except EntryNotFoundError as e:
                return Err(e)
        for entry, update in targets:
            self._apply_update(entry, update)
        return Ok()

    def _apply_update(self, entry: TranslationEntry, update: EntryUpdate) -> None:
        if update.target_text is not None:
            entry.target_text = update.target_text
        if update.comment is not None:
            entry.comment = update.comment

    # ---- Export -----------------------------------------------------------

    @as_operation
    def export_file(self, terms: Optional[List[Term]] = None) -> ExportArtifact:
        """Rebuild the original format; ``${{slug}}`` references are resolved here."""
        return self._export(build_term_index(terms))

    @abstractmethod
    def _export(self, terms_by_slug: Dict[str, Term]) -> ExportArtifact:
        pass

    @staticmethod
    def resolved_target(entry: TranslationEntry, terms_by_slug: Dict[str, Term]) -> str:
        return resolve_term_templates(entry.target_text, terms_by_slug)

    def _export_name(self, extension: str, fallback_base: str, also_strip: tuple = ()) -> str:
        """``<base>_<target or 'translated'><extension>``"""
        base = self.original_file_name or fallback_base
        for suffix in (extension,) + tuple(also_strip):
            if base.lower().endswith(suffix.lower()):
                base = base[:-len(suffix)]
                break
        return f"{base}_{self.target_language or 'translated'}{extension}"

    # ---- Persistence ------------------------------------------------------

    def get_format_data(self) -> Dict[str, Any]:
        """JSON-safe blob that, with the project JSON, restores this adapter."""
        data = {
            'formatId': self.format_name,
            'originalFileName': self.original_file_name,
            'sourceLanguage': self.source_language,
            'targetLanguage': self.target_language,
            'payload': encode_payload(self._payload) if self._payload else None,
        }
        data.update(self._extra_format_data())
        return data

    def _extra_format_data(self) -> Dict[str, Any]:
        return {}

    def _restore_format_data(self, format_data: Dict[str, Any]) -> None:
        pass

    @as_operation
    def load_from_json(self, project_data: Dict[str, Any], format_data: Dict[str, Any]) -> None:
        """Restore from stored JSON: re-parse the original, then re-apply entry values."""
        if not format_data.get('payload'):
            raise FormatParseError("Project has no content data", self.format_name)
        payload = decode_payload(format_data['payload'])
        self._payload = payload
        self.original_file_name = format_data.get('originalFileName') or payload_file_name(payload)
        self._load(payload)
        self._restore_format_data(format_data)

        stored = TranslationProject.from_dict(project_data)
        for stored_resource in stored.resources:
            resource = self.project.find_resource(stored_resource.id)
            if resource is None:
                continue
            for stored_entry in stored_resource.entries:
                entry = resource.find_entry(stored_entry.id)
                if entry is None:
                    continue
                entry.source_text = stored_entry.source_text
                self._apply_update(entry, EntryUpdate(stored_entry.target_text, stored_entry.comment))

        if format_data.get('sourceLanguage') or format_data.get('targetLanguage'):
            self.set_languages(format_data.get('sourceLanguage') or '',
                               format_data.get('targetLanguage') or '')

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"file={self.original_file_name!r}, "
            f"entries={self.project.entry_count()})"
        )
