"""
Universal translation data model.

Every format adapter projects its private document onto these types:
a TranslationProject holds TranslationResources, which hold ordered
TranslationEntries. JSON keys use camelCase so that a stored project is
readable by any client of the HTTP API.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class PluralForm(Enum):
    """CLDR plural categories"""
    ZERO = "zero"
    ONE = "one"
    TWO = "two"
    FEW = "few"
    MANY = "many"
    OTHER = "other"


@dataclass
class TranslationEntry:
    """
    Smallest translatable unit: one string, one cue, one attribute.

    Attributes:
        id: Identifier, unique within its resource
        source_text: Text shown to the translator
        target_text: Translation, empty string means untranslated
        comment: Note for translators
        context: Where the string is used (file references, keys)
        max_length: Optional length limit
        plural_form: Plural category when the entry is one form of a plural
        metadata: JSON projection of the adapter's per-entry side-table
    """
    id: str
    source_text: str
    target_text: str = ""
    comment: Optional[str] = None
    context: Optional[str] = None
    max_length: Optional[int] = None
    plural_form: Optional[PluralForm] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'sourceText': self.source_text,
            'targetText': self.target_text,
        }
        if self.comment is not None:
            data['comment'] = self.comment
        if self.context is not None:
            data['context'] = self.context
        if self.max_length is not None:
            data['maxLength'] = self.max_length
        if self.plural_form is not None:
            data['pluralForm'] = self.plural_form.value
        if self.metadata:
            data['metadata'] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TranslationEntry':
        plural = data.get('pluralForm')
        return cls(
            id=str(data['id']),
            source_text=data.get('sourceText', ''),
            target_text=data.get('targetText') or '',
            comment=data.get('comment'),
            context=data.get('context'),
            max_length=data.get('maxLength'),
            plural_form=PluralForm(plural) if plural else None,
            metadata=dict(data.get('metadata') or {}),
        )


@dataclass
class TranslationResource:
    """Named group of entries coming from one logical source file"""
    id: str
    label: str
    entries: List[TranslationEntry] = field(default_factory=list)
    source_language: Optional[str] = None
    target_language: Optional[str] = None

    def find_entry(self, entry_id: str) -> Optional[TranslationEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'id': self.id,
            'label': self.label,
            'entries': [entry.to_dict() for entry in self.entries],
        }
        if self.source_language:
            data['sourceLanguage'] = self.source_language
        if self.target_language:
            data['targetLanguage'] = self.target_language
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TranslationResource':
        return cls(
            id=data['id'],
            label=data.get('label', data['id']),
            entries=[TranslationEntry.from_dict(e) for e in data.get('entries', [])],
            source_language=data.get('sourceLanguage'),
            target_language=data.get('targetLanguage'),
        )


@dataclass
class TranslationProject:
    """The unit persisted by storage and round-tripped through export"""
    resources: List[TranslationResource] = field(default_factory=list)
    source_language: Optional[str] = None
    target_languages: Optional[List[str]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def find_resource(self, resource_id: str) -> Optional[TranslationResource]:
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None

    def entry_count(self) -> int:
        return sum(len(r.entries) for r in self.resources)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'resources': [r.to_dict() for r in self.resources]}
        if self.source_language:
            data['sourceLanguage'] = self.source_language
        if self.target_languages:
            data['targetLanguages'] = list(self.target_languages)
        if self.metadata:
            data['metadata'] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TranslationProject':
        return cls(
            resources=[TranslationResource.from_dict(r) for r in data.get('resources', [])],
            source_language=data.get('sourceLanguage'),
            target_languages=data.get('targetLanguages'),
            metadata=dict(data.get('metadata') or {}),
        )


@dataclass
class EntryUpdate:
    """Partial update of an entry; None leaves the field alone"""
    target_text: Optional[str] = None
    comment: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EntryUpdate':
        return cls(target_text=data.get('targetText'), comment=data.get('comment'))


@dataclass
class BatchUpdate:
    """One element of a bulk ``update_entries`` call"""
    resource_id: str
    entry_id: str
    update: EntryUpdate


@dataclass
class EntryWithResource:
    """Flattened entry view used by the context tools and the orchestrator"""
    resource_id: str
    id: str
    source_text: str
    target_text: str = ""
    comment: Optional[str] = None

    @classmethod
    def from_entry(cls, resource_id: str, entry: TranslationEntry) -> 'EntryWithResource':
        return cls(
            resource_id=resource_id,
            id=entry.id,
            source_text=entry.source_text,
            target_text=entry.target_text,
            comment=entry.comment,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'resourceId': self.resource_id,
            'id': self.id,
            'sourceText': self.source_text,
            'targetText': self.target_text,
        }
        if self.comment:
            data['comment'] = self.comment
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EntryWithResource':
        return cls(
            resource_id=data['resourceId'],
            id=str(data['id']),
            source_text=data.get('sourceText', ''),
            target_text=data.get('targetText') or '',
            comment=data.get('comment'),
        )


@dataclass
class Term:
    """Glossary record enforcing consistent translation of a phrase"""
    id: str
    slug: str
    original_text: str
    translation: str
    comment: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'slug': self.slug,
            'originalText': self.original_text,
            'translation': self.translation,
            'comment': self.comment,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Term':
        return cls(
            id=str(data.get('id') or data['slug']),
            slug=data['slug'],
            original_text=data.get('originalText', ''),
            translation=data.get('translation') or '',
            comment=data.get('comment'),
        )


# ============================================================================
# Upload payloads and export artifacts
# ============================================================================

@dataclass
class VirtualFile:
    """One file of an unpacked archive"""
    path: str
    content: bytes


@dataclass
class VirtualFileTree:
    files: List[VirtualFile] = field(default_factory=list)

    def visible_files(self) -> List[VirtualFile]:
        """Files minus macOS resource-fork noise."""
        return [f for f in self.files if '__MACOSX' not in f.path]


@dataclass
class SingleFilePayload:
    name: str
    content: bytes


@dataclass
class ArchivePayload:
    original_file_name: str
    tree: VirtualFileTree


UploadPayload = Union[SingleFilePayload, ArchivePayload]


@dataclass
class ExportArtifact:
    """Exported bytes plus the file name to offer for download"""
    content: bytes
    file_name: str
    mime_type: str = "application/octet-stream"
