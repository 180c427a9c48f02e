"""
Gettext PO adapter.

Every non-obsolete entry becomes one TranslationEntry (``"{i}"``) or, for a
plural entry, one per plural form (``"{i}:plural:{f}"``). Catalogs keyed by
hashed msgids can be made readable with a reference catalog whose msgstrs
hold the source-language text.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import ExportError, FormatParseError, ReferenceDocumentError, ReferenceFailure
from ..models import (
    ExportArtifact,
    PluralForm,
    SingleFilePayload,
    Term,
    TranslationEntry,
    TranslationResource,
    UploadPayload,
)
from ..result import OperationResult, as_operation
from .format_adapter import FormatAdapter
from .hash_detection import has_hash_based_msgids, has_hash_based_msgstrs
from .po_document import PoDocument, PoMessage, ValueKey, parse_po, serialize_po
from .upload import decode_text, strip_bom

logger = logging.getLogger(__name__)

RESOURCE_ID = "po-main"

_PO_MSGID_RE = re.compile(r'^msgid\s+"', re.MULTILINE)
_PO_MSGSTR_RE = re.compile(r'^msgstr\s+"', re.MULTILINE)

_SIX_FORMS = [PluralForm.ZERO, PluralForm.ONE, PluralForm.TWO,
              PluralForm.FEW, PluralForm.MANY, PluralForm.OTHER]
_FOUR_FORMS = [PluralForm.ONE, PluralForm.FEW, PluralForm.MANY, PluralForm.OTHER]


def plural_index_to_form(index: int, nplurals: int) -> PluralForm:
    """Map a gettext plural index to a CLDR category."""
    if nplurals == 1:
        return PluralForm.OTHER
    if nplurals == 2:
        return PluralForm.ONE if index == 0 else PluralForm.OTHER
    if nplurals == 3:
        return [PluralForm.ONE, PluralForm.FEW, PluralForm.OTHER][index] if index < 3 else PluralForm.OTHER
    forms = _SIX_FORMS if nplurals == 6 else _FOUR_FORMS
    return forms[index] if index < len(forms) else PluralForm.OTHER


def _format_reference(occurrence: Tuple[str, str]) -> str:
    path, line = occurrence
    return f"{path}:{line}" if line else path


@dataclass
class PoUpdateStats:
    added: int
    removed: int
    preserved: int
    total: int

    def to_dict(self) -> Dict[str, int]:
        return {
            'added': self.added,
            'removed': self.removed,
            'preserved': self.preserved,
            'total': self.total,
        }


@dataclass
class _Snapshot:
    """Translations of one catalog entry captured before a merge"""
    singular: Optional[str] = None
    plural: Optional[Dict[int, str]] = None


class PoAdapter(FormatAdapter):
    """Adapter for GNU gettext PO catalogs."""

    FORMAT_ID = "po"
    DISPLAY_NAME = "Gettext PO"
    EXTENSIONS = ('.po', '.pot')

    def __init__(self):
        super().__init__()
        self.document: Optional[PoDocument] = None
        self.original_text = ""
        # entry id -> (message index, plural form or None)
        self._slots: Dict[str, ValueKey] = {}

    @property
    def format_name(self) -> str:
        return self.FORMAT_ID

    @classmethod
    def detect(cls, payload: UploadPayload) -> float:
        if not isinstance(payload, SingleFilePayload):
            return 0.0
        if not payload.name.lower().endswith(cls.EXTENSIONS):
            return 0.0
        head = payload.content[:1000].decode('utf-8', errors='ignore')
        if _PO_MSGID_RE.search(head) and _PO_MSGSTR_RE.search(head):
            return 1.0
        return 0.5

    # ---- Loading ----------------------------------------------------------

    def _load(self, payload: UploadPayload) -> None:
        if not isinstance(payload, SingleFilePayload):
            raise FormatParseError("PO requires a single file upload", self.FORMAT_ID)
        text = decode_text(payload.content)
        document = parse_po(text)
        if not document.messages:
            raise FormatParseError("No translatable entries found in the PO file", self.FORMAT_ID)
        self.original_text = text
        self.document = document
        if not self.target_language and document.language:
            self.target_language = document.language
        self._build_project()

    def _build_project(self) -> None:
        nplurals = self.document.nplurals
        entries: List[TranslationEntry] = []
        self._slots = {}

        for index, message in enumerate(self.document.messages):
            po_entry = message.entry
            comment = po_entry.comment or None
            references = [_format_reference(o) for o in po_entry.occurrences]
            context = ", ".join(references) if references else None
            base_metadata: Dict[str, Any] = {
                'entryIndex': index,
                'flags': list(po_entry.flags),
                'msgctxt': po_entry.msgctxt,
                'translatorComments': po_entry.tcomment.split('\n') if po_entry.tcomment else [],
            }

            if message.is_plural:
                translations = message.msgstr_plural
                for form in range(nplurals):
                    entry_id = f"{index}:plural:{form}"
                    entries.append(TranslationEntry(
                        id=entry_id,
                        source_text=po_entry.msgid if form == 0 else po_entry.msgid_plural,
                        target_text=translations.get(form, ""),
                        comment=comment,
                        context=context,
                        plural_form=plural_index_to_form(form, nplurals),
                        metadata=dict(base_metadata, pluralIndex=form),
                    ))
                    self._slots[entry_id] = (index, form)
            else:
                entry_id = str(index)
                entries.append(TranslationEntry(
                    id=entry_id,
                    source_text=po_entry.msgid,
                    target_text=message.msgstr,
                    comment=comment,
                    context=context,
                    metadata=base_metadata,
                ))
                self._slots[entry_id] = (index, None)

        self.project.resources = [TranslationResource(
            id=RESOURCE_ID,
            label=self.original_file_name or "PO Translations",
            entries=entries,
            source_language=self.source_language or None,
            target_language=self.target_language or None,
        )]
        self.project.source_language = self.source_language or None
        self.project.target_languages = [self.target_language] if self.target_language else None

    def has_hash_msgids(self) -> bool:
        return self.document is not None and has_hash_based_msgids(self.document)

    def _message_for(self, entry_id: str) -> Optional[PoMessage]:
        slot = self._slots.get(entry_id)
        if slot is None:
            return None
        return self.document.messages[slot[0]]

    # ---- Reference catalogs -----------------------------------------------

    @as_operation
    def apply_reference_document(self, reference_text: str) -> int:
        """Show the reference catalog's msgstr as the source text of matching entries.

        Only ``source_text`` changes; the hashed msgid stays in the document
        and is what export writes. Returns the number of remapped entries.
        """
        _, reference_body = strip_bom(reference_text)
        _, original_body = strip_bom(self.original_text)
        if original_body and reference_body.strip() == original_body.strip():
            raise ReferenceDocumentError(
                "The reference file is the same as the uploaded file. "
                "Please upload the source language PO file (e.g. en.po) instead.",
                ReferenceFailure.SAME_FILE)

        reference = parse_po(reference_text)
        if not reference.messages:
            raise ReferenceDocumentError("Reference PO file contains no entries",
                                         ReferenceFailure.NO_ENTRIES)
        if has_hash_based_msgstrs(reference):
            raise ReferenceDocumentError(
                "The reference file's translations also appear to be hash-based. "
                "Please upload the source language PO file that contains the actual "
                "English text as msgstr (e.g. en.po).",
                ReferenceFailure.HASHED_TRANSLATIONS)

        reference_map = {m.key: m.msgstr for m in reference.messages if m.msgstr.strip()}
        if not reference_map:
            raise ReferenceDocumentError(
                "Reference PO file has no translated entries (all msgstr are empty)",
                ReferenceFailure.NO_TRANSLATIONS)

        matched = 0
        for resource in self.project.resources:
            for entry in resource.entries:
                message = self._message_for(entry.id)
                if message is None:
                    continue
                text = reference_map.get(message.key)
                if text:
                    entry.source_text = text
                    matched += 1

        if matched == 0:
            raise ReferenceDocumentError(
                "No matching entries found between the uploaded file and reference file. "
                "Make sure both files use the same msgid keys.",
                ReferenceFailure.NO_OVERLAP)

        logger.info(f"Reference catalog remapped {matched} of {self.project.entry_count()} entries")
        return matched

    # ---- Catalog updates --------------------------------------------------

    def _snapshot_translations(self) -> Dict[str, _Snapshot]:
        snapshots: Dict[str, _Snapshot] = {}
        for resource in self.project.resources:
            for entry in resource.entries:
                slot = self._slots.get(entry.id)
                if slot is None:
                    continue
                message_index, form = slot
                snapshot = snapshots.setdefault(self.document.messages[message_index].key, _Snapshot())
                if form is None:
                    snapshot.singular = entry.target_text
                else:
                    if snapshot.plural is None:
                        snapshot.plural = {}
                    snapshot.plural[form] = entry.target_text
        return snapshots

    @as_operation
    def update_from_po(self, new_text: str, reference_text: Optional[str] = None) -> PoUpdateStats:
        """Replace the catalog with a newer one, carrying translations over by key.

        New entries start untranslated, entries missing from the new catalog
        are dropped. Entries whose shape changed between singular and plural
        are treated as new.
        """
        new_document = parse_po(new_text)
        if not new_document.messages:
            raise FormatParseError("No translatable entries found in the new PO file", self.FORMAT_ID)

        old = self._snapshot_translations()
        self.document = new_document
        self.original_text = new_text
        self._payload = SingleFilePayload(name=self.original_file_name, content=new_text.encode('utf-8'))
        self._build_project()

        preserved = 0
        resource = self.project.resources[0]
        for message_index, message in enumerate(new_document.messages):
            snapshot = old.get(message.key)
            if snapshot is None:
                continue
            if message.is_plural and snapshot.plural is not None:
                for form in range(new_document.nplurals):
                    entry = resource.find_entry(f"{message_index}:plural:{form}")
                    entry.target_text = snapshot.plural.get(form, "")
                if any(value.strip() for value in snapshot.plural.values()):
                    preserved += 1
            elif not message.is_plural and snapshot.singular is not None:
                resource.find_entry(str(message_index)).target_text = snapshot.singular
                if snapshot.singular.strip():
                    preserved += 1

        new_keys = {m.key for m in new_document.messages}
        removed = sum(1 for key in old if key not in new_keys)
        total = len(new_document.messages)
        stats = PoUpdateStats(added=total - (len(old) - removed), removed=removed,
                              preserved=preserved, total=total)

        if reference_text:
            result = self.apply_reference_document(reference_text)
            if result.is_err():
                logger.warning(f"Reference catalog not applied after update: {result.message}")

        logger.info(f"PO catalog updated: {stats.to_dict()}")
        return stats

    # ---- Export / persistence ---------------------------------------------

    def _export(self, terms_by_slug: Dict[str, Term]) -> ExportArtifact:
        if self.document is None:
            raise ExportError("Nothing loaded to export", {'format': self.FORMAT_ID})
        values: Dict[ValueKey, str] = {}
        for resource in self.project.resources:
            for entry in resource.entries:
                slot = self._slots.get(entry.id)
                if slot is not None:
                    values[slot] = self.resolved_target(entry, terms_by_slug)
        content = serialize_po(self.document, values)
        return ExportArtifact(
            content=content.encode('utf-8'),
            file_name=self._export_name('.po', 'translated', also_strip=('.pot',)),
            mime_type='text/x-gettext-translation; charset=utf-8',
        )

    def _extra_format_data(self) -> Dict[str, Any]:
        return {'hashBasedMsgids': self.has_hash_msgids()}
