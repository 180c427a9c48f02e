"""Unit tests for the gettext PO document and adapter."""

import pytest

from lingoforge.core.adapters import PoAdapter
from lingoforge.core.adapters.hash_detection import HashHeuristic, has_hash_based_msgids, is_hash_like
from lingoforge.core.adapters.po_adapter import RESOURCE_ID, plural_index_to_form
from lingoforge.core.adapters.po_document import format_msgstr, parse_po, serialize_po
from lingoforge.core.exceptions import FormatParseError, ReferenceDocumentError, ReferenceFailure
from lingoforge.core.models import EntryUpdate, PluralForm, SingleFilePayload


def _load(text, name="messages.po"):
    adapter = PoAdapter()
    result = adapter.load(SingleFilePayload(name=name, content=text.encode('utf-8')))
    assert result.is_ok(), result
    return adapter


def _entries(adapter):
    return {e.id: e for e in adapter.get_resource(RESOURCE_ID).entries}


def _export_text(adapter, terms=None):
    return adapter.export_file(terms).unwrap().content.decode('utf-8')


class TestParsePo:
    """Test PO parsing."""

    def test_messages_and_header(self, simple_po):
        """Header metadata is read; obsolete entries are skipped."""
        doc = parse_po(simple_po)
        assert doc.language == "de"
        assert doc.nplurals == 2
        assert [m.msgid for m in doc.messages] == ["Open file", "Save %(name)s", "One item"]
        assert doc.messages[2].is_plural

    def test_msgctxt_scopes_key(self):
        """Same msgid in two contexts gives two keys."""
        doc = parse_po('msgctxt "menu"\nmsgid "Open"\nmsgstr ""\n\nmsgctxt "door"\nmsgid "Open"\nmsgstr ""\n')
        assert [m.key for m in doc.messages] == ["menu\x04Open", "door\x04Open"]

    def test_invalid_po(self):
        """Syntax errors become FormatParseError."""
        with pytest.raises(FormatParseError):
            parse_po('msgid "a"\nmsgstr "b"\nnot a keyword\n')


class TestSerializePo:
    """Test line-preserving PO serialization."""

    def test_empty_map_is_identity(self, simple_po):
        """No values means byte-identical output."""
        assert serialize_po(parse_po(simple_po), {}) == simple_po

    def test_only_changed_msgstr_lines_rewritten(self, simple_po):
        """Comments, flags and obsolete entries survive an edit."""
        out = serialize_po(parse_po(simple_po), {(0, None): "Datei öffnen"})
        assert out == simple_po.replace('msgid "Open file"\nmsgstr ""', 'msgid "Open file"\nmsgstr "Datei öffnen"')

    def test_plural_forms(self, simple_po):
        """Each msgstr[n] is written on its own line."""
        out = serialize_po(parse_po(simple_po), {(2, 0): "Ein Element", (2, 1): "%d Elemente"})
        assert 'msgstr[0] "Ein Element"\nmsgstr[1] "%d Elemente"\n' in out

    def test_missing_plural_form_appended(self):
        """A form absent from the file is added after the last msgstr line."""
        text = ('msgid ""\nmsgstr ""\n"Plural-Forms: nplurals=3; plural=0;\\n"\n\n'
                'msgid "file"\nmsgid_plural "files"\nmsgstr[0] "a"\nmsgstr[1] "b"\n')
        out = serialize_po(parse_po(text), {(0, 2): "c"})
        assert out.endswith('msgstr[1] "b"\nmsgstr[2] "c"\n')

    def test_multiline_value(self):
        """Values with newlines use the empty lead-in form."""
        assert format_msgstr('msgstr', 'Line one\nLine "two"') == [
            'msgstr ""', '"Line one\\n"', '"Line \\"two\\""',
        ]

    def test_crlf_and_bom_preserved(self):
        """Windows newlines and the BOM survive an edit."""
        text = '\ufeffmsgid "Yes"\r\nmsgstr ""\r\n\r\nmsgid "No"\r\nmsgstr ""\r\n'
        out = serialize_po(parse_po(text), {(1, None): "Nein"})
        assert out == '\ufeffmsgid "Yes"\r\nmsgstr ""\r\n\r\nmsgid "No"\r\nmsgstr "Nein"\r\n'


class TestPoAdapter:
    """Test the PO adapter's projection and export."""

    def test_entries(self, simple_po):
        """Singular entries use the message index; plurals get one entry per form."""
        adapter = _load(simple_po)
        entries = _entries(adapter)
        assert list(entries) == ["0", "1", "2:plural:0", "2:plural:1"]
        assert entries["0"].context == "src/app.py:10"
        assert entries["1"].comment == "Shown in the toolbar"
        assert entries["1"].target_text == "%(name)s speichern"
        assert entries["1"].metadata['flags'] == ["python-format"]
        assert entries["2:plural:1"].source_text == "%d items"
        assert entries["2:plural:0"].plural_form is PluralForm.ONE
        assert entries["2:plural:1"].plural_form is PluralForm.OTHER

    def test_language_header_sets_target(self, simple_po):
        """The Language header becomes the target language."""
        assert _load(simple_po).get_target_languages() == ["de"]

    def test_export(self, simple_po):
        """Export writes translations and is named after the target language."""
        adapter = _load(simple_po, "app.po")
        adapter.update_entry(RESOURCE_ID, "0", EntryUpdate(target_text="Datei öffnen"))
        adapter.update_entry(RESOURCE_ID, "2:plural:1", EntryUpdate(target_text="%d Elemente"))

        artifact = adapter.export_file().unwrap()
        assert artifact.file_name == "app_de.po"
        text = artifact.content.decode('utf-8')
        assert 'msgid "Open file"\nmsgstr "Datei öffnen"' in text
        assert 'msgstr[0] ""\nmsgstr[1] "%d Elemente"' in text
        assert '#~ msgstr "Veraltet"' in text

    def test_untouched_export_is_identity(self, simple_po):
        """Nothing edited means the original bytes come back."""
        assert _export_text(_load(simple_po)) == simple_po

    def test_empty_catalog_rejected(self):
        """A header-only catalog has nothing to translate."""
        result = PoAdapter().load(SingleFilePayload("empty.po", b'msgid ""\nmsgstr ""\n"Language: de\\n"\n'))
        assert result.message == "No translatable entries found in the PO file"

    def test_plural_index_mapping(self):
        """gettext plural indices map onto CLDR categories."""
        assert plural_index_to_form(0, 1) is PluralForm.OTHER
        assert plural_index_to_form(2, 3) is PluralForm.OTHER
        assert plural_index_to_form(1, 3) is PluralForm.FEW
        assert plural_index_to_form(0, 6) is PluralForm.ZERO
        assert plural_index_to_form(3, 4) is PluralForm.OTHER


class TestHashDetection:
    """Test detection of hash-based msgids."""

    def test_hash_like_tokens(self):
        """Short base64-ish tokens are hash-like; sentences are not."""
        assert is_hash_like("hzSNj4")
        assert is_hash_like("YBY/lc")
        assert is_hash_like("+hb4i3")
        assert not is_hash_like("Open file")
        assert not is_hash_like("x")
        assert not is_hash_like("averyveryverylongtoken")

    def test_catalog_detection(self, hash_po, simple_po):
        """A catalog keyed by hashes is detected."""
        assert has_hash_based_msgids(parse_po(hash_po))
        assert not has_hash_based_msgids(parse_po(simple_po))

    def test_small_samples_never_hash_based(self):
        """Fewer than three values are not enough evidence."""
        assert not HashHeuristic().is_hash_based(["abc123", "def456"])

    def test_adapter_exposes_flag(self, hash_po):
        """Format data records whether msgids are hashed."""
        adapter = _load(hash_po)
        assert adapter.has_hash_msgids()
        assert adapter.get_format_data()['hashBasedMsgids'] is True


class TestReferenceDocument:
    """Test remapping hash msgids through a source-language catalog."""

    def test_remap_source_text(self, hash_po, reference_po):
        """Source text comes from the reference msgstr; export keeps hash msgids."""
        adapter = _load(hash_po, "zh.po")
        assert adapter.apply_reference_document(reference_po).unwrap() == 4

        entries = _entries(adapter)
        assert entries["0"].source_text == "Dashboard"
        assert entries["0"].target_text == "仪表板"
        assert entries["1"].source_text == "Overview of your translation projects"
        assert entries["2"].source_text == "New Project"
        assert entries["3"].source_text == "AI-powered translation platform"

        adapter.update_entry(RESOURCE_ID, "2", EntryUpdate(target_text="新建项目"))
        text = _export_text(adapter)
        assert 'msgid "hzSNj4"' in text
        assert 'msgid "YBY/lc"\nmsgstr "新建项目"' in text
        assert "Dashboard" not in text

    def test_remap_survives_restore(self, hash_po, reference_po):
        """Remapped source text is part of the stored project."""
        adapter = _load(hash_po)
        adapter.apply_reference_document(reference_po)

        restored = PoAdapter()
        assert restored.load_from_json(adapter.get_project().to_dict(), adapter.get_format_data()).is_ok()
        assert _entries(restored)["0"].source_text == "Dashboard"

    def test_same_file_rejected(self, hash_po):
        """Uploading the catalog itself as reference is refused."""
        result = _load(hash_po).apply_reference_document(hash_po)
        assert isinstance(result.error, ReferenceDocumentError)
        assert result.error.reason is ReferenceFailure.SAME_FILE
        assert result.message.startswith("The reference file is the same as the uploaded file.")

    def test_no_entries(self, hash_po):
        """A reference without entries is refused."""
        result = _load(hash_po).apply_reference_document('msgid ""\nmsgstr ""\n"Language: en\\n"\n')
        assert result.error.reason is ReferenceFailure.NO_ENTRIES
        assert result.message == "Reference PO file contains no entries"

    def test_hashed_translations(self, hash_po):
        """A reference whose msgstrs are hashes too is refused."""
        reference = ('msgid "hzSNj4"\nmsgstr "aB3dE5"\n\nmsgid "tWcRaD"\nmsgstr "Zx9Yw8"\n\n'
                     'msgid "YBY/lc"\nmsgstr "Qq1Rr2"\n')
        result = _load(hash_po).apply_reference_document(reference)
        assert result.error.reason is ReferenceFailure.HASHED_TRANSLATIONS
        assert "also appear to be hash-based" in result.message

    def test_no_translations(self, hash_po):
        """A reference with only empty msgstrs is refused."""
        result = _load(hash_po).apply_reference_document('msgid "hzSNj4"\nmsgstr ""\n')
        assert result.error.reason is ReferenceFailure.NO_TRANSLATIONS
        assert result.message == "Reference PO file has no translated entries (all msgstr are empty)"

    def test_no_overlap(self, hash_po):
        """A reference sharing no msgid is refused and nothing changes."""
        adapter = _load(hash_po)
        result = adapter.apply_reference_document('msgid "other"\nmsgstr "Something else"\n')
        assert result.error.reason is ReferenceFailure.NO_OVERLAP
        assert result.message.startswith("No matching entries found")
        assert _entries(adapter)["0"].source_text == "hzSNj4"


class TestUpdateFromPo:
    """Test merging a newer catalog into an existing project."""

    NEW_PO = """msgid ""
msgstr ""
"Language: de\\n"
"Plural-Forms: nplurals=2; plural=(n != 1);\\n"

msgid "Open file"
msgstr ""

msgid "Close"
msgstr ""

msgid "One item"
msgid_plural "%d items"
msgstr[0] ""
msgstr[1] ""
"""

    def test_stats_and_preserved_translations(self, simple_po):
        """Existing translations carry over by msgid; removed ones are counted."""
        adapter = _load(simple_po)
        adapter.update_entry(RESOURCE_ID, "0", EntryUpdate(target_text="Datei öffnen"))

        stats = adapter.update_from_po(self.NEW_PO).unwrap()
        assert stats.to_dict() == {'added': 1, 'removed': 1, 'preserved': 1, 'total': 3}

        entries = _entries(adapter)
        assert entries["0"].target_text == "Datei öffnen"
        assert entries["1"].source_text == "Close"
        assert entries["1"].target_text == ""

    def test_export_uses_new_catalog(self, simple_po):
        """After an update, export is based on the new file."""
        adapter = _load(simple_po)
        adapter.update_entry(RESOURCE_ID, "0", EntryUpdate(target_text="Datei öffnen"))
        adapter.update_from_po(self.NEW_PO)

        text = _export_text(adapter)
        assert 'msgid "Close"' in text
        assert "Save %(name)s" not in text
        assert 'msgstr "Datei öffnen"' in text

    def test_empty_new_catalog(self, simple_po):
        """An empty replacement is rejected and the project is kept."""
        adapter = _load(simple_po)
        result = adapter.update_from_po('msgid ""\nmsgstr ""\n')
        assert result.is_err()
        assert len(_entries(adapter)) == 4

    def test_reference_applied_after_update(self, hash_po, reference_po):
        """A reference passed with the update remaps the new entries."""
        adapter = _load(hash_po)
        assert adapter.update_from_po(hash_po, reference_po).is_ok()
        assert _entries(adapter)["3"].source_text == "AI-powered translation platform"
