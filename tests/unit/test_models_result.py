"""Unit tests for the universal model and OperationResult."""

import pytest

from lingoforge.core.exceptions import EntryNotFoundError, FormatParseError
from lingoforge.core.models import (
    EntryWithResource,
    PluralForm,
    Term,
    TranslationEntry,
    TranslationProject,
    TranslationResource,
    VirtualFile,
    VirtualFileTree,
)
from lingoforge.core.result import Err, Ok, as_operation


class TestOk:
    """Test Ok result type."""

    def test_ok_creation(self):
        """Create Ok result."""
        result = Ok(42)
        assert result.is_ok() is True
        assert result.is_err() is False
        assert result.unwrap() == 42

    def test_ok_map(self):
        """Map function over Ok value."""
        assert Ok(5).map(lambda x: x * 2).unwrap() == 10


class TestErr:
    """Test Err result type."""

    def test_err_message_from_translation_error(self):
        """message reads the exception's message, not its repr."""
        result = Err(FormatParseError("Invalid XLIFF: boom", "xcloc"))
        assert result.is_err()
        assert result.message == "Invalid XLIFF: boom"

    def test_err_unwrap_raises(self):
        """Unwrap on Err should raise."""
        with pytest.raises(ValueError, match="Called unwrap on Err"):
            Err("error").unwrap()

    def test_err_map_is_noop(self):
        """Map on Err should be no-op."""
        result = Err("error")
        assert result.map(lambda x: x * 2) is result


class TestAsOperation:
    """Test the decorator that turns raised errors into Err."""

    def test_return_value_wrapped(self):
        """A normal return becomes Ok."""
        @as_operation
        def load():
            return 3

        assert load().unwrap() == 3

    def test_translation_error_becomes_err(self):
        """TranslationError subclasses are captured."""
        @as_operation
        def update():
            raise EntryNotFoundError("Entry not found: x", "r", "x")

        result = update()
        assert result.is_err()
        assert isinstance(result.error, EntryNotFoundError)
        assert result.error.entry_id == "x"

    def test_other_exceptions_propagate(self):
        """Bugs are not hidden behind Err."""
        @as_operation
        def broken():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            broken()


class TestProjectJson:
    """Test camelCase JSON projection of the model."""

    def test_entry_round_trip(self):
        """Optional fields survive to_dict/from_dict."""
        entry = TranslationEntry(
            id="2:plural:1", source_text="%d items", target_text="%d Elemente",
            comment="count", context="src/app.py:3", max_length=20,
            plural_form=PluralForm.OTHER, metadata={'pluralIndex': 1},
        )
        data = entry.to_dict()
        assert data['sourceText'] == "%d items"
        assert data['pluralForm'] == "other"
        assert data['maxLength'] == 20
        assert TranslationEntry.from_dict(data) == entry

    def test_entry_omits_unset_fields(self):
        """Unset optional fields are not written."""
        assert TranslationEntry(id="1", source_text="Hi").to_dict() == {
            'id': "1", 'sourceText': "Hi", 'targetText': "",
        }

    def test_null_target_reads_as_untranslated(self):
        """A stored null target is the empty string."""
        entry = TranslationEntry.from_dict({'id': 7, 'sourceText': "Hi", 'targetText': None})
        assert entry.id == "7"
        assert entry.target_text == ""

    def test_project_lookup_and_count(self):
        """Resources are found by id; entries are counted across them."""
        project = TranslationProject(resources=[
            TranslationResource(id="a", label="A", entries=[TranslationEntry("1", "x")]),
            TranslationResource(id="b", label="B", entries=[TranslationEntry("1", "y"), TranslationEntry("2", "z")]),
        ], source_language="en", target_languages=["de"])
        assert project.entry_count() == 3
        assert project.find_resource("b").find_entry("2").source_text == "z"
        assert project.find_resource("c") is None

        restored = TranslationProject.from_dict(project.to_dict())
        assert restored == project

    def test_term_round_trip(self):
        """Terms keep their slug and translation."""
        term = Term(id="t1", slug="argo-trading", original_text="Argo Trading", translation="阿尔戈交易")
        assert Term.from_dict(term.to_dict()) == term

    def test_entry_with_resource(self):
        """Flattened view remembers its resource."""
        flat = EntryWithResource.from_entry("res", TranslationEntry("1", "Hi", "Hallo", comment="c"))
        assert flat.to_dict() == {
            'resourceId': "res", 'id': "1", 'sourceText': "Hi", 'targetText': "Hallo", 'comment': "c",
        }


class TestVirtualFileTree:
    """Test archive trees."""

    def test_macos_metadata_hidden(self):
        """__MACOSX entries are not visible."""
        tree = VirtualFileTree(files=[
            VirtualFile("a/index.html", b""),
            VirtualFile("__MACOSX/a/._index.html", b""),
        ])
        assert [f.path for f in tree.visible_files()] == ["a/index.html"]
