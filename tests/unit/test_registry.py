"""Unit tests for format detection."""

import pytest

from lingoforge.core.adapters import (
    FORMATS,
    DocumentAdapter,
    PoAdapter,
    create_adapter,
    get_descriptor,
    payload_from_upload,
    resolve,
)
from lingoforge.core.exceptions import UnsupportedPayloadError
from lingoforge.core.models import SingleFilePayload


def _single(name, text):
    return SingleFilePayload(name=name, content=text.encode('utf-8'))


class TestResolve:
    """Test picking an adapter for an upload."""

    def test_registration_order(self):
        """Ties go to the format registered first."""
        assert [d.format_id for d in FORMATS] == ["xcloc", "po", "vtt", "srt", "html", "document"]

    def test_each_format(self, xcloc_bundle, simple_po, sample_vtt, sample_srt, sample_html,
                         sample_markdown, docx_bytes):
        """Every sample is claimed by its own adapter."""
        cases = [
            (payload_from_upload("Demo.xcloc.zip", xcloc_bundle), "xcloc"),
            (_single("de.po", simple_po), "po"),
            (_single("talk.vtt", sample_vtt), "vtt"),
            (_single("movie.srt", sample_srt), "srt"),
            (_single("index.html", sample_html), "html"),
            (_single("guide.md", sample_markdown), "document"),
            (payload_from_upload("report.docx", docx_bytes), "document"),
        ]
        for payload, expected in cases:
            assert resolve(payload).format_id == expected

    def test_bare_xliff(self, sample_xliff):
        """A lone XLIFF file goes to the xcloc adapter."""
        assert resolve(_single("App_de.xliff", sample_xliff)).format_id == "xcloc"

    def test_unknown_file(self):
        """Nothing claims a CSV file."""
        assert resolve(_single("data.csv", "a,b\n1,2\n")) is None

    def test_min_confidence(self):
        """A weak match is dropped when the threshold is higher."""
        payload = _single("broken.po", "just text")
        assert resolve(payload).format_id == "po"
        assert resolve(payload, min_confidence=0.8) is None


class TestCreateAdapter:
    """Test adapter construction by format id."""

    def test_known(self):
        """Each id creates a fresh adapter of its class."""
        assert isinstance(create_adapter("po"), PoAdapter)
        assert isinstance(create_adapter("document"), DocumentAdapter)
        assert create_adapter("po") is not create_adapter("po")

    def test_unknown(self):
        """Unknown ids raise."""
        with pytest.raises(UnsupportedPayloadError, match="Unknown format: csv"):
            create_adapter("csv")

    def test_descriptor_dict(self):
        """Descriptors list display name and extensions."""
        assert get_descriptor("srt").to_dict() == {
            'formatId': "srt", 'displayName': "SRT Subtitles", 'fileExtensions': [".srt"],
        }
        assert get_descriptor("csv") is None
