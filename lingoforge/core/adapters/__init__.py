"""
Format adapters.

Each supported file format implements the FormatAdapter interface: it
loads an upload into the universal TranslationProject, accepts entry
updates and exports the original format with only the translated fields
changed.
"""

from .format_adapter import FormatAdapter
from .xcloc_adapter import XclocAdapter
from .po_adapter import PoAdapter, PoUpdateStats
from .subtitle_adapter import VttAdapter, SrtAdapter
from .html_adapter import HtmlAdapter
from .document_adapter import DocumentAdapter
from .registry import FormatDescriptor, FORMATS, resolve, get_descriptor, create_adapter
from .upload import payload_from_upload

__all__ = [
    'FormatAdapter',
    'XclocAdapter',
    'PoAdapter',
    'PoUpdateStats',
    'VttAdapter',
    'SrtAdapter',
    'HtmlAdapter',
    'DocumentAdapter',
    'FormatDescriptor',
    'FORMATS',
    'resolve',
    'get_descriptor',
    'create_adapter',
    'payload_from_upload',
]
