"""
Core translation modules
"""
from .models import (
    TranslationEntry,
    TranslationResource,
    TranslationProject,
    EntryUpdate,
    BatchUpdate,
    EntryWithResource,
    Term,
    ExportArtifact,
)
from .result import Ok, Err, OperationResult
from .adapters import create_adapter, resolve, payload_from_upload
from .translation import translate_entries, TranslationRequest, CancellationToken

__all__ = [
    'TranslationEntry',
    'TranslationResource',
    'TranslationProject',
    'EntryUpdate',
    'BatchUpdate',
    'EntryWithResource',
    'Term',
    'ExportArtifact',
    'Ok',
    'Err',
    'OperationResult',
    'create_adapter',
    'resolve',
    'payload_from_upload',
    'translate_entries',
    'TranslationRequest',
    'CancellationToken',
]
