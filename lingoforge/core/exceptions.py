"""
Exception hierarchy for the translation engine.

Parsers and helpers raise these; the adapter boundary converts them into
``Err`` values so public operations never raise.
"""

from enum import Enum
from typing import Optional, Dict, Any


class TranslationError(Exception):
    """Base exception for all translation-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context about the error
        recoverable: Whether the error can potentially be recovered from
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"{self.__class__.__name__}: {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" (context: {context_str})"
        return base


# ============================================================================
# Adapter-level errors
# ============================================================================

class AdapterError(TranslationError):
    """Base exception for format adapter errors."""
    pass


class FormatParseError(AdapterError):
    """Raised when an uploaded document cannot be parsed.

    Terminal for the ``load()`` call that raised it: no partial project is kept.
    """

    def __init__(self, message: str, format_id: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if format_id:
            ctx['format'] = format_id
        super().__init__(message, ctx, recoverable=False)
        self.format_id = format_id


class UnsupportedPayloadError(AdapterError):
    """Raised when an adapter receives a payload kind it cannot handle."""
    pass


class EntryNotFoundError(AdapterError):
    """Raised when an update targets an unknown resource or entry.

    Attributes:
        resource_id: Resource that was looked up
        entry_id: Entry that was looked up, None when the resource was missing
    """

    def __init__(self, message: str, resource_id: str, entry_id: Optional[str] = None):
        super().__init__(message, {'resource_id': resource_id, 'entry_id': entry_id},
                         recoverable=True)
        self.resource_id = resource_id
        self.entry_id = entry_id


class ExportError(AdapterError):
    """Raised when an adapter cannot rebuild its output."""
    pass


class ReferenceFailure(Enum):
    """Reasons a gettext reference document is rejected"""
    SAME_FILE = "same_file"
    NO_ENTRIES = "no_entries"
    HASHED_TRANSLATIONS = "hashed_translations"
    NO_TRANSLATIONS = "no_translations"
    NO_OVERLAP = "no_overlap"


class ReferenceDocumentError(AdapterError):
    """Raised when a reference catalog fails validation.

    Attributes:
        reason: Which validation rejected the document
    """

    def __init__(self, message: str, reason: ReferenceFailure):
        super().__init__(message, {'reason': reason.value}, recoverable=True)
        self.reason = reason


# ============================================================================
# Translation run errors
# ============================================================================

class BatchTranslationError(TranslationError):
    """Raised when one batch of a translation run cannot be applied.

    Always recoverable: the run continues with the next batch.
    """

    def __init__(self, message: str, batch_index: int,
                 context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx['batch_index'] = batch_index
        super().__init__(message, ctx, recoverable=True)
        self.batch_index = batch_index


# ============================================================================
# Import errors
# ============================================================================

class UrlFetchError(TranslationError):
    """Raised when a page cannot be imported from a URL.

    Attributes:
        url: The URL being fetched when the failure happened
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, {'url': url} if url else None, recoverable=False)
        self.url = url
