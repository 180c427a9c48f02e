"""
Format registry: maps an upload to the adapter best able to read it.

Every adapter scores a payload between 0 and 1; the highest score at or
above ``min_confidence`` wins. Ties go to the format registered first.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..exceptions import UnsupportedPayloadError
from ..models import UploadPayload
from .document_adapter import DocumentAdapter
from .format_adapter import FormatAdapter
from .html_adapter import HtmlAdapter
from .po_adapter import PoAdapter
from .subtitle_adapter import SrtAdapter, VttAdapter
from .xcloc_adapter import XclocAdapter

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.5


@dataclass(frozen=True)
class FormatDescriptor:
    """Static description of one supported format"""
    format_id: str
    display_name: str
    extensions: Tuple[str, ...]
    detect: Callable[[UploadPayload], float]
    create: Callable[[], FormatAdapter]

    def to_dict(self) -> Dict[str, object]:
        return {
            'formatId': self.format_id,
            'displayName': self.display_name,
            'fileExtensions': list(self.extensions),
        }


def _describe(adapter_class) -> FormatDescriptor:
    return FormatDescriptor(
        format_id=adapter_class.FORMAT_ID,
        display_name=adapter_class.DISPLAY_NAME,
        extensions=tuple(adapter_class.EXTENSIONS),
        detect=adapter_class.detect,
        create=adapter_class,
    )


FORMATS: List[FormatDescriptor] = [
    _describe(XclocAdapter),
    _describe(PoAdapter),
    _describe(VttAdapter),
    _describe(SrtAdapter),
    _describe(HtmlAdapter),
    _describe(DocumentAdapter),
]


def get_descriptor(format_id: str) -> Optional[FormatDescriptor]:
    for descriptor in FORMATS:
        if descriptor.format_id == format_id:
            return descriptor
    return None


def resolve(payload: UploadPayload,
            min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> Optional[FormatDescriptor]:
    """Best matching descriptor, or None when nothing is confident enough."""
    best: Optional[FormatDescriptor] = None
    best_score = 0.0
    for descriptor in FORMATS:
        score = descriptor.detect(payload)
        if score > best_score:
            best, best_score = descriptor, score
    if best is None or best_score < min_confidence:
        return None
    logger.debug(f"Detected format {best.format_id} (confidence {best_score:.2f})")
    return best


def create_adapter(format_id: str) -> FormatAdapter:
    descriptor = get_descriptor(format_id)
    if descriptor is None:
        raise UnsupportedPayloadError(f"Unknown format: {format_id}")
    return descriptor.create()
