"""
Read-only lookups over the flattened entry list.

Indices refer to positions in the list passed in, i.e. the global order
the orchestrator uses when it numbers entries in a prompt.
"""

from typing import Any, Dict, List

from ..models import EntryWithResource
from ...config import CONTEXT_LOOKUP_COUNT, SEARCH_RESULT_LIMIT

UNTRANSLATED_PLACEHOLDER = "(not yet translated)"


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def lookup_prev_lines(entries: List[EntryWithResource], current_index: int,
                      count: int = CONTEXT_LOOKUP_COUNT) -> List[Dict[str, Any]]:
    """Up to ``count`` entries before ``current_index``, nearest last."""
    end = _clamp(current_index, 0, len(entries))
    start = max(0, end - max(0, count))
    return [
        {
            'index': start + i,
            'id': entry.id,
            'sourceText': entry.source_text,
            'targetText': entry.target_text or UNTRANSLATED_PLACEHOLDER,
        }
        for i, entry in enumerate(entries[start:end])
    ]


def lookup_next_lines(entries: List[EntryWithResource], current_index: int,
                      count: int = CONTEXT_LOOKUP_COUNT) -> List[Dict[str, Any]]:
    """Up to ``count`` entries after ``current_index``."""
    start = _clamp(current_index + 1, 0, len(entries))
    end = min(len(entries), start + max(0, count))
    return [
        {'index': start + i, 'id': entry.id, 'sourceText': entry.source_text}
        for i, entry in enumerate(entries[start:end])
    ]


def search_entries(entries: List[EntryWithResource], query: str,
                   limit: int = SEARCH_RESULT_LIMIT) -> List[Dict[str, Any]]:
    """Case-insensitive substring search over source and target text."""
    lower_query = query.lower()
    results = []
    for index, entry in enumerate(entries):
        if lower_query in entry.source_text.lower() or lower_query in entry.target_text.lower():
            results.append({
                'index': index,
                'id': entry.id,
                'sourceText': entry.source_text,
                'targetText': entry.target_text or UNTRANSLATED_PLACEHOLDER,
                'resourceId': entry.resource_id,
            })
            if len(results) >= limit:
                break
    return results
