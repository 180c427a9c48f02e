"""
Events emitted by a batch translation run or a project chat.

The set is closed: every event is a TranslationEvent whose ``type`` is one
of EventType. ``to_dict()`` gives the wire shape sent over SSE, e.g.
``{"type": "batch-complete", "batchIndex": 0, "totalBatches": 13}``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from ..models import Term


class EventType(Enum):
    TERMINOLOGY_SCAN_START = "terminology-scan-start"
    TERMINOLOGY_FOUND = "terminology-found"
    TRANSLATE_START = "translate-start"
    TRANSLATE_LINE_START = "translate-line-start"
    AGENT_TEXT_DELTA = "agent-text-delta"
    AGENT_TOOL_CALL = "agent-tool-call"
    AGENT_TOOL_RESULT = "agent-tool-result"
    ENTRY_TRANSLATED = "entry-translated"
    BATCH_COMPLETE = "batch-complete"
    TERM_RESOLUTION_COMPLETE = "term-resolution-complete"
    ERROR = "error"
    CANCELLED = "cancelled"
    COMPLETE = "complete"
    # Added by the HTTP layer around checkpoints
    ENTRIES_SAVED = "entries-saved"
    SAVE_ERROR = "save-error"
    # Project chat
    CHAT_TEXT_DELTA = "chat-text-delta"
    CHAT_TOOL_CALL = "chat-tool-call"
    CHAT_TOOL_RESULT = "chat-tool-result"
    ENTRY_UPDATED = "entry-updated"


TERMINAL_EVENTS = frozenset({EventType.COMPLETE, EventType.CANCELLED})


@dataclass
class TranslationEvent:
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'type': self.type.value}
        payload.update(self.data)
        return payload


def terminology_scan_start() -> TranslationEvent:
    return TranslationEvent(EventType.TERMINOLOGY_SCAN_START)


def terminology_found(terms: List[Term]) -> TranslationEvent:
    return TranslationEvent(EventType.TERMINOLOGY_FOUND, {'terms': [t.to_dict() for t in terms]})


def translate_start(total: int) -> TranslationEvent:
    return TranslationEvent(EventType.TRANSLATE_START, {'total': total})


def translate_line_start(resource_id: str, entry_id: str) -> TranslationEvent:
    return TranslationEvent(EventType.TRANSLATE_LINE_START, {'resourceId': resource_id, 'entryId': entry_id})


def agent_text_delta(batch_index: int, text: str) -> TranslationEvent:
    return TranslationEvent(EventType.AGENT_TEXT_DELTA, {'batchIndex': batch_index, 'text': text})


def agent_tool_call(batch_index: int, tool_call_id: str, tool_name: str, args: Dict[str, Any]) -> TranslationEvent:
    return TranslationEvent(EventType.AGENT_TOOL_CALL, {
        'batchIndex': batch_index,
        'toolCallId': tool_call_id,
        'toolName': tool_name,
        'args': args,
    })


def agent_tool_result(batch_index: int, tool_call_id: str, tool_name: str) -> TranslationEvent:
    return TranslationEvent(EventType.AGENT_TOOL_RESULT, {
        'batchIndex': batch_index,
        'toolCallId': tool_call_id,
        'toolName': tool_name,
    })


def entry_translated(resource_id: str, entry_id: str, target_text: str,
                     current: int, total: int) -> TranslationEvent:
    return TranslationEvent(EventType.ENTRY_TRANSLATED, {
        'resourceId': resource_id,
        'entryId': entry_id,
        'targetText': target_text,
        'current': current,
        'total': total,
    })


def batch_complete(batch_index: int, total_batches: int) -> TranslationEvent:
    return TranslationEvent(EventType.BATCH_COMPLETE, {'batchIndex': batch_index, 'totalBatches': total_batches})


def term_resolution_complete() -> TranslationEvent:
    return TranslationEvent(EventType.TERM_RESOLUTION_COMPLETE)


def error(message: str) -> TranslationEvent:
    return TranslationEvent(EventType.ERROR, {'message': message})


def cancelled(completed_batches: int) -> TranslationEvent:
    return TranslationEvent(EventType.CANCELLED, {'completedBatches': completed_batches})


def complete() -> TranslationEvent:
    return TranslationEvent(EventType.COMPLETE)


def entries_saved(batch_index: int) -> TranslationEvent:
    return TranslationEvent(EventType.ENTRIES_SAVED, {'batchIndex': batch_index})


def save_error(batch_index: int, message: str) -> TranslationEvent:
    return TranslationEvent(EventType.SAVE_ERROR, {'batchIndex': batch_index, 'message': message})


def chat_text_delta(text: str) -> TranslationEvent:
    return TranslationEvent(EventType.CHAT_TEXT_DELTA, {'text': text})


def chat_tool_call(tool_call_id: str, tool_name: str, args: Dict[str, Any]) -> TranslationEvent:
    return TranslationEvent(EventType.CHAT_TOOL_CALL, {'toolCallId': tool_call_id, 'toolName': tool_name, 'args': args})


def chat_tool_result(tool_call_id: str, tool_name: str, result: Any) -> TranslationEvent:
    return TranslationEvent(EventType.CHAT_TOOL_RESULT, {
        'toolCallId': tool_call_id,
        'toolName': tool_name,
        'result': result,
    })


def entry_updated(resource_id: str, entry_id: str, target_text: str) -> TranslationEvent:
    return TranslationEvent(EventType.ENTRY_UPDATED, {
        'resourceId': resource_id,
        'entryId': entry_id,
        'targetText': target_text,
    })
