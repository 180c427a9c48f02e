"""
Conversational editing of a loaded project.

The model sees a summary of the project and works through tools: the
lookup tools of batch translation plus entry inspection, progress and
``updateTranslation``, which writes straight into the adapter.
"""

import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from ..adapters.format_adapter import FormatAdapter
from ..llm.base import LLMProvider, TextDelta, ToolCall, ToolResult
from ..llm.exceptions import LLMProviderError
from ..models import EntryUpdate, Term, TranslationProject
from ..terms.toolkit import TOOL_DEFINITIONS, ToolRegistry, function_definition
from ...config import CHAT_MAX_STEPS, REQUEST_TIMEOUT
from . import events
from .events import TranslationEvent
from .orchestrator import CancellationToken
from .prompts import generate_chat_system_prompt

logger = logging.getLogger(__name__)

CHAT_ROLES = ("user", "assistant")

_ENTRY_PROPERTIES = {
    "resourceId": {"type": "string", "description": "The resource ID containing the entry"},
    "entryId": {"type": "string", "description": "The entry ID"},
}

CHAT_TOOL_DEFINITIONS = [
    function_definition(
        "updateTranslation",
        "Update the translation for a specific entry. Use this when the user asks you to change a translation.",
        dict(_ENTRY_PROPERTIES, targetText={"type": "string", "description": "The new translated text"}),
        ["resourceId", "entryId", "targetText"],
    ),
    function_definition(
        "getEntry",
        "Get the full details of a specific translation entry.",
        _ENTRY_PROPERTIES, ["resourceId", "entryId"],
    ),
    function_definition(
        "listResources",
        "List all resources in the project with their translation progress.",
        {}, [],
    ),
    function_definition(
        "showTranslationProgress",
        "Summarize translation progress across all resources. Use this when the user asks about "
        "progress, completion status, or wants an overview.",
        {}, [],
    ),
]


def _is_translated(entry) -> bool:
    return bool(entry.target_text.strip())


def _percentage(part: int, total: int) -> int:
    return round(part * 100 / total) if total else 0


def translation_progress(project: TranslationProject) -> Dict[str, Any]:
    """Per-resource and overall translated counts."""
    resources = []
    for resource in project.resources:
        total = len(resource.entries)
        translated = sum(1 for e in resource.entries if _is_translated(e))
        resources.append({
            'name': resource.label or resource.id,
            'translated': translated,
            'untranslated': total - translated,
            'total': total,
            'percentage': _percentage(translated, total),
        })
    total_entries = sum(r['total'] for r in resources)
    total_translated = sum(r['translated'] for r in resources)
    return {
        'resources': resources,
        'summary': {
            'totalEntries': total_entries,
            'totalTranslated': total_translated,
            'totalUntranslated': total_entries - total_translated,
            'overallPercentage': _percentage(total_translated, total_entries),
        },
    }


class ChatToolRegistry(ToolRegistry):
    """Lookup tools plus editing tools bound to one adapter

    Args:
        adapter: Loaded project the chat works on
        terms: Project glossary
        on_update: Called after every successful ``updateTranslation``
            (the HTTP layer saves the project there)
    """

    def __init__(self, adapter: FormatAdapter, terms: List[Term],
                 on_update: Optional[Callable[[], None]] = None):
        super().__init__(adapter.flatten_entries(), terms)
        self.adapter = adapter
        self.on_update = on_update
        self._handlers.update({
            "updateTranslation": self._update_translation,
            "getEntry": lambda a: self._get_entry(str(a["resourceId"]), str(a["entryId"])),
            "listResources": lambda a: self._list_resources(),
            "showTranslationProgress": lambda a: translation_progress(self.adapter.get_project()),
        })

    @property
    def definitions(self) -> List[Dict[str, Any]]:
        return TOOL_DEFINITIONS + CHAT_TOOL_DEFINITIONS

    def _update_translation(self, args: Dict[str, Any]) -> Dict[str, Any]:
        resource_id, entry_id = str(args["resourceId"]), str(args["entryId"])
        target_text = str(args["targetText"])
        resource = self.adapter.get_resource(resource_id)
        entry = resource.find_entry(entry_id) if resource else None
        old_text = entry.target_text if entry else ""

        result = self.adapter.update_entry(resource_id, entry_id, EntryUpdate(target_text=target_text))
        if result.is_err():
            return {'success': False, 'error': result.message, 'resourceId': resource_id, 'entryId': entry_id}

        self.entries = self.adapter.flatten_entries()
        if self.on_update:
            self.on_update()
        logger.info(f"Chat updated {resource_id}/{entry_id}")
        return {
            'success': True,
            'resourceId': resource_id,
            'entryId': entry_id,
            'oldText': old_text,
            'newText': target_text,
            'sourceText': entry.source_text,
        }

    def _get_entry(self, resource_id: str, entry_id: str) -> Dict[str, Any]:
        resource = self.adapter.get_resource(resource_id)
        if resource is None:
            return {'error': "Resource not found"}
        entry = resource.find_entry(entry_id)
        if entry is None:
            return {'error': "Entry not found"}
        return {
            'resourceId': resource_id,
            'entryId': entry.id,
            'sourceText': entry.source_text,
            'targetText': entry.target_text,
            'comment': entry.comment,
            'context': entry.context,
            'maxLength': entry.max_length,
            'pluralForm': entry.plural_form.value if entry.plural_form else None,
        }

    def _list_resources(self) -> List[Dict[str, Any]]:
        return [
            {
                'id': resource.id,
                'label': resource.label,
                'totalEntries': len(resource.entries),
                'translatedEntries': sum(1 for e in resource.entries if _is_translated(e)),
            }
            for resource in self.adapter.get_project().resources
        ]


def validate_chat_messages(messages: Any) -> List[Dict[str, str]]:
    """
    Check the client's conversation: a non-empty list of
    ``{"role": "user"|"assistant", "content": str}``.

    Raises:
        ValueError: With a message suitable for a 400 response
    """
    if not isinstance(messages, list) or not messages:
        raise ValueError("Missing or invalid field: messages")
    cleaned = []
    for message in messages:
        if not isinstance(message, dict) or message.get('role') not in CHAT_ROLES \
                or not isinstance(message.get('content'), str):
            raise ValueError("Each message needs a role (user or assistant) and text content")
        cleaned.append({'role': message['role'], 'content': message['content']})
    if cleaned[-1]['role'] != 'user':
        raise ValueError("The last message must come from the user")
    return cleaned


async def chat_with_project(messages: List[Dict[str, str]], provider: LLMProvider, tools: ChatToolRegistry,
                            source_language: str, target_language: str,
                            cancel_token: Optional[CancellationToken] = None,
                            max_steps: int = CHAT_MAX_STEPS,
                            timeout: int = REQUEST_TIMEOUT) -> AsyncIterator[TranslationEvent]:
    """
    Answer the user's latest message, streaming chat events.

    Successful ``updateTranslation`` calls are followed by ``entry-updated``.
    A provider failure yields ``error``; cancellation stops the stream early.
    The stream always ends with ``complete``.
    """
    system_prompt = generate_chat_system_prompt(tools.adapter.get_project(), source_language, target_language)
    conversation = [{"role": "system", "content": system_prompt}] + messages

    try:
        async for part in provider.stream_chat(conversation, tools=tools, max_steps=max_steps, timeout=timeout):
            if cancel_token is not None and cancel_token.is_cancelled:
                logger.info("Chat cancelled by the user")
                break
            if isinstance(part, TextDelta):
                yield events.chat_text_delta(part.text)
            elif isinstance(part, ToolCall):
                yield events.chat_tool_call(part.tool_call_id, part.tool_name, part.args)
            elif isinstance(part, ToolResult):
                yield events.chat_tool_result(part.tool_call_id, part.tool_name, part.result)
                if part.tool_name == "updateTranslation" and part.result.get('success'):
                    yield events.entry_updated(part.result['resourceId'], part.result['entryId'],
                                               part.result['newText'])
    except LLMProviderError as e:
        logger.error(f"Chat failed: {e}")
        yield events.error(f"Chat failed: {e}")

    yield events.complete()
