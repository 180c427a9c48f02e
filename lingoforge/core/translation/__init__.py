"""
AI-assisted batch translation and project chat: orchestrator, events and SSE wire format.
"""

from .events import EventType, TranslationEvent
from .orchestrator import (
    CancellationToken,
    TranslationRequest,
    chunk,
    parse_scanned_terms,
    scan_terminology,
    translate_entries,
)
from .chat import ChatToolRegistry, chat_with_project, translation_progress, validate_chat_messages
from .prompts import PromptPair, generate_batch_prompt, generate_scan_prompt
from .sse import SSE_DONE, apply_translation_events, format_sse, iterate_in_new_loop

__all__ = [
    'EventType',
    'TranslationEvent',
    'CancellationToken',
    'TranslationRequest',
    'chunk',
    'parse_scanned_terms',
    'scan_terminology',
    'translate_entries',
    'ChatToolRegistry',
    'chat_with_project',
    'translation_progress',
    'validate_chat_messages',
    'PromptPair',
    'generate_batch_prompt',
    'generate_scan_prompt',
    'SSE_DONE',
    'apply_translation_events',
    'format_sse',
    'iterate_in_new_loop',
]
