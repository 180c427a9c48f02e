"""
Batch translation orchestrator.

``translate_entries`` runs in two phases and reports progress as an async
stream of TranslationEvents:

1. Terminology scan: one ``generate()`` call extracts terms that need a
   consistent translation.
2. Translation: entries are sent in batches of ``batch_size``; each batch
   is one streamed chat with lookup tools. Translations come back as JSON
   and keep ``${{slug}}`` term references unresolved.

A failing batch is reported with an ``error`` event and the run goes on.
Every run ends with ``complete``, or with ``cancelled`` when the
CancellationToken fires.
"""

import json
import logging
import re
import threading
import time
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, Dict, List, Optional, Sequence, TypeVar

from pydantic import ValidationError

from ..exceptions import BatchTranslationError, TranslationError
from ..llm.base import LLMProvider, TextDelta, ToolCall, ToolResult
from ..llm.exceptions import LLMProviderError
from ..models import EntryWithResource, Term
from ..terms import ToolRegistry, slugify_term_id, unique_term_slug
from . import events
from .events import EventType, TranslationEvent
from .prompts import generate_batch_prompt, generate_scan_prompt
from .schemas import TranslationBatchResult, scanned_terms_adapter
from ...config import BATCH_SIZE, MAX_TOOL_STEPS, REQUEST_TIMEOUT, TEXT_DELTA_THROTTLE_MS

logger = logging.getLogger(__name__)

T = TypeVar('T')

TRANSLATIONS_JSON_RE = re.compile(r'\{[\s\S]*"translations"[\s\S]*\}')
TERMS_JSON_RE = re.compile(r'\[[\s\S]*\]')
TEXT_DELTA_TAIL = 200


class CancellationToken:
    """Thread-safe cancel flag shared between a run and whoever may stop it"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class TranslationRequest:
    """
    Input of one translation run.

    Attributes:
        entries: Flattened entries in global order
        source_language: Source language code
        target_language: Target language code
        format_context: subtitle, po-localization, document, html or None
        glossary: Terms that already exist; offered to every batch and never
            re-created by the scan
    """
    entries: List[EntryWithResource]
    source_language: str
    target_language: str
    format_context: Optional[str] = None
    glossary: List[Term] = field(default_factory=list)
    batch_size: int = BATCH_SIZE
    max_tool_steps: int = MAX_TOOL_STEPS
    timeout: int = REQUEST_TIMEOUT
    text_delta_throttle_ms: int = TEXT_DELTA_THROTTLE_MS


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """Split into consecutive lists of at most ``size`` items."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


# ============================================================================
# Phase 1: terminology scan
# ============================================================================

def _extract_json_array(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith('{'):
        # {"terms": [...]} is accepted as well
        data = json.loads(stripped)
        return json.dumps(data.get('terms', []) if isinstance(data, dict) else data)
    match = TERMS_JSON_RE.search(text)
    if not match:
        raise TranslationError("Terminology response contains no JSON array")
    return match.group(0)


def parse_scanned_terms(text: str, glossary: Sequence[Term] = ()) -> List[Term]:
    """
    Turn the scan reply into Terms with unique slugs and fresh ids.

    Terms whose original text is already in the glossary are dropped.
    """
    scanned = scanned_terms_adapter.validate_json(_extract_json_array(text))
    known_texts = {term.original_text.lower() for term in glossary}
    taken = {term.slug for term in glossary}

    terms = []
    for item in scanned:
        if not item.original_text.strip() or item.original_text.lower() in known_texts:
            continue
        base = slugify_term_id(item.id) or slugify_term_id(item.original_text)
        if not base:
            continue
        slug = unique_term_slug(base, taken)
        taken.add(slug)
        known_texts.add(item.original_text.lower())
        terms.append(Term(
            id=str(uuid.uuid4()),
            slug=slug,
            original_text=item.original_text,
            translation=item.translation,
            comment=item.comment or None,
        ))
    return terms


async def scan_terminology(provider: LLMProvider, request: TranslationRequest) -> List[Term]:
    """Run the scan; raises on provider failure or an unparseable reply."""
    if not any(entry.source_text.strip() for entry in request.entries):
        return []
    prompt = generate_scan_prompt(request.entries, request.source_language,
                                  request.target_language, request.format_context)
    response = await provider.generate(prompt.user, timeout=request.timeout, system_prompt=prompt.system)
    if response is None:
        raise TranslationError("No response from the model")
    return parse_scanned_terms(response.content, request.glossary)


# ============================================================================
# Phase 2: batch translation
# ============================================================================

def _batch_events_from_text(text: str, batch: List[EntryWithResource], batch_index: int,
                            global_offset: int, total: int) -> List[TranslationEvent]:
    """``entry-translated`` events for a batch's final text; raises BatchTranslationError."""
    match = TRANSLATIONS_JSON_RE.search(text)
    if not match:
        raise BatchTranslationError(f"Failed to parse translation response for batch {batch_index + 1}", batch_index)

    try:
        result = TranslationBatchResult.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as e:
        raise BatchTranslationError(f"Failed to parse batch {batch_index + 1} translations: {e}", batch_index)

    # Ids are unique within a resource, not within a batch spanning resources
    positions: Dict[str, Deque[int]] = defaultdict(deque)
    for position, entry in enumerate(batch):
        positions[entry.id].append(position)

    out = []
    for translation in result.translations:
        queue = positions.get(translation.id)
        if not queue:
            logger.debug(f"Ignoring translation for unknown id {translation.id!r} in batch {batch_index + 1}")
            continue
        position = queue.popleft()
        entry = batch[position]
        out.append(events.entry_translated(
            resource_id=entry.resource_id,
            entry_id=entry.id,
            target_text=translation.target_text,
            current=global_offset + position + 1,
            total=total,
        ))
    return out


async def _translate_batch(provider: LLMProvider, request: TranslationRequest, tools: ToolRegistry,
                           batch: List[EntryWithResource], batch_index: int, total_batches: int,
                           global_offset: int, cancel_token: CancellationToken) -> AsyncIterator[TranslationEvent]:
    """Events of one batch. Returns without ``batch-complete`` when cancelled."""
    for entry in batch:
        yield events.translate_line_start(entry.resource_id, entry.id)

    prompt = generate_batch_prompt(batch, global_offset, tools.terms, request.source_language,
                                   request.target_language, request.format_context)
    messages = [
        {"role": "system", "content": prompt.system},
        {"role": "user", "content": prompt.user},
    ]

    full_text = ""
    last_emit = 0.0
    try:
        stream = provider.stream_chat(messages, tools=tools, max_steps=request.max_tool_steps,
                                      timeout=request.timeout)
        try:
            async for part in stream:
                if cancel_token.is_cancelled:
                    logger.info(f"Batch {batch_index + 1} cancelled mid-stream")
                    return
                if isinstance(part, TextDelta):
                    full_text += part.text
                    now = time.monotonic()
                    if (now - last_emit) * 1000 >= request.text_delta_throttle_ms:
                        last_emit = now
                        yield events.agent_text_delta(batch_index, full_text[-TEXT_DELTA_TAIL:])
                elif isinstance(part, ToolCall):
                    yield events.agent_tool_call(batch_index, part.tool_call_id, part.tool_name, part.args)
                elif isinstance(part, ToolResult):
                    yield events.agent_tool_result(batch_index, part.tool_call_id, part.tool_name)
        finally:
            await stream.aclose()
    except LLMProviderError as e:
        logger.error(f"Batch {batch_index + 1}/{total_batches} failed: {e}")
        yield events.error(f"Batch {batch_index + 1} failed: {e}")
        yield events.batch_complete(batch_index, total_batches)
        return

    if cancel_token.is_cancelled:
        return

    # Final delta so listeners always see the latest state
    yield events.agent_text_delta(batch_index, full_text[-TEXT_DELTA_TAIL:])

    try:
        translated = _batch_events_from_text(full_text, batch, batch_index, global_offset, len(request.entries))
    except BatchTranslationError as e:
        logger.warning(e.message)
        yield events.error(e.message)
    else:
        for event in translated:
            yield event

    yield events.batch_complete(batch_index, total_batches)


async def translate_entries(request: TranslationRequest, provider: LLMProvider,
                            cancel_token: Optional[CancellationToken] = None) -> AsyncIterator[TranslationEvent]:
    """
    Translate ``request.entries`` and stream progress events.

    Args:
        request: Entries, languages and run settings
        provider: LLM provider used for both phases
        cancel_token: Checked before each batch and on every streamed chunk

    Yields:
        TranslationEvent, ending with ``complete`` or ``cancelled``
    """
    token = cancel_token or CancellationToken()
    entries = request.entries

    if token.is_cancelled:
        yield events.cancelled(0)
        return

    # Phase 1: terminology
    yield events.terminology_scan_start()
    try:
        terms = await scan_terminology(provider, request)
    except (TranslationError, LLMProviderError, ValueError) as e:
        message = e.message if isinstance(e, TranslationError) else str(e)
        logger.warning(f"Terminology scan failed: {message}")
        yield events.error(f"Terminology scan failed: {message}")
        terms = []
    logger.info(f"Terminology scan found {len(terms)} term(s)")
    yield events.terminology_found(terms)

    # Phase 2: batches, templates kept as-is
    tools = ToolRegistry(entries, list(request.glossary) + terms)
    batches = chunk(entries, request.batch_size)
    yield events.translate_start(len(entries))

    completed = 0
    for batch_index, batch in enumerate(batches):
        if token.is_cancelled:
            yield events.cancelled(completed)
            return

        logger.info(f"Translating batch {batch_index + 1}/{len(batches)} ({len(batch)} entries)")
        finished = False
        async for event in _translate_batch(provider, request, tools, batch, batch_index, len(batches),
                                            batch_index * request.batch_size, token):
            if event.type is EventType.BATCH_COMPLETE:
                finished = True
            yield event

        if not finished:
            yield events.cancelled(completed)
            return
        completed += 1

    yield events.term_resolution_complete()
    yield events.complete()
