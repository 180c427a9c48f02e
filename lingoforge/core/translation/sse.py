"""
Server-Sent Events helpers for translation runs.

Each event goes over the wire as ``data: <json>\\n\\n``; the stream ends
with ``data: [DONE]\\n\\n``.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterator, Optional, TypeVar, Union

from ..adapters.format_adapter import FormatAdapter
from ..models import EntryUpdate
from . import events
from .events import EventType, TranslationEvent

logger = logging.getLogger(__name__)

T = TypeVar('T')

SSE_DONE = "data: [DONE]\n\n"


def format_sse(event: Union[TranslationEvent, Dict[str, Any]]) -> str:
    payload = event.to_dict() if isinstance(event, TranslationEvent) else event
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def apply_translation_events(
    source: AsyncIterator[TranslationEvent],
    adapter: FormatAdapter,
    checkpoint: Callable[[], None],
) -> AsyncIterator[TranslationEvent]:
    """
    Forward a run's events while keeping ``adapter`` up to date.

    ``entry-translated`` is applied through the adapter update API; at every
    ``batch-complete`` the project is checkpointed and ``entries-saved`` (or
    ``save-error``) is emitted before the batch-complete itself. A final
    checkpoint runs when the stream ends.
    """
    async for event in source:
        if event.type is EventType.ENTRY_TRANSLATED:
            result = adapter.update_entry(event.get('resourceId'), event.get('entryId'),
                                          EntryUpdate(target_text=event.get('targetText')))
            if result.is_err():
                logger.warning(f"Could not apply translation: {result.message}")

        elif event.type is EventType.BATCH_COMPLETE:
            batch_index = event.get('batchIndex')
            try:
                checkpoint()
            except Exception as e:
                logger.error(f"Checkpoint after batch {batch_index + 1} failed: {e}")
                yield events.save_error(batch_index, str(e))
            else:
                yield events.entries_saved(batch_index)

        yield event

    try:
        checkpoint()
    except Exception as e:
        logger.error(f"Final checkpoint failed: {e}")


def iterate_in_new_loop(source: AsyncIterator[T],
                        cleanup: Optional[Callable[[], Awaitable[None]]] = None) -> Iterator[T]:
    """
    Drive an async iterator from synchronous code (a Flask response body).

    The iterator runs on a private event loop; ``cleanup`` (for example
    ``provider.close``) runs on that same loop once iteration stops.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        while True:
            try:
                item = loop.run_until_complete(source.__anext__())
            except StopAsyncIteration:
                break
            yield item
    finally:
        aclose = getattr(source, 'aclose', None)
        if aclose is not None:
            loop.run_until_complete(aclose())
        if cleanup is not None:
            loop.run_until_complete(cleanup())
        loop.close()
        asyncio.set_event_loop(None)
