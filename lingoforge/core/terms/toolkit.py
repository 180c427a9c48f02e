"""
Lookup tools offered to the language model during batch translation.

Definitions follow the OpenAI function-calling schema; ``invoke`` runs a
call and always returns a JSON-serializable value.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Union

from ..models import EntryWithResource, Term
from .context_tools import lookup_next_lines, lookup_prev_lines, search_entries
from .term_tools import lookup_term
from ...config import CONTEXT_LOOKUP_COUNT

logger = logging.getLogger(__name__)


def function_definition(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {"type": "object", "properties": properties, "required": required},
        },
    }


_INDEX_PROPERTIES = {
    "currentIndex": {"type": "integer", "description": "Index of the current entry in the full list"},
    "count": {"type": "integer", "description": "Number of entries to retrieve", "default": CONTEXT_LOOKUP_COUNT},
}

TOOL_DEFINITIONS = [
    function_definition(
        "lookupPrevLines",
        "Look up the previous N translation entries before the current position for context. "
        "Returns source text and any existing translations.",
        _INDEX_PROPERTIES, ["currentIndex"],
    ),
    function_definition(
        "lookupNextLines",
        "Look up the next N translation entries after the current position for forward context.",
        _INDEX_PROPERTIES, ["currentIndex"],
    ),
    function_definition(
        "searchEntries",
        "Search all translation entries by text content. Returns up to 10 matching entries.",
        {"query": {"type": "string", "description": "Search text to find in entries"}}, ["query"],
    ),
    function_definition(
        "lookupTerm",
        "Look up a terminology entry by its ID or original text. "
        "Use this to check how a specific term should be translated.",
        {"query": {"type": "string", "description": "Term slug (kebab-case) or original text to search for"}},
        ["query"],
    ),
]


class ToolRegistry:
    """Binds the lookup tools to one run's entries and glossary"""

    def __init__(self, entries: List[EntryWithResource], terms: List[Term]):
        self.entries = entries
        self.terms = terms
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "lookupPrevLines": lambda a: lookup_prev_lines(
                self.entries, int(a["currentIndex"]), int(a.get("count", CONTEXT_LOOKUP_COUNT))),
            "lookupNextLines": lambda a: lookup_next_lines(
                self.entries, int(a["currentIndex"]), int(a.get("count", CONTEXT_LOOKUP_COUNT))),
            "searchEntries": lambda a: search_entries(self.entries, str(a["query"])),
            "lookupTerm": lambda a: lookup_term(self.terms, str(a["query"])),
        }

    @property
    def definitions(self) -> List[Dict[str, Any]]:
        return TOOL_DEFINITIONS

    def invoke(self, name: str, arguments: Union[str, Dict[str, Any], None]) -> Any:
        """Run one tool call. Bad names or arguments come back as an error object."""
        handler = self._handlers.get(name)
        if handler is None:
            return {"error": f"Unknown tool: {name}"}
        try:
            args = json.loads(arguments) if isinstance(arguments, str) else (arguments or {})
            return handler(args)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Tool {name} rejected arguments {arguments!r}: {e}")
            return {"error": f"Invalid arguments for {name}: {e}"}
