"""
LLM provider layer.

Providers share one interface: ``generate()`` for a single answer (used by
the terminology scan) and ``stream_chat()`` for streamed, tool-using chat
completions (used for batch translation).
"""

from .base import LLMProvider, LLMResponse, TextDelta, ToolCall, ToolResult, StreamPart
from .exceptions import LLMProviderError, ContextOverflowError
from .providers import OllamaProvider, OpenAICompatibleProvider

__all__ = [
    'LLMProvider',
    'LLMResponse',
    'TextDelta',
    'ToolCall',
    'ToolResult',
    'StreamPart',
    'LLMProviderError',
    'ContextOverflowError',
    'OllamaProvider',
    'OpenAICompatibleProvider',
]
