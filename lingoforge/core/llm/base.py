"""
Base classes and data structures for LLM providers.

This module defines the abstract base class that all LLM providers must implement,
the LLMResponse returned by single-shot generation, and the parts yielded while a
chat completion is streamed.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import httpx

from ...config import REQUEST_TIMEOUT, MAX_TOOL_STEPS, RETRY_DELAY_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM with token usage information"""
    content: str
    prompt_tokens: int = 0  # Number of tokens in the prompt
    completion_tokens: int = 0  # Number of tokens in the response


@dataclass
class TextDelta:
    """A piece of streamed assistant text"""
    text: str


@dataclass
class ToolCall:
    """The model asked to run a tool"""
    tool_call_id: str
    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """A tool call was executed and its result sent back to the model"""
    tool_call_id: str
    tool_name: str
    result: Any = None


StreamPart = Union[TextDelta, ToolCall, ToolResult]


def parse_tool_arguments(raw: str) -> Dict[str, Any]:
    """Decode streamed tool arguments; malformed JSON becomes an empty dict."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Tool call arguments are not valid JSON: {raw[:200]!r}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class LLMProvider(ABC):
    """Abstract base class for LLM providers"""

    def __init__(self, model: str, transport: Optional[httpx.AsyncBaseTransport] = None,
                 retry_delay: float = RETRY_DELAY_SECONDS):
        """
        Initialize the LLM provider.

        Args:
            model: Model name/identifier
            transport: Optional httpx transport (tests pass an httpx.MockTransport)
            retry_delay: Seconds to wait between attempts
        """
        self.model = model
        self.retry_delay = retry_delay
        self._transport = transport
        self._client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client with connection pooling"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                timeout=httpx.Timeout(REQUEST_TIMEOUT),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    @abstractmethod
    async def generate(self, prompt: str, timeout: int = REQUEST_TIMEOUT,
                       system_prompt: Optional[str] = None) -> Optional[LLMResponse]:
        """
        Generate text from prompt.

        Args:
            prompt: The user prompt (content to process)
            timeout: Request timeout in seconds
            system_prompt: Optional system prompt (role/instructions)

        Returns:
            LLMResponse object with content and token usage info, or None if failed
        """
        pass

    @abstractmethod
    def _stream_step(self, messages: List[Dict[str, Any]], tools: Optional[List[Dict[str, Any]]],
                     timeout: int) -> AsyncIterator[Union[TextDelta, ToolCall]]:
        """
        Stream one model turn.

        Yields text deltas as they arrive and, once the turn is finished, every
        tool call the model made. Raises LLMProviderError when the request fails.
        """
        pass

    async def stream_chat(self, messages: List[Dict[str, Any]], tools=None,
                          max_steps: int = MAX_TOOL_STEPS,
                          timeout: int = REQUEST_TIMEOUT) -> AsyncIterator[StreamPart]:
        """
        Stream a chat completion, running tool calls between model turns.

        ``tools`` is a ToolRegistry (anything with ``definitions`` and
        ``invoke(name, args)``). The loop stops after a turn without tool
        calls or after ``max_steps`` turns.
        """
        conversation = list(messages)
        definitions = tools.definitions if tools is not None else None

        for step in range(max_steps):
            calls: List[ToolCall] = []
            text_parts: List[str] = []
            async for part in self._stream_step(conversation, definitions, timeout):
                if isinstance(part, ToolCall):
                    calls.append(part)
                else:
                    text_parts.append(part.text)
                yield part

            if not calls or tools is None:
                return

            conversation.append({
                "role": "assistant",
                "content": "".join(text_parts) or None,
                "tool_calls": [
                    {
                        "id": call.tool_call_id,
                        "type": "function",
                        "function": {"name": call.tool_name, "arguments": json.dumps(call.args)},
                    }
                    for call in calls
                ],
            })
            for call in calls:
                result = tools.invoke(call.tool_name, call.args)
                logger.debug(f"Tool {call.tool_name}({call.args}) -> {str(result)[:200]}")
                conversation.append({
                    "role": "tool",
                    "tool_call_id": call.tool_call_id,
                    "content": json.dumps(result, ensure_ascii=False),
                })
                yield ToolResult(call.tool_call_id, call.tool_name, result)

        logger.warning(f"Stopped after {max_steps} model steps with tool calls still pending")
