"""
Ollama provider implementation.

Talks to the local Ollama chat endpoint (``/api/chat``), which streams one
JSON object per line.
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Union
import asyncio
import json
import logging
import httpx

from ..base import LLMProvider, LLMResponse, TextDelta, ToolCall, parse_tool_arguments
from ..exceptions import ContextOverflowError, LLMProviderError

from ....config import (
    OLLAMA_API_ENDPOINT,
    OLLAMA_NUM_CTX,
    REQUEST_TIMEOUT,
    MAX_TRANSLATION_ATTEMPTS,
)

logger = logging.getLogger(__name__)


def _to_ollama_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Ollama wants tool call arguments as objects, not JSON strings."""
    converted = []
    for message in messages:
        if message.get("tool_calls"):
            message = dict(message)
            message["content"] = message.get("content") or ""
            message["tool_calls"] = [
                {"function": {
                    "name": call["function"]["name"],
                    "arguments": json.loads(call["function"]["arguments"] or "{}"),
                }}
                for call in message["tool_calls"]
            ]
        converted.append(message)
    return converted


class OllamaProvider(LLMProvider):
    """Provider for a local Ollama server"""

    def __init__(self, api_endpoint: str = OLLAMA_API_ENDPOINT, model: str = "llama3.1",
                 context_window: int = OLLAMA_NUM_CTX, **kwargs):
        super().__init__(model, **kwargs)
        self.api_endpoint = api_endpoint
        self.context_window = context_window

    def _payload(self, messages: List[Dict[str, Any]], stream: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "options": {
                "num_ctx": self.context_window,
                "truncate": False
            },
        }

    async def generate(self, prompt: str, timeout: int = REQUEST_TIMEOUT,
                       system_prompt: Optional[str] = None) -> Optional[LLMResponse]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        client = await self._get_client()
        for attempt in range(MAX_TRANSLATION_ATTEMPTS):
            try:
                response = await client.post(self.api_endpoint, json=self._payload(messages, False),
                                             timeout=timeout)
                response.raise_for_status()
                data = response.json()
                return LLMResponse(
                    content=(data.get("message") or {}).get("content") or "",
                    prompt_tokens=data.get("prompt_eval_count", 0),
                    completion_tokens=data.get("eval_count", 0),
                )
            except httpx.TimeoutException as e:
                logger.warning(f"LLM timeout (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): {e}")
            except httpx.HTTPStatusError as e:
                error_body = e.response.text[:500]
                logger.warning(f"HTTP error (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): "
                               f"status {e.response.status_code}, body: {error_body}")
                if "context" in error_body.lower() and "exceed" in error_body.lower():
                    raise ContextOverflowError(f"Context size exceeded: {error_body}", e.response.status_code)
            except httpx.HTTPError as e:
                logger.warning(f"Transport error (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): {e}")
            except json.JSONDecodeError as e:
                logger.warning(f"JSON decode error (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): {e}")

            if attempt < MAX_TRANSLATION_ATTEMPTS - 1:
                await asyncio.sleep(self.retry_delay)

        logger.error("All retry attempts exhausted")
        return None

    async def _stream_step(self, messages: List[Dict[str, Any]], tools: Optional[List[Dict[str, Any]]],
                           timeout: int) -> AsyncIterator[Union[TextDelta, ToolCall]]:
        payload = self._payload(_to_ollama_messages(messages), True)
        if tools:
            payload["tools"] = tools

        client = await self._get_client()
        for attempt in range(MAX_TRANSLATION_ATTEMPTS):
            emitted = False
            calls: List[ToolCall] = []
            try:
                async with client.stream("POST", self.api_endpoint, json=payload, timeout=timeout) as response:
                    if response.is_error:
                        await response.aread()
                        response.raise_for_status()

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            chunk_data = json.loads(line)
                        except json.JSONDecodeError:
                            continue
                        if chunk_data.get("error"):
                            raise LLMProviderError(f"Ollama error: {chunk_data['error']}")

                        message = chunk_data.get("message") or {}
                        if message.get("content"):
                            emitted = True
                            yield TextDelta(message["content"])
                        for call in message.get("tool_calls") or []:
                            function = call.get("function") or {}
                            arguments = function.get("arguments") or {}
                            if isinstance(arguments, str):
                                arguments = parse_tool_arguments(arguments)
                            calls.append(ToolCall(call.get("id") or f"call_{len(calls)}",
                                                  function.get("name", ""), arguments))

                        if chunk_data.get("done"):
                            break

                for call in calls:
                    yield call
                return

            except httpx.HTTPStatusError as e:
                error_body = e.response.text[:500]
                error = LLMProviderError(f"HTTP {e.response.status_code}: {error_body}", e.response.status_code)
            except httpx.HTTPError as e:
                error = LLMProviderError(f"{type(e).__name__}: {e}")

            if emitted or attempt == MAX_TRANSLATION_ATTEMPTS - 1:
                raise error
            logger.warning(f"Ollama stream failed (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): {error}")
            await asyncio.sleep(self.retry_delay)
