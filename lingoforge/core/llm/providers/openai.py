"""
OpenAI-compatible provider implementation.

This module provides the OpenAICompatibleProvider class for interacting with
OpenAI API and compatible endpoints (llama.cpp, LM Studio, vLLM, OpenAI, etc.).
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Union
import asyncio
import json
import logging
import httpx

from ..base import LLMProvider, LLMResponse, TextDelta, ToolCall, parse_tool_arguments
from ..exceptions import ContextOverflowError, LLMProviderError

from ....config import (
    REQUEST_TIMEOUT,
    MAX_TRANSLATION_ATTEMPTS,
)

logger = logging.getLogger(__name__)

CONTEXT_OVERFLOW_KEYWORDS = ["context_length", "maximum context", "token limit",
                             "too many tokens", "reduce the length"]


def _is_context_overflow(message: str) -> bool:
    lowered = message.lower()
    return any(keyword in lowered for keyword in CONTEXT_OVERFLOW_KEYWORDS)


class OpenAICompatibleProvider(LLMProvider):
    """OpenAI-compatible API provider (works with llama.cpp, LM Studio, vLLM, OpenAI, etc.)"""

    def __init__(self, api_endpoint: str, model: str, api_key: Optional[str] = None, **kwargs):
        super().__init__(model, **kwargs)
        self.api_endpoint = api_endpoint
        self.api_key = api_key

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def generate(self, prompt: str, timeout: int = REQUEST_TIMEOUT,
                       system_prompt: Optional[str] = None) -> Optional[LLMResponse]:
        """
        Generate text using an OpenAI compatible API.

        Args:
            prompt: The user prompt (content to translate)
            timeout: Request timeout in seconds
            system_prompt: Optional system prompt (role/instructions)

        Returns:
            LLMResponse with content and token usage info, or None if failed
        """
        # Build messages array with optional system prompt
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
        }

        client = await self._get_client()
        for attempt in range(MAX_TRANSLATION_ATTEMPTS):
            try:
                response = await client.post(
                    self.api_endpoint,
                    json=payload,
                    headers=self._headers(),
                    timeout=timeout
                )
                response.raise_for_status()

                response_json = response.json()
                response_text = response_json.get("choices", [{}])[0].get("message", {}).get("content") or ""

                usage = response_json.get("usage") or {}
                return LLMResponse(
                    content=response_text,
                    prompt_tokens=usage.get("prompt_tokens", 0),
                    completion_tokens=usage.get("completion_tokens", 0),
                )

            except httpx.TimeoutException as e:
                logger.warning(f"OpenAI-compatible API timeout (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): {e}")
            except httpx.HTTPStatusError as e:
                error_body = e.response.text[:500]
                logger.warning(f"OpenAI-compatible API HTTP error (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): "
                               f"status {e.response.status_code}, body: {error_body}")
                if _is_context_overflow(error_body):
                    raise ContextOverflowError(f"Context overflow: {error_body}", e.response.status_code)
            except httpx.HTTPError as e:
                logger.warning(f"OpenAI-compatible API transport error (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): {e}")
            except (json.JSONDecodeError, IndexError, AttributeError) as e:
                logger.warning(f"OpenAI-compatible API malformed response (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): {e}")

            if attempt < MAX_TRANSLATION_ATTEMPTS - 1:
                await asyncio.sleep(self.retry_delay)

        return None

    async def _stream_step(self, messages: List[Dict[str, Any]], tools: Optional[List[Dict[str, Any]]],
                           timeout: int) -> AsyncIterator[Union[TextDelta, ToolCall]]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": True,
        }
        if tools:
            payload["tools"] = tools

        client = await self._get_client()
        for attempt in range(MAX_TRANSLATION_ATTEMPTS):
            emitted = False
            # index -> {"id", "name", "arguments"}
            pending_calls: Dict[int, Dict[str, str]] = {}
            try:
                async with client.stream("POST", self.api_endpoint, json=payload,
                                         headers=self._headers(), timeout=timeout) as response:
                    if response.is_error:
                        await response.aread()
                        response.raise_for_status()

                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if data == "[DONE]":
                            break
                        try:
                            chunk = json.loads(data)
                        except json.JSONDecodeError:
                            continue

                        choices = chunk.get("choices") or []
                        if not choices:
                            continue
                        delta = choices[0].get("delta") or {}
                        if delta.get("content"):
                            emitted = True
                            yield TextDelta(delta["content"])
                        for call_delta in delta.get("tool_calls") or []:
                            slot = pending_calls.setdefault(call_delta.get("index", 0),
                                                            {"id": "", "name": "", "arguments": ""})
                            if call_delta.get("id"):
                                slot["id"] = call_delta["id"]
                            function = call_delta.get("function") or {}
                            if function.get("name"):
                                slot["name"] = function["name"]
                            if function.get("arguments"):
                                slot["arguments"] += function["arguments"]

                for index in sorted(pending_calls):
                    slot = pending_calls[index]
                    yield ToolCall(slot["id"] or f"call_{index}", slot["name"], parse_tool_arguments(slot["arguments"]))
                return

            except httpx.HTTPStatusError as e:
                error_body = e.response.text[:500]
                if _is_context_overflow(error_body):
                    raise ContextOverflowError(f"Context overflow: {error_body}", e.response.status_code)
                error = LLMProviderError(f"HTTP {e.response.status_code}: {error_body}", e.response.status_code)
            except httpx.HTTPError as e:
                error = LLMProviderError(f"{type(e).__name__}: {e}")

            # A half-streamed answer cannot be replayed without duplicating text
            if emitted or attempt == MAX_TRANSLATION_ATTEMPTS - 1:
                raise error
            logger.warning(f"OpenAI-compatible stream failed (attempt {attempt + 1}/{MAX_TRANSLATION_ATTEMPTS}): {error}")
            await asyncio.sleep(self.retry_delay)
