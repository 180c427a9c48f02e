"""
Unit tests for the LLM providers.

HTTP traffic goes through an httpx.MockTransport; retries run without delay.
"""

import json

import httpx
import pytest

from lingoforge.config import MAX_TRANSLATION_ATTEMPTS
from lingoforge.core.llm import (
    ContextOverflowError,
    LLMProviderError,
    OllamaProvider,
    OpenAICompatibleProvider,
    TextDelta,
    ToolCall,
    ToolResult,
)
from lingoforge.core.llm_providers import create_llm_provider
from lingoforge.core.models import EntryWithResource
from lingoforge.core.terms import ToolRegistry

OPENAI_URL = "http://llm.test/v1/chat/completions"
OLLAMA_URL = "http://llm.test/api/chat"


class Recorder:
    """Mock transport handler replaying responses and keeping request bodies."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def body(self, index=0):
        return json.loads(self.requests[index].content)


def _sse(*chunks):
    lines = [f"data: {json.dumps(chunk)}\n\n" for chunk in chunks]
    return httpx.Response(200, content=("".join(lines) + "data: [DONE]\n\n").encode('utf-8'))


def _ndjson(*chunks):
    return httpx.Response(200, content="".join(json.dumps(c) + "\n" for c in chunks).encode('utf-8'))


def _openai(recorder, api_key=None):
    return OpenAICompatibleProvider(OPENAI_URL, "test-model", api_key=api_key,
                                    transport=httpx.MockTransport(recorder), retry_delay=0)


def _ollama(recorder):
    return OllamaProvider(OLLAMA_URL, "llama-test", context_window=4096,
                          transport=httpx.MockTransport(recorder), retry_delay=0)


async def _parts(provider, messages=None, tools=None):
    messages = messages or [{"role": "user", "content": "Hi"}]
    return [part async for part in provider.stream_chat(messages, tools=tools, timeout=5)]


@pytest.fixture
def tool_registry():
    return ToolRegistry([EntryWithResource("res", "1", "First"), EntryWithResource("res", "2", "Second")], [])


class TestOpenAIGenerate:
    """Test single-shot generation."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Content and token usage are read from the first choice."""
        recorder = Recorder(httpx.Response(200, json={
            "choices": [{"message": {"content": "[]"}}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 3},
        }))
        provider = _openai(recorder, api_key="sk-test")
        response = await provider.generate("Find terms", system_prompt="You extract terms")
        await provider.close()

        assert (response.content, response.prompt_tokens, response.completion_tokens) == ("[]", 12, 3)
        assert recorder.requests[0].headers["Authorization"] == "Bearer sk-test"
        assert recorder.body() == {
            "model": "test-model",
            "messages": [
                {"role": "system", "content": "You extract terms"},
                {"role": "user", "content": "Find terms"},
            ],
            "stream": False,
        }

    @pytest.mark.asyncio
    async def test_none_after_retries(self):
        """Server errors are retried, then None is returned."""
        recorder = Recorder(httpx.Response(500, text="internal error"))
        provider = _openai(recorder)
        assert await provider.generate("x") is None
        assert len(recorder.requests) == MAX_TRANSLATION_ATTEMPTS
        assert "Authorization" not in recorder.requests[0].headers

    @pytest.mark.asyncio
    async def test_transport_error_retried(self):
        """A connection error on the first attempt is retried."""
        recorder = Recorder(
            httpx.ConnectError("refused"),
            httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]}),
        )
        response = await _openai(recorder).generate("x")
        assert response.content == "ok"

    @pytest.mark.asyncio
    async def test_context_overflow_not_retried(self):
        """A context length error raises at once."""
        recorder = Recorder(httpx.Response(400, json={"error": {"message": "This model's maximum context length is 8192"}}))
        with pytest.raises(ContextOverflowError):
            await _openai(recorder).generate("x")
        assert len(recorder.requests) == 1


class TestOpenAIStream:
    """Test streamed chat completions."""

    @pytest.mark.asyncio
    async def test_text_deltas(self):
        """Content deltas are yielded until [DONE]."""
        recorder = Recorder(_sse(
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": [{"delta": {"content": "Hal"}}]},
            {"choices": [{"delta": {"content": "lo"}}]},
            {"choices": []},
        ))
        parts = await _parts(_openai(recorder))
        assert parts == [TextDelta("Hal"), TextDelta("lo")]
        assert recorder.body()["stream"] is True
        assert "tools" not in recorder.body()

    @pytest.mark.asyncio
    async def test_tool_call_round_trip(self, tool_registry):
        """Argument fragments are joined, the tool runs and its result is sent back."""
        recorder = Recorder(
            _sse(
                {"choices": [{"delta": {"tool_calls": [{"index": 0, "id": "call_a", "function": {
                    "name": "lookupNextLines", "arguments": '{"currentIn'}}]}}]},
                {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": {
                    "arguments": 'dex": 0}'}}]}}]},
            ),
            _sse({"choices": [{"delta": {"content": "done"}}]}),
        )
        parts = await _parts(_openai(recorder), tools=tool_registry)

        assert parts[0] == ToolCall("call_a", "lookupNextLines", {"currentIndex": 0})
        assert isinstance(parts[1], ToolResult)
        assert parts[1].result[0]["sourceText"] == "Second"
        assert parts[2] == TextDelta("done")

        assert [t["function"]["name"] for t in recorder.body(0)["tools"]][0] == "lookupPrevLines"
        followup = recorder.body(1)["messages"]
        assert followup[1]["tool_calls"][0]["function"] == {
            "name": "lookupNextLines", "arguments": '{"currentIndex": 0}',
        }
        assert followup[2]["role"] == "tool"
        assert followup[2]["tool_call_id"] == "call_a"

    @pytest.mark.asyncio
    async def test_step_limit(self, tool_registry):
        """The loop stops after max_steps turns even if the model keeps calling tools."""
        call = {"choices": [{"delta": {"tool_calls": [{"index": 0, "id": "c", "function": {
            "name": "searchEntries", "arguments": '{"query": "First"}'}}]}}]}
        recorder = Recorder(_sse(call))
        provider = _openai(recorder)
        parts = [p async for p in provider.stream_chat([{"role": "user", "content": "Hi"}],
                                                       tools=tool_registry, max_steps=2)]
        assert len(recorder.requests) == 2
        assert [type(p) for p in parts] == [ToolCall, ToolResult, ToolCall, ToolResult]

    @pytest.mark.asyncio
    async def test_retry_before_output(self):
        """A failure before any text is retried."""
        recorder = Recorder(
            httpx.Response(503, text="busy"),
            _sse({"choices": [{"delta": {"content": "ok"}}]}),
        )
        assert await _parts(_openai(recorder)) == [TextDelta("ok")]
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_error_after_retries(self):
        """Persistent failures raise LLMProviderError with the status code."""
        recorder = Recorder(httpx.Response(500, text="boom"))
        with pytest.raises(LLMProviderError) as excinfo:
            await _parts(_openai(recorder))
        assert excinfo.value.status_code == 500
        assert str(excinfo.value) == "HTTP 500: boom"
        assert len(recorder.requests) == MAX_TRANSLATION_ATTEMPTS

    @pytest.mark.asyncio
    async def test_stream_context_overflow(self):
        """Overflow while streaming is not retried."""
        recorder = Recorder(httpx.Response(400, text="Please reduce the length of the messages"))
        with pytest.raises(ContextOverflowError):
            await _parts(_openai(recorder))
        assert len(recorder.requests) == 1


class TestOllama:
    """Test the Ollama provider."""

    @pytest.mark.asyncio
    async def test_generate(self):
        """The chat endpoint answers with one JSON object."""
        recorder = Recorder(httpx.Response(200, json={
            "message": {"role": "assistant", "content": "[]"},
            "prompt_eval_count": 40, "eval_count": 2, "done": True,
        }))
        response = await _ollama(recorder).generate("Find terms")
        assert (response.content, response.prompt_tokens) == ("[]", 40)
        assert recorder.body()["options"] == {"num_ctx": 4096, "truncate": False}
        assert recorder.body()["stream"] is False

    @pytest.mark.asyncio
    async def test_stream_lines(self):
        """One JSON object per line until done."""
        recorder = Recorder(_ndjson(
            {"message": {"content": "Hal"}, "done": False},
            {"message": {"content": "lo"}, "done": False},
            {"message": {"content": ""}, "done": True},
        ))
        assert await _parts(_ollama(recorder)) == [TextDelta("Hal"), TextDelta("lo")]

    @pytest.mark.asyncio
    async def test_error_line(self):
        """An error object in the stream raises."""
        recorder = Recorder(_ndjson({"error": "model 'llama-test' not found"}))
        with pytest.raises(LLMProviderError, match="Ollama error: model 'llama-test' not found"):
            await _parts(_ollama(recorder))

    @pytest.mark.asyncio
    async def test_tool_arguments_sent_as_objects(self, tool_registry):
        """Tool calls in the history are converted to Ollama's shape."""
        recorder = Recorder(
            _ndjson({"message": {"content": "", "tool_calls": [
                {"function": {"name": "lookupTerm", "arguments": {"query": "dashboard"}}},
            ]}, "done": True}),
            _ndjson({"message": {"content": "fertig"}, "done": True}),
        )
        parts = await _parts(_ollama(recorder), tools=tool_registry)
        assert parts[0] == ToolCall("call_0", "lookupTerm", {"query": "dashboard"})
        assert parts[1].result == {"notFound": True, "query": "dashboard"}
        assert parts[2] == TextDelta("fertig")

        assistant = recorder.body(1)["messages"][1]
        assert assistant["content"] == ""
        assert assistant["tool_calls"] == [{"function": {"name": "lookupTerm", "arguments": {"query": "dashboard"}}}]


class TestFactory:
    """Test create_llm_provider."""

    def test_openai(self):
        """Explicit settings override the defaults."""
        provider = create_llm_provider("openai", api_endpoint=OPENAI_URL, model="m", api_key="k")
        assert isinstance(provider, OpenAICompatibleProvider)
        assert (provider.api_endpoint, provider.model, provider.api_key) == (OPENAI_URL, "m", "k")

    def test_ollama(self):
        """Provider names are case-insensitive."""
        provider = create_llm_provider("Ollama", model="llama3.1", context_window=2048)
        assert isinstance(provider, OllamaProvider)
        assert provider.context_window == 2048

    def test_unknown(self):
        """Unknown providers are rejected."""
        with pytest.raises(ValueError, match="Unknown provider type: gemini"):
            create_llm_provider("gemini")
