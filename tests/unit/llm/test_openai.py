"""
Tests for the OpenAI Chat Completions adapter.

Chat Completions streams have no block boundaries; these tests check the
synthesized BlockStart/BlockStop deltas and the finish_reason mapping.
"""

import json
from types import SimpleNamespace as NS
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from sqlstudio.llm.base import ProviderError
from sqlstudio.llm.models import (
    BlockStart,
    BlockStop,
    MessageStop,
    ProviderOptions,
    TextBlock,
    TextDelta,
    ToolArgumentDelta,
    ToolInvocationBlock,
    ToolResultBlock,
    ToolSpec,
    Turn,
)
from sqlstudio.llm.openai import (
    FINISH_REASONS,
    LocalProvider,
    OpenAIProvider,
    to_openai_messages,
    to_openai_tools,
)


def _chunk(content=None, tool_calls=None, finish_reason=None):
    return NS(
        choices=[
            NS(
                delta=NS(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ]
    )


def _call(index, id=None, name=None, arguments=None):
    return NS(index=index, id=id, function=NS(name=name, arguments=arguments))


async def _stream(*chunks):
    for chunk in chunks:
        yield chunk


def _provider(*chunks):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=_stream(*chunks))
    return OpenAIProvider(api_key="sk-test-openai-key-1234567890", model="gpt-test", client=client)


async def _collect(provider, tools=(), options=None):
    return [
        delta
        async for delta in provider.send(
            [Turn.user_text("hi")], list(tools), options or ProviderOptions()
        )
    ]


TOOL = ToolSpec(name="get_enums", description="List enums", input_schema={"type": "object"})


class TestMessageConversion:
    """Conversation -> Chat Completions payload."""

    def test_system_and_tool_round_trip(self):
        conversation = [
            Turn.user_text("list enums"),
            Turn(
                role="assistant",
                content=[
                    TextBlock(text="Checking."),
                    ToolInvocationBlock(id="call_1", name="get_enums", arguments={"schema": "public"}),
                ],
            ),
            Turn(role="user", content=[ToolResultBlock(invocation_id="call_1", payload={"enums": []})]),
        ]

        messages = to_openai_messages(conversation, system="be brief")

        assert messages[0] == {"role": "system", "content": "be brief"}
        assert messages[1] == {"role": "user", "content": "list enums"}
        assistant = messages[2]
        assert assistant["content"] == "Checking."
        assert assistant["tool_calls"][0]["id"] == "call_1"
        assert json.loads(assistant["tool_calls"][0]["function"]["arguments"]) == {"schema": "public"}
        assert messages[3] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": json.dumps({"enums": []}),
        }
        assert len(messages) == 4

    def test_assistant_without_text_or_calls_has_empty_content(self):
        messages = to_openai_messages([Turn(role="assistant", content=[])])
        assert messages == [{"role": "assistant", "content": ""}]

    def test_tools_rendered_as_functions(self):
        assert to_openai_tools([TOOL]) == [
            {
                "type": "function",
                "function": {
                    "name": "get_enums",
                    "description": "List enums",
                    "parameters": {"type": "object"},
                },
            }
        ]


class TestSend:
    """Synthesized block boundaries and stop reasons."""

    @pytest.mark.asyncio
    async def test_text_then_tool_calls(self):
        provider = _provider(
            _chunk(content="Let me "),
            _chunk(content="look."),
            _chunk(tool_calls=[_call(0, id="call_a", name="get_enums", arguments="")]),
            _chunk(tool_calls=[_call(0, arguments='{"schema"')]),
            _chunk(tool_calls=[_call(0, arguments=': "public"}')]),
            _chunk(tool_calls=[_call(1, id="call_b", name="get_enums", arguments="{}")]),
            _chunk(finish_reason="tool_calls"),
        )

        deltas = await _collect(provider, tools=[TOOL])

        assert deltas == [
            BlockStart(kind="text"),
            TextDelta(text="Let me "),
            TextDelta(text="look."),
            BlockStop(),
            BlockStart(kind="tool_invocation", id="call_a", name="get_enums"),
            ToolArgumentDelta(fragment='{"schema"', id="call_a"),
            ToolArgumentDelta(fragment=': "public"}', id="call_a"),
            BlockStop(id="call_a"),
            BlockStart(kind="tool_invocation", id="call_b", name="get_enums"),
            ToolArgumentDelta(fragment="{}", id="call_b"),
            BlockStop(id="call_b"),
            MessageStop(reason="tool_use"),
        ]

    @pytest.mark.asyncio
    async def test_text_only_closes_block(self):
        provider = _provider(_chunk(content="Hello"), _chunk(finish_reason="stop"), NS(choices=[]))

        deltas = await _collect(provider)

        assert deltas == [
            BlockStart(kind="text"),
            TextDelta(text="Hello"),
            BlockStop(),
            MessageStop(reason="end_turn"),
        ]

    @pytest.mark.parametrize(
        "finish_reason,expected",
        [("tool_calls", "tool_use"), ("stop", "end_turn"), ("length", "max_tokens")],
    )
    def test_finish_reason_mapping(self, finish_reason, expected):
        assert FINISH_REASONS[finish_reason] == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("force,expected", [(True, "required"), (False, "auto")])
    async def test_tool_choice(self, force, expected):
        provider = _provider(_chunk(finish_reason="stop"))

        await _collect(provider, tools=[TOOL], options=ProviderOptions(force_tool_use=force))

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["tool_choice"] == expected
        assert kwargs["stream"] is True
        assert kwargs["model"] == "gpt-test"

    @pytest.mark.asyncio
    async def test_no_tools_no_tool_choice(self):
        provider = _provider(_chunk(finish_reason="stop"))

        await _collect(provider, options=ProviderOptions(force_tool_use=True))

        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))
        )
        provider = OpenAIProvider(api_key="sk-test-openai-key-1234567890", client=client)

        with pytest.raises(ProviderError) as exc_info:
            await _collect(provider)
        assert exc_info.value.provider == "openai"


class TestLocalProvider:
    """OpenAI-compatible local servers."""

    def test_defaults(self):
        provider = LocalProvider(client=MagicMock())
        assert provider.provider_name == "local"
        assert provider.model == "llama3.1:8b"
        assert provider.base_url == "http://localhost:11434/v1"
