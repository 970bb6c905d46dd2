"""
Tests for the Anthropic Messages adapter.

The SDK client is mocked; stream events are SimpleNamespace objects with the
same attributes as the SDK's raw stream events.
"""

import json
from types import SimpleNamespace as NS
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from sqlstudio.llm.anthropic import (
    AnthropicMessagesProvider,
    AnthropicProvider,
    to_anthropic_messages,
)
from sqlstudio.llm.base import ProviderError
from sqlstudio.llm.bedrock import BedrockProvider
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


async def _events(*events):
    for event in events:
        yield event


def _client(*events):
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_events(*events))
    return client


async def _collect(provider, conversation=None, tools=(), options=None):
    return [
        delta
        async for delta in provider.send(
            conversation or [Turn.user_text("hi")], list(tools), options or ProviderOptions()
        )
    ]


TOOL = ToolSpec(
    name="execute_sql_query",
    description="Run SQL",
    input_schema={"type": "object", "properties": {"query": {"type": "string"}}},
)


class TestMessageConversion:
    """Conversation -> Messages API payload."""

    def test_tool_round_trip_blocks(self):
        conversation = [
            Turn.user_text("count users"),
            Turn(
                role="assistant",
                content=[
                    TextBlock(text=""),
                    ToolInvocationBlock(id="toolu_1", name="execute_sql_query", arguments={"query": "SELECT 1"}),
                ],
            ),
            Turn(role="user", content=[ToolResultBlock(invocation_id="toolu_1", payload={"rows": [{"x": 1}]})]),
        ]

        messages = to_anthropic_messages(conversation)

        assert messages[0] == {"role": "user", "content": [{"type": "text", "text": "count users"}]}
        assert messages[1]["content"] == [
            {"type": "tool_use", "id": "toolu_1", "name": "execute_sql_query", "input": {"query": "SELECT 1"}}
        ]
        result = messages[2]["content"][0]
        assert result["type"] == "tool_result"
        assert result["tool_use_id"] == "toolu_1"
        assert json.loads(result["content"]) == {"rows": [{"x": 1}]}
        assert result["is_error"] is False

    def test_error_result_flagged(self):
        messages = to_anthropic_messages(
            [Turn(role="user", content=[ToolResultBlock(invocation_id="t", payload={"error": "bad"})])]
        )
        assert messages[0]["content"][0]["is_error"] is True

    def test_empty_text_only_turn_kept(self):
        """A turn that is only an empty text block still has content."""
        messages = to_anthropic_messages([Turn(role="assistant", content=[])])
        assert messages[0]["content"] == [{"type": "text", "text": ""}]


class TestSend:
    """Streaming request and event mapping."""

    @pytest.mark.asyncio
    async def test_maps_stream_events(self):
        client = _client(
            NS(type="message_start", message=NS()),
            NS(type="content_block_start", index=0, content_block=NS(type="text", text="")),
            NS(type="content_block_delta", index=0, delta=NS(type="text_delta", text="Checking")),
            NS(type="content_block_stop", index=0),
            NS(
                type="content_block_start",
                index=1,
                content_block=NS(type="tool_use", id="toolu_1", name="execute_sql_query"),
            ),
            NS(type="content_block_delta", index=1, delta=NS(type="input_json_delta", partial_json='{"query": ')),
            NS(type="content_block_delta", index=1, delta=NS(type="input_json_delta", partial_json='"SELECT 1"}')),
            NS(type="content_block_stop", index=1),
            NS(type="message_delta", delta=NS(stop_reason="tool_use")),
            NS(type="message_stop"),
        )
        provider = AnthropicMessagesProvider(client=client, provider_name="anthropic", model="claude-test")

        deltas = await _collect(provider, tools=[TOOL])

        assert deltas == [
            BlockStart(kind="text"),
            TextDelta(text="Checking"),
            BlockStop(id=None),
            BlockStart(kind="tool_invocation", id="toolu_1", name="execute_sql_query"),
            ToolArgumentDelta(fragment='{"query": ', id="toolu_1"),
            ToolArgumentDelta(fragment='"SELECT 1"}', id="toolu_1"),
            BlockStop(id="toolu_1"),
            MessageStop(reason="tool_use"),
        ]

    @pytest.mark.asyncio
    async def test_request_shape_with_forced_tools(self):
        client = _client(NS(type="message_delta", delta=NS(stop_reason="end_turn")))
        provider = AnthropicMessagesProvider(
            client=client, provider_name="anthropic", model="claude-test", temperature=0.2, max_tokens=512
        )

        await _collect(
            provider,
            tools=[TOOL],
            options=ProviderOptions(system="You are helpful", force_tool_use=True),
        )

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["stream"] is True
        assert kwargs["system"] == "You are helpful"
        assert kwargs["max_tokens"] == 512
        assert kwargs["temperature"] == 0.2
        assert kwargs["tools"][0]["name"] == "execute_sql_query"
        assert kwargs["tool_choice"] == {"type": "any"}

    @pytest.mark.asyncio
    async def test_no_tool_choice_when_not_forced(self):
        client = _client()
        provider = AnthropicMessagesProvider(client=client, provider_name="anthropic", model="m")

        deltas = await _collect(provider, tools=[TOOL], options=ProviderOptions(model="override"))

        kwargs = client.messages.create.call_args.kwargs
        assert "tool_choice" not in kwargs
        assert "system" not in kwargs
        assert kwargs["model"] == "override"
        assert deltas == [MessageStop(reason=None)]

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        client = MagicMock()
        client.messages.create = AsyncMock(
            side_effect=anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com"))
        )
        provider = AnthropicMessagesProvider(client=client, provider_name="anthropic", model="m")

        with pytest.raises(ProviderError) as exc_info:
            await _collect(provider)
        assert exc_info.value.provider == "anthropic"


class TestConcreteProviders:
    """Client construction."""

    def test_anthropic_provider_name(self):
        provider = AnthropicProvider(api_key="sk-ant-test-key-1234567890", model="claude-test")
        assert provider.provider_name == "anthropic"
        assert provider.model == "claude-test"
        assert provider.client is not None

    def test_bedrock_uses_injected_client(self):
        client = MagicMock()
        provider = BedrockProvider(
            aws_access_key_id="AKIA", aws_secret_access_key="secret", client=client
        )
        assert provider.provider_name == "bedrock"
        assert provider.client is client
