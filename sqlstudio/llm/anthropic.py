"""
Anthropic LLM Provider

Streams the Anthropic Messages API and maps its raw stream events
(content_block_start / _delta / _stop, message_delta) onto provider
deltas. The same wire format is served by Bedrock, so BedrockProvider
reuses AnthropicMessagesProvider with a different client.
"""

import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import anthropic
import httpx
from anthropic import AsyncAnthropic

from sqlstudio.llm.base import BaseLLMProvider, ProviderError
from sqlstudio.llm.models import (
    BlockStart,
    BlockStop,
    MessageStop,
    ProviderDelta,
    ProviderOptions,
    TextBlock,
    TextDelta,
    ToolArgumentDelta,
    ToolInvocationBlock,
    ToolResultBlock,
    ToolSpec,
    Turn,
)

logger = logging.getLogger(__name__)


def to_anthropic_messages(conversation: Sequence[Turn]) -> list[dict[str, Any]]:
    """Render turns as Messages API `messages`."""
    messages: list[dict[str, Any]] = []
    for turn in conversation:
        has_other_blocks = any(not isinstance(block, TextBlock) for block in turn.content)
        content: list[dict[str, Any]] = []
        for block in turn.content:
            if isinstance(block, TextBlock):
                # Empty text next to tool blocks is rejected by the API.
                if block.text or not has_other_blocks:
                    content.append({"type": "text", "text": block.text})
            elif isinstance(block, ToolInvocationBlock):
                content.append(
                    {
                        "type": "tool_use",
                        "id": block.id,
                        "name": block.name,
                        "input": block.arguments,
                    }
                )
            elif isinstance(block, ToolResultBlock):
                content.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": block.invocation_id,
                        "content": json.dumps(block.payload, default=str),
                        "is_error": block.is_error,
                    }
                )
        messages.append({"role": turn.role, "content": content})
    return messages


def to_anthropic_tools(tools: Sequence[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {"name": spec.name, "description": spec.description, "input_schema": spec.input_schema}
        for spec in tools
    ]


class AnthropicMessagesProvider(BaseLLMProvider):
    """Streaming adapter for any client exposing the Anthropic Messages API."""

    def __init__(
        self,
        client: Any,
        provider_name: str,
        model: str,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ):
        super().__init__(
            provider_name=provider_name,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        self.client = client

    async def send(
        self,
        conversation: Sequence[Turn],
        tools: Sequence[ToolSpec],
        options: ProviderOptions,
    ) -> AsyncIterator[ProviderDelta]:
        model, temperature, max_tokens = self._resolve_options(options)
        self._log_request(conversation, tools, options, model)

        request: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": to_anthropic_messages(conversation),
            "stream": True,
        }
        if options.system:
            request["system"] = options.system
        if tools:
            request["tools"] = to_anthropic_tools(tools)
            if options.force_tool_use:
                request["tool_choice"] = {"type": "any"}

        # index -> invocation id (None for text); unknown block kinds are not tracked
        open_blocks: dict[int, str | None] = {}
        stop_reason: str | None = None

        try:
            stream = await self.client.messages.create(**request)
            async for event in stream:
                if event.type == "content_block_start":
                    block = event.content_block
                    if block.type == "text":
                        open_blocks[event.index] = None
                        yield BlockStart(kind="text")
                        if block.text:
                            yield TextDelta(text=block.text)
                    elif block.type == "tool_use":
                        open_blocks[event.index] = block.id
                        yield BlockStart(kind="tool_invocation", id=block.id, name=block.name)
                elif event.type == "content_block_delta":
                    if event.index not in open_blocks:
                        continue
                    delta = event.delta
                    if delta.type == "text_delta":
                        yield TextDelta(text=delta.text)
                    elif delta.type == "input_json_delta":
                        yield ToolArgumentDelta(
                            fragment=delta.partial_json, id=open_blocks[event.index]
                        )
                elif event.type == "content_block_stop":
                    if event.index in open_blocks:
                        yield BlockStop(id=open_blocks.pop(event.index))
                elif event.type == "message_delta":
                    stop_reason = event.delta.stop_reason or stop_reason
                elif event.type == "message_stop":
                    break
        except anthropic.APIError as exc:
            logger.error(
                f"{self.provider_name} streaming error: {exc}",
                extra={"provider": self.provider_name, "model": model},
            )
            raise ProviderError(str(exc), provider=self.provider_name) from exc

        yield MessageStop(reason=stop_reason)


class AnthropicProvider(AnthropicMessagesProvider):
    """Anthropic (Claude) via api.anthropic.com."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5-20250929",
        temperature: float = 0.1,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        connect_timeout: float = 30.0,
        max_retries: int = 3,
        client: AsyncAnthropic | None = None,
    ):
        super().__init__(
            client=client
            or AsyncAnthropic(
                api_key=api_key,
                timeout=httpx.Timeout(timeout, connect=connect_timeout),
                max_retries=max_retries,
            ),
            provider_name="anthropic",
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
