"""
OpenAI LLM Provider

Streams Chat Completions with function tools. Chat Completions has no
explicit block boundaries, so the adapter synthesizes BlockStart/BlockStop
around text and around each tool_calls index, and maps finish_reason onto
the Anthropic-style stop reasons the agent loop logs.

LocalProvider points the same adapter at an OpenAI-compatible server
(Ollama, vLLM, Groq).
"""

import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

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

FINISH_REASONS = {
    "tool_calls": "tool_use",
    "function_call": "tool_use",
    "stop": "end_turn",
    "length": "max_tokens",
    "content_filter": "refusal",
}


def to_openai_messages(
    conversation: Sequence[Turn], system: str | None = None
) -> list[dict[str, Any]]:
    """Render turns as Chat Completions messages.

    Tool results become one `tool` message each, in invocation order.
    """
    messages: list[dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})

    for turn in conversation:
        text = "".join(block.text for block in turn.content if isinstance(block, TextBlock))
        if turn.role == "assistant":
            message: dict[str, Any] = {"role": "assistant", "content": text or None}
            calls = [
                {
                    "id": block.id,
                    "type": "function",
                    "function": {"name": block.name, "arguments": json.dumps(block.arguments)},
                }
                for block in turn.content
                if isinstance(block, ToolInvocationBlock)
            ]
            if calls:
                message["tool_calls"] = calls
            elif message["content"] is None:
                message["content"] = ""
            messages.append(message)
            continue

        for block in turn.content:
            if isinstance(block, ToolResultBlock):
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": block.invocation_id,
                        "content": json.dumps(block.payload, default=str),
                    }
                )
        if text or not turn.tool_results:
            messages.append({"role": "user", "content": text})
    return messages


def to_openai_tools(tools: Sequence[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": spec.name,
                "description": spec.description,
                "parameters": spec.input_schema,
            },
        }
        for spec in tools
    ]


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat models with function calling."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.1,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        connect_timeout: float = 30.0,
        max_retries: int = 3,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
        provider_name: str = "openai",
    ):
        super().__init__(
            provider_name=provider_name,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            max_retries=max_retries,
        )

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
            "messages": to_openai_messages(conversation, options.system),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }
        if tools:
            request["tools"] = to_openai_tools(tools)
            request["tool_choice"] = "required" if options.force_tool_use else "auto"

        text_open = False
        current_call: int | None = None
        call_ids: dict[int, str] = {}
        finish_reason: str | None = None

        try:
            stream = await self.client.chat.completions.create(**request)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta

                if delta.content:
                    if not text_open:
                        text_open = True
                        yield BlockStart(kind="text")
                    yield TextDelta(text=delta.content)

                for call in delta.tool_calls or []:
                    if call.index != current_call:
                        if text_open:
                            text_open = False
                            yield BlockStop()
                        if current_call is not None:
                            yield BlockStop(id=call_ids[current_call])
                        current_call = call.index
                        call_ids[call.index] = call.id or f"call_{call.index}"
                        yield BlockStart(
                            kind="tool_invocation",
                            id=call_ids[call.index],
                            name=call.function.name if call.function else None,
                        )
                    if call.function and call.function.arguments:
                        yield ToolArgumentDelta(
                            fragment=call.function.arguments, id=call_ids[call.index]
                        )

                if choice.finish_reason:
                    finish_reason = choice.finish_reason
        except openai.APIError as exc:
            logger.error(
                f"{self.provider_name} streaming error: {exc}",
                extra={"provider": self.provider_name, "model": model},
            )
            raise ProviderError(str(exc), provider=self.provider_name) from exc

        if text_open:
            yield BlockStop()
        if current_call is not None:
            yield BlockStop(id=call_ids[current_call])
        yield MessageStop(reason=FINISH_REASONS.get(finish_reason, finish_reason))


class LocalProvider(OpenAIProvider):
    """OpenAI-compatible local or hosted server (Ollama, vLLM, Groq)."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434/v1",
        model: str = "llama3.1:8b",
        api_key: str = "ollama",
        **kwargs: Any,
    ):
        super().__init__(
            api_key=api_key,
            model=model,
            base_url=base_url.rstrip("/"),
            provider_name="local",
            **kwargs,
        )
        self.base_url = base_url
