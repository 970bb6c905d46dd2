"""Model provider adapters and the provider-agnostic conversation model."""

from sqlstudio.llm.base import BaseLLMProvider, ProviderError
from sqlstudio.llm.factory import LLMProviderFactory, ProviderConfigurationError
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

__all__ = [
    "BaseLLMProvider",
    "BlockStart",
    "BlockStop",
    "LLMProviderFactory",
    "MessageStop",
    "ProviderConfigurationError",
    "ProviderDelta",
    "ProviderError",
    "ProviderOptions",
    "TextBlock",
    "TextDelta",
    "ToolArgumentDelta",
    "ToolInvocationBlock",
    "ToolResultBlock",
    "ToolSpec",
    "Turn",
]
