"""
Base LLM Provider

Abstract interface every model provider adapter implements. An adapter
turns a provider-agnostic conversation into one streaming wire request and
yields provider-agnostic deltas back.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from sqlstudio.llm.models import ProviderDelta, ProviderOptions, ToolSpec, Turn

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Transport-level failure talking to a model provider.

    Raised out of send()'s async iterator; the agent loop treats it as
    fatal for the request.
    """

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Attributes:
        provider_name: Unique identifier for this provider
        model: Default model id
        temperature: Default sampling temperature
        max_tokens: Default maximum tokens to generate
    """

    def __init__(
        self,
        provider_name: str,
        model: str,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ):
        self.provider_name = provider_name
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

        logger.info(
            f"Initialized {provider_name} provider with model: {model}",
            extra={
                "provider": provider_name,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

    @abstractmethod
    def send(
        self,
        conversation: Sequence[Turn],
        tools: Sequence[ToolSpec],
        options: ProviderOptions,
    ) -> AsyncIterator[ProviderDelta]:
        """
        Stream one model turn.

        Implementations are async generators. Deltas arrive in wire order;
        tool-argument fragments are raw strings, not parsed.

        Args:
            conversation: Turns so far, oldest first
            tools: Tools the model may call
            options: System prompt, forced tool use, overrides

        Yields:
            ProviderDelta events ending with MessageStop

        Raises:
            ProviderError: On connection, timeout, auth or 5xx failures
        """
        pass  # pragma: no cover - abstract method

    def _resolve_options(self, options: ProviderOptions) -> tuple[str, float, int]:
        """Return (model, temperature, max_tokens) with provider defaults applied."""
        return (
            options.model or self.model,
            self.temperature if options.temperature is None else options.temperature,
            options.max_tokens or self.max_tokens,
        )

    def _log_request(
        self,
        conversation: Sequence[Turn],
        tools: Sequence[ToolSpec],
        options: ProviderOptions,
        model: str,
    ) -> None:
        logger.debug(
            f"{self.provider_name} request",
            extra={
                "provider": self.provider_name,
                "model": model,
                "turn_count": len(conversation),
                "tool_count": len(tools),
                "force_tool_use": options.force_tool_use,
            },
        )
