"""
LLM Provider Factory

Registry of provider adapters keyed by provider id. Each entry knows how
to build its adapter from settings plus optional per-request credentials,
so the agent loop never branches on provider type.
"""

import logging
from collections.abc import Callable

from sqlstudio.config import LLMSettings
from sqlstudio.llm.anthropic import AnthropicProvider
from sqlstudio.llm.base import BaseLLMProvider
from sqlstudio.llm.bedrock import BedrockProvider
from sqlstudio.llm.openai import LocalProvider, OpenAIProvider
from sqlstudio.models.api import ProviderCredentials

logger = logging.getLogger(__name__)


class ProviderConfigurationError(ValueError):
    """Unknown provider id or missing credentials."""


def _secret(value) -> str | None:
    return value.get_secret_value() if value is not None else None


def _client_options(config: LLMSettings) -> dict:
    return {
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "timeout": config.timeout,
        "connect_timeout": config.connect_timeout,
        "max_retries": config.max_retries,
    }


def _create_bedrock(
    config: LLMSettings, credentials: ProviderCredentials, model: str | None
) -> BaseLLMProvider:
    access_key = _secret(credentials.aws_access_key_id) or config.aws_access_key_id
    secret_key = _secret(credentials.aws_secret_access_key) or config.aws_secret_access_key
    if not access_key or not secret_key:
        raise ProviderConfigurationError("AWS credentials required for Bedrock")
    return BedrockProvider(
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        aws_region=credentials.aws_region or config.aws_region,
        model=model or config.bedrock_model,
        **_client_options(config),
    )


def _create_anthropic(
    config: LLMSettings, credentials: ProviderCredentials, model: str | None
) -> BaseLLMProvider:
    api_key = _secret(credentials.anthropic_api_key) or config.anthropic_api_key
    if not api_key:
        raise ProviderConfigurationError("Anthropic API key required")
    return AnthropicProvider(
        api_key=api_key,
        model=model or config.anthropic_model,
        **_client_options(config),
    )


def _create_openai(
    config: LLMSettings, credentials: ProviderCredentials, model: str | None
) -> BaseLLMProvider:
    api_key = _secret(credentials.openai_api_key) or config.openai_api_key
    if not api_key:
        raise ProviderConfigurationError("OpenAI API key required")
    return OpenAIProvider(
        api_key=api_key,
        model=model or config.openai_model,
        base_url=credentials.base_url,
        **_client_options(config),
    )


def _create_local(
    config: LLMSettings, credentials: ProviderCredentials, model: str | None
) -> BaseLLMProvider:
    return LocalProvider(
        base_url=credentials.base_url or config.local_base_url,
        model=model or config.local_model,
        api_key=_secret(credentials.openai_api_key) or config.local_api_key,
        **_client_options(config),
    )


ProviderBuilder = Callable[[LLMSettings, ProviderCredentials, str | None], BaseLLMProvider]


class LLMProviderFactory:
    """
    Factory for creating LLM provider instances.

    Aliases map the ids older clients send ("claude", "ollama", "groq")
    onto registered providers.
    """

    PROVIDERS: dict[str, ProviderBuilder] = {
        "bedrock": _create_bedrock,
        "anthropic": _create_anthropic,
        "openai": _create_openai,
        "local": _create_local,
    }

    ALIASES: dict[str, str] = {
        "claude": "anthropic",
        "ollama": "local",
        "groq": "local",
    }

    @classmethod
    def register(cls, provider_id: str, builder: ProviderBuilder) -> None:
        cls.PROVIDERS[provider_id] = builder

    @classmethod
    def resolve_provider_id(cls, provider_id: str | None, config: LLMSettings) -> str:
        value = (provider_id or config.default_provider).strip().lower()
        value = cls.ALIASES.get(value, value)
        if value not in cls.PROVIDERS:
            raise ProviderConfigurationError(f"Unsupported provider: {provider_id}")
        return value

    @classmethod
    def create_provider(
        cls,
        provider_id: str | None,
        config: LLMSettings,
        credentials: ProviderCredentials | None = None,
        model: str | None = None,
    ) -> BaseLLMProvider:
        """
        Create a provider adapter.

        Args:
            provider_id: Registered id or alias (None = config.default_provider)
            config: LLM settings supplying defaults
            credentials: Per-request credentials overriding settings
            model: Model override

        Raises:
            ProviderConfigurationError: Unknown provider or missing credentials
        """
        resolved = cls.resolve_provider_id(provider_id, config)
        logger.info(
            f"Creating {resolved} provider",
            extra={"provider": resolved, "model_override": model},
        )
        builder = cls.PROVIDERS[resolved]
        return builder(config, credentials or ProviderCredentials(), model)
