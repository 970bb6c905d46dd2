"""
Tests for LLM Provider Factory.

Tests provider lookup, aliases, credential precedence and error messages.
"""

import pytest

from sqlstudio.config import LLMSettings
from sqlstudio.llm.anthropic import AnthropicProvider
from sqlstudio.llm.bedrock import BedrockProvider
from sqlstudio.llm.factory import LLMProviderFactory, ProviderConfigurationError
from sqlstudio.llm.openai import LocalProvider, OpenAIProvider
from sqlstudio.models.api import ProviderCredentials


@pytest.fixture
def configured():
    """LLM configuration with every provider configured."""
    return LLMSettings(
        default_provider="anthropic",
        anthropic_api_key="sk-ant-REDACTED",
        anthropic_model="claude-test",
        openai_api_key="sk-test-openai-key-1234567890",
        openai_model="gpt-test",
        aws_access_key_id="AKIATEST",
        aws_secret_access_key="secret",
        aws_region="eu-west-1",
        bedrock_model="bedrock-test",
        temperature=0.0,
        max_tokens=2000,
    )


@pytest.fixture
def unconfigured():
    """LLM configuration with no credentials."""
    return LLMSettings(
        default_provider="bedrock",
        anthropic_api_key=None,
        openai_api_key=None,
        aws_access_key_id=None,
        aws_secret_access_key=None,
    )


class TestProviderRegistry:
    """Registered providers and aliases."""

    def test_all_providers_registered(self):
        assert set(LLMProviderFactory.PROVIDERS) >= {"bedrock", "anthropic", "openai", "local"}

    @pytest.mark.parametrize(
        "requested,expected",
        [
            ("claude", "anthropic"),
            ("ollama", "local"),
            ("groq", "local"),
            (" OpenAI ", "openai"),
            (None, "anthropic"),
        ],
    )
    def test_resolve_provider_id(self, configured, requested, expected):
        assert LLMProviderFactory.resolve_provider_id(requested, configured) == expected

    def test_unsupported_provider(self, configured):
        with pytest.raises(ProviderConfigurationError, match="Unsupported provider: gemini"):
            LLMProviderFactory.create_provider("gemini", configured)


class TestCreateProvider:
    """Provider construction from settings and request credentials."""

    def test_default_provider(self, configured):
        provider = LLMProviderFactory.create_provider(None, configured)
        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-test"
        assert provider.temperature == 0.0
        assert provider.max_tokens == 2000

    def test_model_override(self, configured):
        provider = LLMProviderFactory.create_provider("openai", configured, model="gpt-other")
        assert isinstance(provider, OpenAIProvider)
        assert provider.model == "gpt-other"

    def test_bedrock_from_settings(self, configured):
        provider = LLMProviderFactory.create_provider("bedrock", configured)
        assert isinstance(provider, BedrockProvider)
        assert provider.aws_region == "eu-west-1"
        assert provider.model == "bedrock-test"

    def test_request_credentials_fill_missing_settings(self, unconfigured):
        credentials = ProviderCredentials(
            AWS_ACCESS_KEY_ID="AKIAREQ", AWS_SECRET_ACCESS_KEY="req-secret", AWS_REGION="us-west-2"
        )
        provider = LLMProviderFactory.create_provider("bedrock", unconfigured, credentials)
        assert isinstance(provider, BedrockProvider)
        assert provider.aws_region == "us-west-2"

    def test_local_needs_no_key(self, unconfigured):
        provider = LLMProviderFactory.create_provider("ollama", unconfigured)
        assert isinstance(provider, LocalProvider)

    @pytest.mark.parametrize(
        "provider_id,message",
        [
            ("bedrock", "AWS credentials required for Bedrock"),
            ("anthropic", "Anthropic API key required"),
            ("openai", "OpenAI API key required"),
        ],
    )
    def test_missing_credentials(self, unconfigured, provider_id, message):
        with pytest.raises(ProviderConfigurationError, match=message):
            LLMProviderFactory.create_provider(provider_id, unconfigured)

    def test_register_custom_builder(self, configured, monkeypatch):
        monkeypatch.setattr(LLMProviderFactory, "PROVIDERS", dict(LLMProviderFactory.PROVIDERS))
        sentinel = object()
        LLMProviderFactory.register("custom", lambda config, credentials, model: sentinel)

        assert LLMProviderFactory.create_provider("custom", configured) is sentinel
