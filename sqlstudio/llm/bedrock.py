"""
AWS Bedrock Provider

Claude models on Bedrock speak the Anthropic Messages API; the anthropic
SDK's Bedrock client signs requests with AWS credentials.
"""

import httpx
from anthropic import AsyncAnthropicBedrock

from sqlstudio.llm.anthropic import AnthropicMessagesProvider


class BedrockProvider(AnthropicMessagesProvider):
    """Anthropic models served by AWS Bedrock."""

    def __init__(
        self,
        aws_access_key_id: str,
        aws_secret_access_key: str,
        aws_region: str = "us-east-1",
        model: str = "us.anthropic.claude-sonnet-4-5-20250929-v1:0",
        temperature: float = 0.1,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        connect_timeout: float = 30.0,
        max_retries: int = 3,
        client: AsyncAnthropicBedrock | None = None,
    ):
        self.aws_region = aws_region
        super().__init__(
            client=client
            or AsyncAnthropicBedrock(
                aws_access_key=aws_access_key_id,
                aws_secret_key=aws_secret_access_key,
                aws_region=aws_region,
                timeout=httpx.Timeout(timeout, connect=connect_timeout),
                max_retries=max_retries,
            ),
            provider_name="bedrock",
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
