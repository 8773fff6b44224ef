"""
OpenAI-backed text-generation provider.

Sends the instruction payload as a single user message and reports the
token usage returned with the completion.
"""

import logging
import os
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from .provider import PlaceholderProvider, ProviderError, ProviderResponse, TextGenerationProvider

logger = logging.getLogger(__name__)

API_KEY_ENV = "OPENAI_API_KEY"


class OpenAIProvider(TextGenerationProvider):
    """Provider using OpenAI chat completions.

    Failures are loud: any API error surfaces as ProviderError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        temperature: float = 0.4,
        max_tokens: int = 2000,
        client: Optional[Any] = None,
    ):
        """Initialize the provider.

        Args:
            api_key: OpenAI API key (defaults to the OPENAI_API_KEY environment variable)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            client: Preconfigured client, mainly for tests

        Raises:
            ValueError: If temperature or max_tokens is out of range
        """
        if not 0 <= temperature <= 2:
            raise ValueError("temperature must be between 0 and 2")
        if max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")

        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client if client is not None else OpenAI(api_key=api_key)

    def complete(self, payload: str, model: str) -> ProviderResponse:
        if not payload:
            raise ValueError("payload is required and cannot be empty")

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": payload}],
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
        except OpenAIError as e:
            logger.error("Provider call failed for %s: %s", model, e)
            raise ProviderError(f"Failed to get response from {model}: {e}", model) from e

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""

        usage = response.usage
        if not usage:
            return ProviderResponse(text=text.strip(), total_tokens=0)

        return ProviderResponse(
            text=text.strip(),
            total_tokens=usage.total_tokens,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens
        )


def has_usable_key(api_key: Optional[str]) -> bool:
    """False for missing keys and obvious template placeholders."""
    if not api_key or not api_key.strip():
        return False
    return "your_" not in api_key and "here" not in api_key


def build_provider(
    temperature: float = 0.4,
    max_tokens: int = 2000,
    api_key: Optional[str] = None,
) -> TextGenerationProvider:
    """OpenAIProvider when a usable key is configured, PlaceholderProvider otherwise."""
    api_key = api_key if api_key is not None else os.environ.get(API_KEY_ENV)
    if not has_usable_key(api_key):
        logger.warning("%s is not configured; using placeholder provider", API_KEY_ENV)
        return PlaceholderProvider()
    return OpenAIProvider(api_key=api_key, temperature=temperature, max_tokens=max_tokens)
