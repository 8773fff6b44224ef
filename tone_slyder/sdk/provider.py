"""
Text-generation provider boundary.

The pipeline sends one instruction payload and a model id and gets back
free text plus token usage.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..core.token_counter import TokenUsage

logger = logging.getLogger(__name__)

PLACEHOLDER_TOKENS = 50


class ProviderError(Exception):
    """Raised when the provider call fails (network, timeout, non-2xx)."""

    def __init__(self, message: str, model: str):
        super().__init__(message)
        self.model = model


@dataclass(frozen=True)
class ProviderResponse:
    """Generated text with the tokens the call consumed."""
    text: str
    total_tokens: int
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None

    @property
    def usage(self) -> Optional[TokenUsage]:
        """Exact input/output split, if the provider reported one."""
        if self.prompt_tokens is None or self.completion_tokens is None:
            return None
        return TokenUsage(prompt_tokens=self.prompt_tokens, completion_tokens=self.completion_tokens)


class TextGenerationProvider(ABC):
    """Anything that can complete an instruction payload."""

    @abstractmethod
    def complete(self, payload: str, model: str) -> ProviderResponse:
        """Generate text for the payload.

        Raises:
            ProviderError: If the call fails
        """


class PlaceholderProvider(TextGenerationProvider):
    """Stand-in used when no provider credentials are configured."""

    def complete(self, payload: str, model: str) -> ProviderResponse:
        logger.warning("No provider API key configured, returning placeholder response")
        return ProviderResponse(
            text=(
                "[PLACEHOLDER REWRITE] This is a simulated tone-adjusted version of your text. "
                f"With a configured provider this would use {model} to apply the requested tone. "
                "Set OPENAI_API_KEY to use real models."
            ),
            total_tokens=PLACEHOLDER_TOKENS
        )
