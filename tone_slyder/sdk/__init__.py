"""
SDK for Tone Slyder.

Provides the text-generation provider implementations.
"""

from .openai_client import OpenAIProvider, build_provider
from .provider import (
    PlaceholderProvider,
    ProviderError,
    ProviderResponse,
    TextGenerationProvider,
)

__all__ = [
    "OpenAIProvider",
    "PlaceholderProvider",
    "ProviderError",
    "ProviderResponse",
    "TextGenerationProvider",
    "build_provider",
]
