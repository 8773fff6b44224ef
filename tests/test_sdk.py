"""
Unit tests for SDK layer.

Tests the OpenAI provider wrapper and provider selection.
"""

from unittest.mock import Mock, patch

import pytest
from openai import OpenAIError

from tone_slyder.sdk.openai_client import OpenAIProvider, build_provider, has_usable_key
from tone_slyder.sdk.provider import PlaceholderProvider, ProviderError, ProviderResponse


def _completion(content="  Rewritten text  ", prompt_tokens=120, completion_tokens=30):
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    response.usage.total_tokens = prompt_tokens + completion_tokens
    return response


class TestOpenAIProvider:
    """Test OpenAIProvider wrapper."""

    def test_complete_success(self):
        """Test successful call returns stripped text and usage."""
        client = Mock()
        client.chat.completions.create.return_value = _completion()
        provider = OpenAIProvider(client=client, temperature=0.4, max_tokens=2000)

        response = provider.complete("payload", "gpt-3.5-turbo")

        assert response == ProviderResponse(
            text="Rewritten text", total_tokens=150, prompt_tokens=120, completion_tokens=30
        )
        assert response.usage.total_tokens == 150
        client.chat.completions.create.assert_called_once_with(
            model="gpt-3.5-turbo",
            messages=[{"role": "user", "content": "payload"}],
            temperature=0.4,
            max_tokens=2000
        )

    def test_missing_usage(self):
        """Test a response without usage reports zero tokens."""
        completion = _completion()
        completion.usage = None
        client = Mock()
        client.chat.completions.create.return_value = completion

        response = OpenAIProvider(client=client).complete("payload", "gpt-4")

        assert response.total_tokens == 0
        assert response.usage is None

    def test_empty_content(self):
        client = Mock()
        client.chat.completions.create.return_value = _completion(content=None)

        assert OpenAIProvider(client=client).complete("payload", "gpt-4").text == ""

    def test_api_error_raises_provider_error(self):
        """Test API errors surface as ProviderError carrying the model."""
        client = Mock()
        client.chat.completions.create.side_effect = OpenAIError("rate limited")
        provider = OpenAIProvider(client=client)

        with pytest.raises(ProviderError, match="Failed to get response from gpt-4") as excinfo:
            provider.complete("payload", "gpt-4")

        assert excinfo.value.model == "gpt-4"

    def test_empty_payload(self):
        with pytest.raises(ValueError, match="payload is required"):
            OpenAIProvider(client=Mock()).complete("", "gpt-4")

    def test_invalid_settings(self):
        with pytest.raises(ValueError, match="temperature must be between 0 and 2"):
            OpenAIProvider(client=Mock(), temperature=3)
        with pytest.raises(ValueError, match="max_tokens must be > 0"):
            OpenAIProvider(client=Mock(), max_tokens=0)

    @patch('tone_slyder.sdk.openai_client.OpenAI')
    def test_builds_client_from_key(self, mock_openai_class):
        OpenAIProvider(api_key="sk-test")

        mock_openai_class.assert_called_once_with(api_key="sk-test")


class TestBuildProvider:
    """Test provider selection from configured credentials."""

    def test_key_validation(self):
        assert has_usable_key("sk-abc123")
        assert not has_usable_key(None)
        assert not has_usable_key("  ")
        assert not has_usable_key("your_openai_api_key_here")

    @patch('tone_slyder.sdk.openai_client.OpenAI')
    def test_openai_when_key_present(self, mock_openai_class):
        provider = build_provider(temperature=0.2, max_tokens=500, api_key="sk-abc123")

        assert isinstance(provider, OpenAIProvider)
        assert provider.temperature == 0.2
        assert provider.max_tokens == 500

    def test_placeholder_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        assert isinstance(build_provider(), PlaceholderProvider)

    @patch('tone_slyder.sdk.openai_client.OpenAI')
    def test_reads_environment(self, mock_openai_class, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

        assert isinstance(build_provider(), OpenAIProvider)
        mock_openai_class.assert_called_once_with(api_key="sk-from-env")


class TestPlaceholderProvider:
    """Test the credential-free stand-in."""

    def test_placeholder_response(self):
        response = PlaceholderProvider().complete("payload", "gpt-3.5-turbo")

        assert response.text.startswith("[PLACEHOLDER REWRITE]")
        assert "gpt-3.5-turbo" in response.text
        assert response.total_tokens == 50
        assert response.usage is None
