"""
Shared test helpers: controllable clocks and a scripted provider.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import pytest

from tone_slyder.sdk.provider import ProviderError, ProviderResponse, TextGenerationProvider


class FakeClock:
    """Monotonic-style clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateClock:
    """Wall clock returning a settable datetime."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs) -> None:
        self.moment = self.moment + timedelta(**kwargs)


class ScriptedProvider(TextGenerationProvider):
    """Returns queued responses in order and records every payload."""

    def __init__(self, responses: Optional[List] = None):
        self.responses = list(responses or [])
        self.calls: List[tuple] = []

    def complete(self, payload: str, model: str) -> ProviderResponse:
        self.calls.append((payload, model))
        if not self.responses:
            return ProviderResponse(text="Rewritten text", total_tokens=100)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return ProviderResponse(text=response, total_tokens=100)
        return response


@pytest.fixture
def make_provider():
    return ScriptedProvider


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def date_clock():
    return FakeDateClock(datetime(2024, 1, 15, 12, 0, 0))


@pytest.fixture
def provider_error():
    return ProviderError("Failed to get response from gpt-3.5-turbo: timeout", "gpt-3.5-turbo")
