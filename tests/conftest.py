from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from errorwise.core.config import Settings
from errorwise.orchestrator.cache_store import CacheStore
from errorwise.orchestrator.orchestrator import Orchestrator
from errorwise.orchestrator.provider_adapters import BaseProviderAdapter
from errorwise.orchestrator.provider_router import ProviderRouter
from errorwise.orchestrator.quota_limiter import QuotaLimiter
from errorwise.orchestrator.retry_executor import RetryExecutor, RetryPolicy
from errorwise.orchestrator.types import ProviderReply, ProviderSpec, ProviderVendor, Tier

GOOD_PAYLOAD = {
    "explanation": "The variable is undefined at the point where a property is read from it, so the lookup fails.",
    "solution": "Check that the object is initialized before use, or guard the access with optional chaining.",
    "codeExample": "const name = user?.profile?.name ?? 'Guest';",
    "category": "runtime",
    "tags": ["javascript", "null-safety"],
    "confidence": 0.9,
}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class ScriptedAdapter(BaseProviderAdapter):
    """Adapter that replays scripted outcomes; the last outcome repeats."""

    vendor = ProviderVendor.MOCK
    requires_api_key = False

    def __init__(self, *outcomes, delay: float = 0.0):
        super().__init__(api_key="")
        self.outcomes = list(outcomes) or [GOOD_PAYLOAD]
        self.delay = delay
        self.calls = 0
        self.prompts = []

    async def invoke(self, prompt, spec, timeout=30.0):
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, dict):
            outcome = json.dumps(outcome)
        return ProviderReply(text=outcome, model=spec.model, input_tokens=10, output_tokens=20)


def _two_candidates() -> dict[Tier, tuple[ProviderSpec, ...]]:
    specs = (
        ProviderSpec(name="primary", vendor=ProviderVendor.ANTHROPIC, model="primary-model"),
        ProviderSpec(name="secondary", vendor=ProviderVendor.OPENAI, model="secondary-model"),
    )
    return {tier: specs for tier in Tier}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def good_payload():
    return dict(GOOD_PAYLOAD)


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, anthropic_api_key="", gemini_api_key="", openai_api_key="")


@pytest.fixture
def make_orchestrator(test_settings, clock):
    """Factory for an Orchestrator wired to scripted primary/secondary adapters.

    Retries do not really sleep; cache and quota share the fake clock.
    """

    def _make(primary=None, secondary=None, **kwargs):
        adapters = {}
        if primary is not None:
            adapters[ProviderVendor.ANTHROPIC] = primary
        if secondary is not None:
            adapters[ProviderVendor.OPENAI] = secondary

        kwargs.setdefault("router", ProviderRouter(candidates=_two_candidates()))
        kwargs.setdefault("cache", CacheStore(ttl=1800, clock=clock))
        kwargs.setdefault("limiter", QuotaLimiter(clock=clock))
        kwargs.setdefault(
            "retry",
            RetryExecutor(RetryPolicy(max_attempts=3, base_delay=1.0, timeout=5.0), sleep=RecordingSleep()),
        )
        kwargs.setdefault("url_fetcher", AsyncMock(return_value=[]))
        kwargs.setdefault("settings", test_settings)
        return Orchestrator(adapters=adapters, **kwargs)

    return _make


@pytest.fixture
def scripted():
    """The ScriptedAdapter class, for building adapters inside a test."""
    return ScriptedAdapter


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
