"""Core types and DTOs for the Analysis Orchestrator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Union

logger = logging.getLogger(__name__)

MAX_HISTORY_ENTRIES = 5


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Tier(str, Enum):
    """Subscription tiers."""

    FREE = "free"
    PRO = "pro"
    TEAM = "team"

    @classmethod
    def parse(cls, value: Tier | str | None) -> Tier:
        """Coerce a tier value; unknown tiers fall back to FREE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning("Invalid tier %r, defaulting to free", value)
            return cls.FREE


class ProviderVendor(str, Enum):
    """Backends an adapter exists for."""

    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    OPENAI = "openai"
    MOCK = "mock"  # Offline canned answers, no network


class Capability(str, Enum):
    """Tier feature flags."""

    URL_SCRAPING = "url_scraping"
    CONVERSATION_HISTORY = "conversation_history"
    BATCH = "batch"


# ---------------------------------------------------------------------------
# Analysis Request — input to the orchestrator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HistoryEntry:
    """One prior turn of a conversation (role is "user" or "assistant")."""

    role: str
    text: str


def _coerce_history(items: Iterable[Any]) -> tuple[HistoryEntry, ...]:
    entries: list[HistoryEntry] = []
    for item in items or ():
        if isinstance(item, HistoryEntry):
            entries.append(item)
        elif isinstance(item, dict):
            entries.append(HistoryEntry(role=str(item.get("role", "user")), text=str(item.get("text", ""))))
        else:
            role, text = item
            entries.append(HistoryEntry(role=str(role), text=str(text)))
    # Keep the most recent turns
    return tuple(entries[-MAX_HISTORY_ENTRIES:])


@dataclass(frozen=True)
class AnalysisRequest:
    """A single error-analysis request.

    Created at the orchestrator's boundary and never mutated. ``text`` is the
    raw, untrusted input; it is only sanitized inside the orchestrator.
    """

    text: Any
    tier: Tier = Tier.FREE
    requester_id: str = ""
    language_hint: str | None = None
    error_type_hint: str | None = None
    conversation_history: tuple[HistoryEntry, ...] = ()

    # Optional prompt context (never part of the cache key)
    code_snippet: str = ""
    file_name: str = ""
    line_number: int | None = None
    framework: str = ""
    dependencies: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tier", Tier.parse(self.tier))
        object.__setattr__(self, "conversation_history", _coerce_history(self.conversation_history))
        object.__setattr__(self, "dependencies", tuple(self.dependencies or ()))

    def without_history(self) -> AnalysisRequest:
        return replace(self, conversation_history=())


# ---------------------------------------------------------------------------
# Provider routing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderSpec:
    """One fallback candidate: which backend/model and with which generation parameters."""

    name: str
    vendor: ProviderVendor
    model: str
    max_tokens: int = 1000
    temperature: float = 0.5
    capabilities: frozenset[Capability] = frozenset()


@dataclass(frozen=True)
class TierLimits:
    """Quota ceilings for a tier."""

    tier: Tier
    max_concurrent: int = 1
    requests_per_minute: int = 5


DEFAULT_TIER_LIMITS: dict[Tier, TierLimits] = {
    Tier.FREE: TierLimits(tier=Tier.FREE, max_concurrent=1, requests_per_minute=5),
    Tier.PRO: TierLimits(tier=Tier.PRO, max_concurrent=3, requests_per_minute=20),
    Tier.TEAM: TierLimits(tier=Tier.TEAM, max_concurrent=10, requests_per_minute=100),
}


# ---------------------------------------------------------------------------
# Provider I/O
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PromptPayload:
    """Prompt handed to a provider adapter."""

    system: str
    user: str
    history: tuple[HistoryEntry, ...] = ()
    language: str = ""
    error_type: str = ""


@dataclass(frozen=True)
class ProviderReply:
    """Raw text reply of a provider call, before parsing."""

    text: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class TokenUsage:
    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output


@dataclass(frozen=True)
class ProviderResult:
    """Structured output of a single provider attempt (not yet validated)."""

    explanation: str
    solution: str
    code_examples: tuple[str, ...] = ()
    confidence: float = 0.7
    tokens_used: TokenUsage = field(default_factory=TokenUsage)
    provider_name: str = ""

    model: str = ""
    category: str = ""
    tags: tuple[str, ...] = ()
    prevention_tips: tuple[str, ...] = ()


@dataclass(frozen=True)
class ParsedOutput:
    """Provider text was parsed into a structured result."""

    result: ProviderResult


@dataclass(frozen=True)
class UnparseableOutput:
    """Provider text could not be parsed into a JSON object."""

    raw_text: str
    reason: str
    provider_name: str = ""


ProviderOutput = Union[ParsedOutput, UnparseableOutput]


# ---------------------------------------------------------------------------
# Analysis Result — public output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalysisResult:
    """Validated analysis returned to the caller."""

    explanation: str
    solution: str
    code_examples: tuple[str, ...] = ()
    confidence: float = 0.7
    tokens_used: TokenUsage = field(default_factory=TokenUsage)
    provider_name: str = ""
    cached: bool = False
    fallback_used: bool = False

    model: str = ""
    category: str = ""
    tags: tuple[str, ...] = ()
    prevention_tips: tuple[str, ...] = ()
    language: str = ""
    error_type: str = ""

    @classmethod
    def from_provider_result(
        cls,
        result: ProviderResult,
        fallback_used: bool,
        language: str = "",
        error_type: str = "",
    ) -> AnalysisResult:
        return cls(
            explanation=result.explanation,
            solution=result.solution,
            code_examples=result.code_examples,
            confidence=result.confidence,
            tokens_used=result.tokens_used,
            provider_name=result.provider_name,
            cached=False,
            fallback_used=fallback_used,
            model=result.model,
            category=result.category or error_type,
            tags=result.tags,
            prevention_tips=result.prevention_tips,
            language=language,
            error_type=error_type,
        )

    def as_cached(self) -> AnalysisResult:
        return replace(self, cached=True)

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dict for the HTTP layer."""
        return {
            "explanation": self.explanation,
            "solution": self.solution,
            "code_examples": list(self.code_examples),
            "confidence": self.confidence,
            "tokens_used": {"input": self.tokens_used.input, "output": self.tokens_used.output},
            "provider_name": self.provider_name,
            "cached": self.cached,
            "fallback_used": self.fallback_used,
            "model": self.model,
            "category": self.category,
            "tags": list(self.tags),
            "prevention_tips": list(self.prevention_tips),
            "language": self.language,
            "error_type": self.error_type,
        }


# ---------------------------------------------------------------------------
# Cache / batch containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheEntry:
    """Immutable cache record; only ever replaced or removed, never updated."""

    key: str
    value: AnalysisResult
    stored_at: float  # clock() at insertion
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class BatchItem:
    """Outcome of one request within a batch."""

    index: int
    result: AnalysisResult | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None
