"""Typed failures surfaced by the analysis core.

Every error carries a ``status_code`` hint so the host HTTP layer can map it
to a response without inspecting messages:

  - 400: caller-supplied input is unusable
  - 403: feature not available for the caller's tier
  - 429: per-requester quota exhausted
  - 502/504: a single provider failed (internal, normally not surfaced)
  - 503: every provider candidate failed
"""

from __future__ import annotations

from dataclasses import dataclass


class AnalysisError(Exception):
    """Base class for all analysis core errors."""

    status_code: int = 500
    error_code: str = "analysis_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class InvalidInputError(AnalysisError):
    """Input is not a string, or is empty at the boundary."""

    status_code = 400
    error_code = "invalid_input"


class InputTooShortError(InvalidInputError):
    """Fewer than the minimum number of characters remain after cleaning."""

    error_code = "input_too_short"

    def __init__(self, length: int, minimum: int):
        super().__init__(f"Error message too short ({length} chars, minimum {minimum})")
        self.length = length
        self.minimum = minimum


class FeatureUnavailableError(AnalysisError):
    """The caller's tier does not include the requested feature."""

    status_code = 403
    error_code = "feature_unavailable"

    def __init__(self, feature: str, tier: str):
        super().__init__(f"'{feature}' is not available on the {tier} tier")
        self.feature = feature
        self.tier = tier


# ---------------------------------------------------------------------------
# Quota errors
# ---------------------------------------------------------------------------


class QuotaError(AnalysisError):
    """Base for per-requester resource exhaustion."""

    status_code = 429
    error_code = "quota_exceeded"

    def __init__(self, message: str, tier: str, limit: int, retry_after_seconds: int):
        super().__init__(message)
        self.tier = tier
        self.limit = limit
        self.retry_after_seconds = retry_after_seconds

    @property
    def upgrade_suggested(self) -> bool:
        return self.tier == "free"


class ConcurrencyLimitError(QuotaError):
    error_code = "concurrency_limit"

    def __init__(self, tier: str, limit: int):
        super().__init__(
            f"Too many concurrent AI requests (max {limit} for {tier} tier)",
            tier=tier,
            limit=limit,
            retry_after_seconds=1,
        )


class RateLimitError(QuotaError):
    error_code = "rate_limit"

    def __init__(self, tier: str, limit: int, retry_after_seconds: int):
        super().__init__(
            f"AI rate limit exceeded ({limit}/min for {tier} tier). Retry after {retry_after_seconds}s",
            tier=tier,
            limit=limit,
            retry_after_seconds=retry_after_seconds,
        )


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------


class ProviderError(AnalysisError):
    """Base for a failure of a single provider candidate."""

    status_code = 502
    error_code = "provider_error"
    retryable: bool = False

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    status_code = 504
    error_code = "provider_timeout"
    retryable = True

    def __init__(self, provider: str, timeout: float):
        super().__init__(f"{provider} timeout after {timeout:g}s", provider=provider)
        self.timeout = timeout


class ProviderCallError(ProviderError):
    """Transport or HTTP-level failure of a provider call.

    ``retryable`` is True for network errors, 429 and 5xx; False for other 4xx
    (malformed request, authentication failure).
    """

    error_code = "provider_call_error"

    def __init__(self, message: str, provider: str = "", http_status: int = 0, retryable: bool = True):
        super().__init__(message, provider=provider)
        self.http_status = http_status
        self.retryable = retryable

    @classmethod
    def from_status(cls, provider: str, http_status: int, detail: str = "") -> ProviderCallError:
        retryable = http_status == 429 or http_status >= 500
        message = f"{provider} returned HTTP {http_status}"
        if detail:
            message = f"{message}: {detail[:200]}"
        return cls(message, provider=provider, http_status=http_status, retryable=retryable)


class InvalidResponseError(ProviderError):
    """Provider answered, but the output is malformed or below the quality gate."""

    error_code = "invalid_response"

    def __init__(self, reason: str, provider: str = ""):
        super().__init__(f"Invalid response from {provider or 'provider'}: {reason}", provider=provider)
        self.reason = reason


@dataclass(frozen=True)
class ProviderFailure:
    """One entry of the per-candidate failure history."""

    provider: str
    error_code: str
    message: str

    @classmethod
    def from_exception(cls, provider: str, exc: Exception) -> ProviderFailure:
        code = exc.error_code if isinstance(exc, AnalysisError) else type(exc).__name__
        return cls(provider=provider, error_code=code, message=str(exc))


class AllProvidersFailedError(AnalysisError):
    """Every provider candidate failed; carries the failure history for logging."""

    status_code = 503
    error_code = "all_providers_failed"

    def __init__(self, failures: list[ProviderFailure]):
        super().__init__("AI analysis temporarily unavailable. Please try again in a moment.")
        self.failures = list(failures)

    def describe(self) -> str:
        return "; ".join(f"{f.provider}: {f.error_code} ({f.message})" for f in self.failures)
