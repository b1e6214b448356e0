"""Analysis Orchestrator — the single entry point for error analysis.

Request lifecycle:
  1. Validating        sanitize the raw text (failure: no cache or quota touched)
  2. CacheCheck        only when the request carries no history; a hit skips quota
  3. QuotaWait         acquire a permit; released exactly once from here on
  4. ProviderAttempt   walk the tier's candidates, each wrapped by the retry executor
  5. Validating-Resp   parse + quality gate; success is cached (if cacheable)
  6. Exhausted         AllProvidersFailedError with the per-candidate history
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import Awaitable, Callable, Sequence

from errorwise.analysis.detection import detect_error_type, detect_language, parse_stack_trace
from errorwise.analysis.prompt_builder import build_prompt
from errorwise.analysis.url_context import UrlContext, fetch_url_context
from errorwise.core.config import Settings, validate_settings
from errorwise.core.config import settings as default_settings
from errorwise.core.exceptions import (
    AllProvidersFailedError,
    ConcurrencyLimitError,
    FeatureUnavailableError,
    InvalidInputError,
    ProviderError,
    ProviderFailure,
    QuotaError,
)
from errorwise.core.logging import setup_logging
from errorwise.core.metrics import (
    record_analysis,
    record_cache_lookup,
    record_provider_attempt,
    record_quota_rejection,
)
from errorwise.orchestrator.cache_store import CacheStore, make_cache_key
from errorwise.orchestrator.provider_adapters import ADAPTER_REGISTRY, BaseProviderAdapter, get_adapter
from errorwise.orchestrator.provider_router import ProviderRouter
from errorwise.orchestrator.quota_limiter import QuotaLimiter
from errorwise.orchestrator.response_validator import ResponseValidator, parse_provider_output
from errorwise.orchestrator.retry_executor import RetryExecutor, RetryPolicy
from errorwise.orchestrator.sanitizer import sanitize
from errorwise.orchestrator.types import (
    AnalysisRequest,
    AnalysisResult,
    BatchItem,
    Capability,
    HistoryEntry,
    PromptPayload,
    ProviderResult,
    ProviderSpec,
    ProviderVendor,
    Tier,
    TierLimits,
)

logger = logging.getLogger(__name__)

UrlFetcher = Callable[..., Awaitable[list[UrlContext]]]


def tier_limits_from_settings(current: Settings) -> dict[Tier, TierLimits]:
    return {
        tier: TierLimits(
            tier=tier,
            max_concurrent=getattr(current, f"{tier.value}_max_concurrent"),
            requests_per_minute=getattr(current, f"{tier.value}_requests_per_minute"),
        )
        for tier in Tier
    }


def adapters_from_settings(current: Settings) -> dict[ProviderVendor, BaseProviderAdapter]:
    """Instantiate every adapter that has what it needs to run (API key, or none required)."""
    api_keys = {
        ProviderVendor.ANTHROPIC: current.anthropic_api_key,
        ProviderVendor.GEMINI: current.gemini_api_key,
        ProviderVendor.OPENAI: current.openai_api_key,
    }
    adapters: dict[ProviderVendor, BaseProviderAdapter] = {}
    for vendor in ADAPTER_REGISTRY:
        adapter = get_adapter(vendor, api_keys.get(vendor, ""))
        if adapter.available:
            adapters[vendor] = adapter
    return adapters


class Orchestrator:
    """Main analysis orchestrator.

    Integrates:
      - Sanitizer: input bounds and markup stripping
      - CacheStore: content-addressed TTL cache of validated results
      - QuotaLimiter: per-requester concurrency and per-minute ceilings
      - ProviderRouter: tier → ordered fallback candidates
      - RetryExecutor: per-attempt timeout with exponential backoff
      - ResponseValidator: JSON extraction and quality gate
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: CacheStore | None = None,
        limiter: QuotaLimiter | None = None,
        router: ProviderRouter | None = None,
        validator: ResponseValidator | None = None,
        retry: RetryExecutor | None = None,
        adapters: dict[ProviderVendor, BaseProviderAdapter] | None = None,
        url_fetcher: UrlFetcher | None = None,
    ):
        """
        Args:
            settings: Configuration; defaults to the process-wide settings
            adapters: Vendor → adapter; defaults to every adapter with an API key
            url_fetcher: Coroutine returning UrlContext items for a text
        """
        self.settings = settings or default_settings
        s = self.settings

        self.cache = cache or CacheStore(ttl=s.cache_ttl_seconds, max_entries=s.cache_max_entries)
        self.limiter = limiter or QuotaLimiter(tier_limits_from_settings(s))
        self.router = router or ProviderRouter(include_mock_fallback=s.enable_mock_fallback)
        self.validator = validator or ResponseValidator(min_field_chars=s.min_response_chars)
        self.retry = retry or RetryExecutor(
            RetryPolicy(
                max_attempts=s.provider_max_attempts,
                base_delay=s.provider_base_retry_delay,
                timeout=s.provider_timeout_seconds,
                max_delay=s.provider_max_retry_delay,
            )
        )
        self._adapters = adapters if adapters is not None else adapters_from_settings(s)
        self._url_fetcher = url_fetcher or fetch_url_context

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start background maintenance (cache sweeper). Call from a running loop."""
        if self.settings.configure_logging:
            setup_logging(self.settings)
        for problem in validate_settings(self.settings):
            logger.warning("Configuration problem: %s", problem)
        self.cache.start_sweeper(self.settings.cache_sweep_interval_seconds)
        logger.info(
            "Orchestrator started (providers: %s)",
            ", ".join(v.value for v in self._adapters) or "none",
        )

    async def stop(self) -> None:
        await self.cache.stop_sweeper()
        logger.info("Orchestrator stopped")

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _effective_history(self, request: AnalysisRequest) -> tuple[HistoryEntry, ...]:
        if not self.router.has_feature(request.tier, Capability.CONVERSATION_HISTORY):
            return ()
        limit = self.settings.max_history_entries
        if limit <= 0:
            return ()
        return request.conversation_history[-limit:]

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Analyze one error description.

        Raises:
            InvalidInputError: text unusable (not a string, empty, too short)
            ConcurrencyLimitError / RateLimitError: requester quota exhausted
            AllProvidersFailedError: every candidate failed
        """
        start = time.monotonic()
        tier = request.tier
        log_extra = {"requester_id": request.requester_id, "tier": tier.value}

        try:
            text = sanitize(
                request.text,
                max_chars=self.settings.max_input_chars,
                min_chars=self.settings.min_input_chars,
            )
        except InvalidInputError:
            record_analysis(tier.value, "invalid_input")
            raise

        history = self._effective_history(request)
        if request.conversation_history and not history:
            logger.debug("Conversation history ignored for %s tier", tier.value, extra=log_extra)

        cache_key: str | None = None
        if not request.conversation_history:
            cache_key = make_cache_key(text, request.language_hint, request.error_type_hint, tier)
            hit = self.cache.get(cache_key)
            if hit is not None:
                record_cache_lookup("hit")
                record_analysis(tier.value, "cached", time.monotonic() - start)
                logger.info("Cache hit for %s", cache_key[:16], extra=log_extra)
                return hit.as_cached()
            record_cache_lookup("miss")
        else:
            record_cache_lookup("bypass")

        try:
            permit = self.limiter.acquire(request.requester_id, tier)
        except QuotaError as e:
            reason = "concurrency" if isinstance(e, ConcurrencyLimitError) else "rate"
            record_quota_rejection(tier.value, reason)
            record_analysis(tier.value, "rejected")
            raise

        try:
            result = await self._run_candidates(request, text, history)
            if cache_key is not None:
                self.cache.put(cache_key, result)
        except AllProvidersFailedError as e:
            record_analysis(tier.value, "failed", time.monotonic() - start)
            logger.error("All providers failed: %s", e.describe(), extra=log_extra)
            raise
        finally:
            permit()

        record_analysis(tier.value, "success", time.monotonic() - start)
        return result

    async def _run_candidates(
        self,
        request: AnalysisRequest,
        text: str,
        history: tuple[HistoryEntry, ...],
    ) -> AnalysisResult:
        tier = request.tier
        language = request.language_hint or detect_language(text, request.code_snippet)
        error_type = request.error_type_hint or detect_error_type(text)
        logger.info("Analyzing %s error (%s) [%s tier]", error_type, language, tier.value)

        url_context: list[UrlContext] = []
        if self.router.has_feature(tier, Capability.URL_SCRAPING):
            url_context = await self._url_fetcher(
                text,
                max_urls=self.settings.url_max_per_request,
                timeout=self.settings.url_fetch_timeout_seconds,
                max_chars=self.settings.url_max_content_chars,
            )

        prompt = build_prompt(
            text,
            language=language,
            error_type=error_type,
            tier=tier,
            request=request,
            stack_frames=parse_stack_trace(text),
            url_context=url_context,
            history=history,
        )

        failures: list[ProviderFailure] = []
        for index, spec in enumerate(self.router.candidates_for(tier)):
            adapter = self._adapters.get(spec.vendor)
            if adapter is None:
                failures.append(
                    ProviderFailure(
                        provider=spec.name,
                        error_code="not_configured",
                        message=f"No API key configured for {spec.vendor.value}",
                    )
                )
                record_provider_attempt(spec.name, "skipped")
                continue

            try:
                provider_result = await self._attempt(adapter, prompt, spec)
            except ProviderError as e:
                failures.append(ProviderFailure.from_exception(spec.name, e))
                record_provider_attempt(spec.name, e.error_code)
                logger.warning("Provider %s failed: %s", spec.name, e, extra={"provider": spec.name})
                continue
            except Exception as e:
                failures.append(ProviderFailure.from_exception(spec.name, e))
                record_provider_attempt(spec.name, "unexpected_error")
                logger.exception("Unexpected failure from provider %s", spec.name, extra={"provider": spec.name})
                continue

            record_provider_attempt(spec.name, "success")
            if index > 0:
                logger.info("Fallback provider %s succeeded after %d failure(s)", spec.name, len(failures))
            return AnalysisResult.from_provider_result(
                provider_result,
                fallback_used=index > 0,
                language=language,
                error_type=error_type,
            )

        raise AllProvidersFailedError(failures)

    async def _attempt(self, adapter: BaseProviderAdapter, prompt: PromptPayload, spec: ProviderSpec) -> ProviderResult:
        call = functools.partial(adapter.invoke, prompt, spec, self.retry.policy.timeout)
        reply = await self.retry.run(call, provider=spec.name)
        return self.validator.validate(parse_provider_output(reply, spec.name))

    async def analyze_batch(
        self,
        requests: Sequence[AnalysisRequest],
        concurrency: int | None = None,
    ) -> list[BatchItem]:
        """Analyze several errors with bounded concurrency (team tier only).

        Per-item failures are captured in the returned BatchItems, never raised.
        """
        if not requests:
            raise InvalidInputError("Batch must contain at least one error")

        for request in requests:
            if not self.router.has_feature(request.tier, Capability.BATCH):
                raise FeatureUnavailableError(feature="batch analysis", tier=request.tier.value)

        semaphore = asyncio.Semaphore(max(1, concurrency or self.settings.batch_concurrency))

        async def _analyze_one(index: int, request: AnalysisRequest) -> BatchItem:
            async with semaphore:
                try:
                    return BatchItem(index=index, result=await self.analyze(request))
                except Exception as e:
                    logger.warning("Batch item %d failed: %s", index, e)
                    return BatchItem(index=index, error=e)

        logger.info("Analyzing batch of %d errors", len(requests))
        items = await asyncio.gather(*(_analyze_one(i, r) for i, r in enumerate(requests)))
        return list(items)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def clear_cache(self) -> int:
        return self.cache.clear()

    def get_status(self) -> dict:
        """Snapshot of cache, quota and provider configuration."""
        return {
            "cache": self.cache.stats(),
            "quotas": self.limiter.get_all_stats(),
            "routing": self.router.describe(),
            "configured_providers": [v.value for v in self._adapters],
            "settings": {
                "timeout_seconds": self.retry.policy.timeout,
                "max_attempts": self.retry.policy.max_attempts,
                "max_input_chars": self.settings.max_input_chars,
                "min_response_chars": self.validator.min_field_chars,
            },
        }


_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    """Process-wide orchestrator built from the default settings."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator()
    return _orchestrator
