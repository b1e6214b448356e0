"""Per-requester Quota Limiter — concurrency ceiling + fixed one-minute window.

Each requester has a small state record:
  - concurrent_count: in-flight analyses (a true semaphore; released by the permit)
  - window_start / window_count: requests counted in the current 60s window

The window counter is never decremented by release. When a lookup sees that
60 seconds have passed since ``window_start`` the window is reset wholesale
before the new request is counted (O(1) memory per requester, at the cost of
sliding-log precision).

Thread-safe via a single threading.Lock; acquire and release never block on I/O,
so the release path can run from any ``finally`` block, including on
cancellation.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from errorwise.core.exceptions import ConcurrencyLimitError, RateLimitError
from errorwise.orchestrator.types import DEFAULT_TIER_LIMITS, Tier, TierLimits

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0
PRUNE_THRESHOLD = 1024


@dataclass
class _QuotaState:
    """Quota bookkeeping for a single requester."""

    concurrent_count: int = 0
    window_start: float = 0.0
    window_count: int = 0

    def reset_window_if_elapsed(self, now: float) -> None:
        if now - self.window_start >= WINDOW_SECONDS:
            self.window_start = now
            self.window_count = 0

    def is_idle(self, now: float) -> bool:
        return self.concurrent_count == 0 and now - self.window_start >= WINDOW_SECONDS


class Permit:
    """Handle for one acquired concurrency slot.

    Calling it (or leaving its ``with`` block) releases the slot. Only the first
    release has an effect, so a permit can never drive the counter twice.
    """

    __slots__ = ("requester_id", "tier", "_release", "_released")

    def __init__(self, requester_id: str, tier: Tier, release: Callable[[str], None]):
        self.requester_id = requester_id
        self.tier = tier
        self._release = release
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def __call__(self) -> None:
        if self._released:
            return
        self._released = True
        self._release(self.requester_id)

    release = __call__

    def __enter__(self) -> Permit:
        return self

    def __exit__(self, *exc_info) -> None:
        self()


class QuotaLimiter:
    """Per-requester, per-tier concurrency and rate ceilings.

    Usage:
        limiter = QuotaLimiter(limits)

        permit = limiter.acquire(requester_id, Tier.PRO)  # raises on rejection
        try:
            ...
        finally:
            permit()
    """

    def __init__(
        self,
        limits: dict[Tier, TierLimits] | None = None,
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = PRUNE_THRESHOLD,
    ):
        self._limits: dict[Tier, TierLimits] = dict(DEFAULT_TIER_LIMITS)
        if limits:
            self._limits.update(limits)
        self._clock = clock
        self._states: dict[str, _QuotaState] = {}
        self._lock = threading.Lock()
        self._prune_threshold = prune_threshold
        self._next_prune_at = prune_threshold

    def limits_for(self, tier: Tier) -> TierLimits:
        return self._limits.get(tier, self._limits[Tier.FREE])

    def acquire(self, requester_id: str, tier: Tier) -> Permit:
        """Take a concurrency slot and count the request in the current window.

        Raises:
            ConcurrencyLimitError: the requester already has ``max_concurrent`` in flight.
            RateLimitError: the requester used ``requests_per_minute`` in this window.
        """
        limits = self.limits_for(tier)

        with self._lock:
            now = self._clock()
            state = self._states.get(requester_id)
            if state is None:
                state = _QuotaState(window_start=now)
                self._states[requester_id] = state

            state.reset_window_if_elapsed(now)

            if state.concurrent_count >= limits.max_concurrent:
                logger.info(
                    "Concurrency limit hit for %s (%d/%d, %s tier)",
                    requester_id,
                    state.concurrent_count,
                    limits.max_concurrent,
                    tier.value,
                )
                raise ConcurrencyLimitError(tier=tier.value, limit=limits.max_concurrent)

            if state.window_count >= limits.requests_per_minute:
                retry_after = max(1, math.ceil(state.window_start + WINDOW_SECONDS - now))
                logger.info(
                    "Rate limit hit for %s (%d/min, %s tier), retry after %ds",
                    requester_id,
                    limits.requests_per_minute,
                    tier.value,
                    retry_after,
                )
                raise RateLimitError(
                    tier=tier.value,
                    limit=limits.requests_per_minute,
                    retry_after_seconds=retry_after,
                )

            state.concurrent_count += 1
            state.window_count += 1
            self._prune(now)

        return Permit(requester_id, tier, self._release)

    def _release(self, requester_id: str) -> None:
        with self._lock:
            state = self._states.get(requester_id)
            if state is None:
                return
            state.concurrent_count = max(0, state.concurrent_count - 1)

    def _prune(self, now: float) -> None:
        """Drop idle requester records (caller holds the lock).

        Scans only when the table reaches ``_next_prune_at``, which then moves to
        twice the surviving size, so a table of mostly active requesters is not
        rescanned on every acquire.
        """
        if len(self._states) < self._next_prune_at:
            return
        idle = [rid for rid, state in self._states.items() if state.is_idle(now)]
        for rid in idle:
            del self._states[rid]
        self._next_prune_at = max(self._prune_threshold, 2 * len(self._states))
        if idle:
            logger.debug("Pruned %d idle requester(s), %d tracked", len(idle), len(self._states))

    def get_stats(self, requester_id: str, tier: Tier = Tier.FREE) -> dict:
        """Current quota usage for a requester."""
        limits = self.limits_for(tier)
        with self._lock:
            now = self._clock()
            state = self._states.get(requester_id) or _QuotaState(window_start=now)
            window_count = 0 if now - state.window_start >= WINDOW_SECONDS else state.window_count
            return {
                "requester_id": requester_id,
                "tier": tier.value,
                "concurrent": state.concurrent_count,
                "max_concurrent": limits.max_concurrent,
                "window_count": window_count,
                "requests_per_minute": limits.requests_per_minute,
            }

    def get_all_stats(self) -> dict:
        with self._lock:
            return {
                "tracked_requesters": len(self._states),
                "in_flight": sum(s.concurrent_count for s in self._states.values()),
                "limits": {
                    tier.value: {
                        "max_concurrent": lim.max_concurrent,
                        "requests_per_minute": lim.requests_per_minute,
                    }
                    for tier, lim in self._limits.items()
                },
            }
