"""Retry Executor — timeout + exponential backoff around one provider call.

Backoff strategy:
  delay before attempt n+1 = min(base * 2^(n-1), max_delay)

Only retryable failures are retried (timeouts, network errors, 429 and 5xx
responses). Non-retryable failures such as a rejected API key propagate at once
so the orchestrator can move on to the next candidate.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from errorwise.core.exceptions import ProviderError, ProviderTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    timeout: float = 30.0  # per attempt
    max_delay: float = 30.0


def is_retryable(exc: BaseException) -> bool:
    """Whether a failed attempt should be tried again."""
    if isinstance(exc, ProviderError):
        return exc.retryable
    # Anything unexpected from an adapter is not worth repeating
    return False


class RetryExecutor:
    """Runs an async callable with per-attempt timeout and bounded retries.

    Usage:
        executor = RetryExecutor(RetryPolicy(max_attempts=3))
        reply = await executor.run(lambda: adapter.invoke(prompt, spec), provider="claude")
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    @staticmethod
    def calculate_backoff(attempt: int, base_delay: float = 1.0, max_delay: float = 30.0) -> float:
        """Delay after the given (1-based) failed attempt.

        Formula: min(base * 2^(attempt-1), max_delay)
        """
        return min(base_delay * (2 ** (attempt - 1)), max_delay)

    async def run(self, fn: Callable[[], Awaitable[T]], provider: str = "") -> T:
        """Await ``fn()`` until it succeeds, fails non-retryably, or attempts run out.

        Raises:
            The last error encountered. Timeouts surface as ProviderTimeoutError.
        """
        policy = self.policy
        last_error: Exception | None = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                return await asyncio.wait_for(fn(), timeout=policy.timeout)
            except asyncio.TimeoutError:
                last_error = ProviderTimeoutError(provider=provider, timeout=policy.timeout)
            except ProviderError as e:
                last_error = e
            except Exception as e:
                logger.warning("Unexpected %s from %s: %s", type(e).__name__, provider, e)
                raise

            if not is_retryable(last_error):
                logger.info("Non-retryable failure from %s: %s", provider, last_error)
                raise last_error

            if attempt >= policy.max_attempts:
                break

            delay = self.calculate_backoff(attempt, policy.base_delay, policy.max_delay)
            logger.info(
                "Retry %d/%d for %s in %.1fs (%s)",
                attempt,
                policy.max_attempts - 1,
                provider,
                delay,
                last_error,
            )
            await self._sleep(delay)

        logger.warning("Retries exhausted for %s after %d attempts: %s", provider, policy.max_attempts, last_error)
        raise last_error
