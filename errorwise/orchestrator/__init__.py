"""AI Analysis Orchestrator.

Turns an untrusted error description into a validated, structured analysis:
  - Input Sanitizer (bounds, markup stripping)
  - Response Cache (content-addressed, TTL, background sweep)
  - Quota Limiter (per-requester concurrency + one-minute window)
  - Provider Router (tier → ordered fallback candidates)
  - Retry Executor (timeout + exponential backoff)
  - Response Validator (JSON extraction + quality gate)
"""
