"""Error Analysis Helpers.

Tier-independent building blocks the orchestrator uses to turn sanitized
error text into a provider prompt:
  1. Language / error-type detection and stack-trace parsing
  2. URL context fetching (tiers with url_scraping)
  3. Prompt construction with tier-specific response formats
  4. Canned analyses for the offline mock provider
"""
