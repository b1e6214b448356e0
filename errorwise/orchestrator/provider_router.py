"""Provider Router — static tier → ordered fallback candidates.

The router holds configuration only: for each tier, an ordered tuple of
ProviderSpecs (priority order, first = preferred) and the tier's feature set.
The orchestrator walks the candidates in order without knowing provider
identities.
"""

from __future__ import annotations

from errorwise.orchestrator.types import Capability, ProviderSpec, ProviderVendor, Tier

_ALL_FEATURES = frozenset(Capability)

DEFAULT_TIER_FEATURES: dict[Tier, frozenset[Capability]] = {
    Tier.FREE: frozenset(),
    Tier.PRO: frozenset({Capability.URL_SCRAPING, Capability.CONVERSATION_HISTORY}),
    Tier.TEAM: _ALL_FEATURES,
}

DEFAULT_TIER_CANDIDATES: dict[Tier, tuple[ProviderSpec, ...]] = {
    Tier.FREE: (
        ProviderSpec(
            name="claude-haiku-3",
            vendor=ProviderVendor.ANTHROPIC,
            model="claude-3-haiku-20240307",
            max_tokens=1000,
            temperature=0.5,
            capabilities=DEFAULT_TIER_FEATURES[Tier.FREE],
        ),
        ProviderSpec(
            name="claude-haiku-3.5",
            vendor=ProviderVendor.ANTHROPIC,
            model="claude-3-5-haiku-20241022",
            max_tokens=1000,
            temperature=0.5,
            capabilities=DEFAULT_TIER_FEATURES[Tier.FREE],
        ),
    ),
    Tier.PRO: (
        ProviderSpec(
            name="claude-haiku-3.5",
            vendor=ProviderVendor.ANTHROPIC,
            model="claude-3-5-haiku-20241022",
            max_tokens=2000,
            temperature=0.4,
            capabilities=DEFAULT_TIER_FEATURES[Tier.PRO],
        ),
        ProviderSpec(
            name="claude-haiku-3",
            vendor=ProviderVendor.ANTHROPIC,
            model="claude-3-haiku-20240307",
            max_tokens=2000,
            temperature=0.4,
            capabilities=DEFAULT_TIER_FEATURES[Tier.PRO],
        ),
        ProviderSpec(
            name="gemini-1.5-pro",
            vendor=ProviderVendor.GEMINI,
            model="gemini-1.5-pro",
            max_tokens=2000,
            temperature=0.4,
            capabilities=DEFAULT_TIER_FEATURES[Tier.PRO],
        ),
    ),
    Tier.TEAM: (
        ProviderSpec(
            name="claude-sonnet-4",
            vendor=ProviderVendor.ANTHROPIC,
            model="claude-sonnet-4-20250514",
            max_tokens=4000,
            temperature=0.3,
            capabilities=DEFAULT_TIER_FEATURES[Tier.TEAM],
        ),
        ProviderSpec(
            name="claude-haiku-3.5",
            vendor=ProviderVendor.ANTHROPIC,
            model="claude-3-5-haiku-20241022",
            max_tokens=4000,
            temperature=0.3,
            capabilities=DEFAULT_TIER_FEATURES[Tier.TEAM],
        ),
        ProviderSpec(
            name="gpt-4o-mini",
            vendor=ProviderVendor.OPENAI,
            model="gpt-4o-mini",
            max_tokens=4000,
            temperature=0.3,
            capabilities=DEFAULT_TIER_FEATURES[Tier.TEAM],
        ),
    ),
}


def mock_candidate(tier: Tier) -> ProviderSpec:
    """Offline canned-answer candidate, appended last when mock fallback is enabled."""
    return ProviderSpec(
        name="mock",
        vendor=ProviderVendor.MOCK,
        model="mock",
        max_tokens=0,
        temperature=0.0,
        capabilities=DEFAULT_TIER_FEATURES.get(tier, frozenset()),
    )


class ProviderRouter:
    """Maps a tier to its ordered fallback candidates and feature flags."""

    def __init__(
        self,
        candidates: dict[Tier, tuple[ProviderSpec, ...]] | None = None,
        features: dict[Tier, frozenset[Capability]] | None = None,
        include_mock_fallback: bool = False,
    ):
        self._candidates: dict[Tier, tuple[ProviderSpec, ...]] = dict(candidates or DEFAULT_TIER_CANDIDATES)
        self._features: dict[Tier, frozenset[Capability]] = dict(features or DEFAULT_TIER_FEATURES)

        if include_mock_fallback:
            for tier in Tier:
                specs = self._candidates.get(tier, ())
                if not any(spec.vendor == ProviderVendor.MOCK for spec in specs):
                    self._candidates[tier] = specs + (mock_candidate(tier),)

    def candidates_for(self, tier: Tier) -> tuple[ProviderSpec, ...]:
        """Ordered candidates for a tier (unknown tiers get the FREE list)."""
        return self._candidates.get(tier, self._candidates.get(Tier.FREE, ()))

    def features_for(self, tier: Tier) -> frozenset[Capability]:
        return self._features.get(tier, frozenset())

    def has_feature(self, tier: Tier, capability: Capability) -> bool:
        return capability in self.features_for(tier)

    def describe(self) -> dict:
        return {
            tier.value: {
                "candidates": [f"{spec.vendor.value}:{spec.model}" for spec in specs],
                "features": sorted(c.value for c in self.features_for(tier)),
            }
            for tier, specs in self._candidates.items()
        }
