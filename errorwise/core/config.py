from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Provider API keys (empty = provider disabled)
    anthropic_api_key: str = ""
    gemini_api_key: str = ""
    openai_api_key: str = ""

    # Append the offline mock provider as the last candidate of every tier
    enable_mock_fallback: bool = False

    # Input bounds
    max_input_chars: int = 8000
    min_input_chars: int = 10
    max_history_entries: int = 5

    # Per-tier quotas (concurrent in-flight / requests per rolling minute)
    free_max_concurrent: int = 1
    free_requests_per_minute: int = 5
    pro_max_concurrent: int = 3
    pro_requests_per_minute: int = 20
    team_max_concurrent: int = 10
    team_requests_per_minute: int = 100

    # Response cache
    cache_ttl_seconds: float = 1800.0  # 30 minutes
    cache_sweep_interval_seconds: float = 600.0  # 10 minutes
    cache_max_entries: int = 1000

    # Provider calls
    provider_timeout_seconds: float = 30.0
    provider_max_attempts: int = 3
    provider_base_retry_delay: float = 1.0
    provider_max_retry_delay: float = 30.0

    # Response quality gate
    min_response_chars: int = 50

    # URL context (tiers with url_scraping)
    url_fetch_timeout_seconds: float = 10.0
    url_max_per_request: int = 2
    url_max_content_chars: int = 3000

    # Batch analysis (team tier)
    batch_concurrency: int = 3

    # Logging (Orchestrator.start installs the errorwise handler when configure_logging is set)
    configure_logging: bool = False
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    @property
    def configured_providers(self) -> list[str]:
        """Vendors that have an API key set."""
        keys = {
            "anthropic": self.anthropic_api_key,
            "gemini": self.gemini_api_key,
            "openai": self.openai_api_key,
        }
        return [name for name, key in keys.items() if key]


settings = Settings()


def validate_settings(current: Settings | None = None) -> list[str]:
    """Return a list of configuration problems (empty when the config is usable)."""
    current = current or settings
    problems: list[str] = []

    if not current.configured_providers and not current.enable_mock_fallback:
        problems.append("No provider API key set and mock fallback disabled; every analysis will fail")

    if current.min_input_chars >= current.max_input_chars:
        problems.append("MIN_INPUT_CHARS must be smaller than MAX_INPUT_CHARS")

    for tier in ("free", "pro", "team"):
        if getattr(current, f"{tier}_max_concurrent") < 1:
            problems.append(f"{tier.upper()}_MAX_CONCURRENT must be at least 1")
        if getattr(current, f"{tier}_requests_per_minute") < 1:
            problems.append(f"{tier.upper()}_REQUESTS_PER_MINUTE must be at least 1")

    if current.provider_max_attempts < 1:
        problems.append("PROVIDER_MAX_ATTEMPTS must be at least 1")

    return problems
