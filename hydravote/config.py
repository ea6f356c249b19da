"""Configuration management for HydraVote."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Provider API Keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    xai_api_key: Optional[str] = None
    perplexity_api_key: Optional[str] = None
    mistral_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    deepseek_api_key: Optional[str] = None

    # Database Configuration
    database_path: str = "data/hydravote.db"

    # Logging Configuration
    log_level: str = "INFO"
    log_file: str = "hydravote.log"

    # Provider Model Configuration
    default_model_openai: str = "gpt-4o"
    default_model_claude: str = "claude-3-5-sonnet-20241022"
    default_model_gemini: str = "gemini-1.5-pro"
    default_model_grok: str = "grok-2-latest"
    default_model_perplexity: str = "sonar-pro"
    default_model_mistral: str = "mistral-large-latest"
    default_model_groq: str = "llama-3.3-70b-versatile"
    default_model_deepseek: str = "deepseek-chat"
    provider_timeout_seconds: float = 30.0
    provider_max_retries: int = 2

    # Tiebreaker Configuration
    tiebreaker_enabled: bool = True
    tiebreaker_provider: str = "deepseek"

    # Ledger Configuration
    ledger_queue_size: int = 1000

    # Calibration Configuration
    calibration_window_weeks: int = 4
    calibration_min_samples: int = 5
    weight_max_boost: float = 1.5
    weight_min: float = 0.3
    degradation_threshold: float = 0.20
    buy_threshold_price: float = 2.0
    weights_cache_seconds: int = 3600

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings singleton instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
