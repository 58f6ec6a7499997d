"""
Configuration management using Pydantic Settings.
Loads from environment variables with sensible defaults for development.
"""

from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    perplexity_api_key: str = ""

    # Provider selection
    default_provider: Literal["openai", "anthropic", "perplexity"] = "openai"

    # Model settings
    openai_model: str = "gpt-4o"
    anthropic_model: str = "claude-sonnet-4-20250514"
    perplexity_model: str = "sonar"
    perplexity_base_url: str = "https://api.perplexity.ai"
    max_response_tokens: int = 4000
    openai_temperature: float = 0.7
    perplexity_temperature: float = 0.2

    # Network behaviour of provider calls
    request_timeout_seconds: float = 120.0
    provider_max_retries: int = 3  # Attempts on rate-limit responses

    # Chunking settings (token estimates, not exact vendor counts)
    single_call_budget_tokens: int = 2000  # Above this, the document is split
    chunk_max_tokens: int = 1500  # Per-chunk budget, leaves room for prompt + output
    token_estimator: Literal["chars", "tiktoken"] = "chars"

    # Mandatory pause between sequential calls to the same provider
    openai_cooldown_seconds: float = 0.0
    anthropic_cooldown_seconds: float = 0.0
    perplexity_cooldown_seconds: float = 15.0

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    @property
    def provider_cooldowns(self) -> dict[str, float]:
        """Cooldown in seconds between chunk calls, keyed by provider name."""
        return {
            "openai": self.openai_cooldown_seconds,
            "anthropic": self.anthropic_cooldown_seconds,
            "perplexity": self.perplexity_cooldown_seconds,
        }

    @property
    def configured_providers(self) -> list[str]:
        """Providers that have an API key set."""
        keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "perplexity": self.perplexity_api_key,
        }
        return [name for name, key in keys.items() if key]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
