"""Application configuration using pydantic-settings."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Personalization Engine"
    environment: str = "development"
    log_level: str = "info"

    # Storage
    storage_backend: Literal["mongodb", "memory"] = "mongodb"

    # MongoDB
    mongodb_uri: str = "mongodb://mongodb:27017"
    mongodb_database: str = "personalization"
    mongodb_timeout_ms: int = 5_000
    conversations_collection: str = "agent_conversations"

    # Cache
    preference_cache_ttl_seconds: float = 300.0

    # Confidence scoring
    reinforcement_rate: float = 0.1
    decay_factor: float = 0.5
    decay_floor: float = 0.05
    min_apply_confidence: float = 0.3

    # Pattern analysis
    pattern_window_size: int = 100
    pattern_lookback_days: int = 30
    completion_rate_threshold: float = 0.3
    urgency_rate_threshold: float = 0.1
    escalation_rate_threshold: float = 0.15
    brief_length_threshold: int = 100
    detailed_length_threshold: int = 300

    # CORS
    frontend_url: str = "http://localhost:3000"

    @property
    def uses_mongodb(self) -> bool:
        return self.storage_backend == "mongodb"


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
