"""Configuration settings for the chat service."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:3001"

    # LLM Providers
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None  # Any OpenAI-compatible endpoint
    aws_region: str = "us-east-1"  # Credentials come from the default AWS provider chain
    default_model_provider: str = "bedrock_converse"  # init_chat_model provider prefix

    # Model sequence (comma-separated descriptor ids, answered in this order)
    model_sequence: str = "deepseek,nova"

    # DeepSeek
    deepseek_model_id: str = "us.deepseek.r1-v1:0"
    deepseek_temperature: float = 0.7
    deepseek_max_tokens: int = 1000
    deepseek_provider: Optional[str] = None

    # Nova
    nova_model_id: str = "us.amazon.nova-lite-v1:0"
    nova_temperature: float = 0.7
    nova_max_tokens: int = 1000
    nova_provider: Optional[str] = None

    # Backend concurrency (shared by all sessions in the process)
    llm_max_concurrent: int = Field(default=5, ge=1)
    llm_requests_per_second: float = Field(default=3.0, gt=0)

    # Sessions
    session_ttl_minutes: int = 1440
    session_sweep_interval_seconds: float = 300.0

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def model_sequence_list(self) -> list[str]:
        """Parse the model sequence from comma-separated string."""
        return [model_id.strip() for model_id in self.model_sequence.split(",") if model_id.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
