"""
Configuration management for Adventure Engine

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["anthropic", "openai", "mock"]


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: ProviderName = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "Adventure-Engine"
    debug: bool = False
    log_level: str = "INFO"
    data_dir: Path = Field(default=Path("./data"), description="Root directory for session records and archives")

    # LLM Providers (API Keys)
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    openai_api_key: str = Field(default="", description="OpenAI API key")

    # Game master agent
    agent_provider: ProviderName = "anthropic"
    agent_model: str = ""
    agent_max_tokens: int = 4096
    temperature: float = 0.7

    # Summarizer (lightweight model used for history compaction)
    summary_provider: ProviderName = "anthropic"
    summary_model: str = Field(default="", description="Model used to summarize archived history; empty picks a light model for the provider")
    summary_max_tokens: int = 1024

    # History compaction
    compaction_char_threshold: int = Field(default=100_000, description="Visible history size that triggers compaction")
    retained_entry_count: int = Field(default=20, description="Entries kept live after compaction")

    # Turn processing
    input_timeout_seconds: float = Field(default=60.0, description="Upper bound for a single turn")
    max_input_length: int = Field(default=2000, description="Longest accepted player input")

    # Session recovery
    recovery_max_entries: int = Field(default=20, description="Recent entries replayed after a lost handle")
    recovery_max_chars: int = Field(default=12_000, description="Character budget for the recovery context")

    @field_validator("compaction_char_threshold")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if v < 1000:
            raise ValueError("compaction_char_threshold must be >= 1000")
        return v

    @field_validator("retained_entry_count")
    @classmethod
    def validate_retained(cls, v: int) -> int:
        if v < 2:
            raise ValueError("retained_entry_count must be >= 2")
        return v

    @field_validator("input_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 1:
            raise ValueError("input_timeout_seconds must be >= 1")
        return v

    @property
    def sessions_dir(self) -> Path:
        return self.data_dir / "sessions"

    @property
    def archives_dir(self) -> Path:
        return self.data_dir / "archives"

    def get_llm_config(self, provider: str | None = None, model: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider."""
        provider = provider or self.summary_provider

        api_key_map = {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "mock": "",
        }

        model_map = {
            "anthropic": "claude-sonnet-4-20250514",
            "openai": "gpt-4o",
            "mock": "mock-narrator",
        }

        return LLMConfig(
            provider=provider,  # type: ignore
            model=model or model_map.get(provider, "claude-sonnet-4-20250514"),
            api_key=api_key_map.get(provider, ""),
            max_tokens=self.agent_max_tokens,
            temperature=self.temperature,
        )

    def get_summary_config(self) -> LLMConfig:
        """Get LLM configuration for the history summarizer."""
        summary_model_map = {
            "anthropic": "claude-3-5-haiku-latest",
            "openai": "gpt-4o-mini",
        }
        model = self.summary_model or summary_model_map.get(self.summary_provider)
        config = self.get_llm_config(self.summary_provider, model)
        config.max_tokens = self.summary_max_tokens
        return config

    def get_agent_config(self) -> LLMConfig:
        """Get LLM configuration for the game master agent."""
        return self.get_llm_config(self.agent_provider, self.agent_model or None)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
