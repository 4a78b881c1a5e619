"""
Tests for configuration module.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from adventure_engine.config import Settings, LLMConfig


def test_settings_default_values():
    """Test that settings have sensible defaults."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)

        assert settings.app_name == "Adventure-Engine"
        assert settings.agent_provider == "anthropic"
        assert settings.summary_model == ""
        assert settings.compaction_char_threshold == 100_000
        assert settings.retained_entry_count == 20
        assert settings.input_timeout_seconds == 60.0
        assert settings.max_input_length == 2000


def test_settings_from_env():
    """Test loading settings from environment variables."""
    env = {
        "ANTHROPIC_API_KEY": "test_anthropic_key",
        "AGENT_PROVIDER": "openai",
        "AGENT_MODEL": "gpt-4.1",
        "COMPACTION_CHAR_THRESHOLD": "50000",
        "DATA_DIR": "/tmp/adventures",
    }

    with patch.dict(os.environ, env, clear=True):
        settings = Settings(_env_file=None)

        assert settings.anthropic_api_key == "test_anthropic_key"
        assert settings.agent_provider == "openai"
        assert settings.agent_model == "gpt-4.1"
        assert settings.compaction_char_threshold == 50000
        assert settings.sessions_dir == Path("/tmp/adventures/sessions")
        assert settings.archives_dir == Path("/tmp/adventures/archives")


def test_compaction_threshold_minimum():
    """Test that tiny compaction thresholds are rejected."""
    with patch.dict(os.environ, {"COMPACTION_CHAR_THRESHOLD": "999"}, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_retained_entry_minimum():
    """Test that at least two entries must be retained."""
    with patch.dict(os.environ, {"RETAINED_ENTRY_COUNT": "1"}, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_input_timeout_minimum():
    """Test that sub-second turn timeouts are rejected."""
    with patch.dict(os.environ, {"INPUT_TIMEOUT_SECONDS": "0.5"}, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_unknown_provider_rejected():
    """Test that only known providers are accepted."""
    with patch.dict(os.environ, {"AGENT_PROVIDER": "llama"}, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_get_agent_config_defaults_model():
    """Test agent config falls back to the provider's default model."""
    with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}, clear=True):
        settings = Settings(_env_file=None, agent_provider="openai")
        config = settings.get_agent_config()

        assert isinstance(config, LLMConfig)
        assert config.provider == "openai"
        assert config.model == "gpt-4o"
        assert config.api_key == "sk-test"


def test_get_summary_config():
    """Test summarizer config uses the lightweight model and token budget."""
    with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "key"}, clear=True):
        settings = Settings(_env_file=None)
        config = settings.get_summary_config()

        assert config.provider == "anthropic"
        assert config.model == "claude-3-5-haiku-latest"
        assert config.max_tokens == settings.summary_max_tokens
        assert config.api_key == "key"


def test_get_summary_config_matches_provider():
    """Test the default summary model follows the summary provider."""
    with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"}, clear=True):
        settings = Settings(_env_file=None, summary_provider="openai")
        config = settings.get_summary_config()

        assert config.provider == "openai"
        assert config.model == "gpt-4o-mini"
        assert config.api_key == "sk-test"

    with patch.dict(os.environ, {}, clear=True):
        assert Settings(_env_file=None, summary_provider="mock").get_summary_config().model == "mock-narrator"


def test_get_summary_config_explicit_model():
    """Test an explicit summary model is used as-is."""
    with patch.dict(os.environ, {"SUMMARY_PROVIDER": "openai", "SUMMARY_MODEL": "gpt-4.1-nano"}, clear=True):
        settings = Settings(_env_file=None)

        assert settings.get_summary_config().model == "gpt-4.1-nano"


def test_llm_config():
    """Test LLMConfig model."""
    config = LLMConfig(
        provider="anthropic",
        model="claude-sonnet-4-20250514",
        api_key="test_key",
        max_tokens=8192,
        temperature=0.5,
    )

    assert config.provider == "anthropic"
    assert config.model == "claude-sonnet-4-20250514"
    assert config.max_tokens == 8192
    assert config.temperature == 0.5
