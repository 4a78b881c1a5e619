"""
Completion provider registry.
"""

from ..config import LLMConfig, Settings, get_settings
from .base import BaseLLM
from .anthropic import AnthropicLLM
from .mock import MockLLM
from .openai import OpenAILLM

PROVIDERS: dict[str, type[BaseLLM]] = {
    "anthropic": AnthropicLLM,
    "openai": OpenAILLM,
    "mock": MockLLM,
}


def create_llm(config: LLMConfig | None = None, settings: Settings | None = None) -> BaseLLM:
    """Build the completion provider named by config.

    Without an explicit config the summarizer settings are used.
    """
    if config is None:
        config = (settings or get_settings()).get_summary_config()

    provider_cls = PROVIDERS.get(config.provider)
    if provider_cls is None:
        raise ValueError(f"Unknown LLM provider: {config.provider}")
    return provider_cls(config)
