"""
LLM module - one-shot completions for history summarization.

Providers:
- Anthropic Claude
- OpenAI GPT (and compatible endpoints)
- Mock (deterministic, offline)
"""

from .base import BaseLLM, LLMMessage, LLMResponse
from .anthropic import AnthropicLLM
from .openai import OpenAILLM
from .mock import MockLLM
from .factory import PROVIDERS, create_llm

__all__ = [
    "BaseLLM",
    "LLMMessage",
    "LLMResponse",
    "AnthropicLLM",
    "OpenAILLM",
    "MockLLM",
    "PROVIDERS",
    "create_llm",
]
