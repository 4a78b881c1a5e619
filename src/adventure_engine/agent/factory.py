"""
Agent client factory.
"""

from ..config import LLMConfig, Settings
from .client import AgentClient
from .anthropic_client import AnthropicAgentClient
from .mock_client import MockAgentClient
from .openai_client import OpenAIAgentClient


def create_agent_client(config: LLMConfig | None = None, settings: Settings | None = None) -> AgentClient:
    """Create the game master client based on configuration."""
    if config is None:
        if settings is None:
            from ..config import get_settings
            settings = get_settings()
        config = settings.get_agent_config()

    provider = config.provider

    if provider == "anthropic":
        return AnthropicAgentClient(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )
    elif provider == "openai":
        return OpenAIAgentClient(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )
    elif provider == "mock":
        return MockAgentClient(model=config.model)
    else:
        raise ValueError(f"Unknown agent provider: {provider}")
