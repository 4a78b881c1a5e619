"""
Agent module - streaming game master clients.

Providers:
- Anthropic Messages streaming (context replay, no handle)
- OpenAI Responses API (previous_response_id handle)
- Mock (scripted, offline)
"""

from .client import (
    AgentClient,
    AgentContext,
    AgentEvent,
    AgentRequest,
    AgentStream,
    GenerationResult,
    GenerationStatus,
    HandleAssigned,
    TextDelta,
    ToolActivity,
)
from .anthropic_client import AnthropicAgentClient
from .openai_client import OpenAIAgentClient
from .mock_client import HandleRejected, MockAgentClient, MockTurn
from .factory import create_agent_client

__all__ = [
    "AgentClient",
    "AgentContext",
    "AgentEvent",
    "AgentRequest",
    "AgentStream",
    "GenerationResult",
    "GenerationStatus",
    "HandleAssigned",
    "TextDelta",
    "ToolActivity",
    "AnthropicAgentClient",
    "OpenAIAgentClient",
    "HandleRejected",
    "MockAgentClient",
    "MockTurn",
    "create_agent_client",
]
