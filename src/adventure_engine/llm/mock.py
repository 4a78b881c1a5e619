"""
Deterministic completion provider for tests and offline play.
"""

from ..config import LLMConfig
from .base import BaseLLM, LLMResponse


class MockLLM(BaseLLM):
    """Returns canned recaps without touching the network."""

    provider_name = "mock"

    def __init__(self, config: LLMConfig | None = None, reply: str | None = None):
        super().__init__(config or LLMConfig(provider="mock", model="mock-narrator"))
        self.reply = reply
        self.calls: list[tuple[str, str | None]] = []

    async def _complete(self, prompt: str, system_prompt: str | None) -> LLMResponse:
        self.calls.append((prompt, system_prompt))

        content = self.reply
        if content is None:
            content = (
                "Previously in your adventure...\n\n"
                f"Over the course of {prompt.count('] Player:')} actions and "
                f"{prompt.count('] GM:')} Game Master responses, your story unfolded.\n\n"
                "The adventure continues from where you left off."
            )

        return LLMResponse(content=content, model=self.model, stop_reason="end_turn")
