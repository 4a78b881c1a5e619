"""
Anthropic Messages streaming game master.

The Messages API keeps no server-side conversation, so there is never a
handle to resume: every call replays the context it is given.
"""

from typing import Any, AsyncIterator

import anthropic
import structlog

from .client import AgentClient, AgentEvent, AgentRequest, TextDelta, ToolActivity

logger = structlog.get_logger()


class AnthropicAgentClient(AgentClient):
    """Streams game master turns from Claude."""

    supports_resume = False

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        super().__init__(model, max_tokens, temperature)
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def is_handle_invalid(self, error: BaseException) -> bool:
        return False

    def _build_messages(self, request: AgentRequest) -> list[dict[str, Any]]:
        messages = [
            {"role": msg.role, "content": msg.content}
            for msg in request.context.messages
            if msg.role != "system"
        ]
        messages.append({"role": "user", "content": request.text})
        return messages

    async def _events(self, request: AgentRequest) -> AsyncIterator[AgentEvent]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": self._build_messages(request),
        }
        if request.context.system_prompt:
            kwargs["system"] = request.context.system_prompt

        seen_text = False
        try:
            async with self.client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "content_block_start":
                        block = event.content_block
                        if block.type == "tool_use":
                            yield ToolActivity(name=block.name)
                        elif block.type == "text" and seen_text:
                            # Separate consecutive text blocks into paragraphs
                            yield TextDelta(text="\n\n")
                    elif event.type == "text":
                        seen_text = True
                        yield TextDelta(text=event.text)
        except anthropic.APIError as e:
            logger.error("Anthropic streaming error", error=str(e))
            raise
