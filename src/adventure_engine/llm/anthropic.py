"""
Claude completions via the Anthropic Messages API.
"""

from typing import Any

import anthropic
import structlog

from ..config import LLMConfig
from .base import BaseLLM, LLMResponse

logger = structlog.get_logger()


class AnthropicLLM(BaseLLM):
    """Summarizer backend for Claude models."""

    provider_name = "anthropic"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        self.client = anthropic.AsyncAnthropic(api_key=config.api_key, base_url=config.base_url)

    async def _complete(self, prompt: str, system_prompt: str | None) -> LLMResponse:
        request: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt

        try:
            message = await self.client.messages.create(**request)
        except anthropic.APIError as e:
            logger.error("Claude completion failed", model=self.config.model, error=str(e))
            raise

        text_blocks = [block.text for block in message.content if block.type == "text"]
        return LLMResponse(
            content="\n\n".join(text_blocks),
            model=message.model,
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            stop_reason=message.stop_reason,
        )
