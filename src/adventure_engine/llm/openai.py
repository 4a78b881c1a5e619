"""
GPT completions via OpenAI Chat Completions (or any compatible endpoint).
"""

import openai
import structlog

from ..config import LLMConfig
from .base import BaseLLM, LLMResponse

logger = structlog.get_logger()


class OpenAILLM(BaseLLM):
    """Summarizer backend for OpenAI-compatible models."""

    provider_name = "openai"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        self.client = openai.AsyncOpenAI(api_key=config.api_key, base_url=config.base_url)

    async def _complete(self, prompt: str, system_prompt: str | None) -> LLMResponse:
        chat = [{"role": "user", "content": prompt}]
        if system_prompt:
            chat.insert(0, {"role": "system", "content": system_prompt})

        try:
            completion = await self.client.chat.completions.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=chat,  # type: ignore[arg-type]
            )
        except openai.APIError as e:
            logger.error("GPT completion failed", model=self.config.model, error=str(e))
            raise

        choice = completion.choices[0]
        usage = completion.usage
        return LLMResponse(
            content=choice.message.content or "",
            model=completion.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            stop_reason=choice.finish_reason,
        )
