"""
One-shot completion providers.

These back the history summarizer: a single prompt in, the full reply out.
Streaming game master turns go through adventure_engine.agent instead.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

import structlog

from ..config import LLMConfig

logger = structlog.get_logger()


@dataclass
class LLMMessage:
    """A prior turn replayed to a model."""

    role: Literal["user", "assistant", "system"]
    content: str


@dataclass
class LLMResponse:
    """Completed reply from a model."""

    content: str
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str | None = None


class BaseLLM(ABC):
    """Base class for completion providers, configured by an LLMConfig."""

    provider_name = ""

    def __init__(self, config: LLMConfig):
        self.config = config

    @property
    def model(self) -> str:
        return self.config.model

    async def complete(self, prompt: str, system_prompt: str | None = None) -> LLMResponse:
        """Send one user prompt and wait for the whole reply."""
        started = time.monotonic()
        response = await self._complete(prompt, system_prompt)
        logger.debug(
            "Completion finished",
            provider=self.provider_name,
            model=response.model or self.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        return response

    @abstractmethod
    async def _complete(self, prompt: str, system_prompt: str | None) -> LLMResponse:
        pass
