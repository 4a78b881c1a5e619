"""
OpenAI Responses API game master.

The Responses API stores conversations server-side; the id of the last
completed response is the handle that resumes it (previous_response_id).
"""

from typing import Any, AsyncIterator

import openai
import structlog

from ..errors import GenerationError
from .client import AgentClient, AgentEvent, AgentRequest, HandleAssigned, TextDelta, ToolActivity

logger = structlog.get_logger()

TOOL_ITEM_TYPES = {
    "function_call",
    "web_search_call",
    "file_search_call",
    "code_interpreter_call",
    "computer_call",
}


class OpenAIAgentClient(AgentClient):
    """Streams game master turns from the Responses API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        super().__init__(model, max_tokens, temperature)
        self.client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    def is_handle_invalid(self, error: BaseException) -> bool:
        """A 404/400 about the previous response means the handle is gone."""
        if isinstance(error, (openai.NotFoundError, openai.BadRequestError)):
            message = str(error).lower()
            if "previous_response" in message or "previous response" in message:
                return True
            return isinstance(error, openai.NotFoundError) and "response" in message
        if isinstance(error, GenerationError):
            return super().is_handle_invalid(error)
        return False

    def _build_input(self, request: AgentRequest) -> str | list[dict[str, Any]]:
        if request.handle:
            return request.text
        items: list[dict[str, Any]] = [
            {"role": msg.role, "content": msg.content}
            for msg in request.context.messages
            if msg.role != "system"
        ]
        items.append({"role": "user", "content": request.text})
        return items

    async def _events(self, request: AgentRequest) -> AsyncIterator[AgentEvent]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "input": self._build_input(request),
            "max_output_tokens": self.max_tokens,
            "temperature": self.temperature,
            "store": True,
            "stream": True,
        }
        if request.context.system_prompt:
            kwargs["instructions"] = request.context.system_prompt
        if request.handle:
            kwargs["previous_response_id"] = request.handle

        try:
            stream = await self.client.responses.create(**kwargs)
            async with stream:
                async for event in stream:
                    if event.type == "response.output_text.delta":
                        yield TextDelta(text=event.delta)
                    elif event.type == "response.output_item.added":
                        item_type = getattr(event.item, "type", "")
                        if item_type in TOOL_ITEM_TYPES:
                            yield ToolActivity(name=getattr(event.item, "name", None) or item_type)
                    elif event.type == "response.completed":
                        yield HandleAssigned(handle=event.response.id)
                    elif event.type == "response.failed":
                        error = event.response.error
                        raise GenerationError(error.message if error else "Response failed")
                    elif event.type == "error":
                        raise GenerationError(event.message)
        except openai.APIError as e:
            logger.error("OpenAI streaming error", error=str(e))
            raise
