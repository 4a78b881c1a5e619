"""
Deterministic game master for tests and offline play.

Turns are scripted with MockTurn; when the script runs out, a generic
narration echoing the player's action is streamed word by word. Handles
issued by one client instance are only valid for that instance, so a
reopened session exercises the recovery path just like a real expired
upstream conversation.
"""

import asyncio
import re
from collections import deque
from dataclasses import dataclass, field
from typing import AsyncIterator
from uuid import uuid4

import structlog

from .client import AgentClient, AgentEvent, AgentRequest, HandleAssigned, TextDelta, ToolActivity

logger = structlog.get_logger()


class HandleRejected(Exception):
    """Raised by the mock upstream for an unknown handle."""


@dataclass
class MockTurn:
    """One scripted agent turn."""

    text: str | None = None
    chunks: list[str] | None = None
    delay: float = 0.0
    stall_after: int | None = None
    error: BaseException | None = None
    reject_handle: bool = False
    tools: list[str] = field(default_factory=list)


def default_narration(text: str) -> str:
    return (
        f'The Game Master considers your action: "{text}".\n\n'
        "The world shifts in response, and new possibilities open before you. "
        "What do you do next?"
    )


def split_words(text: str) -> list[str]:
    return re.findall(r"\s*\S+\s*", text) or [text]


class MockAgentClient(AgentClient):
    """Scripted streaming agent that never touches the network."""

    def __init__(
        self,
        model: str = "mock-narrator",
        turns: list[MockTurn] | None = None,
        delay: float = 0.0,
        **kwargs,
    ):
        super().__init__(model)
        self.turns: deque[MockTurn] = deque(turns or [])
        self.delay = delay
        self.requests: list[AgentRequest] = []
        self._valid_handles: set[str] = set()

    @property
    def provider_name(self) -> str:
        return "mock"

    def script(self, *turns: MockTurn) -> None:
        """Queue turns to be played back in order."""
        self.turns.extend(turns)

    def invalidate_handles(self) -> None:
        """Forget every issued handle, as if the upstream expired them."""
        self._valid_handles.clear()

    def is_handle_invalid(self, error: BaseException) -> bool:
        return isinstance(error, HandleRejected)

    async def _stall(self) -> None:
        await asyncio.Event().wait()

    async def _events(self, request: AgentRequest) -> AsyncIterator[AgentEvent]:
        self.requests.append(request)
        turn = self.turns.popleft() if self.turns else MockTurn()

        if turn.reject_handle or (request.handle and request.handle not in self._valid_handles):
            raise HandleRejected(f"Session not found: {request.handle}")

        for tool in turn.tools:
            yield ToolActivity(name=tool)

        if turn.chunks is not None:
            chunks = turn.chunks
        else:
            chunks = split_words(turn.text if turn.text is not None else default_narration(request.text))

        delay = turn.delay or self.delay
        for index, chunk in enumerate(chunks):
            if turn.stall_after is not None and index >= turn.stall_after:
                await self._stall()
            if delay:
                await asyncio.sleep(delay)
            yield TextDelta(text=chunk)

        if turn.stall_after is not None and turn.stall_after >= len(chunks):
            await self._stall()

        if turn.error is not None:
            raise turn.error

        handle = f"mock-{uuid4().hex[:12]}"
        self._valid_handles.add(handle)
        logger.debug("Mock turn complete", handle=handle, chunks=len(chunks))
        yield HandleAssigned(handle=handle)
