"""
Agent client - one streaming game master call per invocation.

A provider turns a request into a stream of typed events. AgentStream runs
that stream in its own task and hands text deltas to the caller, racing
every read against the cancel token so an abort is honored even while the
upstream is silent. When iteration ends, AgentStream.result carries the
terminal status. Clients never retry; retry and recovery policy belongs to
the session orchestrator.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Callable, Union

import structlog

from ..llm import LLMMessage

logger = structlog.get_logger()

HANDLE_INVALID_MARKERS = (
    "session not found",
    "invalid session",
    "session expired",
    "conversation not found",
    "resume failed",
    "no conversation",
    "previous response",
    "previous_response",
)


class GenerationStatus(str, Enum):
    """Terminal status of a generation."""
    END = "end"
    ABORTED = "aborted"
    HANDLE_INVALID = "handle_invalid"
    ERROR = "error"


@dataclass
class TextDelta:
    """A chunk of response text."""

    text: str


@dataclass
class ToolActivity:
    """The agent started using a tool."""

    name: str


@dataclass
class HandleAssigned:
    """The upstream issued a handle that resumes this conversation."""

    handle: str


AgentEvent = Union[TextDelta, ToolActivity, HandleAssigned]
StreamEvent = Union[TextDelta, ToolActivity]


@dataclass
class AgentContext:
    """Everything the agent needs besides the player's text."""

    system_prompt: str
    messages: list[LLMMessage] = field(default_factory=list)


@dataclass
class AgentRequest:
    """A single generation request."""

    handle: str | None
    context: AgentContext
    text: str


@dataclass
class GenerationResult:
    """How a generation ended."""

    status: GenerationStatus
    text: str = ""
    handle: str | None = None
    error: BaseException | None = None
    tools_used: list[str] = field(default_factory=list)


@dataclass
class _Failure:
    error: BaseException


_EXHAUSTED = object()
_CANCELLED = object()


class AgentStream:
    """Lazy, finite, single-use stream of agent output.

    Iterating yields TextDelta and ToolActivity events. Nothing is sent
    upstream until iteration starts, and a second iteration raises
    RuntimeError.
    """

    def __init__(
        self,
        events: AsyncIterator[AgentEvent],
        cancel: asyncio.Event,
        classify: Callable[[BaseException], GenerationStatus],
    ):
        self._events = events
        self._cancel = cancel
        self._classify = classify
        self._started = False
        self.result: GenerationResult | None = None

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        if self._started:
            raise RuntimeError("AgentStream cannot be restarted")
        self._started = True
        return self._iterate()

    async def _produce(self, queue: asyncio.Queue) -> None:
        try:
            async for event in self._events:
                queue.put_nowait(event)
        except Exception as e:
            queue.put_nowait(_Failure(e))
        else:
            queue.put_nowait(_EXHAUSTED)

    async def _next_item(self, queue: asyncio.Queue) -> object:
        if self._cancel.is_set():
            return _CANCELLED
        if not queue.empty():
            return queue.get_nowait()

        getter = asyncio.ensure_future(queue.get())
        waiter = asyncio.ensure_future(self._cancel.wait())
        try:
            done, _ = await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not getter.done():
                getter.cancel()

        if getter in done and not getter.cancelled():
            return getter.result()
        return _CANCELLED

    async def _iterate(self) -> AsyncIterator[StreamEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        producer = asyncio.create_task(self._produce(queue))

        text_parts: list[str] = []
        tools_used: list[str] = []
        handle: str | None = None
        status = GenerationStatus.ABORTED
        error: BaseException | None = None

        try:
            while True:
                item = await self._next_item(queue)
                if item is _CANCELLED:
                    status = GenerationStatus.ABORTED
                    break
                if item is _EXHAUSTED:
                    status = GenerationStatus.END
                    break
                if isinstance(item, _Failure):
                    error = item.error
                    status = GenerationStatus.ABORTED if self._cancel.is_set() else self._classify(error)
                    break
                if isinstance(item, HandleAssigned):
                    handle = item.handle
                    continue
                if isinstance(item, TextDelta):
                    if not item.text:
                        continue
                    text_parts.append(item.text)
                elif isinstance(item, ToolActivity):
                    tools_used.append(item.name)
                yield item
        finally:
            if not producer.done():
                producer.cancel()
            # Wait for the upstream call to unwind before reporting a result.
            await asyncio.gather(producer, return_exceptions=True)
            self.result = GenerationResult(
                status=status,
                text="".join(text_parts),
                handle=handle,
                error=error,
                tools_used=tools_used,
            )
            logger.debug("Agent stream finished", status=status.value, chars=len(self.result.text))


class AgentClient(ABC):
    """Base class for streaming game master providers."""

    supports_resume: bool = True

    def __init__(self, model: str, max_tokens: int = 4096, temperature: float = 0.7):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def generate(
        self,
        handle: str | None,
        context: AgentContext,
        text: str,
        cancel: asyncio.Event,
    ) -> AgentStream:
        """Start (lazily) one streaming generation."""
        request = AgentRequest(handle=handle, context=context, text=text)
        return AgentStream(self._events(request), cancel, self.classify)

    def classify(self, error: BaseException) -> GenerationStatus:
        """Terminal status for a failed generation."""
        if self.is_handle_invalid(error):
            return GenerationStatus.HANDLE_INVALID
        return GenerationStatus.ERROR

    def is_handle_invalid(self, error: BaseException) -> bool:
        """Whether an error means the resumable handle was rejected."""
        message = str(error).lower()
        return any(marker in message for marker in HANDLE_INVALID_MARKERS)

    @abstractmethod
    def _events(self, request: AgentRequest) -> AsyncIterator[AgentEvent]:
        """Issue the upstream call and translate its stream into events."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        pass
