"""
Events emitted by a session to its transport.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Union


class StatusKind:
    RECOVERY_STARTED = "recovery-started"
    RECOVERY_COMPLETE = "recovery-complete"
    COMPACTION_STARTED = "compaction-started"
    COMPACTION_COMPLETE = "compaction-complete"
    INPUTS_DISCARDED = "inputs-discarded"


@dataclass
class ResponseStart:
    message_id: str
    type: str = "response-start"


@dataclass
class ResponseDelta:
    message_id: str
    text: str
    type: str = "response-delta"


@dataclass
class ResponseEnd:
    message_id: str
    truncated: bool = False
    type: str = "response-end"


@dataclass
class ToolStatus:
    state: str
    description: str = ""
    type: str = "tool-status"


@dataclass
class StatusEvent:
    kind: str
    detail: str = ""
    type: str = "status"


@dataclass
class ErrorEvent:
    code: str
    message: str
    retryable: bool
    input_text: str | None = None
    type: str = "error"


SessionEvent = Union[ResponseStart, ResponseDelta, ResponseEnd, ToolStatus, StatusEvent, ErrorEvent]
EventSink = Callable[[SessionEvent], Awaitable[None]]


async def discard_events(event: SessionEvent) -> None:
    """Sink for sessions nobody is listening to."""
    return None
