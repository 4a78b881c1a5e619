"""
Session module - turn orchestration for adventures.
"""

from .events import (
    ErrorEvent,
    EventSink,
    ResponseDelta,
    ResponseEnd,
    ResponseStart,
    SessionEvent,
    StatusEvent,
    StatusKind,
    ToolStatus,
)
from .orchestrator import QueuedInput, SessionOrchestrator, SessionState, SubmitResult
from .manager import SessionManager

__all__ = [
    "ErrorEvent",
    "EventSink",
    "ResponseDelta",
    "ResponseEnd",
    "ResponseStart",
    "SessionEvent",
    "StatusEvent",
    "StatusKind",
    "ToolStatus",
    "QueuedInput",
    "SessionOrchestrator",
    "SessionState",
    "SubmitResult",
    "SessionManager",
]
