"""
Session Orchestrator - single-writer turn processing for one adventure.

The orchestrator owns a session's record and history ledger. It:
1. Queues player input and processes it strictly in arrival order, one
   agent generation at a time
2. Streams the game master's response to the event sink
3. Commits each input/response pair with a single atomic state write
4. Honors player aborts and per-turn timeouts without corrupting history
5. Rebuilds context and retries once when the upstream handle is rejected
6. Compacts history in the idle gap between turns, never mid-generation
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

import structlog

from ..agent import AgentClient, GenerationStatus, TextDelta, ToolActivity
from ..config import Settings, get_settings
from ..errors import (
    AdventureEngineError,
    CompactionError,
    GenerationError,
    InputRejected,
    PersistenceError,
    ProcessingTimeoutError,
    RecoveryFailedError,
    SessionNotFoundError,
    log_error,
    map_error,
)
from ..history import HistoryCompactor, HistoryLedger, build_recovery_context, build_recovery_prompt
from ..models import NarrativeEntry, SessionRecord, utc_now
from ..storage import AtomicStateStore
from ..validation import sanitize_player_input
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
    discard_events,
)
from .prompts import build_agent_context, describe_tool, extract_scene_summary

logger = structlog.get_logger()


class SessionState(str, Enum):
    """Orchestrator states."""
    IDLE = "idle"
    PROCESSING = "processing"
    RECOVERING = "recovering"
    COMPACTING = "compacting"


@dataclass
class QueuedInput:
    """Player input waiting for its turn. Never persisted."""

    text: str
    submitted_at: datetime = field(default_factory=utc_now)


@dataclass
class SubmitResult:
    """Outcome of submit_input."""

    accepted: bool
    queue_position: int = 0
    error: InputRejected | None = None
    flags: list[str] = field(default_factory=list)


class SessionOrchestrator:
    """Drives one session's turns, recovery and compaction."""

    def __init__(
        self,
        record: SessionRecord,
        store: AtomicStateStore,
        agent: AgentClient,
        compactor: HistoryCompactor,
        sink: EventSink | None = None,
        settings: Settings | None = None,
        *,
        input_timeout: float | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.agent = agent
        self.compactor = compactor
        self.sink: EventSink = sink or discard_events

        self.input_timeout = input_timeout or self.settings.input_timeout_seconds
        self.max_input_length = self.settings.max_input_length
        self.recovery_max_entries = self.settings.recovery_max_entries
        self.recovery_max_chars = self.settings.recovery_max_chars

        self._record = record
        self._ledger = HistoryLedger(record.entries)
        self._queue: deque[QueuedInput] = deque()
        self._state = SessionState.IDLE
        self._worker: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

        self._cancel: asyncio.Event | None = None
        self._turn_done: asyncio.Event | None = None
        self._abort_requested = False
        self._timed_out = False

        self.last_failed_input: str | None = None
        self.log = logger.bind(session_id=record.id)

    @classmethod
    async def create(
        cls,
        store: AtomicStateStore,
        agent: AgentClient,
        compactor: HistoryCompactor,
        sink: EventSink | None = None,
        settings: Settings | None = None,
        session_id: str | None = None,
        **kwargs: Any,
    ) -> "SessionOrchestrator":
        """Start a brand new session and persist its empty record."""
        record = SessionRecord(id=session_id) if session_id else SessionRecord()
        await store.put(record.id, record)
        logger.info("Created new session", session_id=record.id)
        return cls(record, store, agent, compactor, sink, settings, **kwargs)

    @classmethod
    async def load(
        cls,
        session_id: str,
        store: AtomicStateStore,
        agent: AgentClient,
        compactor: HistoryCompactor,
        sink: EventSink | None = None,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> "SessionOrchestrator":
        """Open a persisted session.

        Archives left behind by a compaction that never committed are
        removed, and an overdue compaction is scheduled for the idle gap.
        """
        record = await store.get(session_id)
        if record is None:
            raise SessionNotFoundError(f"No session {session_id}")

        orphans = await compactor.archives.reconcile(session_id, record.archives)
        orchestrator = cls(record, store, agent, compactor, sink, settings, **kwargs)
        orchestrator.log.info(
            "Session loaded",
            entries=len(record.entries),
            archives=len(record.archives),
            orphans_removed=len(orphans),
            pending_compaction=record.pending_compaction,
        )

        if record.pending_compaction or compactor.should_compact(orchestrator._ledger):
            orchestrator._start_worker(compact_first=True)
        return orchestrator

    @property
    def session_id(self) -> str:
        return self._record.id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def history(self) -> list[NarrativeEntry]:
        return self._ledger.entries

    @property
    def record(self) -> SessionRecord:
        """The last committed session record."""
        return self._record

    @property
    def is_idle(self) -> bool:
        return self._idle.is_set()

    async def wait_idle(self) -> None:
        """Wait until the queue is drained and no work is in flight."""
        await self._idle.wait()

    async def submit_input(self, text: str) -> SubmitResult:
        """Queue player input; starts processing immediately when idle."""
        result = sanitize_player_input(text, self.max_input_length)

        if result.flags:
            self.log.warning("Suspicious input detected", flags=result.flags, blocked=result.blocked)

        if not result.blocked and not text.strip():
            result.blocked = True
            result.block_reason = "Input cannot be empty"

        if result.blocked:
            error = InputRejected(result.block_reason or "Input rejected", result.flags)
            await self._emit(ErrorEvent(
                code=error.code,
                message=error.reason,
                retryable=error.retryable,
                input_text=text,
            ))
            return SubmitResult(accepted=False, error=error, flags=result.flags)

        self._queue.append(QueuedInput(text=result.sanitized))
        position = len(self._queue)
        if self._state is SessionState.IDLE:
            self._start_worker()

        self.log.debug("Input queued", position=position, state=self._state.value)
        return SubmitResult(accepted=True, queue_position=position, flags=result.flags)

    async def abort(self) -> bool:
        """Cancel the in-flight generation and drop queued input.

        Returns False when there is nothing to abort.
        """
        if self._state not in (SessionState.PROCESSING, SessionState.RECOVERING):
            return False
        if self._cancel is None or self._turn_done is None:
            return False

        self._abort_requested = True
        discarded = len(self._queue)
        self._queue.clear()

        turn_done = self._turn_done
        self._cancel.set()
        self.log.info("Abort requested", discarded_inputs=discarded)
        await turn_done.wait()

        if discarded:
            await self._emit(StatusEvent(kind=StatusKind.INPUTS_DISCARDED, detail=str(discarded)))
        return True

    async def compact_if_due(self) -> bool:
        """Compact history if it has outgrown the threshold.

        Only runs while idle; returns True when a compaction was committed.
        """
        if self._state is not SessionState.IDLE:
            return False
        if not (self._record.pending_compaction or self.compactor.should_compact(self._ledger)):
            return False
        return await self._compact()

    async def compact_now(self) -> bool:
        """Compact regardless of size, as long as the session is idle."""
        if self._state is not SessionState.IDLE:
            return False
        if len(self._ledger) <= self.compactor.config.retain_count:
            self.log.info("Nothing to compact", entries=len(self._ledger))
            return False
        return await self._compact()

    def _start_worker(self, compact_first: bool = False) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._state = SessionState.PROCESSING
        self._idle.clear()
        first = None if compact_first or not self._queue else self._begin_turn()
        self._worker = asyncio.create_task(
            self._run(first, compact_first),
            name=f"session-{self.session_id}",
        )

    def _begin_turn(self) -> QueuedInput:
        """Claim the next queued input and arm its cancel and done events.

        Runs synchronously so abort() can target a turn whose worker has not
        been scheduled yet.
        """
        self._state = SessionState.PROCESSING
        self._abort_requested = False
        self._timed_out = False
        self._cancel = asyncio.Event()
        self._turn_done = asyncio.Event()
        return self._queue.popleft()

    def _worker_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def _run(self, first: QueuedInput | None = None, compact_first: bool = False) -> None:
        item = first
        try:
            if compact_first:
                self._state = SessionState.IDLE
                await self.compact_if_due()

            while item is not None or self._queue:
                if item is None:
                    item = self._begin_turn()
                try:
                    await self._process_input(item)
                except Exception as e:
                    self._state = SessionState.PROCESSING
                    self.log.exception("Unexpected error processing input", error=str(e))
                    details = map_error(e)
                    await self._emit(ErrorEvent(
                        code=details.code,
                        message=details.user_message,
                        retryable=details.retryable,
                        input_text=item.text,
                    ))
                    self._state = SessionState.IDLE
                item = None
                await self.compact_if_due()
        finally:
            self._cancel = None
            if self._turn_done is not None:
                self._turn_done.set()
            self._state = SessionState.IDLE
            self._idle.set()

    async def _process_input(self, item: QueuedInput) -> None:
        cancel = self._cancel
        if cancel is None or self._turn_done is None:
            raise RuntimeError("Turn started without being claimed")
        timer = asyncio.get_running_loop().call_later(self.input_timeout, self._expire, cancel)

        input_entry = NarrativeEntry.player_input(item.text)
        message_id = str(uuid4())
        log = self.log.bind(message_id=message_id)
        log.info("Processing input", chars=len(item.text), queued=len(self._queue))

        try:
            await self._emit(ResponseStart(message_id=message_id))
            await self._run_turn(item, input_entry, message_id, cancel, log)
        except AdventureEngineError as e:
            self.last_failed_input = item.text
            details = map_error(e)
            log_error("Turn failed", details, session_id=self.session_id, message_id=message_id)
            await self._emit(ErrorEvent(
                code=details.code,
                message=details.user_message,
                retryable=details.retryable,
                input_text=item.text,
            ))
        finally:
            timer.cancel()
            self._cancel = None
            self._state = SessionState.IDLE
            self._turn_done.set()

    def _expire(self, cancel: asyncio.Event) -> None:
        self._timed_out = True
        cancel.set()

    async def _run_turn(
        self,
        item: QueuedInput,
        input_entry: NarrativeEntry,
        message_id: str,
        cancel: asyncio.Event,
        log: Any,
    ) -> None:
        handle = self._record.handle
        prompt = item.text
        recovering = False

        while True:
            context = build_agent_context(
                self._record.scene_summary,
                self._record.summary,
                self._ledger.entries,
                replay_history=handle is None and not recovering,
            )
            stream = self.agent.generate(handle, context, prompt, cancel)
            async for event in stream:
                if isinstance(event, TextDelta):
                    await self._emit(ResponseDelta(message_id=message_id, text=event.text))
                elif isinstance(event, ToolActivity):
                    log.debug("Tool activity", tool=event.name)
                    await self._emit(ToolStatus(state="active", description=describe_tool(event.name)))

            result = stream.result
            if result.status is not GenerationStatus.HANDLE_INVALID:
                break
            if recovering:
                raise RecoveryFailedError("Upstream rejected the session again after recovery") from result.error

            recovering = True
            prompt = await self._recover_session(item.text, result.error)
            handle = None
            self._state = SessionState.PROCESSING

        if result.status is GenerationStatus.END:
            response = NarrativeEntry.response(result.text, message_id)
            await self._commit_turn(
                input_entry,
                response,
                handle=result.handle or handle,
                scene_summary=extract_scene_summary(result.text) or self._record.scene_summary,
            )
            self.last_failed_input = None
            await self._emit(ResponseEnd(message_id=message_id))
            await self._emit(ToolStatus(state="idle", description="Ready"))
            if recovering:
                await self._emit(StatusEvent(kind=StatusKind.RECOVERY_COMPLETE))
            log.info("Turn complete", response_chars=len(result.text), recovered=recovering)
            return

        if result.status is GenerationStatus.ABORTED:
            response = NarrativeEntry.response(result.text, message_id, truncated=True)
            await self._commit_turn(input_entry, response, handle=handle)
            await self._emit(ResponseEnd(message_id=message_id, truncated=True))
            if self._timed_out and not self._abort_requested:
                raise ProcessingTimeoutError(self.input_timeout)
            log.info("Turn aborted", partial_chars=len(result.text))
            return

        raise GenerationError(cause=result.error) from result.error

    async def _recover_session(self, text: str, error: BaseException | None) -> str:
        """Drop the rejected handle and wrap the input with rebuilt context."""
        self._state = SessionState.RECOVERING
        attempts = self._record.recovery_attempts + 1
        self.log.warning("Conversation handle rejected, recovering", error=str(error), attempts=attempts)
        await self._emit(StatusEvent(kind=StatusKind.RECOVERY_STARTED))

        await self._commit(handle=None, recovery_attempts=attempts)

        context = build_recovery_context(
            self._ledger.entries,
            self._record.summary,
            max_entries=self.recovery_max_entries,
            max_chars=self.recovery_max_chars,
        )
        self.log.info(
            "Recovery context built",
            entries_included=context.entries_included,
            has_summary=context.has_summary,
            chars=len(context.context_prompt),
        )
        return build_recovery_prompt(text, context)

    async def _commit(self, **changes: Any) -> SessionRecord:
        """Persist an updated record; in-memory state only moves on success."""
        record = self._record.model_copy(update={**changes, "last_active_at": utc_now()})
        await self.store.put(record.id, record)
        self._record = record
        return record

    async def _commit_turn(self, input_entry: NarrativeEntry, response: NarrativeEntry, **changes: Any) -> None:
        staged = self._ledger.copy()
        staged.append(input_entry)
        staged.append(response)
        await self._commit(
            entries=staged.entries,
            recovery_attempts=0,
            pending_compaction=self._record.pending_compaction or self.compactor.should_compact(staged),
            **changes,
        )
        self._ledger = staged

    async def _compact(self) -> bool:
        self._state = SessionState.COMPACTING
        self._idle.clear()
        await self._emit(StatusEvent(kind=StatusKind.COMPACTION_STARTED))

        try:
            await self._commit(pending_compaction=True)
            result = await self.compactor.compact(self.session_id, self._ledger, self._record.summary)
            if result is None:
                await self._commit(pending_compaction=False)
                return False

            try:
                await self._commit(
                    summary=result.summary,
                    entries=result.ledger.entries,
                    archives=[*self._record.archives, result.archive.key],
                    pending_compaction=False,
                )
            except PersistenceError:
                try:
                    await self.compactor.archives.delete(self.session_id, result.archive.key)
                except OSError as e:
                    self.log.warning("Could not remove uncommitted archive", key=result.archive.key, error=str(e))
                raise

            self._ledger = result.ledger
            self.log.info(
                "Compaction committed",
                archive=result.archive.key,
                archived=result.archived_count,
                live_entries=len(self._ledger),
                chars=self._ledger.size_of(),
            )
            await self._emit(StatusEvent(kind=StatusKind.COMPACTION_COMPLETE, detail=result.archive.key))
            return True
        except (CompactionError, PersistenceError) as e:
            failure = e if isinstance(e, CompactionError) else CompactionError(str(e))
            details = map_error(failure)
            log_error("Compaction failed", details, session_id=self.session_id)
            await self._emit(ErrorEvent(
                code=details.code,
                message=details.user_message,
                retryable=True,
            ))
            return False
        finally:
            self._state = SessionState.IDLE
            if not self._worker_running():
                if self._queue:
                    self._start_worker()
                else:
                    self._idle.set()

    async def _emit(self, event: SessionEvent) -> None:
        try:
            await self.sink(event)
        except Exception as e:
            self.log.warning("Event sink failed", event_type=event.type, error=str(e))
