"""
Session management for adventures.
"""

import structlog

from ..agent import AgentClient, create_agent_client
from ..config import Settings, get_settings
from ..errors import InvalidSessionIdError
from ..history import CompactionConfig, HistoryCompactor, Summarizer
from ..llm import BaseLLM, create_llm
from ..storage import ArchiveStore, AtomicStateStore
from ..validation import validate_session_id
from .events import EventSink
from .orchestrator import SessionOrchestrator

logger = structlog.get_logger()


class SessionManager:
    """Owns one orchestrator per open session.

    Sessions share the state store, the archive store and the provider
    clients, and nothing else.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        agent: AgentClient | None = None,
        summary_llm: BaseLLM | None = None,
        store: AtomicStateStore | None = None,
        archives: ArchiveStore | None = None,
    ):
        self.settings = settings or get_settings()
        self.agent = agent or create_agent_client(settings=self.settings)
        self.store = store or AtomicStateStore(self.settings.sessions_dir)
        self.archives = archives or ArchiveStore(self.settings.archives_dir)
        self.compactor = HistoryCompactor(
            Summarizer(summary_llm or create_llm(settings=self.settings)),
            self.archives,
            CompactionConfig(
                char_threshold=self.settings.compaction_char_threshold,
                retain_count=self.settings.retained_entry_count,
            ),
        )
        self._sessions: dict[str, SessionOrchestrator] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> SessionOrchestrator | None:
        """Get an open session."""
        return self._sessions.get(session_id)

    async def list_sessions(self) -> list[str]:
        """List the ids of all persisted sessions."""
        return await self.store.list_ids()

    async def create_session(self, sink: EventSink | None = None, session_id: str | None = None) -> SessionOrchestrator:
        """Create, persist and open a new session."""
        if session_id is not None:
            self._validate(session_id)
        orchestrator = await SessionOrchestrator.create(
            self.store,
            self.agent,
            self.compactor,
            sink=sink,
            settings=self.settings,
            session_id=session_id,
        )
        self._sessions[orchestrator.session_id] = orchestrator
        return orchestrator

    async def open_session(self, session_id: str, sink: EventSink | None = None) -> SessionOrchestrator:
        """Open a persisted session, reusing it if already open."""
        self._validate(session_id)

        existing = self._sessions.get(session_id)
        if existing is not None:
            if sink is not None:
                existing.sink = sink
            return existing

        orchestrator = await SessionOrchestrator.load(
            session_id,
            self.store,
            self.agent,
            self.compactor,
            sink=sink,
            settings=self.settings,
        )
        self._sessions[session_id] = orchestrator
        return orchestrator

    async def close(self, session_id: str) -> bool:
        """Wait for a session to go idle, then forget it."""
        orchestrator = self._sessions.get(session_id)
        if orchestrator is None:
            return False
        await orchestrator.wait_idle()
        del self._sessions[session_id]
        logger.info("Session closed", session_id=session_id)
        return True

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.close(session_id)

    async def delete_session(self, session_id: str) -> bool:
        """Close a session and remove its record. Archives are kept."""
        self._validate(session_id)
        await self.close(session_id)
        return await self.store.delete(session_id)

    def _validate(self, session_id: str) -> None:
        error = validate_session_id(session_id)
        if error:
            raise InvalidSessionIdError(error)
