"""
Shared fixtures for Adventure-Engine tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from adventure_engine.agent import MockAgentClient
from adventure_engine.config import Settings
from adventure_engine.history import CompactionConfig, HistoryCompactor, Summarizer
from adventure_engine.llm import MockLLM
from adventure_engine.models import EntryKind, NarrativeEntry, SessionRecord
from adventure_engine.session import SessionOrchestrator
from adventure_engine.storage import ArchiveStore, AtomicStateStore


class EventCollector:
    """Event sink that records everything it is sent."""

    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]

    def statuses(self):
        return [e.kind for e in self.events if e.type == "status"]

    async def wait_for(self, event_type, count: int = 1, timeout: float = 2.0):
        async def poll():
            while len(self.of_type(event_type)) < count:
                await asyncio.sleep(0.001)

        await asyncio.wait_for(poll(), timeout)
        return self.of_type(event_type)


def make_entries(count: int, chars: int = 10, start: datetime | None = None) -> list[NarrativeEntry]:
    """Alternating input/response entries with increasing timestamps."""
    start = start or datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
    entries = []
    for i in range(count):
        kind = EntryKind.INPUT if i % 2 == 0 else EntryKind.RESPONSE
        text = f"{i:04d}" + "x" * max(0, chars - 4)
        entries.append(NarrativeEntry(kind=kind, text=text, timestamp=start + timedelta(seconds=i)))
    return entries


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        agent_provider="mock",
        summary_provider="mock",
        anthropic_api_key="",
        openai_api_key="",
    )


@pytest.fixture
def store(settings):
    return AtomicStateStore(settings.sessions_dir)


@pytest.fixture
def archives(settings):
    return ArchiveStore(settings.archives_dir)


@pytest.fixture
def agent():
    return MockAgentClient()


@pytest.fixture
def summary_llm():
    return MockLLM()


@pytest.fixture
def compactor(settings, archives, summary_llm):
    return HistoryCompactor(
        Summarizer(summary_llm),
        archives,
        CompactionConfig(
            char_threshold=settings.compaction_char_threshold,
            retain_count=settings.retained_entry_count,
        ),
    )


@pytest.fixture
def events():
    return EventCollector()


@pytest.fixture
def make_session(store, agent, compactor, events, settings):
    """Persist a record and open an orchestrator over it."""

    async def factory(record: SessionRecord | None = None, **kwargs) -> SessionOrchestrator:
        record = record or SessionRecord()
        await store.put(record.id, record)
        kwargs.setdefault("sink", events)
        kwargs.setdefault("settings", settings)
        return await SessionOrchestrator.load(record.id, store, agent, compactor, **kwargs)

    return factory
