"""
Persisted data models for Adventure Engine

Session records and archive records are pydantic models serialized to JSON
by the storage layer.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntryKind(str, Enum):
    """Narrative entry kinds."""
    INPUT = "input"
    RESPONSE = "response"


class NarrativeEntry(BaseModel):
    """A single turn fragment in the narrative history."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=utc_now)
    kind: EntryKind
    text: str
    truncated: bool = False

    @classmethod
    def player_input(cls, text: str) -> "NarrativeEntry":
        return cls(kind=EntryKind.INPUT, text=text)

    @classmethod
    def response(cls, text: str, message_id: str | None = None, truncated: bool = False) -> "NarrativeEntry":
        if message_id is None:
            return cls(kind=EntryKind.RESPONSE, text=text, truncated=truncated)
        return cls(id=message_id, kind=EntryKind.RESPONSE, text=text, truncated=truncated)


class DateRange(BaseModel):
    """Timestamp range covered by a run of entries."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @classmethod
    def of(cls, entries: list[NarrativeEntry]) -> "DateRange":
        if not entries:
            now = utc_now()
            return cls(start=now, end=now)
        return cls(start=entries[0].timestamp, end=entries[-1].timestamp)


class HistorySummary(BaseModel):
    """Digest of archived history produced by the summarizer."""

    model_config = ConfigDict(frozen=True)

    generated_at: datetime = Field(default_factory=utc_now)
    source_model: str
    archived_count: int
    date_range: DateRange
    digest_text: str


class ArchiveRecord(BaseModel):
    """Immutable snapshot of entries moved out of the live history."""

    model_config = ConfigDict(frozen=True)

    key: str
    session_id: str
    archived_at: datetime = Field(default_factory=utc_now)
    date_range: DateRange
    entry_count: int
    entries: list[NarrativeEntry]


class SessionRecord(BaseModel):
    """Durable state of one player's narrative session."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    handle: str | None = None
    recovery_attempts: int = 0
    scene_summary: str = "The adventure is just beginning. The world awaits your imagination."
    pending_compaction: bool = False
    summary: HistorySummary | None = None
    entries: list[NarrativeEntry] = Field(default_factory=list)
    archives: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    last_active_at: datetime = Field(default_factory=utc_now)
