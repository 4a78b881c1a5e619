"""
Tests for the history ledger.
"""

from unittest.mock import AsyncMock

import pytest

from adventure_engine.history import HistoryLedger
from adventure_engine.models import NarrativeEntry
from adventure_engine.storage import ArchiveStore

from conftest import make_entries


def test_size_tracks_appends():
    """Test that size is the total character count of entry texts."""
    ledger = HistoryLedger()
    ledger.append(NarrativeEntry.player_input("Hello"))
    ledger.append(NarrativeEntry.response("Welcome, traveler."))

    assert len(ledger) == 2
    assert ledger.size_of() == len("Hello") + len("Welcome, traveler.")


def test_recent_and_prefix():
    """Test windowed access to entries."""
    entries = make_entries(6)
    ledger = HistoryLedger(entries)

    assert ledger.recent(2) == entries[-2:]
    assert ledger.recent(0) == []
    assert ledger.prefix(3) == entries[:3]


def test_copy_is_independent():
    """Test that staged copies never touch the original."""
    ledger = HistoryLedger(make_entries(4))
    staged = ledger.copy()
    staged.append(NarrativeEntry.player_input("more"))

    assert len(ledger) == 4
    assert len(staged) == 5
    assert ledger.size_of() < staged.size_of()


def test_drop_prefix_updates_size():
    """Test that dropping a prefix adjusts the size."""
    ledger = HistoryLedger(make_entries(10, chars=100))
    removed = ledger.drop_prefix(4)

    assert len(removed) == 4
    assert len(ledger) == 6
    assert ledger.size_of() == 600


def test_drop_prefix_out_of_range():
    """Test that over-dropping is refused."""
    ledger = HistoryLedger(make_entries(2))
    with pytest.raises(ValueError):
        ledger.drop_prefix(3)


@pytest.mark.asyncio
async def test_archive_moves_prefix(tmp_path):
    """Test that archiving writes the prefix then drops it."""
    entries = make_entries(10)
    ledger = HistoryLedger(entries)
    archives = ArchiveStore(tmp_path)

    record = await ledger.archive(7, archives, "session-1")

    assert record.entry_count == 7
    assert record.entries == entries[:7]
    assert ledger.entries == entries[7:]


@pytest.mark.asyncio
async def test_archive_failure_leaves_ledger_unchanged():
    """Test that a failed archive write keeps every entry live."""
    entries = make_entries(10)
    ledger = HistoryLedger(entries)
    archives = AsyncMock()
    archives.write.side_effect = OSError("disk full")

    with pytest.raises(OSError):
        await ledger.archive(5, archives, "session-1")

    assert ledger.entries == entries
