"""
Tests for history compaction module.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from adventure_engine.errors import CompactionError
from adventure_engine.history import CompactionConfig, HistoryCompactor, HistoryLedger, Summarizer
from adventure_engine.llm import MockLLM
from adventure_engine.storage import ArchiveStore

from conftest import make_entries


def _compactor(tmp_path, llm=None, **config) -> HistoryCompactor:
    return HistoryCompactor(
        Summarizer(llm or MockLLM()),
        ArchiveStore(tmp_path),
        CompactionConfig(**config),
    )


def test_compaction_config_defaults():
    """Test CompactionConfig default values."""
    config = CompactionConfig()
    assert config.char_threshold == 100_000
    assert config.retain_count == 20
    assert config.enabled is True


def test_should_compact_threshold(tmp_path):
    """Test that compaction triggers at the char threshold."""
    compactor = _compactor(tmp_path, char_threshold=1000, retain_count=4)

    assert not compactor.should_compact(HistoryLedger(make_entries(9, chars=100)))
    assert compactor.should_compact(HistoryLedger(make_entries(10, chars=100)))


def test_should_compact_needs_more_than_retained(tmp_path):
    """Test that a few huge entries never trigger a no-op compaction."""
    compactor = _compactor(tmp_path, char_threshold=1000, retain_count=4)

    assert not compactor.should_compact(HistoryLedger(make_entries(4, chars=5000)))


def test_should_compact_disabled(tmp_path):
    """Test that compaction can be disabled."""
    compactor = _compactor(tmp_path, char_threshold=1000, enabled=False)

    assert not compactor.should_compact(HistoryLedger(make_entries(100, chars=100)))


@pytest.mark.asyncio
async def test_compact_hundred_entries_keeps_twenty(tmp_path):
    """Test that 100 entries with retain 20 leaves 20 live and archives 80."""
    compactor = _compactor(tmp_path, retain_count=20)
    entries = make_entries(100)
    ledger = HistoryLedger(entries)

    result = await compactor.compact("session-1", ledger)

    assert len(result.ledger) == 20
    assert result.ledger.entries == entries[80:]
    assert result.archived_count == 80
    assert result.archive.entries == entries[:80]
    assert result.summary.archived_count == 80
    assert len(ledger) == 100


@pytest.mark.asyncio
async def test_compact_nothing_to_archive(tmp_path):
    """Test that compaction is skipped when only retained entries exist."""
    compactor = _compactor(tmp_path, retain_count=20)

    assert await compactor.compact("session-1", HistoryLedger(make_entries(20))) is None


@pytest.mark.asyncio
async def test_summarizer_failure_writes_no_archive(tmp_path):
    """Test that a failed summary aborts before anything is archived."""
    llm = MagicMock()
    llm.model = "broken"
    llm.complete = AsyncMock(side_effect=RuntimeError("upstream down"))
    compactor = _compactor(tmp_path, llm=llm, retain_count=2)

    with pytest.raises(CompactionError):
        await compactor.compact("session-1", HistoryLedger(make_entries(10)))

    assert await compactor.archives.list_keys("session-1") == []


@pytest.mark.asyncio
async def test_archive_failure_raises_compaction_error(tmp_path):
    """Test that an archive write failure is a CompactionError."""
    compactor = _compactor(tmp_path, retain_count=2)
    compactor.archives = MagicMock()
    compactor.archives.write = AsyncMock(side_effect=OSError("read-only filesystem"))
    ledger = HistoryLedger(make_entries(10))

    with pytest.raises(CompactionError):
        await compactor.compact("session-1", ledger)

    assert len(ledger) == 10
