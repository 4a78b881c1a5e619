"""
Tests for the archive store.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from adventure_engine.storage import ArchiveStore
from adventure_engine.storage.archive_store import format_archive_key

from conftest import make_entries

FIXED = datetime(2024, 3, 9, 14, 5, 7, tzinfo=timezone.utc)


def test_format_archive_key():
    """Test second-resolution archive key format."""
    assert format_archive_key(FIXED) == "2024-03-09-140507"


@pytest.mark.asyncio
async def test_write_and_get(tmp_path):
    """Test that an archive record is written and readable."""
    archives = ArchiveStore(tmp_path, clock=lambda: FIXED)
    entries = make_entries(4)

    record = await archives.write("session-1", entries)
    loaded = await archives.get("session-1", record.key)

    assert record.key == "2024-03-09-140507"
    assert loaded.entry_count == 4
    assert loaded.entries == entries
    assert loaded.date_range.start == entries[0].timestamp
    assert loaded.date_range.end == entries[-1].timestamp


@pytest.mark.asyncio
async def test_same_second_collision_gets_suffix(tmp_path):
    """Test that archives in the same second never overwrite each other."""
    archives = ArchiveStore(tmp_path, clock=lambda: FIXED)

    first = await archives.write("session-1", make_entries(2))
    second = await archives.write("session-1", make_entries(2))
    third = await archives.write("session-1", make_entries(2))

    assert [first.key, second.key, third.key] == [
        "2024-03-09-140507",
        "2024-03-09-140507-1",
        "2024-03-09-140507-2",
    ]
    assert len(await archives.list_keys("session-1")) == 3


@pytest.mark.asyncio
async def test_existing_file_is_never_replaced(tmp_path):
    """Test that a file already holding the key is left untouched."""
    archives = ArchiveStore(tmp_path, clock=lambda: FIXED)
    taken = tmp_path / "session-1" / "2024-03-09-140507.json"
    taken.parent.mkdir(parents=True)
    taken.write_text("claimed elsewhere", encoding="utf-8")

    record = await archives.write("session-1", make_entries(2))

    assert record.key == "2024-03-09-140507-1"
    assert taken.read_text(encoding="utf-8") == "claimed elsewhere"


@pytest.mark.asyncio
async def test_concurrent_writes_get_distinct_keys(tmp_path):
    """Test that simultaneous archives in one second each get their own key."""
    archives = ArchiveStore(tmp_path, clock=lambda: FIXED)

    records = await asyncio.gather(*(archives.write("session-1", make_entries(2)) for _ in range(5)))

    keys = {record.key for record in records}
    assert len(keys) == 5
    assert sorted(await archives.list_keys("session-1")) == sorted(keys)


@pytest.mark.asyncio
async def test_failed_write_releases_key(tmp_path):
    """Test that a failed write leaves no reserved archive behind."""
    archives = ArchiveStore(tmp_path, clock=lambda: FIXED)

    with patch("adventure_engine.storage.archive_store.atomic_write_text", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            await archives.write("session-1", make_entries(2))

    assert await archives.list_keys("session-1") == []


@pytest.mark.asyncio
async def test_get_missing(tmp_path):
    """Test that a missing archive is None."""
    archives = ArchiveStore(tmp_path)
    assert await archives.get("session-1", "2024-01-01-000000") is None


@pytest.mark.asyncio
async def test_reconcile_removes_orphans(tmp_path):
    """Test that archives never committed to the session are removed."""
    archives = ArchiveStore(tmp_path, clock=lambda: FIXED)
    committed = await archives.write("session-1", make_entries(2))
    orphan = await archives.write("session-1", make_entries(2))

    removed = await archives.reconcile("session-1", [committed.key])

    assert removed == [orphan.key]
    assert await archives.list_keys("session-1") == [committed.key]


@pytest.mark.asyncio
async def test_reconcile_without_archives(tmp_path):
    """Test reconcile on a session that never compacted."""
    archives = ArchiveStore(tmp_path)
    assert await archives.reconcile("fresh", []) == []
