"""
Archive Store - immutable snapshots of compacted history.

One record per completed compaction, named by second-resolution UTC
timestamp (YYYY-MM-DD-HHMMSS) with a numeric suffix when two archives land
in the same second. Records are written with the same temp-file + rename
primitive as session state and never modified afterwards.
"""

import asyncio
import os
from datetime import datetime
from pathlib import Path
from typing import Callable

import structlog
from pydantic import ValidationError

from ..errors import InvalidSessionIdError, StateCorruptedError
from ..models import ArchiveRecord, DateRange, NarrativeEntry, utc_now
from ..validation import validate_session_id
from .state_store import atomic_write_text

logger = structlog.get_logger()

ARCHIVE_SUFFIX = ".json"


def format_archive_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d-%H%M%S")


class ArchiveStore:
    """Per-session directory of immutable archive records."""

    def __init__(self, root: str | Path, clock: Callable[[], datetime] = utc_now):
        self.root = Path(root).expanduser()
        self.clock = clock

    def session_dir(self, session_id: str) -> Path:
        error = validate_session_id(session_id)
        if error:
            raise InvalidSessionIdError(error)
        return self.root / session_id

    def _reserve_key(self, directory: Path, base: str) -> str:
        """Claim an unused key by exclusively creating its file."""
        key = base
        suffix = 0
        while True:
            try:
                fd = os.open(directory / f"{key}{ARCHIVE_SUFFIX}", os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                suffix += 1
                key = f"{base}-{suffix}"
                continue
            os.close(fd)
            return key

    def _write(self, session_id: str, entries: list[NarrativeEntry]) -> ArchiveRecord:
        directory = self.session_dir(session_id)
        directory.mkdir(parents=True, exist_ok=True)

        archived_at = self.clock()
        key = self._reserve_key(directory, format_archive_key(archived_at))
        path = directory / f"{key}{ARCHIVE_SUFFIX}"
        record = ArchiveRecord(
            key=key,
            session_id=session_id,
            archived_at=archived_at,
            date_range=DateRange.of(entries),
            entry_count=len(entries),
            entries=list(entries),
        )
        try:
            atomic_write_text(path, record.model_dump_json(indent=2))
        except OSError:
            path.unlink(missing_ok=True)
            raise
        return record

    async def write(self, session_id: str, entries: list[NarrativeEntry]) -> ArchiveRecord:
        """Persist entries as a new archive record."""
        record = await asyncio.to_thread(self._write, session_id, entries)
        logger.info("Entries archived", session_id=session_id, key=record.key, count=record.entry_count)
        return record

    async def get(self, session_id: str, key: str) -> ArchiveRecord | None:
        path = self.session_dir(session_id) / f"{key}{ARCHIVE_SUFFIX}"
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return ArchiveRecord.model_validate_json(raw)
        except ValidationError as e:
            raise StateCorruptedError(f"Failed to load archive: {e}", path=str(path)) from e

    async def list_keys(self, session_id: str) -> list[str]:
        directory = self.session_dir(session_id)

        def scan() -> list[str]:
            if not directory.exists():
                return []
            return sorted(
                p.name[: -len(ARCHIVE_SUFFIX)]
                for p in directory.glob(f"*{ARCHIVE_SUFFIX}")
                if not p.name.startswith(".")
            )

        return await asyncio.to_thread(scan)

    async def delete(self, session_id: str, key: str) -> None:
        path = self.session_dir(session_id) / f"{key}{ARCHIVE_SUFFIX}"
        await asyncio.to_thread(path.unlink, missing_ok=True)

    async def reconcile(self, session_id: str, committed: list[str]) -> list[str]:
        """Remove archives the session record never committed.

        An unreferenced archive is what a compaction leaves behind when it
        crashes after writing the archive but before saving the truncated
        session. Its entries are still live, so the archive is dropped.
        """
        orphans = [key for key in await self.list_keys(session_id) if key not in committed]
        for key in orphans:
            await self.delete(session_id, key)
            logger.warning("Removed orphaned archive", session_id=session_id, key=key)
        return orphans
