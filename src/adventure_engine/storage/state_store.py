"""
Atomic State Store - crash-safe per-session persistence.

Each session lives in its own JSON file. Writes go to a temporary file in
the same directory, are fsynced, then renamed over the target with
os.replace, so a reader only ever sees a fully committed record. Writes
to one key are serialized with a per-key lock; different keys never
contend.
"""

import asyncio
import os
from pathlib import Path

import structlog
from pydantic import ValidationError

from ..errors import InvalidSessionIdError, PersistenceError, StateCorruptedError
from ..models import SessionRecord
from ..validation import validate_session_id

logger = structlog.get_logger()

RECORD_SUFFIX = ".json"


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to path via temp file + fsync + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except OSError:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove temp file", path=str(tmp_path))
        raise


class AtomicStateStore:
    """Key-keyed durable store for SessionRecords."""

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser()
        self._locks: dict[str, asyncio.Lock] = {}

    def path_for(self, session_id: str) -> Path:
        """Resolve the record path for a session id."""
        error = validate_session_id(session_id)
        if error:
            raise InvalidSessionIdError(error)
        return self.root / f"{session_id}{RECORD_SUFFIX}"

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    async def get(self, session_id: str) -> SessionRecord | None:
        """Load a session record, or None if it does not exist."""
        path = self.path_for(session_id)
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

        try:
            return SessionRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Corrupted session record", session_id=session_id, path=str(path))
            raise StateCorruptedError(f"Failed to load state: {e}", path=str(path)) from e

    async def put(self, session_id: str, record: SessionRecord) -> None:
        """Atomically replace the record stored under session_id."""
        if record.id != session_id:
            raise PersistenceError(f"Record id {record.id} does not match key {session_id}")

        path = self.path_for(session_id)
        payload = record.model_dump_json(indent=2)

        async with self._lock(session_id):
            try:
                await asyncio.to_thread(atomic_write_text, path, payload)
            except OSError as e:
                logger.error("Failed to save session", session_id=session_id, error=str(e))
                raise PersistenceError(f"Failed to save session {session_id}: {e}") from e

        logger.debug("Session saved", session_id=session_id, entries=len(record.entries))

    async def exists(self, session_id: str) -> bool:
        return await asyncio.to_thread(self.path_for(session_id).exists)

    async def delete(self, session_id: str) -> bool:
        """Remove a session record. Returns False if it was absent."""
        path = self.path_for(session_id)
        async with self._lock(session_id):
            try:
                await asyncio.to_thread(path.unlink)
            except FileNotFoundError:
                return False
            except OSError as e:
                raise PersistenceError(f"Failed to delete session {session_id}: {e}") from e
        self._locks.pop(session_id, None)
        return True

    async def list_ids(self) -> list[str]:
        """List the ids of all stored sessions."""
        if not self.root.exists():
            return []
        paths = await asyncio.to_thread(lambda: sorted(self.root.glob(f"*{RECORD_SUFFIX}")))
        return [p.name[: -len(RECORD_SUFFIX)] for p in paths if not p.name.startswith(".")]
