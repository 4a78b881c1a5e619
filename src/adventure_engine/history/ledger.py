"""
History Ledger - ordered narrative log with incremental size accounting.
"""

from typing import Iterable, Iterator

from ..models import ArchiveRecord, NarrativeEntry
from ..storage import ArchiveStore


class HistoryLedger:
    """Append-only window of visible narrative entries.

    The character count of all entry texts is tracked on every append and
    archive so size checks never rescan the history.
    """

    def __init__(self, entries: Iterable[NarrativeEntry] | None = None):
        self._entries: list[NarrativeEntry] = []
        self._size = 0
        if entries:
            self.extend(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[NarrativeEntry]:
        return iter(self._entries)

    @property
    def entries(self) -> list[NarrativeEntry]:
        """Copy of the visible entries, oldest first."""
        return list(self._entries)

    def size_of(self) -> int:
        return self._size

    def append(self, entry: NarrativeEntry) -> None:
        self._entries.append(entry)
        self._size += len(entry.text)

    def extend(self, entries: Iterable[NarrativeEntry]) -> None:
        for entry in entries:
            self.append(entry)

    def recent(self, count: int) -> list[NarrativeEntry]:
        if count <= 0:
            return []
        return self._entries[-count:]

    def prefix(self, count: int) -> list[NarrativeEntry]:
        return self._entries[:max(0, count)]

    def copy(self) -> "HistoryLedger":
        clone = HistoryLedger()
        clone._entries = list(self._entries)
        clone._size = self._size
        return clone

    def drop_prefix(self, count: int) -> list[NarrativeEntry]:
        """Remove and return the oldest count entries."""
        if count < 0 or count > len(self._entries):
            raise ValueError(f"Cannot drop {count} of {len(self._entries)} entries")
        removed = self._entries[:count]
        self._entries = self._entries[count:]
        self._size -= sum(len(e.text) for e in removed)
        return removed

    async def archive(self, prefix_count: int, archives: ArchiveStore, session_id: str) -> ArchiveRecord:
        """Move the oldest prefix_count entries into a new archive record.

        The live window only shrinks once the archive has been written, so a
        failed write leaves the ledger untouched.
        """
        if prefix_count <= 0 or prefix_count > len(self._entries):
            raise ValueError(f"Cannot archive {prefix_count} of {len(self._entries)} entries")
        record = await archives.write(session_id, self.prefix(prefix_count))
        self.drop_prefix(prefix_count)
        return record
