"""
History Compaction - summarize and archive old narrative entries.

When the visible history grows past a character threshold, the oldest
entries are summarized with a lightweight model, written to an immutable
archive record, and dropped from the live window. Only the most recent
entries stay verbatim.

All work happens on a staged copy of the ledger. The caller commits the
result with a single state write; any failure before that leaves the live
history exactly as it was.
"""

from dataclasses import dataclass

import structlog

from ..errors import CompactionError
from ..models import ArchiveRecord, HistorySummary
from ..storage import ArchiveStore
from .ledger import HistoryLedger
from .summarizer import Summarizer

logger = structlog.get_logger()

DEFAULT_CHAR_THRESHOLD = 100_000
DEFAULT_RETAIN_COUNT = 20


@dataclass
class CompactionConfig:
    """Configuration for history compaction."""

    char_threshold: int = DEFAULT_CHAR_THRESHOLD
    retain_count: int = DEFAULT_RETAIN_COUNT
    enabled: bool = True


@dataclass
class CompactionResult:
    """Staged outcome of a compaction, not yet committed."""

    ledger: HistoryLedger
    summary: HistorySummary
    archive: ArchiveRecord
    original_size: int

    @property
    def archived_count(self) -> int:
        return self.archive.entry_count

    @property
    def compacted_size(self) -> int:
        return self.ledger.size_of()


class HistoryCompactor:
    """Runs the summarize-archive-truncate sequence for one ledger."""

    def __init__(
        self,
        summarizer: Summarizer,
        archives: ArchiveStore,
        config: CompactionConfig | None = None,
    ):
        self.summarizer = summarizer
        self.archives = archives
        self.config = config or CompactionConfig()

    def should_compact(self, ledger: HistoryLedger) -> bool:
        """Check if history has reached the compaction threshold."""
        if not self.config.enabled:
            return False
        return ledger.size_of() >= self.config.char_threshold and len(ledger) > self.config.retain_count

    async def compact(
        self,
        session_id: str,
        ledger: HistoryLedger,
        prior_summary: HistorySummary | None = None,
    ) -> CompactionResult | None:
        """Summarize and archive everything but the most recent entries.

        Returns:
            The staged result, or None when there is nothing to archive.

        Raises:
            CompactionError: summarization or archival failed.
        """
        retain_count = min(self.config.retain_count, len(ledger))
        archive_count = len(ledger) - retain_count

        if archive_count <= 0:
            logger.debug("Not enough entries to compact", entries=len(ledger), retain=retain_count)
            return None

        staged = ledger.copy()
        to_archive = staged.prefix(archive_count)

        logger.info(
            "Starting history compaction",
            session_id=session_id,
            archive_count=archive_count,
            retain_count=retain_count,
            total_chars=ledger.size_of(),
        )

        summary = await self.summarizer.summarize(to_archive, prior_summary)

        try:
            archive = await staged.archive(archive_count, self.archives, session_id)
        except OSError as e:
            logger.error("Failed to archive entries", session_id=session_id, error=str(e))
            raise CompactionError(f"Archive failed: {e}") from e

        result = CompactionResult(
            ledger=staged,
            summary=summary,
            archive=archive,
            original_size=ledger.size_of(),
        )

        logger.info(
            "Compaction staged",
            session_id=session_id,
            archived=result.archived_count,
            original_chars=result.original_size,
            compacted_chars=result.compacted_size,
        )

        return result
