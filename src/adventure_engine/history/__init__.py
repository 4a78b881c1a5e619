"""
History module - the narrative record and everything that keeps it bounded.

Includes:
- HistoryLedger: Ordered entry window with incremental size accounting
- Summarizer: Lightweight-model digests of archived entries
- HistoryCompactor: Summarize, archive, truncate
- Recovery context: Rebuilds context after a lost conversation handle
"""

from .ledger import HistoryLedger
from .summarizer import Summarizer
from .compaction import CompactionConfig, CompactionResult, HistoryCompactor
from .recovery import RecoveryContext, build_recovery_context, build_recovery_prompt

__all__ = [
    "HistoryLedger",
    "Summarizer",
    "CompactionConfig",
    "CompactionResult",
    "HistoryCompactor",
    "RecoveryContext",
    "build_recovery_context",
    "build_recovery_prompt",
]
