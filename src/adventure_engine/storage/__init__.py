"""Durable storage for session records and history archives."""

from .archive_store import ArchiveStore
from .state_store import AtomicStateStore, atomic_write_text

__all__ = ["ArchiveStore", "AtomicStateStore", "atomic_write_text"]
