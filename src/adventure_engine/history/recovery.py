"""
Recovery context - rebuilds conversation context after a lost handle.
"""

from dataclasses import dataclass

from ..models import EntryKind, HistorySummary, NarrativeEntry

MAX_ENTRY_CHARS = 1500


@dataclass
class RecoveryContext:
    """Condensed history to prepend to the pending input."""

    context_prompt: str
    entries_included: int
    has_summary: bool


def format_entry(entry: NarrativeEntry) -> str:
    label = "**Player**" if entry.kind == EntryKind.INPUT else "**Game Master**"
    text = entry.text
    if len(text) > MAX_ENTRY_CHARS:
        text = text[:MAX_ENTRY_CHARS] + "..."
    return f"{label}: {text}\n\n"


def build_recovery_context(
    entries: list[NarrativeEntry],
    summary: HistorySummary | None = None,
    max_entries: int = 20,
    max_chars: int = 12_000,
) -> RecoveryContext:
    """Build recovery context from the summary plus the most recent entries.

    Entries are taken oldest-first from the recent window and the build
    stops at the first entry that would exceed max_chars.
    """
    parts: list[str] = []
    char_count = 0
    included = 0

    has_summary = False
    if summary is not None and summary.digest_text:
        section = f"## Previous Adventure Summary\n\n{summary.digest_text}\n\n---\n\n"
        if len(section) <= max_chars:
            parts.append(section)
            char_count += len(section)
            has_summary = True

    recent = entries[-max_entries:] if max_entries > 0 else []
    header = "## Recent Conversation\n\n"
    if recent and char_count + len(header) <= max_chars:
        parts.append(header)
        char_count += len(header)
        for entry in recent:
            formatted = format_entry(entry)
            if char_count + len(formatted) > max_chars:
                break
            parts.append(formatted)
            char_count += len(formatted)
            included += 1

    return RecoveryContext(
        context_prompt="".join(parts),
        entries_included=included,
        has_summary=has_summary,
    )


def build_recovery_prompt(text: str, context: RecoveryContext) -> str:
    """Wrap the player's input with the restored context."""
    if not context.context_prompt:
        return text

    return (
        "[SESSION RECOVERY - Previous conversation context restored]\n\n"
        f"{context.context_prompt}"
        "---\n\n"
        "[Current player input - respond to this]:\n"
        f"{text}"
    )
