"""
Summarizer - compresses a run of narrative entries into a digest.
"""

import structlog

from ..errors import CompactionError
from ..llm import BaseLLM
from ..models import DateRange, EntryKind, HistorySummary, NarrativeEntry

logger = structlog.get_logger()

SUMMARIZER_SYSTEM_PROMPT = """You are a narrative summarizer for interactive adventures. Your ONLY task is to write a summary.

Do NOT use any tools. Do NOT mention tools. Simply write the summary directly as your response."""

SUMMARIZATION_PROMPT = """You are summarizing a narrative adventure history for context continuity.

The history contains player inputs and Game Master (GM) responses from an interactive text adventure.

SUMMARIZATION GUIDELINES:
1. Preserve key PLOT POINTS: major story events, discoveries, quest progress.
2. Track CHARACTER DEVELOPMENTS: the player character, NPCs introduced, relationships.
3. Note WORLD STATE changes: locations visited, items acquired or lost, lore established.
4. Keep the NARRATIVE TONE: match the genre and style, preserve emotional high points.

FORMAT:
Write a cohesive narrative summary in 2nd person ("You"), as if recapping for a returning player.
Target length: 200-400 words.
Start with "Previously in your adventure..." or similar.

Do NOT include mundane movements, exact dialogue unless significant, dice rolls, or meta-commentary.

"""


def format_entries_for_summary(entries: list[NarrativeEntry]) -> str:
    lines = []
    for entry in entries:
        speaker = "Player" if entry.kind == EntryKind.INPUT else "GM"
        stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        lines.append(f"[{stamp}] {speaker}: {entry.text}")
    return "\n\n".join(lines)


def build_summary_prompt(entries: list[NarrativeEntry], prior: HistorySummary | None = None) -> str:
    prompt = SUMMARIZATION_PROMPT
    if prior is not None:
        prompt += (
            "PREVIOUS SUMMARY (incorporate and build upon this):\n"
            f"{prior.digest_text}\n\n"
            "NEW EVENTS TO INCORPORATE:\n"
        )
    else:
        prompt += "HISTORY TO SUMMARIZE:\n"
    return prompt + format_entries_for_summary(entries)


class Summarizer:
    """Produces HistorySummary digests with a lightweight model."""

    def __init__(self, llm: BaseLLM):
        self.llm = llm

    async def summarize(
        self,
        entries: list[NarrativeEntry],
        prior: HistorySummary | None = None,
    ) -> HistorySummary:
        """Summarize entries, folding in the prior digest for continuity.

        Raises:
            CompactionError: the model call failed or returned nothing.
        """
        if not entries:
            raise CompactionError("No entries to summarize")

        prompt = build_summary_prompt(entries, prior)

        try:
            response = await self.llm.complete(prompt, system_prompt=SUMMARIZER_SYSTEM_PROMPT)
        except Exception as e:
            logger.error("Summarization failed", error=str(e), entries=len(entries))
            raise CompactionError(f"Summarization failed: {e}") from e

        digest = response.content.strip()
        if not digest:
            raise CompactionError("No summary generated")

        logger.info("Summary generated", entries=len(entries), chars=len(digest))

        return HistorySummary(
            source_model=response.model or self.llm.model,
            archived_count=len(entries),
            date_range=DateRange.of(entries),
            digest_text=digest,
        )
