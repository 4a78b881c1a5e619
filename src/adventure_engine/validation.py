"""
Input validation - player input policy and session id checks.

Player input uses a flag-and-allow approach: suspicious patterns are flagged
for logging, and only egregious attempts (role manipulation aimed at the
model, excessive length) are blocked.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import unquote

MAX_INPUT_LENGTH = 2000

FLAG_INSTRUCTION_OVERRIDE = "instruction_override"
FLAG_PROMPT_EXTRACTION = "prompt_extraction"
FLAG_ROLE_MANIPULATION = "role_manipulation"
FLAG_EXCESSIVE_LENGTH = "excessive_length"

PATTERNS: dict[str, re.Pattern[str]] = {
    FLAG_INSTRUCTION_OVERRIDE: re.compile(
        r"ignore\s+(all\s+)?(previous|prior|above)\s+(instructions?|prompts?|rules?)",
        re.IGNORECASE,
    ),
    FLAG_PROMPT_EXTRACTION: re.compile(
        r"\b(reveal|show|display|output|print|tell\s+me)\s+(your\s+)?(the\s+)?(system\s+)?"
        r"(prompt|instructions?|rules?)\b",
        re.IGNORECASE,
    ),
    FLAG_ROLE_MANIPULATION: re.compile(
        r"\b(you\s+are\s+now|act\s+as|pretend\s+to\s+be)\b.*\b(assistant|ai|claude|gpt|chatgpt|system)\b",
        re.IGNORECASE | re.DOTALL,
    ),
}


@dataclass
class SanitizationResult:
    """Result of sanitizing player input."""

    sanitized: str
    flags: list[str] = field(default_factory=list)
    blocked: bool = False
    block_reason: str | None = None


def detect_injection_patterns(text: str, max_length: int = MAX_INPUT_LENGTH) -> list[str]:
    """Return the flags raised by a piece of input."""
    flags = []
    if len(text) > max_length:
        flags.append(FLAG_EXCESSIVE_LENGTH)
    for flag, pattern in PATTERNS.items():
        if pattern.search(text):
            flags.append(flag)
    return flags


def sanitize_player_input(text: str, max_length: int = MAX_INPUT_LENGTH) -> SanitizationResult:
    """Apply the input policy to raw player text."""
    flags = detect_injection_patterns(text, max_length)

    if FLAG_EXCESSIVE_LENGTH in flags:
        return SanitizationResult(
            sanitized=text[:max_length],
            flags=flags,
            blocked=True,
            block_reason="Input exceeds maximum length",
        )

    if FLAG_ROLE_MANIPULATION in flags:
        return SanitizationResult(
            sanitized=text,
            flags=flags,
            blocked=True,
            block_reason="Input attempts to manipulate AI behavior",
        )

    return SanitizationResult(sanitized=text, flags=flags)


def validate_session_id(session_id: str) -> str | None:
    """Check that a session id is safe to use as a file name.

    Returns:
        None when valid, otherwise the reason it was rejected.
    """
    if not session_id or not session_id.strip():
        return "Session ID cannot be empty"
    if "\0" in session_id:
        return "Session ID contains invalid characters"
    if "/" in session_id or "\\" in session_id:
        return "Session ID cannot contain path separators"
    if session_id in (".", ".."):
        return "Session ID cannot be a relative directory reference"

    decoded = unquote(session_id)
    if decoded != session_id and (
        "/" in decoded or "\\" in decoded or decoded in (".", "..")
    ):
        return "Session ID contains encoded path characters"

    return None
