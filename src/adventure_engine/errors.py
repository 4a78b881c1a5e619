"""
Error taxonomy and user-facing error mapping.

Every failure the orchestrator can surface is an AdventureEngineError with a
stable code and a retryable flag. map_error() turns any exception (ours or a
provider SDK's) into ErrorDetails that a transport can render directly.
"""

from dataclasses import dataclass

import anthropic
import openai
import structlog

logger = structlog.get_logger()


class AdventureEngineError(Exception):
    """Base class for all engine errors."""

    code = "GM_ERROR"
    retryable = True

    def __init__(self, message: str = "", *, retryable: bool | None = None):
        super().__init__(message or self.__class__.__name__)
        if retryable is not None:
            self.retryable = retryable


class InputRejected(AdventureEngineError):
    """Player input blocked by the local policy filter."""

    code = "INPUT_REJECTED"
    retryable = True

    def __init__(self, reason: str, flags: list[str] | None = None):
        super().__init__(reason)
        self.reason = reason
        self.flags = flags or []


class GenerationError(AdventureEngineError):
    """The agent stream failed mid-turn."""

    code = "GM_ERROR"
    retryable = True

    def __init__(self, message: str = "", *, cause: BaseException | None = None, retryable: bool | None = None):
        super().__init__(message or (str(cause) if cause else ""), retryable=retryable)
        self.cause = cause


class HandleInvalidError(AdventureEngineError):
    """The upstream agent rejected the resumable conversation handle."""

    code = "HANDLE_INVALID"
    retryable = True


class RecoveryFailedError(AdventureEngineError):
    """The handle was rejected again after a recovery attempt."""

    code = "SESSION_RECOVERY_FAILED"
    retryable = False


class CompactionError(AdventureEngineError):
    """A compaction attempt failed; history is unchanged."""

    code = "COMPACTION_FAILED"
    retryable = True


class PersistenceError(AdventureEngineError):
    """A state write did not complete; nothing can be assumed saved."""

    code = "PERSISTENCE_FAILED"
    retryable = False


class StateCorruptedError(AdventureEngineError):
    """A persisted record exists but cannot be parsed."""

    code = "STATE_CORRUPTED"
    retryable = False

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class InvalidSessionIdError(AdventureEngineError):
    """Session id failed validation."""

    code = "INVALID_SESSION"
    retryable = False


class SessionNotFoundError(AdventureEngineError):
    """No record exists for the requested session."""

    code = "SESSION_NOT_FOUND"
    retryable = False


class ProcessingTimeoutError(AdventureEngineError):
    """A turn exceeded the configured time budget."""

    code = "PROCESSING_TIMEOUT"
    retryable = True

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Input processing timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


@dataclass
class ErrorDetails:
    """Structured error description for logs and the transport layer."""

    code: str
    message: str
    retryable: bool
    user_message: str
    technical_details: str | None = None


USER_MESSAGES = {
    "INPUT_REJECTED": "Please describe your action in the game world.",
    "GM_ERROR": "Something went wrong. Please try again.",
    "RATE_LIMIT": "The game master is busy. Please try again later.",
    "AUTH_ERROR": "Something went wrong. Please try again.",
    "HANDLE_INVALID": "Reconnecting to your adventure...",
    "SESSION_RECOVERY_FAILED": "The game master lost the thread of your adventure. Please try again later.",
    "COMPACTION_FAILED": "Your adventure history could not be condensed. It will be retried automatically.",
    "PERSISTENCE_FAILED": "Your last turn could not be saved. Please try again.",
    "STATE_CORRUPTED": "Your adventure data appears corrupted. You can start fresh to begin a new adventure.",
    "INVALID_SESSION": "Invalid session. Please start a new adventure.",
    "SESSION_NOT_FOUND": "Adventure not found. Please check the adventure ID.",
    "PROCESSING_TIMEOUT": "The game master is taking longer than expected. Please try again.",
}


def _details(code: str, message: str, retryable: bool, technical: str | None = None) -> ErrorDetails:
    return ErrorDetails(
        code=code,
        message=message,
        retryable=retryable,
        user_message=USER_MESSAGES.get(code, USER_MESSAGES["GM_ERROR"]),
        technical_details=technical,
    )


def map_error(error: BaseException) -> ErrorDetails:
    """Map any exception to user-friendly error details."""
    if isinstance(error, GenerationError) and error.cause is not None:
        details = map_error(error.cause)
        details.retryable = details.retryable and error.retryable
        return details

    if isinstance(error, AdventureEngineError):
        return _details(error.code, str(error), error.retryable, f"{error.__class__.__name__}: {error}")

    if isinstance(error, (anthropic.RateLimitError, openai.RateLimitError)):
        return _details("RATE_LIMIT", "Rate limit exceeded", False, f"Provider rate limit: {error}")

    if isinstance(error, (
        anthropic.AuthenticationError,
        anthropic.PermissionDeniedError,
        openai.AuthenticationError,
        openai.PermissionDeniedError,
    )):
        return _details("AUTH_ERROR", "Authentication failed", False, f"Provider authentication failed - check API key: {error}")

    if isinstance(error, (anthropic.APIConnectionError, openai.APIConnectionError)):
        return _details("GM_ERROR", "Connection to AI service failed", True, f"Connection error: {error}")

    if isinstance(error, (anthropic.InternalServerError, openai.InternalServerError)):
        return _details("GM_ERROR", "AI service overloaded", True, f"Provider server error: {error}")

    if isinstance(error, (anthropic.APIStatusError, openai.APIStatusError)):
        return _details("GM_ERROR", "Invalid request", False, f"Provider rejected request: {error}")

    return _details("GM_ERROR", str(error) or error.__class__.__name__, True, f"Unexpected error: {error!r}")


def log_error(context: str, details: ErrorDetails, **extra) -> None:
    """Log error details with context for debugging."""
    logger.error(
        context,
        error_code=details.code,
        message=details.message,
        retryable=details.retryable,
        technical_details=details.technical_details,
        **extra,
    )
