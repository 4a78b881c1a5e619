"""
Tests for error taxonomy and user-facing mapping.
"""

import anthropic
import httpx
import openai

from adventure_engine.errors import (
    CompactionError,
    GenerationError,
    InputRejected,
    PersistenceError,
    ProcessingTimeoutError,
    RecoveryFailedError,
    map_error,
)


def _response(status: int, url: str = "https://api.anthropic.com/v1/messages") -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", url))


def test_engine_error_codes():
    """Test that each engine error carries its code and retry policy."""
    assert InputRejected("too long").code == "INPUT_REJECTED"
    assert RecoveryFailedError().retryable is False
    assert PersistenceError("disk full").retryable is False
    assert CompactionError("boom").retryable is True
    assert ProcessingTimeoutError(60).code == "PROCESSING_TIMEOUT"


def test_map_engine_error():
    """Test mapping our own errors keeps code and picks user text."""
    details = map_error(RecoveryFailedError("rejected twice"))

    assert details.code == "SESSION_RECOVERY_FAILED"
    assert details.retryable is False
    assert "lost the thread" in details.user_message
    assert "rejected twice" in details.technical_details


def test_map_anthropic_rate_limit():
    """Test that provider rate limits are not retryable."""
    error = anthropic.RateLimitError("slow down", response=_response(429), body=None)
    details = map_error(error)

    assert details.code == "RATE_LIMIT"
    assert details.retryable is False


def test_map_openai_auth_error():
    """Test that authentication failures map to AUTH_ERROR."""
    error = openai.AuthenticationError(
        "bad key",
        response=_response(401, "https://api.openai.com/v1/responses"),
        body=None,
    )
    details = map_error(error)

    assert details.code == "AUTH_ERROR"
    assert details.retryable is False


def test_map_server_error_retryable():
    """Test that provider 5xx errors are retryable."""
    error = anthropic.InternalServerError("overloaded", response=_response(529), body=None)
    details = map_error(error)

    assert details.code == "GM_ERROR"
    assert details.retryable is True


def test_map_connection_error():
    """Test that connection failures are retryable."""
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/responses"))
    details = map_error(error)

    assert details.code == "GM_ERROR"
    assert details.retryable is True


def test_generation_error_unwraps_cause():
    """Test that a wrapped provider error is mapped by its cause."""
    cause = anthropic.RateLimitError("slow down", response=_response(429), body=None)
    details = map_error(GenerationError(cause=cause))

    assert details.code == "RATE_LIMIT"


def test_map_unknown_error():
    """Test that unexpected exceptions become retryable GM errors."""
    details = map_error(ValueError("weird"))

    assert details.code == "GM_ERROR"
    assert details.retryable is True
    assert details.user_message == "Something went wrong. Please try again."
