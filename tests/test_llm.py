"""Tests for the completion providers used by the summarizer."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from adventure_engine.config import LLMConfig
from adventure_engine.llm import AnthropicLLM, MockLLM, OpenAILLM, create_llm


def test_create_llm_uses_registry():
    """Test that the factory picks the class named by the provider."""
    assert isinstance(create_llm(LLMConfig(provider="mock", model="m")), MockLLM)
    assert isinstance(create_llm(LLMConfig(provider="anthropic", api_key="k")), AnthropicLLM)
    assert isinstance(create_llm(LLMConfig(provider="openai", model="gpt-4o-mini", api_key="k")), OpenAILLM)


def test_create_llm_defaults_to_summary_settings(settings):
    """Test that the summary provider from settings is used by default."""
    llm = create_llm(settings=settings)

    assert isinstance(llm, MockLLM)
    assert llm.model == settings.get_summary_config().model


@pytest.mark.asyncio
async def test_mock_llm_records_calls():
    """Test that the mock keeps each prompt and system prompt."""
    llm = MockLLM(reply="A short recap.")

    response = await llm.complete("[t] Player: look", system_prompt="be brief")

    assert response.content == "A short recap."
    assert response.model == "mock-narrator"
    assert llm.calls == [("[t] Player: look", "be brief")]


@pytest.mark.asyncio
async def test_anthropic_complete_joins_text_blocks():
    """Test that Claude text blocks are joined and tool blocks skipped."""
    llm = AnthropicLLM(LLMConfig(provider="anthropic", api_key="k", max_tokens=512))
    message = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="First."),
            SimpleNamespace(type="tool_use", name="lookup"),
            SimpleNamespace(type="text", text="Second."),
        ],
        model="claude-test",
        usage=SimpleNamespace(input_tokens=10, output_tokens=4),
        stop_reason="end_turn",
    )
    llm.client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(return_value=message)))

    response = await llm.complete("summarize", system_prompt="system")

    assert response.content == "First.\n\nSecond."
    assert response.output_tokens == 4
    kwargs = llm.client.messages.create.call_args.kwargs
    assert kwargs["system"] == "system"
    assert kwargs["max_tokens"] == 512
    assert kwargs["messages"] == [{"role": "user", "content": "summarize"}]


@pytest.mark.asyncio
async def test_openai_complete_prepends_system_message():
    """Test that the system prompt goes first in the chat."""
    llm = OpenAILLM(LLMConfig(provider="openai", model="gpt-4o-mini", api_key="k"))
    completion = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content="Recap."), finish_reason="stop")],
        model="gpt-4o-mini",
        usage=None,
    )
    create = AsyncMock(return_value=completion)
    llm.client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    response = await llm.complete("summarize", system_prompt="system")

    assert response.content == "Recap."
    assert response.input_tokens == 0
    assert [m["role"] for m in create.call_args.kwargs["messages"]] == ["system", "user"]
