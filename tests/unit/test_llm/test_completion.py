"""
Unit tests for the completion client and response classification.

Uses LangChain's FakeListChatModel and hand-built AIMessages; no network.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage

from expertmatch.domain.exceptions import CompletionError
from expertmatch.llm.completion import (
    ChatModelCompletionClient,
    CompletionClient,
    Mixed,
    TextOnly,
    ToolCall,
    build_chat_model,
    classify_message,
    message_text,
)


def _tool_call(name: str = "search_experts", call_id: str = "call_1") -> dict:
    return {"name": name, "args": {"query": "Java"}, "id": call_id}


# =============================================================================
# Test: Classification
# =============================================================================


class TestClassifyMessage:
    """Every reply maps to exactly one response variant."""

    def test_plain_text(self) -> None:
        assert classify_message(AIMessage(content="hello")) == TextOnly(text="hello")

    def test_single_tool_call_without_text(self) -> None:
        response = classify_message(AIMessage(content="", tool_calls=[_tool_call()]))

        assert response == ToolCall(name="search_experts", args={"query": "Java"}, call_id="call_1")

    def test_text_with_tool_call_is_mixed(self) -> None:
        response = classify_message(AIMessage(content="Let me look.", tool_calls=[_tool_call()]))

        assert isinstance(response, Mixed)
        assert response.text == "Let me look."
        assert len(response.tool_calls) == 1

    def test_several_tool_calls_are_mixed(self) -> None:
        message = AIMessage(
            content="",
            tool_calls=[_tool_call("a", "call_1"), _tool_call("b", "call_2")],
        )

        assert isinstance(classify_message(message), Mixed)

    def test_content_blocks_flattened(self) -> None:
        content = [{"type": "text", "text": "[1"}, {"type": "image_url"}, "]"]

        assert message_text(content) == "[1]"


# =============================================================================
# Test: ChatModelCompletionClient
# =============================================================================


class TestChatModelCompletionClient:
    """Tests for the LangChain-backed client."""

    @pytest.mark.asyncio
    async def test_complete_returns_text(self) -> None:
        client = ChatModelCompletionClient(
            FakeListChatModel(responses=['["e1"]']), model_name="fake"
        )

        assert await client.complete("rank") == '["e1"]'
        assert client.model_name == "fake"

    @pytest.mark.asyncio
    async def test_mixed_reply_returns_text_part(self) -> None:
        chat_model = MagicMock()
        chat_model.ainvoke = AsyncMock(
            return_value=AIMessage(content='{"ok": true}', tool_calls=[_tool_call()])
        )
        client = ChatModelCompletionClient(chat_model, model_name="m")

        assert await client.complete("prompt") == '{"ok": true}'

    @pytest.mark.asyncio
    async def test_bare_tool_call_rejected(self) -> None:
        chat_model = MagicMock()
        chat_model.ainvoke = AsyncMock(return_value=AIMessage(content="", tool_calls=[_tool_call()]))
        client = ChatModelCompletionClient(chat_model, model_name="m")

        with pytest.raises(CompletionError) as exc_info:
            await client.complete("prompt")

        assert "search_experts" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_backend_failure_wrapped(self) -> None:
        chat_model = MagicMock()
        chat_model.ainvoke = AsyncMock(side_effect=TimeoutError("slow"))
        client = ChatModelCompletionClient(chat_model, model_name="m")

        with pytest.raises(CompletionError) as exc_info:
            await client.complete("prompt")

        assert isinstance(exc_info.value.cause, TimeoutError)

    @pytest.mark.asyncio
    async def test_generate_exposes_variant(self) -> None:
        client = ChatModelCompletionClient(FakeListChatModel(responses=["hi"]), model_name="f")

        assert await client.generate("prompt") == TextOnly(text="hi")

    def test_satisfies_protocol(self) -> None:
        client = ChatModelCompletionClient(FakeListChatModel(responses=["x"]), model_name="f")

        assert isinstance(client, CompletionClient)


# =============================================================================
# Test: build_chat_model
# =============================================================================


class TestBuildChatModel:
    """Tests for settings-driven model construction."""

    def test_disabled_returns_none(self, settings) -> None:
        assert build_chat_model(settings) is None

    def test_missing_key_returns_none(self, settings, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        configured = settings.model_copy(update={"llm_enabled": True})

        assert build_chat_model(configured) is None

    def test_builds_openai_model(self, settings) -> None:
        configured = settings.model_copy(
            update={"llm_enabled": True, "llm_api_key": "sk-test", "llm_model": "gpt-4o-mini"}
        )

        chat_model = build_chat_model(configured)

        assert chat_model is not None
        assert chat_model.model_name == "gpt-4o-mini"
