"""
Completion client over LangChain chat models.

The engine needs one thing from a language model: text in, text out. Chat
models can also answer with tool calls, so every reply is classified exactly
once, here, into a tagged union:

- TextOnly: plain text
- ToolCall: a single tool invocation and no text
- Mixed: text plus tool invocations, or several invocations

Callers match on the variant instead of inspecting raw message fields.
``complete()`` accepts TextOnly and Mixed (the text part) and rejects a bare
ToolCall with CompletionError.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from pydantic import SecretStr

from expertmatch.domain.exceptions import CompletionError

logger = logging.getLogger(__name__)

# =============================================================================
# Response Variants
# =============================================================================


@dataclass(frozen=True)
class TextOnly:
    text: str


@dataclass(frozen=True)
class ToolCall:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None


@dataclass(frozen=True)
class Mixed:
    text: str
    tool_calls: tuple[ToolCall, ...] = ()


CompletionResponse = TextOnly | ToolCall | Mixed


def message_text(content: str | list[Any]) -> str:
    """Flatten message content (a string or a list of content blocks)."""
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def classify_message(message: BaseMessage) -> CompletionResponse:
    """Classify a chat model reply into a response variant."""
    text = message_text(message.content)
    raw_calls = getattr(message, "tool_calls", None) or []
    calls = tuple(
        ToolCall(name=call["name"], args=dict(call.get("args") or {}), call_id=call.get("id"))
        for call in raw_calls
    )
    if not calls:
        return TextOnly(text=text)
    if len(calls) == 1 and not text.strip():
        return calls[0]
    return Mixed(text=text, tool_calls=calls)


# =============================================================================
# Protocol for Duck Typing
# =============================================================================


@runtime_checkable
class CompletionClient(Protocol):
    """Text-in, text-out language model client."""

    async def complete(self, prompt: str) -> str:
        """Return the model's text reply to ``prompt``."""
        ...


# =============================================================================
# LangChain Implementation
# =============================================================================


class ChatModelCompletionClient:
    """CompletionClient backed by any LangChain chat model.

    Usage:
        client = ChatModelCompletionClient(ChatOpenAI(model="gpt-4o-mini"))
        text = await client.complete("Rank these experts ...")
    """

    def __init__(self, chat_model: BaseChatModel, model_name: str | None = None) -> None:
        self._chat_model = chat_model
        self._model_name = model_name or getattr(chat_model, "model_name", None) or type(
            chat_model
        ).__name__

    @property
    def model_name(self) -> str:
        return self._model_name

    async def generate(self, prompt: str) -> CompletionResponse:
        """Invoke the model once and classify the reply.

        Raises:
            CompletionError: If the model call fails
        """
        try:
            message = await self._chat_model.ainvoke([HumanMessage(content=prompt)])
        except Exception as e:
            raise CompletionError(f"Chat model {self._model_name} failed: {e}", cause=e) from e
        if not isinstance(message, BaseMessage):
            message = AIMessage(content=str(message))
        return classify_message(message)

    async def complete(self, prompt: str) -> str:
        """Return the text part of the reply.

        Raises:
            CompletionError: If the model call fails or the reply is a bare
                tool call
        """
        response = await self.generate(prompt)
        match response:
            case TextOnly(text=text):
                return text
            case Mixed(text=text, tool_calls=calls):
                logger.debug("Ignoring %d tool calls in text completion", len(calls))
                return text
            case ToolCall(name=name):
                raise CompletionError(f"Expected text, model requested tool '{name}'")
        raise CompletionError(f"Unrecognised completion response: {response!r}")


def build_chat_model(settings: Any) -> BaseChatModel | None:
    """Build the configured OpenAI-compatible chat model.

    Returns None when the model is disabled or no API key is available;
    callers then run their deterministic fallbacks.
    """
    if not settings.llm_enabled:
        logger.info("Chat model disabled by configuration")
        return None

    api_key = settings.llm_api_key or os.environ.get("OPENAI_API_KEY")
    if not api_key and not settings.llm_base_url:
        logger.warning("No chat model API key configured; reranking and deep research fall back")
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=settings.llm_model,
        api_key=SecretStr(api_key or "not-needed"),
        base_url=settings.llm_base_url,
        temperature=settings.llm_temperature,
    )
