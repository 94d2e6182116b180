"""
Language model layer: completion client over LangChain chat models, tolerant
JSON parsing of replies, and prompt templates.
"""

from expertmatch.llm.completion import (
    ChatModelCompletionClient,
    CompletionClient,
    CompletionResponse,
    Mixed,
    TextOnly,
    ToolCall,
    build_chat_model,
    classify_message,
)
from expertmatch.llm.json_response import parse_json_response, strip_code_fences

__all__ = [
    "ChatModelCompletionClient",
    "CompletionClient",
    "CompletionResponse",
    "Mixed",
    "TextOnly",
    "ToolCall",
    "build_chat_model",
    "classify_message",
    "parse_json_response",
    "strip_code_fences",
]
