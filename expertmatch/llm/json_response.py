"""
Tolerant JSON extraction from chat model replies.

Models wrap JSON in markdown fences (```json ... ```), prefix it with prose
("Here is the analysis:"), or both. The helpers here find the JSON payload
and raise ModelResponseUnparseableError when there is none.
"""

from __future__ import annotations

import json
import re
from typing import Any

from expertmatch.domain.exceptions import ModelResponseUnparseableError

_FENCED_BLOCK = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_OPENERS = {"[": "]", "{": "}"}


def strip_code_fences(text: str) -> str:
    """Return the content of the first fenced block, or the stripped text.

    An unterminated opening fence is dropped as well.
    """
    content = text.strip()
    match = _FENCED_BLOCK.search(content)
    if match:
        return match.group(1).strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def _first_json_span(text: str) -> str | None:
    """Locate the first balanced [...] or {...} span, ignoring brackets in strings."""
    start = next((i for i, ch in enumerate(text) if ch in _OPENERS), None)
    if start is None:
        return None
    stack: list[str] = []
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
            if not stack:
                return text[start : index + 1]
    return None


def parse_json_response(text: str | None) -> Any:
    """Parse the JSON payload of a model reply.

    Args:
        text: Raw model output

    Returns:
        The decoded JSON value

    Raises:
        ModelResponseUnparseableError: If no JSON value can be decoded
    """
    if text is None or not text.strip():
        raise ModelResponseUnparseableError("Model returned an empty response", response=text)

    content = strip_code_fences(text)
    try:
        return json.loads(content)
    except json.JSONDecodeError as first_error:
        span = _first_json_span(content)
        if span is not None:
            try:
                return json.loads(span)
            except json.JSONDecodeError:
                pass
        raise ModelResponseUnparseableError(
            f"Model response is not valid JSON: {first_error}",
            response=text,
            cause=first_error,
        ) from first_error
