"""Recover a JSON object from free-form model output.

Judge responses are untrusted text: the object may be wrapped in Markdown
code fences, surrounded by prose, or carry trailing commas. Extraction never
raises; callers get a ``JsonExtraction`` and decide how to fail.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*")


@dataclass(frozen=True)
class JsonExtraction:
    payload: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text)


def find_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span, ignoring braces inside string literals."""
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]

    # Unbalanced: fall back to the widest candidate and let the decoder report it.
    end = text.rfind("}")
    if end > start:
        return text[start : end + 1]
    return text[start:]


def remove_trailing_commas(text: str) -> str:
    """Drop commas that directly precede ``}`` or ``]`` outside string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    length = len(text)
    for idx, char in enumerate(text):
        if in_string:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == ",":
            lookahead = idx + 1
            while lookahead < length and text[lookahead].isspace():
                lookahead += 1
            if lookahead < length and text[lookahead] in "}]":
                continue
        out.append(char)
    return "".join(out)


def extract_json_object(text: str | None) -> JsonExtraction:
    if not text or not text.strip():
        return JsonExtraction(error="empty response text")

    candidate = find_json_object(strip_code_fences(text))
    if candidate is None:
        return JsonExtraction(error="no JSON object found in response text")

    sanitized = remove_trailing_commas(candidate)
    try:
        decoded = json.loads(sanitized, strict=False)
    except json.JSONDecodeError as exc:
        return JsonExtraction(error=f"invalid JSON: {exc.msg} at line {exc.lineno} column {exc.colno}")

    if not isinstance(decoded, dict):
        return JsonExtraction(error=f"expected a JSON object, got {type(decoded).__name__}")
    return JsonExtraction(payload=decoded)


def preview(text: str | None, limit: int = 500) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
