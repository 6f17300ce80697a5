"""Robust JSON parsing for LLM responses.

Models return JSON in different shapes: clean, wrapped in a markdown code
block, or surrounded by explanatory text. The verifier contract is a single
JSON object, so only object results are accepted.
"""

import json
import re
from typing import Any, Optional


def parse_json_response(text: str) -> Optional[dict[str, Any]]:
    """Parse a JSON object from LLM response text.

    Returns:
        Parsed dict, or None if no JSON object could be recovered.
    """
    if not text or not text.strip():
        return None

    text = text.strip()

    result = _try_direct_parse(text)
    if result is not None:
        return result

    result = _try_markdown_block(text)
    if result is not None:
        return result

    return _try_find_json_object(text)


def _try_direct_parse(text: str) -> Optional[dict[str, Any]]:
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        return None
    return result if isinstance(result, dict) else None


def _try_markdown_block(text: str) -> Optional[dict[str, Any]]:
    """Extract JSON from ```json ... ``` or bare ``` ... ``` blocks."""
    patterns = [
        r"```json\s*\n?(.*?)\n?```",
        r"```\s*\n?(.*?)\n?```",
    ]
    for pattern in patterns:
        match = re.search(pattern, text, re.DOTALL | re.IGNORECASE)
        if match:
            result = _try_direct_parse(match.group(1).strip())
            if result is not None:
                return result
    return None


def _try_find_json_object(text: str) -> Optional[dict[str, Any]]:
    """Find the first balanced { ... } span and parse it."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return _try_direct_parse(text[start : i + 1])

    return None
