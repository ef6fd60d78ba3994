"""Robust JSON extraction from LLM responses.

Handles code fences, surrounding prose and documents cut short by an
output-token limit.
"""

import json
import logging
import re

from .errors import DecodeError

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?\s*\n([\s\S]*?)\n\s*```")

# Applied in order; each one strips a fragment left behind when generation
# stopped mid-token.
TRUNCATION_PATTERNS = [
    re.compile(r',\s*"[^"]*\Z'),                        # incomplete key
    re.compile(r',\s*"[^"]*":\s*"[^"]*\Z'),             # incomplete string value
    re.compile(r',\s*"[^"]*":\s*\d+[^,\]\}]*\Z'),       # incomplete number
    re.compile(r',\s*"[^"]*":\s*\Z'),                   # key with no value
    re.compile(r',\s*\{[^}]*\Z'),                       # incomplete object in array
    re.compile(r',\s*\Z'),                              # dangling comma
]

CLOSERS = {"{": "}", "[": "]"}


def extract_json_text(text: str) -> str:
    """Pick the part of the response most likely to hold the JSON document."""
    match = FENCE_RE.search(text)
    if match:
        return match.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text.strip()


def _strip_truncated_tail(text: str) -> str:
    for pattern in TRUNCATION_PATTERNS:
        text = pattern.sub("", text, count=1)
    return text


def _scan_open_structures(text: str) -> tuple[int, int, list[str]]:
    """Return (open braces, open brackets, LIFO stack) ignoring string contents."""
    open_braces = 0
    open_brackets = 0
    stack: list[str] = []
    in_string = False
    escape = False

    for ch in text:
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            open_braces += 1
            stack.append(ch)
        elif ch == "}":
            open_braces -= 1
            if stack and stack[-1] == "{":
                stack.pop()
        elif ch == "[":
            open_brackets += 1
            stack.append(ch)
        elif ch == "]":
            open_brackets -= 1
            if stack and stack[-1] == "[":
                stack.pop()

    return open_braces, open_brackets, stack


def repair_truncated_json(text: str, lifo: bool = False) -> str:
    """Close a JSON document that was cut off mid-generation.

    By default every unmatched ``]`` is appended before every unmatched ``}``,
    which is wrong when brackets and braces interleave (``[{`` closes as
    ``]}``). Pass ``lifo=True`` to close in true nesting order instead.
    """
    json_text = _strip_truncated_tail(text)
    open_braces, open_brackets, stack = _scan_open_structures(json_text)

    if lifo:
        return json_text + "".join(CLOSERS[ch] for ch in reversed(stack))
    return json_text + "]" * max(open_brackets, 0) + "}" * max(open_braces, 0)


def _repair_candidates(text: str, json_text: str) -> list[str]:
    candidates = []
    if not FENCE_RE.search(text):
        start = text.find("{")
        end = text.rfind("}")
        # Non-blank text after the last brace means the document was cut while
        # inside a nested value; repairing the open-ended tail keeps the
        # complete keys that follow the last closed object.
        if start != -1 and (end < start or text[end + 1:].strip()):
            candidates.append(text[start:].rstrip())
    if json_text not in candidates:
        candidates.append(json_text)
    return candidates


def decode(text: str):
    """Parse a JSON value out of an LLM response.

    Raises:
        DecodeError: if nothing parseable could be recovered.
    """
    json_text = extract_json_text(text)

    try:
        return json.loads(json_text)
    except json.JSONDecodeError:
        pass

    for candidate in _repair_candidates(text, json_text):
        tried = set()
        for lifo in (False, True):
            repaired = repair_truncated_json(candidate, lifo=lifo)
            if repaired in tried:
                continue
            tried.add(repaired)
            try:
                result = json.loads(repaired)
            except json.JSONDecodeError:
                continue
            logger.warning(
                f"[DECODE] Recovered truncated JSON ({len(candidate)} -> {len(repaired)} chars"
                f"{', nesting-order closer' if lifo else ''})"
            )
            return result

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"[DECODE] Unparseable response (last 500): {text[-500:]}")
        raise DecodeError(f"No parseable JSON in response: {e}") from e
