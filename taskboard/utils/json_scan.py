"""Locate and decode JSON embedded in free-form language-model output."""

import json
import re
from typing import Any

from taskboard.utils.errors import ParseError

# Reasoning models (e.g. DeepSeek R1) prefix their answer with a think block
_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)

_OPENERS = {dict: "{", list: "["}

_decoder = json.JSONDecoder()

# Upper bounds on scanning work for a single reply
MAX_SCAN_CHARS = 50_000
MAX_DECODE_ATTEMPTS = 500


def find_json_value(text: str, expected: type = dict) -> Any:
    """
    Return the first complete JSON value of the expected type found in text.

    Scans left to right; at every candidate opening bracket the standard JSON
    decoder tries to read one full value, so nested braces and brackets inside
    strings are handled. Prose and code fences around the value are ignored.
    Only the first ``MAX_SCAN_CHARS`` characters and ``MAX_DECODE_ATTEMPTS``
    openers are tried.
    Raises ParseError when nothing decodes.
    """
    if expected not in _OPENERS:
        raise ValueError(f"Unsupported JSON container type: {expected!r}")
    if not text:
        raise ParseError("Empty response")

    cleaned = _THINK_BLOCK.sub("", text)[:MAX_SCAN_CHARS]
    opener = _OPENERS[expected]

    position = cleaned.find(opener)
    attempts = 0
    while position != -1 and attempts < MAX_DECODE_ATTEMPTS:
        attempts += 1
        try:
            value, end = _decoder.raw_decode(cleaned, position)
        except (json.JSONDecodeError, RecursionError):
            position = cleaned.find(opener, position + 1)
            continue
        if isinstance(value, expected):
            return value
        position = cleaned.find(opener, end)

    raise ParseError(f"No JSON {expected.__name__} found in response")
