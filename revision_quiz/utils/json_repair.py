"""
Extraction and single-pass repair of JSON embedded in model output.

Language models wrap JSON in prose or code fences and occasionally emit
almost-JSON (doubled quotes, raw newlines in strings, trailing commas).
``parse_json_payload`` pulls out the first object and, if it does not
parse, applies one bounded repair pass before giving up.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

from loguru import logger


class JSONPayloadError(ValueError):
    """Raised when no JSON object can be recovered from a text."""


def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` object in ``text``.

    Braces inside string literals are ignored. If the first object never
    closes, everything from the first ``{`` to the last ``}`` is returned
    so the repair pass still gets a chance.

    Returns:
        The object text, or None if ``text`` holds no ``{``
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
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
                return text[start : index + 1]

    end = text.rfind("}")
    if end <= start:
        return None
    return text[start : end + 1]


def repair_json(text: str) -> str:
    """
    Apply one pass of textual fixes for common model mistakes.

    Fixes applied, in order:
    - escaped quotes outside of strings (``{\\"a\\": 1}``) are unescaped
    - doubled quotes around tokens (``""title""``) become single quotes
    - runs of whitespace, including raw newlines inside strings, collapse to one space
    - spacing around ``:`` is normalised
    - trailing commas before ``}`` or ``]`` are dropped
    """
    repaired = text.strip()
    if repaired.startswith('{\\"'):
        repaired = repaired.replace('\\"', '"')
    repaired = re.sub(r'""([^",:{}\[\]]+)""', r'"\1"', repaired)
    repaired = re.sub(r"\s+", " ", repaired)
    repaired = re.sub(r'"\s*:\s*', '": ', repaired)
    repaired = re.sub(r",\s*([}\]])", r"\1", repaired)
    return repaired


def parse_json_payload(raw: str) -> dict[str, Any]:
    """
    Parse the first JSON object found in ``raw``.

    Args:
        raw: Free text returned by a model

    Returns:
        Parsed object

    Raises:
        JSONPayloadError: If no object is found, or it still does not parse
            after one repair pass, or the payload is not an object
    """
    if not isinstance(raw, str):
        raise JSONPayloadError(f"Expected text, got {type(raw).__name__}")

    candidate = extract_json_object(raw)
    if candidate is None:
        raise JSONPayloadError("No JSON object found in model output")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as first_error:
        logger.debug(f"JSON parse failed ({first_error}), attempting repair")
        try:
            data = json.loads(repair_json(candidate))
        except json.JSONDecodeError as e:
            raise JSONPayloadError(f"Unparseable JSON after repair: {e}") from e
        logger.info("Model output parsed after JSON repair")

    if not isinstance(data, dict):
        raise JSONPayloadError(f"Expected a JSON object, got {type(data).__name__}")
    return data
