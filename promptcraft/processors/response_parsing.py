# promptcraft/processors/response_parsing.py
"""Helpers for turning raw model text into validated JSON payloads."""

import json
import pathlib
from typing import Any, Dict

from jsonschema import Draft7Validator

from promptcraft import errors
from promptcraft.monitoring import logger

# schemas/ lives at repo root, one level above promptcraft/
_SCHEMA_DIR = pathlib.Path(__file__).resolve().parents[2] / "schemas"


def load_schema(filename: str, fallback: Dict[str, Any]) -> Dict[str, Any]:
    try:
        with open(_SCHEMA_DIR / filename, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        logger.warning("Could not load response schema; using fallback", extra={"schema_file": filename})
        return fallback


def strip_fences(text: str) -> str:
    s = (text or "").strip()
    if s.startswith("```") and s.endswith("```"):
        lines = s.splitlines()
        if len(lines) >= 3:
            s = "\n".join(lines[1:-1]).strip()
    return s


def _extract_first_json(text: str) -> str:
    """Find the first JSON object or array in text, ignoring surrounding chatter."""
    s = strip_fences(text)
    starts = [i for i in (s.find("{"), s.find("[")) if i != -1]
    if not starts:
        return s
    first = min(starts)
    closer = "}" if s[first] == "{" else "]"
    last = s.rfind(closer)
    if last == -1:
        return s
    return s[first:last + 1]


def parse_json_response(text: str, stage: str) -> Any:
    """Raises UpstreamError when the model output holds no parseable JSON."""
    payload = _extract_first_json(text)
    try:
        return json.loads(payload)
    except ValueError as e:
        raise errors.UpstreamError(
            f"{stage}: failed to parse JSON from model response: {e}. Raw: {(text or '')[:500]}"
        ) from e


def drop_invalid_properties(parsed: Any, schema: Dict[str, Any], stage: str) -> Dict[str, Any]:
    """
    Validate parsed JSON against schema. Top-level properties that fail
    validation are removed so the caller can fall back to defaults; a
    top-level mismatch (not an object at all) is an upstream failure.
    """
    validator = Draft7Validator(schema)
    bad_keys = set()
    for err in validator.iter_errors(parsed):
        if not err.absolute_path:
            raise errors.UpstreamError(f"{stage}: response failed schema validation: {err.message}")
        bad_keys.add(err.absolute_path[0])
    return {k: v for k, v in parsed.items() if k not in bad_keys}
