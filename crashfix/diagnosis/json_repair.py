from __future__ import annotations

import json
import re
from typing import Any, Tuple

from pydantic import ValidationError

from crashfix.models import FixProposal


_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")


def strip_code_fence(text: str) -> str:
    """
    Return the body of the first ```json fence, or the whole text when unfenced.
    """
    t = text or ""
    m = _FENCE_RE.search(t)
    if m:
        return m.group(1).strip()
    # Truncated output often has an opening fence and no closing one.
    t = t.strip()
    if t.startswith("```json"):
        t = t[len("```json") :]
    elif t.startswith("```"):
        t = t[3:]
    return t.strip()


def repair_truncated_json(text: str) -> str:
    """
    Best-effort repair of JSON cut off mid-output (usually max_tokens).

    Only balances characters: closes an odd number of double quotes, then appends
    one `]` per unmatched `[` and one `}` per unmatched `{`. Quotes and brackets
    inside string values (and escaped quotes) are counted like any other, so
    pathological inputs can be mis-repaired. Valid JSON comes back unchanged.
    """
    repaired = text or ""
    if repaired.count('"') % 2 != 0:
        repaired += '"'
    open_brackets = repaired.count("[") - repaired.count("]")
    open_braces = repaired.count("{") - repaired.count("}")
    repaired += "]" * max(0, open_brackets)
    repaired += "}" * max(0, open_braces)
    return repaired


def parse_json_with_repair(text: str) -> Tuple[Any | None, str | None]:
    """
    Parse fenced/unfenced model JSON, applying one repair pass on failure.
    Returns (parsed, error). `error` is "repaired" when the repair pass was needed.
    """
    body = strip_code_fence(text)
    if not body:
        return None, "empty"
    try:
        return json.loads(body), None
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(repair_truncated_json(body)), "repaired"
    except json.JSONDecodeError as e:
        return None, f"json_parse_failed: {e}"


def parse_fix_proposal(text: str) -> Tuple[FixProposal | None, str | None]:
    """
    Decode the fix-generation response into a FixProposal.
    A response without a non-empty `fixes` list is treated as a failed generation.
    """
    parsed, err = parse_json_with_repair(text)
    if parsed is None:
        return None, err
    if not isinstance(parsed, dict):
        return None, "not_an_object"
    fixes = parsed.get("fixes")
    if not isinstance(fixes, list) or not fixes:
        return None, "missing_fixes"
    try:
        return FixProposal.model_validate(parsed), err
    except ValidationError as e:
        return None, f"invalid_fix_proposal: {e.error_count()} errors"
