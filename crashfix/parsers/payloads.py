from __future__ import annotations

import json
from typing import Any, Dict, Optional

from pydantic import ValidationError

from crashfix.models import ActionPayload, AlertKind, CrashAlertEvent, CrashIssue


def _str_field(raw: Dict[str, Any], key: str, default: str = "") -> str:
    v = raw.get(key)
    if v is None:
        return default
    if isinstance(v, (str, int, float)):
        return str(v)
    return default


def _find_issue(body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    # Alert envelopes differ between trigger types: data.payload.issue, payload.issue or data.issue.
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    for container in (data.get("payload"), body.get("payload"), data):
        if isinstance(container, dict) and isinstance(container.get("issue"), dict):
            return container["issue"]
    return None


def decode_crash_issue(raw: Any) -> Optional[CrashIssue]:
    if not isinstance(raw, dict):
        return None
    return CrashIssue(
        id=_str_field(raw, "id", "unknown") or "unknown",
        title=_str_field(raw, "title"),
        subtitle=_str_field(raw, "subtitle"),
        app_version=_str_field(raw, "appVersion"),
    )


def decode_alert_event(body: Any, *, kind: AlertKind, label: Optional[str] = None) -> Optional[CrashAlertEvent]:
    """
    Decode an inbound alert envelope. Returns None when there is no `issue` object.
    """
    if not isinstance(body, dict):
        return None
    issue = decode_crash_issue(_find_issue(body))
    if issue is None:
        return None
    return CrashAlertEvent(
        app_id=_str_field(body, "appId"),
        project=_str_field(body, "project"),
        kind=kind,
        issue=issue,
        label=label,
    )


def decode_action_value(value: Any) -> Optional[ActionPayload]:
    """
    Decode the JSON string stored in a Slack button `value`.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        raw = json.loads(value)
    except json.JSONDecodeError:
        return None
    if not isinstance(raw, dict):
        return None
    try:
        return ActionPayload.model_validate(raw)
    except ValidationError:
        return None


def decode_interaction_payload(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Slack posts interactions as form field `payload` holding a JSON string.
    """
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None
