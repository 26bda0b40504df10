from __future__ import annotations

import json
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional


class AuditLogger:
    """
    Append-only JSONL event log. One correlation id per crash event or Slack interaction.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    def new_correlation_id(self) -> str:
        return uuid.uuid4().hex

    def write(
        self,
        correlation_id: str,
        event_type: str,
        payload: Dict[str, Any],
        *,
        actor: str = "crashfix",
        timestamp: Optional[str] = None,
    ) -> None:
        record = {
            "ts": timestamp or datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "correlation_id": correlation_id,
            "actor": actor,
            "event_type": event_type,
            "payload": payload,
        }
        line = json.dumps(record, ensure_ascii=False, default=str) + "\n"
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)

    def recorder(self, correlation_id: str) -> Callable[[str, Dict[str, Any]], None]:
        """
        `on_event` callback that writes every component event under `correlation_id`.
        """

        def _on_event(event_type: str, payload: Dict[str, Any]) -> None:
            self.write(correlation_id, event_type, payload)

        return _on_event
