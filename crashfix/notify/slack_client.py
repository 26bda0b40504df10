from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx


class SlackApiError(RuntimeError):
    def __init__(self, message: str, *, method: str, error: str | None = None):
        super().__init__(message)
        self.method = method
        self.error = error


@dataclass(frozen=True)
class SlackWebClient:
    """
    Minimal async Slack Web API client (bot token).

    Slack answers HTTP 200 with {"ok": false, "error": "..."} for most failures,
    so both the status code and the `ok` flag are checked.
    """

    token: str
    api_base: str = "https://slack.com/api"
    timeout_s: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None

    async def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_base.rstrip('/')}/{method}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json; charset=utf-8",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as c:
                r = await c.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise SlackApiError(f"slack_transport_error {method}: {e}", method=method) from e
        if r.status_code != 200:
            raise SlackApiError(f"slack_http_{r.status_code} {method}: {r.text[:500]}", method=method)
        try:
            data = r.json()
        except ValueError as e:
            raise SlackApiError(f"slack_response_not_json {method}", method=method) from e
        if not data.get("ok"):
            err = str(data.get("error") or "unknown_error")
            raise SlackApiError(f"slack_api_error {method}: {err}", method=method, error=err)
        return data

    async def post_message(
        self,
        *,
        channel: str,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None,
        thread_ts: Optional[str] = None,
    ) -> str:
        payload: Dict[str, Any] = {"channel": channel, "text": text}
        if blocks:
            payload["blocks"] = blocks
        if thread_ts:
            payload["thread_ts"] = thread_ts
        data = await self._call("chat.postMessage", payload)
        return str(data.get("ts") or "")

    async def update_message(
        self,
        *,
        channel: str,
        ts: str,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        payload: Dict[str, Any] = {"channel": channel, "ts": ts, "text": text}
        # An explicit empty list clears blocks left over from an earlier rich update.
        payload["blocks"] = blocks or []
        await self._call("chat.update", payload)

    async def add_reaction(self, *, channel: str, ts: str, name: str) -> None:
        await self._call("reactions.add", {"channel": channel, "timestamp": ts, "name": name})
