from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List

import httpx


class LLMError(RuntimeError):
    pass


@dataclass(frozen=True)
class ChatResult:
    text: str
    stop_reason: str | None = None

    @property
    def truncated(self) -> bool:
        return self.stop_reason == "max_tokens"


@dataclass(frozen=True)
class AnthropicClient:
    """
    Calls the Anthropic Messages API.

    Endpoint: POST {base_url}/v1/messages
    Docs: https://docs.anthropic.com/en/api/messages
    """

    api_key: str
    base_url: str = "https://api.anthropic.com"
    api_version: str = "2023-06-01"
    timeout_s: float = 120.0
    # Callers own the user-visible retry policy; this only covers dropped connections.
    max_retries: int = 3
    retry_backoff_s: float = 0.8
    transport: httpx.AsyncBaseTransport | None = None

    async def chat(self, *, model: str, messages: List[Dict[str, str]], max_tokens: int = 2048, system: str | None = None) -> ChatResult:
        url = f"{self.base_url.rstrip('/')}/v1/messages"
        headers: Dict[str, str] = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "content-type": "application/json",
        }
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": int(max(1, min(int(max_tokens), 64000))),
        }
        if system:
            payload["system"] = system

        attempts = max(1, int(self.max_retries))
        for attempt in range(1, attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                    r = await client.post(url, headers=headers, json=payload)
                if r.status_code != 200:
                    raise LLMError(f"anthropic_http_{r.status_code}: {r.text[:1500]}")
                try:
                    data = r.json()
                except ValueError as e:
                    raise LLMError(f"anthropic_response_not_json: {r.text[:500]}") from e
            except (
                httpx.ReadError,
                httpx.RemoteProtocolError,
                httpx.ConnectError,
                httpx.TimeoutException,
            ) as e:
                if attempt < attempts:
                    await asyncio.sleep(self.retry_backoff_s * (2 ** (attempt - 1)))
                    continue
                raise LLMError(f"anthropic_transient_error after {attempt} attempts: {e}") from e
            return _parse_response(data)

        raise LLMError("anthropic_failed: no attempts made")


def _parse_response(data: Any) -> ChatResult:
    try:
        blocks = data["content"]
        text = "".join(b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text")
    except (KeyError, TypeError) as e:
        raise LLMError(f"anthropic_response_parse_error: {str(data)[:500]}") from e
    if not text:
        raise LLMError(f"anthropic_empty_response: stop_reason={data.get('stop_reason')}")
    return ChatResult(text=text, stop_reason=data.get("stop_reason"))
