from __future__ import annotations

import hashlib
import hmac
import time
from typing import Callable


# Slack recommends rejecting requests older than five minutes (replay protection).
MAX_SKEW_S = 60 * 5


def compute_slack_signature(*, signing_secret: str, timestamp: str, body: bytes) -> str:
    base = b"v0:" + timestamp.encode("utf-8") + b":" + body
    return "v0=" + hmac.new(signing_secret.encode("utf-8"), base, hashlib.sha256).hexdigest()


def verify_slack_signature(
    *,
    signing_secret: str,
    timestamp: str | None,
    signature: str | None,
    body: bytes,
    clock: Callable[[], float] = time.time,
) -> bool:
    if not timestamp or not signature:
        return False
    try:
        ts = int(timestamp)
    except ValueError:
        return False
    if abs(clock() - ts) > MAX_SKEW_S:
        return False
    expected = compute_slack_signature(signing_secret=signing_secret, timestamp=timestamp, body=body)
    return hmac.compare_digest(expected, signature)
