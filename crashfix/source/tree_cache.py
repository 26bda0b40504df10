from __future__ import annotations

import time
from typing import Awaitable, Callable, List, Optional


class RepositoryTreeCache:
    """
    Process-wide cache of every blob path on the default branch.

    Shared across concurrent pipeline invocations without locking: two callers may
    both miss and both refetch, and the last one to finish wins. Serving a listing
    up to `ttl_s` old is accepted; it only feeds the last-resort resolution tier.
    """

    def __init__(self, *, ttl_s: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_s = float(ttl_s)
        self._clock = clock
        self._paths: Optional[List[str]] = None
        self._fetched_at: float = 0.0

    @property
    def fetched_at(self) -> float:
        return self._fetched_at

    def is_fresh(self) -> bool:
        return self._paths is not None and (self._clock() - self._fetched_at) < self.ttl_s

    def age_s(self) -> float:
        return self._clock() - self._fetched_at

    async def get(self, loader: Callable[[], Awaitable[List[str]]]) -> List[str]:
        if self.is_fresh():
            return list(self._paths or [])
        started = self._clock()
        paths = list(await loader())
        self._paths = paths
        self._fetched_at = started
        return list(paths)

    def invalidate(self) -> None:
        self._paths = None
        self._fetched_at = 0.0
