# keyed read cache with in-flight dedup and prefix invalidation
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Hashable, Tuple

from utils.logger import get_logger

_logger = get_logger(__name__)

QueryKey = Tuple[Hashable, ...]


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """
    Cache of read results keyed by tuples such as ("cart", "alice").

    - concurrent fetches of one key share a single load
    - failed loads are never stored
    - invalidate(prefix) drops matching entries; loads already in flight for
      those keys finish for their awaiting callers but are not stored, and the
      next fetch starts a fresh load
    """

    def __init__(self) -> None:
        self._entries: Dict[QueryKey, Any] = {}
        self._inflight: Dict[QueryKey, asyncio.Future] = {}
        self._generation: Dict[QueryKey, int] = {}

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def peek(self, key: QueryKey, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def is_loading(self, key: QueryKey) -> bool:
        return key in self._inflight

    async def fetch(self, key: QueryKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        if key in self._entries:
            return self._entries[key]

        task = self._inflight.get(key)
        if task is None:
            generation = self._generation.get(key, 0)
            _logger.debug(f"Loading {key}")
            task = asyncio.ensure_future(loader())
            self._inflight[key] = task
            task.add_done_callback(
                lambda t, key=key, generation=generation: self._settle(key, generation, t)
            )
        # shield: an abandoned caller must not cancel a load others share
        return await asyncio.shield(task)

    def _settle(self, key: QueryKey, generation: int, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.debug(f"Load of {key} failed: {exc!r}")
            return
        if self._generation.get(key, 0) != generation:
            _logger.debug(f"Discarding stale load of {key}")
            return
        self._entries[key] = task.result()

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with prefix. Returns how many keys were hit."""
        hit = {k for k in self._entries if _matches(k, prefix)}
        hit |= {k for k in self._inflight if _matches(k, prefix)}
        for key in hit:
            self._entries.pop(key, None)
            self._inflight.pop(key, None)
            self._generation[key] = self._generation.get(key, 0) + 1
        if hit:
            _logger.debug(f"Invalidated {len(hit)} key(s) under {prefix}")
        return len(hit)

    def clear(self) -> None:
        for key in set(self._entries) | set(self._inflight):
            self._generation[key] = self._generation.get(key, 0) + 1
        self._entries.clear()
        self._inflight.clear()
