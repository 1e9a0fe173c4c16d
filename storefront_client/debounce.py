"""Per-key debounce gate.

Calls for the same key within the delay window collapse into one: each new
call reschedules a single cancellable timer and replaces the pending
callable, and every caller waiting on the key receives the result of the
last invocation.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import Any


@dataclass
class _PendingCall:
    future: asyncio.Future
    factory: Callable[[], Awaitable[Any]] | None = None
    handle: asyncio.TimerHandle | None = None


class Debouncer:
    """Collapse rapid repeated calls per key.

    Args:
        delay: Quiet period in seconds before the last call actually runs.
    """

    def __init__(self, delay: float) -> None:
        self._delay = delay
        self._pending: dict[str, _PendingCall] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def delay(self) -> float:
        return self._delay

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def call(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Schedule ``factory`` for ``key`` and wait for the collapsed result."""
        loop = asyncio.get_running_loop()
        pending = self._pending.get(key)
        if pending is None:
            pending = self._pending[key] = _PendingCall(future=loop.create_future())
        elif pending.handle is not None:
            pending.handle.cancel()

        pending.factory = factory
        pending.handle = loop.call_later(self._delay, self._fire, key)
        return await asyncio.shield(pending.future)

    def _fire(self, key: str) -> None:
        pending = self._pending.pop(key, None)
        if pending is None or pending.factory is None:
            return
        task = asyncio.ensure_future(pending.factory())
        self._tasks.add(task)
        task.add_done_callback(partial(self._settle, pending.future))

    def _settle(self, future: asyncio.Future, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if future.done():
            return
        if task.cancelled():
            future.cancel()
        elif task.exception() is not None:
            future.set_exception(task.exception())
        else:
            future.set_result(task.result())

    def cancel_all(self) -> None:
        """Cancel every scheduled timer and running call; waiters are cancelled."""
        for pending in self._pending.values():
            if pending.handle is not None:
                pending.handle.cancel()
            pending.future.cancel()
        self._pending.clear()
        for task in list(self._tasks):
            task.cancel()
