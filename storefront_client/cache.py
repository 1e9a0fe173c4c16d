"""Shared response cache with per-key revalidation.

Entries are keyed by endpoint URL (method-agnostic) and never expire: a
value changes only when its key is written by a fetch, mutated locally
(optimistic update), or revalidated. Revalidation re-runs the fetcher
registered for the key, so it is a no-op for keys nobody has fetched.

Concurrent fetches of the same key share one in-flight task. Concurrent
revalidations are last-write-wins, which is safe because a refetch always
supersedes an earlier value.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

from storefront_client.errors import RequestCancelledError, StorefrontApiError

logger = logging.getLogger(__name__)

# A fetcher resolves to an object exposing ``.data`` and ``.response``.
Fetcher = Callable[[], Awaitable[Any]]


@dataclass
class CacheEntry:
    """Last-known-good value for one cache key."""

    key: str
    data: Any = None
    response: Any = None
    error: BaseException | None = None
    is_validating: bool = False
    updated_at: float | None = None  # time.monotonic() of the last write


@dataclass(frozen=True)
class CacheSnapshot:
    """Copy of an entry (or its absence) taken before a local mutation."""

    key: str
    entry: CacheEntry | None


class ResponseCache:
    """Key-value store of parsed responses shared between engines."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._fetchers: dict[str, Fetcher] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def keys(self) -> list[str]:
        return list(self._entries)

    def is_validating(self, key: str) -> bool:
        return key in self._inflight

    # ------------------------------------------------------------------
    # Local writes
    # ------------------------------------------------------------------

    def set(self, key: str, data: Any, response: Any = None) -> CacheEntry:
        """Store a resolved value, clearing any previous error."""
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key=key)
        entry.data = data
        entry.response = response
        entry.error = None
        entry.updated_at = time.monotonic()
        return entry

    def mutate(self, key: str, update: Any) -> CacheSnapshot:
        """Synchronously replace the data for ``key``.

        ``update`` is either the new value or a callable receiving the current
        data (None when the key is not cached) and returning the new value.
        The response is left untouched. Returns a snapshot for ``restore``.
        """
        snapshot = self.snapshot(key)
        current = snapshot.entry.data if snapshot.entry is not None else None
        value = update(current) if callable(update) else update

        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key=key)
        entry.data = value
        entry.updated_at = time.monotonic()
        return snapshot

    def snapshot(self, key: str) -> CacheSnapshot:
        entry = self._entries.get(key)
        return CacheSnapshot(key=key, entry=copy.copy(entry) if entry is not None else None)

    def restore(self, snapshot: CacheSnapshot) -> None:
        """Put ``snapshot.key`` back exactly as it was when the snapshot was taken."""
        if snapshot.entry is None:
            self._entries.pop(snapshot.key, None)
        else:
            self._entries[snapshot.key] = copy.copy(snapshot.entry)

    # ------------------------------------------------------------------
    # Fetchers and revalidation
    # ------------------------------------------------------------------

    def register(self, key: str, fetcher: Fetcher) -> None:
        """Make ``fetcher`` the one used to revalidate ``key``."""
        self._fetchers[key] = fetcher

    def unregister(self, key: str, fetcher: Fetcher | None = None) -> None:
        """Drop the fetcher for ``key`` (only if it is ``fetcher``, when given)."""
        if fetcher is None or self._fetchers.get(key) is fetcher:
            self._fetchers.pop(key, None)

    def has_fetcher(self, key: str) -> bool:
        return key in self._fetchers

    async def fetch(self, key: str, fetcher: Fetcher) -> Any:
        """Run ``fetcher`` for ``key`` and store its result.

        If a fetch for the key is already in flight, its result is shared
        instead of starting a second request. Failures are recorded on an
        existing entry (its data is kept) and re-raised. If the shared fetch
        is cancelled by its owner while this caller is still waiting, the
        fetch is restarted with this caller's ``fetcher``.
        """
        while True:
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.ensure_future(self._run_fetch(key, fetcher))
                self._inflight[key] = task
                task.add_done_callback(lambda done: self._fetch_done(key, done))
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if not task.cancelled() or current is None or current.cancelling():
                    raise
                if self._inflight.get(key) is task:
                    del self._inflight[key]
                logger.debug("Shared fetch of %s was cancelled by its owner, refetching", key)

    async def _run_fetch(self, key: str, fetcher: Fetcher) -> Any:
        entry = self._entries.get(key)
        if entry is not None:
            entry.is_validating = True
        try:
            result = await fetcher()
        except RequestCancelledError:
            raise
        except StorefrontApiError as exc:
            entry = self._entries.get(key)
            if entry is not None:
                entry.error = exc
            raise
        finally:
            entry = self._entries.get(key)
            if entry is not None:
                entry.is_validating = False

        self.set(key, result.data, result.response)
        return result

    def _fetch_done(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Retrieve the exception so an unawaited failure is not reported as lost.
        if not task.cancelled():
            task.exception()

    async def revalidate(self, key: str) -> CacheEntry | None:
        """Refetch ``key`` with its registered fetcher; no-op when there is none.

        Errors are recorded on the entry and logged, not raised.
        """
        fetcher = self._fetchers.get(key)
        if fetcher is None:
            logger.debug("No fetcher registered for %s, skipping revalidation", key)
            return self._entries.get(key)

        try:
            await self.fetch(key, fetcher)
        except RequestCancelledError:
            logger.debug("Revalidation of %s cancelled", key)
        except StorefrontApiError as exc:
            logger.warning(
                "Revalidation of %s failed: %s",
                key,
                exc.message,
                extra={"endpoint": key, "error_reason": exc.message},
            )
        return self._entries.get(key)

    async def invalidate(self, keys: str | Iterable[str] | None) -> list[str]:
        """Revalidate one or more keys concurrently; returns the keys processed."""
        if not keys:
            return []
        key_list = [keys] if isinstance(keys, str) else list(dict.fromkeys(keys))
        await asyncio.gather(*(self.revalidate(key) for key in key_list))
        return key_list
