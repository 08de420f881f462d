# media_refs/core/media/queue.py
"""
Per-build resolution session: dedup table + concurrency ceiling + progress.

One `ResolverSession` per build. Submitting a URL already in the table returns
the original in-flight task (the first submission wins), so a remote asset is
fetched and emitted at most once per session no matter how many nodes point
at it. At most `policy.concurrency` resolutions run at once; the rest wait on
the semaphore in submission order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any

from media_refs.core.fetch.errors import MediaRefError, media_error_guard
from media_refs.core.log import get_logger
from media_refs.core.media.progress import NullProgress, ProgressFactory, ProgressReporter
from media_refs.core.media.resolver import MediaResolver, validate_url
from media_refs.schemas.models import MediaReference, ResolverPolicy, ResolveTask

log = get_logger(__name__)


class ResolverSession:
    def __init__(
        self,
        resolver: MediaResolver,
        *,
        policy: ResolverPolicy | None = None,
        progress_factory: ProgressFactory | None = None,
    ) -> None:
        self.resolver = resolver
        self.policy = policy or resolver.policy
        self._progress_factory = progress_factory or NullProgress
        self._semaphore = asyncio.Semaphore(self.policy.concurrency)
        self._in_flight: dict[str, asyncio.Task[MediaReference]] = {}
        self._pending = 0
        self._running = 0
        self._peak_running = 0
        self.total_submitted = 0
        self._progress: ProgressReporter | None = None
        self._drained = asyncio.Event()
        self._drained.set()

    # ---------- Public API ----------

    def submit(self, task: ResolveTask) -> Awaitable[MediaReference]:
        """
        Queue `task` unless its URL is already known to this session.

        Raises ValidationError synchronously for a malformed URL; nothing is
        queued in that case. Must be called with a running event loop.
        """
        url = validate_url(task.url)

        existing = self._in_flight.get(url)
        if existing is not None:
            return asyncio.shield(existing)

        if self.total_submitted == 0:
            self._progress = self._progress_factory()
            self._safe_progress("start")

        self.total_submitted += 1
        self._pending += 1
        self._drained.clear()
        if self._progress is not None:
            self._progress.total = self.total_submitted

        job = asyncio.ensure_future(self._run(task))
        self._in_flight[url] = job
        return asyncio.shield(job)

    async def resolve(self, url: str, **fields: Any) -> MediaReference:
        """Convenience: build a ResolveTask from keyword fields and await it."""
        return await self.submit(ResolveTask(url=url, **fields))

    async def join(self) -> None:
        """Wait until nothing is queued or running."""
        await self._drained.wait()

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def running(self) -> int:
        return self._running

    @property
    def peak_running(self) -> int:
        return self._peak_running

    def in_flight(self, url: str) -> bool:
        return url in self._in_flight

    def close(self) -> None:
        """Release the fetcher's transport resources (thread pool). Call once the build is over."""
        close = getattr(self.resolver.fetcher, "close", None)
        if callable(close):
            close()

    # ---------- Internals ----------

    async def _run(self, task: ResolveTask) -> MediaReference:
        try:
            async with self._semaphore:
                self._running += 1
                self._peak_running = max(self._peak_running, self._running)
                try:
                    with media_error_guard(task.url):
                        ref = await self.resolver.resolve(task)
                finally:
                    self._running -= 1
        except MediaRefError as e:
            log.error("failed to process %s: %s", task.url, e)
            raise
        else:
            self._safe_progress("tick")
            return ref
        finally:
            self._pending -= 1
            if self._pending == 0:
                self._on_drain()

    def _on_drain(self) -> None:
        self._safe_progress("done")
        self._progress = None
        self.total_submitted = 0
        self._drained.set()

    def _safe_progress(self, method: str) -> None:
        if self._progress is None:
            return
        try:
            getattr(self._progress, method)()
        except Exception:  # noqa: BLE001
            log.exception("progress reporter %s() failed", method)


__all__ = ["ResolverSession"]
