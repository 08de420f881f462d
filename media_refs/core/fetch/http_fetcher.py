# media_refs/core/fetch/http_fetcher.py
"""
Conditional HTTP GET with full-body buffering.

`requests` does the transfer; each call runs on a thread pool sized to the
resolver's concurrency ceiling so the event loop only awaits the result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol, runtime_checkable

import requests

from media_refs.core.log import get_logger
from media_refs.schemas.models import FetchResponse, ResolverPolicy

from .errors import FetchError

log = get_logger(__name__)

# Retry only failures where nothing useful came back
_RETRYABLE = (requests.ConnectionError, requests.Timeout)


@runtime_checkable
class Fetcher(Protocol):
    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> FetchResponse: ...


# -------------------------
# Internal HTTP helpers
# -------------------------


def _http_get(url: str, headers: dict[str, str], auth: tuple[str, str] | None, timeout: float) -> FetchResponse:
    resp = requests.get(url, headers=headers, auth=auth, timeout=timeout)
    try:
        return FetchResponse(status=resp.status_code, headers=dict(resp.headers), body=resp.content)
    finally:
        resp.close()


class HttpFetcher:
    """Fetcher backed by `requests`."""

    def __init__(self, policy: ResolverPolicy | None = None, *, executor: ThreadPoolExecutor | None = None) -> None:
        self.policy = policy or ResolverPolicy()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.policy.concurrency,
            thread_name_prefix="media-refs-fetch",
        )

    def _headers(self, headers: Mapping[str, str] | None) -> dict[str, str]:
        hdrs = {"User-Agent": self.policy.user_agent, "Accept": "*/*"}
        hdrs.update(headers or {})
        return hdrs

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> FetchResponse:
        loop = asyncio.get_running_loop()
        hdrs = self._headers(headers)
        attempts = self.policy.stall_retry_limit + 1

        for attempt in range(1, attempts + 1):
            try:
                return await loop.run_in_executor(
                    self._executor,
                    _http_get,
                    url,
                    hdrs,
                    auth,
                    self.policy.connection_timeout_s,
                )
            except _RETRYABLE as e:
                if attempt >= attempts:
                    raise FetchError(f"network error for {url} after {attempt} attempt(s): {e}", url=url) from e
                log.debug("retrying %s (attempt %d/%d): %s", url, attempt, attempts, e)
            except requests.RequestException as e:
                raise FetchError(f"network error for {url}: {e}", url=url) from e

        raise FetchError(f"no attempt made for {url}", url=url)  # pragma: no cover

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


__all__ = ["Fetcher", "HttpFetcher"]
