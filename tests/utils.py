# tests/utils.py
"""
Single source of truth for test data, fakes, and factories.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

import asyncio
import hashlib
import io
from collections.abc import Callable, Mapping
from typing import Any

from PIL import Image

from media_refs.schemas.models import FetchResponse, ResolveTask, TargetConfig

# -----------------------------
# Global defaults (edit once)
# -----------------------------

DEFAULT_URL = "https://cdn.example.com/images/a.jpg"
DEFAULT_ETAG = '"v1-etag"'
DEFAULT_TARGET = TargetConfig(host="https://media.example.org", path="/static")

Route = FetchResponse | Callable[[str, dict[str, str]], FetchResponse]


# -----------------------------
# Bytes factories
# -----------------------------


def png_bytes(w: int = 32, h: int = 16, color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (w, h), color).save(buf, format="PNG", compress_level=0)
    return buf.getvalue()


def jpeg_bytes(w: int = 40, h: int = 20, color: tuple[int, int, int] = (10, 120, 240)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (w, h), color).save(buf, format="JPEG", quality=90)
    return buf.getvalue()


def sha1_hex(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


# -----------------------------
# Fakes
# -----------------------------


def etag_route(body: bytes, etag: str = DEFAULT_ETAG, headers: Mapping[str, str] | None = None) -> Route:
    """Serve `body` with an ETag; answer 304 (empty body) when the client already has it."""

    def _route(url: str, req_headers: dict[str, str]) -> FetchResponse:
        if req_headers.get("If-None-Match") == etag:
            return FetchResponse(status=304, headers={"ETag": etag})
        return FetchResponse(status=200, headers={"ETag": etag, **dict(headers or {})}, body=body)

    return _route


class FakeFetcher:
    """
    In-memory Fetcher. Records every call and the peak number of overlapping
    calls so tests can assert dedup and the concurrency ceiling.
    """

    def __init__(
        self,
        routes: Mapping[str, Route] | None = None,
        *,
        default: Route | None = None,
        delay: float = 0.0,
    ) -> None:
        self.routes: dict[str, Route] = dict(routes or {})
        self.default = default
        self.delay = delay
        self.calls: list[tuple[str, dict[str, str], tuple[str, str] | None]] = []
        self.active = 0
        self.peak = 0

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def urls(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        auth: tuple[str, str] | None = None,
    ) -> FetchResponse:
        hdrs = dict(headers or {})
        self.calls.append((url, hdrs, auth))
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            route = self.routes.get(url, self.default)
            if route is None:
                return FetchResponse(status=404)
            if callable(route):
                return route(url, hdrs)
            return route
        finally:
            self.active -= 1


class RecordingProgress:
    """Progress reporter that records the call sequence."""

    instances: list[RecordingProgress] = []

    def __init__(self) -> None:
        self.total = 0
        self.events: list[str] = []
        RecordingProgress.instances.append(self)

    def start(self) -> None:
        self.events.append("start")

    def tick(self) -> None:
        self.events.append("tick")

    def done(self) -> None:
        self.events.append("done")


# -----------------------------
# Domain factories
# -----------------------------


def make_task(url: str = DEFAULT_URL, **overrides: Any) -> ResolveTask:
    fields: dict[str, Any] = {"url": url, "parent_id": "parent-1", "target": DEFAULT_TARGET}
    fields.update(overrides)
    return ResolveTask(**fields)


def make_node(
    node_id: str = "post-1",
    node_type: str = "Post",
    **fields: Any,
) -> dict[str, Any]:
    node: dict[str, Any] = {"id": node_id, "internal": {"type": node_type}, "slug": f"{node_id}-slug"}
    node.update(fields)
    return node
