# media_refs/core/media/pipeline.py
from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from media_refs.core.fetch.cache import CacheStore, DiskCache
from media_refs.core.fetch.http_fetcher import Fetcher, HttpFetcher
from media_refs.core.media.base import InMemoryNodeStore, NodeEmitter
from media_refs.core.media.progress import ProgressKind, create_progress
from media_refs.core.media.queue import ResolverSession
from media_refs.core.media.resolver import MediaResolver
from media_refs.schemas.models import ResolverPolicy, TransformerOptions
from media_refs.tools.transformer import MediaRefTransformer


def build_session(
    *,
    policy: ResolverPolicy | None = None,
    cache: CacheStore | None = None,
    fetcher: Fetcher | None = None,
    emitter: NodeEmitter | None = None,
    progress: ProgressKind = "tqdm",
    create_node_id: Callable[[str], str] | None = None,
) -> ResolverSession:
    """
    Wire one build's session. Defaults: DiskCache under policy.cache_dir,
    requests-backed fetcher, in-memory node store.
    """
    pol = policy or ResolverPolicy()
    resolver = MediaResolver(
        cache=cache if cache is not None else DiskCache(pol.cache_dir),
        fetcher=fetcher if fetcher is not None else HttpFetcher(pol),
        emitter=emitter if emitter is not None else InMemoryNodeStore(),
        policy=pol,
        create_node_id=create_node_id,
    )
    return ResolverSession(resolver, policy=pol, progress_factory=lambda: create_progress(progress))


async def collect_media_refs(
    nodes: Iterable[dict[str, Any]],
    *,
    options: TransformerOptions,
    session: ResolverSession,
) -> list[dict[str, Any]]:
    """
    High-level build step:
      1) find image fields per lookup rules
      2) resolve them (dedup + bounded concurrency)
      3) link every node to its MediaRef nodes
    """
    transformer = MediaRefTransformer(session, options)
    return await transformer.run(nodes)


__all__ = ["build_session", "collect_media_refs"]
