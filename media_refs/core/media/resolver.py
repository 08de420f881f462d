# media_refs/core/media/resolver.py
from __future__ import annotations

import asyncio
import hashlib
import io
import mimetypes
import posixpath
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin, urlparse

import filetype
from PIL import Image

from media_refs.core.fetch.cache import CacheStore, digest_key, extension_key, headers_key, image_key
from media_refs.core.fetch.errors import DecodeError, FetchError, ValidationError, media_error_guard
from media_refs.core.fetch.http_fetcher import Fetcher
from media_refs.core.log import get_logger
from media_refs.core.media.base import PLUGIN_NAME, NodeEmitter
from media_refs.schemas.models import (
    FetchResponse,
    ImageMeta,
    MediaReference,
    ResolverPolicy,
    ResolveTask,
    TargetConfig,
    is_web_uri,
)

log = get_logger(__name__)

_NODE_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, PLUGIN_NAME)


# ---------------------------
# Helpers
# ---------------------------


def validate_url(url: Any) -> str:
    if not url or not is_web_uri(url):
        raise ValidationError(f"url is either missing or not a proper web uri: {url!r}", url=url if isinstance(url, str) else None)
    return url


def default_node_id(url: str) -> str:
    return str(uuid.uuid5(_NODE_ID_NAMESPACE, url))


def parse_media_url(url: str) -> tuple[str, str, str, str]:
    """Split into (origin, path, name, ext); ext keeps its leading dot."""
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    path = parsed.path or "/"
    base = posixpath.basename(path)
    name, ext = posixpath.splitext(base)
    return origin, path, name, ext


def media_type_for(ext: str | None) -> str | None:
    if not ext:
        return None
    return mimetypes.guess_type(f"file{ext.lower()}", strict=False)[0]


def compute_target_url(
    target: TargetConfig,
    *,
    origin: str,
    path: str,
    digest: str | None,
    name: str,
    ext: str,
) -> str:
    """
    <base>/<digest>/<name><ext>

    base = configured host + path. Without a host only the path part is kept,
    and without a configured path the media's own path is used.
    """
    joined = urljoin(target.host or origin, target.path or path)
    base = joined if target.host else urlparse(joined).path
    return f"{base.rstrip('/')}/{digest}/{name}{ext}"


def content_digest(body: bytes, algorithm: str = "sha1") -> str:
    return hashlib.new(algorithm, body).hexdigest()


def sniff_extension(body: bytes) -> str | None:
    """Extension (with dot) from the byte signature; server Content-Type is ignored."""
    if not body:
        return None
    kind = filetype.guess(body)
    return f".{kind.extension}" if kind else None


def probe_image(body: bytes) -> ImageMeta:
    try:
        with Image.open(io.BytesIO(body)) as im:
            fmt = im.format.lower() if im.format else None
            return ImageMeta(format=fmt, width=int(im.width), height=int(im.height))
    except Exception as e:  # noqa: BLE001
        raise DecodeError(f"not a decodable image: {type(e).__name__}: {e}") from e


@dataclass(frozen=True)
class _Fingerprint:
    digest: str | None
    ext: str | None
    image: ImageMeta | None


# ---------------------------
# Resolver
# ---------------------------


class MediaResolver:
    """
    Fetch (or revalidate) one remote media URL and turn it into a MediaReference.

    Emission goes through `emitter`; the cache is shared by every concurrent
    resolution but each URL only touches its own keys.
    """

    def __init__(
        self,
        *,
        cache: CacheStore,
        fetcher: Fetcher,
        emitter: NodeEmitter,
        policy: ResolverPolicy | None = None,
        create_node_id: Callable[[str], str] | None = None,
    ) -> None:
        if create_node_id is not None and not callable(create_node_id):
            raise ValidationError(f"create_node_id must be a function, was {type(create_node_id).__name__}")
        if not callable(getattr(emitter, "emit", None)):
            raise ValidationError(f"emitter must provide emit(), was {type(emitter).__name__}")
        if not (callable(getattr(cache, "get", None)) and callable(getattr(cache, "set", None))):
            raise ValidationError(f"cache must provide get()/set(), was {type(cache).__name__}")

        self.cache = cache
        self.fetcher = fetcher
        self.emitter = emitter
        self.policy = policy or ResolverPolicy()
        self._create_node_id = create_node_id or default_node_id

    async def resolve(self, task: ResolveTask) -> MediaReference:
        url = validate_url(task.url)
        auth = task.auth.as_tuple()

        with media_error_guard(url):
            fp = await self._fingerprint(task, auth)

            origin, path, url_name, url_ext = parse_media_url(url)
            name = task.name or url_name
            ext = fp.ext or task.ext or url_ext
            target_url = compute_target_url(task.target, origin=origin, path=path, digest=fp.digest, name=name, ext=ext)

            if task.fail_on_missing:
                await self._verify(task, target_url, auth)

            image = fp.image or ImageMeta()
            ref = MediaReference(
                id=self._create_node_id(url),
                url=url,
                origin=origin,
                path=path,
                name=name,
                ext=ext,
                extension=ext[1:].lower() if ext else "",
                media_type=media_type_for(ext),
                digest=fp.digest,
                image_format=image.format,
                image_width=image.width,
                image_height=image.height,
                target_url=target_url,
                parent_id=task.parent_id,
            )
            await self.emitter.emit(ref)

        log.debug("resolved %s -> %s", url, ref.target_url)
        return ref

    # ---------- Internals ----------

    async def _fingerprint(self, task: ResolveTask, auth: tuple[str, str] | None) -> _Fingerprint:
        url = task.url
        base_headers = dict(task.http_headers)
        headers = dict(base_headers)

        cached_headers = await self.cache.get(headers_key(url))
        if isinstance(cached_headers, dict) and cached_headers.get("etag"):
            headers["If-None-Match"] = cached_headers["etag"]

        resp = await self.fetcher.get(url, headers=headers, auth=auth)

        if resp.status == 304:
            digest = await self.cache.get(digest_key(url))
            if digest:
                return _Fingerprint(
                    digest=digest,
                    ext=await self.cache.get(extension_key(url)),
                    image=_image_from_cache(await self.cache.get(image_key(url))),
                )
            # server-side cache hit but our cache lost the digest
            log.warning("%s: 304 without a cached digest, re-fetching unconditionally", url)
            resp = await self.fetcher.get(url, headers=base_headers, auth=auth)

        if resp.status != 200:
            raise FetchError(f"unexpected HTTP {resp.status} for {url}", url=url)

        return await self._store_fresh(url, resp)

    async def _store_fresh(self, url: str, resp: FetchResponse) -> _Fingerprint:
        await self.cache.set(headers_key(url), dict(resp.headers))

        digest = content_digest(resp.body, self.policy.digest_algorithm)
        await self.cache.set(digest_key(url), digest)

        ext = sniff_extension(resp.body)
        if ext:
            await self.cache.set(extension_key(url), ext)

        image: ImageMeta | None = None
        try:
            image = await asyncio.to_thread(probe_image, resp.body)
        except DecodeError as e:
            log.debug("%s: image metadata unavailable (%s)", url, e)
        await self.cache.set(image_key(url), image.model_dump() if image else None)

        return _Fingerprint(digest=digest, ext=ext, image=image)

    async def _verify(self, task: ResolveTask, target_url: str, auth: tuple[str, str] | None) -> None:
        """Fail unless the computed target already serves the media."""
        if not is_web_uri(target_url):
            raise FetchError(
                f"cannot verify {task.url}: target {target_url!r} is not an absolute URL (configure target.host)",
                url=task.url,
            )
        timeout = self.policy.verify_timeout_s
        try:
            resp = await asyncio.wait_for(
                self.fetcher.get(target_url, headers=dict(task.http_headers), auth=auth),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise FetchError(f"verification of {target_url} timed out after {timeout}s (source {task.url})", url=task.url) from e
        except FetchError as e:
            raise FetchError(f"media missing at {target_url} (source {task.url}): {e}", url=task.url) from e

        if not (200 <= resp.status < 300 or resp.status == 304):
            raise FetchError(f"media missing at {target_url} (HTTP {resp.status}, source {task.url})", url=task.url)


def _image_from_cache(value: Any) -> ImageMeta | None:
    if not isinstance(value, dict):
        return None
    try:
        return ImageMeta.model_validate(value)
    except ValueError:
        return None


__all__ = [
    "MediaResolver",
    "is_web_uri",
    "validate_url",
    "default_node_id",
    "parse_media_url",
    "media_type_for",
    "compute_target_url",
    "content_digest",
    "sniff_extension",
    "probe_image",
]
