# media_refs/core/fetch/cache.py
"""
Key/value cache for conditional re-fetching across builds.

Three slots per URL are remembered (last response headers, detected extension,
content digest) plus the decoded image metadata, so an unchanged remote
answering 304 yields the same reference as the run that downloaded it.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from hashlib import sha256 as _sha256lib
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

_KEY_PREFIX = "media-ref"


def _sha256(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8", errors="ignore")
    return _sha256lib(data).hexdigest()


def headers_key(url: str) -> str:
    return f"{_KEY_PREFIX}-headers-{url}"


def extension_key(url: str) -> str:
    return f"{_KEY_PREFIX}-extension-{url}"


def digest_key(url: str) -> str:
    return f"{_KEY_PREFIX}-digest-{url}"


def image_key(url: str) -> str:
    return f"{_KEY_PREFIX}-image-{url}"


@runtime_checkable
class CacheStore(Protocol):
    """Async key/value store. Values must be JSON-serialisable."""

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...


class MemoryCache:
    """Process-local cache; lives as long as the instance."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class DiskCache:
    """
    JSON-file cache that survives across builds.

    Layout (under base_dir/):
      - <sha256(key)[:2]>/<sha256(key)>.json   → {"key": ..., "value": ...}

    Writes go through a temp file + rename so concurrent readers never see a
    partial entry. Different keys never share a file.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    def path_for(self, key: str) -> Path:
        h = _sha256(key)
        return self.base_dir / h[:2] / f"{h}.json"

    async def get(self, key: str) -> Any:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)

    def _read(self, key: str) -> Any:
        p = self.path_for(key)
        if not p.exists():
            return None
        try:
            payload = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            # a corrupt entry is a miss; the next 200 overwrites it
            return None
        if not isinstance(payload, dict) or payload.get("key") != key:
            return None
        return payload.get("value")

    def _write(self, key: str, value: Any) -> None:
        p = self.path_for(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps({"key": key, "value": value}, sort_keys=True)
        fd, tmp_name = tempfile.mkstemp(prefix="c_", suffix=".part", dir=str(p.parent))
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            tmp_path.replace(p)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise


__all__ = [
    "CacheStore",
    "MemoryCache",
    "DiskCache",
    "headers_key",
    "extension_key",
    "digest_key",
    "image_key",
    "_sha256",
]
