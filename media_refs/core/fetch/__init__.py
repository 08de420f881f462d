# media_refs/core/fetch/__init__.py
from .cache import (
    CacheStore,
    DiskCache,
    MemoryCache,
    _sha256,
    digest_key,
    extension_key,
    headers_key,
    image_key,
)
from .errors import (
    MEDIA_REF_ERRORS,
    BuildError,
    DecodeError,
    FetchError,
    MediaRefError,
    ValidationError,
    classify_media_error,
    media_error_guard,
)
from .http_fetcher import Fetcher, HttpFetcher

__all__ = [
    "MediaRefError",
    "ValidationError",
    "FetchError",
    "DecodeError",
    "BuildError",
    "MEDIA_REF_ERRORS",
    "classify_media_error",
    "media_error_guard",
    "CacheStore",
    "MemoryCache",
    "DiskCache",
    "headers_key",
    "extension_key",
    "digest_key",
    "image_key",
    "_sha256",
    "Fetcher",
    "HttpFetcher",
]
