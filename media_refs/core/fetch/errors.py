# media_refs/core/fetch/errors.py
"""
Typed errors + utilities for remote media resolution.

Exports
-------
- MediaRefError, ValidationError, FetchError, DecodeError, BuildError
- MEDIA_REF_ERRORS
- classify_media_error(exc, url=None)
- media_error_guard(url=None)
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager

import requests

# =========================
# Exception types
# =========================


class MediaRefError(RuntimeError):
    """Base class for media reference failures. Carries the offending URL when known."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class ValidationError(MediaRefError):
    """Missing/malformed URL or malformed callback dependency. Raised before any queueing."""


class FetchError(MediaRefError):
    """Transport failure or unexpected HTTP status during a primary or verification fetch."""


class DecodeError(MediaRefError):
    """Fetched bytes could not be decoded as an image. Never surfaces past the resolver."""


class BuildError(MediaRefError):
    """A content node could not be linked to its media references."""


# Selector tuple for grouped exception handling
MEDIA_REF_ERRORS = (
    ValidationError,
    FetchError,
    DecodeError,
    BuildError,
)

# =========================
# Classification helpers
# =========================


def classify_media_error(exc: BaseException, url: str | None = None) -> MediaRefError:
    """
    Map arbitrary exceptions raised during resolution to a typed MediaRefError.

    Heuristics:
      - Any MediaRefError subclass → passed through
      - requests.* errors, timeouts, OSError → FetchError
      - Fallback → FetchError (a reference that cannot be resolved is a failed fetch)
    """
    if isinstance(exc, MediaRefError):
        return exc

    where = f" for {url}" if url else ""
    msg = f"{type(exc).__name__}: {exc}"

    if isinstance(exc, requests.RequestException):
        return FetchError(f"network error{where}: {msg}", url=url)

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return FetchError(f"timed out{where}", url=url)

    if isinstance(exc, OSError):
        return FetchError(f"I/O error{where}: {msg}", url=url)

    return FetchError(f"failed to process{where}: {msg}", url=url)


@contextmanager
def media_error_guard(url: str | None = None) -> Iterator[None]:
    """Context manager to normalize unexpected exceptions from resolver internals."""
    try:
        yield
    except MEDIA_REF_ERRORS:
        raise
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_media_error(exc, url) from exc


__all__ = [
    "MediaRefError",
    "ValidationError",
    "FetchError",
    "DecodeError",
    "BuildError",
    "MEDIA_REF_ERRORS",
    "classify_media_error",
    "media_error_guard",
]
