# tests/conftest.py
from __future__ import annotations

from pathlib import Path

import pytest

from media_refs.core.fetch.cache import DiskCache, MemoryCache
from media_refs.core.media.base import InMemoryNodeStore
from media_refs.core.media.queue import ResolverSession
from media_refs.core.media.resolver import MediaResolver
from media_refs.schemas.models import ResolverPolicy
from tests.utils import FakeFetcher, RecordingProgress, jpeg_bytes as _make_jpeg, png_bytes as _make_png


@pytest.fixture(autouse=True)
def _reset_recorded_progress():
    RecordingProgress.instances.clear()
    yield
    RecordingProgress.instances.clear()


# -------- Collaborators --------
@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def disk_cache(tmp_path: Path) -> DiskCache:
    return DiskCache(tmp_path / "cache")


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def node_store() -> InMemoryNodeStore:
    return InMemoryNodeStore()


@pytest.fixture
def policy(tmp_path: Path) -> ResolverPolicy:
    return ResolverPolicy(cache_dir=tmp_path / "cache", verify_timeout_s=1.0)


# -------- Factories --------
@pytest.fixture
def resolver_factory(memory_cache, fetcher, node_store, policy):
    """
    Callable factory for MediaResolver wired to the fake collaborators.

    Usage:
        resolver = resolver_factory()
        resolver = resolver_factory(cache=disk_cache, policy=ResolverPolicy(...))
    """

    def _factory(**overrides) -> MediaResolver:
        kwargs = {"cache": memory_cache, "fetcher": fetcher, "emitter": node_store, "policy": policy}
        kwargs.update(overrides)
        return MediaResolver(**kwargs)

    return _factory


@pytest.fixture
def session_factory(resolver_factory):
    """
    Callable factory for a ResolverSession recording progress events.
    Call it inside the running event loop of the test.
    """

    def _factory(*, resolver: MediaResolver | None = None, **policy_overrides) -> ResolverSession:
        r = resolver or resolver_factory()
        pol = r.policy.model_copy(update=policy_overrides) if policy_overrides else r.policy
        return ResolverSession(r, policy=pol, progress_factory=RecordingProgress)

    return _factory


@pytest.fixture
def png_bytes():
    """
    Fixture that returns a callable to generate PNG bytes.
    Usage:
        data = png_bytes(64, 64)
    """
    return _make_png


@pytest.fixture
def jpeg_bytes():
    return _make_jpeg


# -------- Pytest markers --------
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: marks integration tests")
