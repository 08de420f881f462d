# media_refs/core/media/__init__.py
from .base import CallbackEmitter, InMemoryNodeStore, NodeEmitter
from .progress import LoggerProgress, NullProgress, ProgressReporter, TqdmProgress, create_progress
from .queue import ResolverSession
from .resolver import MediaResolver, compute_target_url, is_web_uri

__all__ = [
    "NodeEmitter",
    "InMemoryNodeStore",
    "CallbackEmitter",
    "ProgressReporter",
    "TqdmProgress",
    "LoggerProgress",
    "NullProgress",
    "create_progress",
    "ResolverSession",
    "MediaResolver",
    "compute_target_url",
    "is_web_uri",
]
