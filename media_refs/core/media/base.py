# media_refs/core/media/base.py
"""
Cross-layer contracts for handing resolved media to the content pipeline.

This module defines:
- `NodeEmitter` Protocol: how a resolved `MediaReference` is persisted as a
  content node. The resolver only ever calls `emit(ref)` and keeps the
  returned identifier; it never depends on the persistence layer's internals.
- `InMemoryNodeStore`: an emitter that keeps nodes in a dict (CLI runs, tests).
- `CallbackEmitter`: adapts an external `create_node(node, plugin)` callable.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from media_refs.core.fetch.errors import ValidationError
from media_refs.schemas.models import MediaReference

PLUGIN_NAME = "media-refs"


@runtime_checkable
class NodeEmitter(Protocol):
    """
    Persist a MediaReference as a content node.

    Implementations must be idempotent per `ref.id`: the queue guarantees one
    emission per URL per build, but separate builds re-emit the same id.
    """

    async def emit(self, ref: MediaReference) -> str:
        """
        Persist `ref` and return the identifier of the stored node.

        Args:
            ref: The immutable, fully resolved reference.

        Returns:
            The persisted node id (normally `ref.id`).
        """
        ...


class InMemoryNodeStore:
    """Keeps emitted MediaRef nodes keyed by id."""

    def __init__(self) -> None:
        self.nodes: dict[str, dict[str, Any]] = {}
        self.emitted = 0

    async def emit(self, ref: MediaReference) -> str:
        self.nodes[ref.id] = ref.to_node()
        self.emitted += 1
        return ref.id

    def __len__(self) -> int:
        return len(self.nodes)


class CallbackEmitter:
    """Wraps a `create_node(node_dict, {"name": plugin})` callable, sync or async."""

    def __init__(self, create_node: Callable[..., Any], *, plugin_name: str = PLUGIN_NAME) -> None:
        if not callable(create_node):
            raise ValidationError(f"create_node must be a function, was {type(create_node).__name__}")
        self._create_node = create_node
        self._plugin = {"name": plugin_name}

    async def emit(self, ref: MediaReference) -> str:
        out = self._create_node(ref.to_node(), self._plugin)
        if inspect.isawaitable(out):
            await out
        return ref.id


__all__ = [
    "NodeEmitter",
    "InMemoryNodeStore",
    "CallbackEmitter",
    "PLUGIN_NAME",
]
