# media_refs/tools/transformer.py
"""
Node transformer: finds image URLs on content nodes, resolves them through a
ResolverSession and links each node to its MediaRef nodes.

For a node of a type listed in `options.lookup`, every non-null image field
`<tag>` gains a foreign key `<camelCase(tag + "MediaRef")>___NODE` holding the
MediaRef node id. Any failed resolution turns into a BuildError naming the
node, so the build stops with an actionable message.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from media_refs.core.fetch.errors import BuildError, MediaRefError, ValidationError
from media_refs.core.log import get_logger
from media_refs.core.media.queue import ResolverSession
from media_refs.schemas.models import MediaReference, ResolveTask, TransformerOptions

log = get_logger(__name__)

FOREIGN_KEY_SUFFIX = "___NODE"

_WORD_RE = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z]+|\d+")


def camel_case(value: str) -> str:
    """lodash-style camelCase: 'feature_image' -> 'featureImage', 'og-imageURL' -> 'ogImageUrl'."""
    words = _WORD_RE.findall(value)
    if not words:
        return ""
    head, *rest = (w.lower() for w in words)
    return head + "".join(w.capitalize() for w in rest)


def foreign_key_for(tag: str) -> str:
    return f"{camel_case(f'{tag}MediaRef')}{FOREIGN_KEY_SUFFIX}"


def normalize_image_url(value: str) -> str:
    """Protocol-relative URLs ('//cdn/x.jpg') are fetched over https."""
    return re.sub(r"^//", "https://", value.strip())


def node_type(node: Mapping[str, Any]) -> str | None:
    internal = node.get("internal")
    if isinstance(internal, Mapping) and internal.get("type"):
        return str(internal["type"])
    t = node.get("type")
    return str(t) if t is not None else None


class MediaRefTransformer:
    def __init__(self, session: ResolverSession, options: TransformerOptions | Mapping[str, Any] | None = None) -> None:
        if options is None:
            options = TransformerOptions()
        elif not isinstance(options, TransformerOptions):
            try:
                options = TransformerOptions.model_validate(dict(options))
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid transformer options:\n{e}") from e
        self.session = session
        self.options = options

    def image_tags(self, node: Mapping[str, Any]) -> list[str]:
        """Image fields of `node` that hold a value, per the first matching lookup rule."""
        if self.options.exclude(dict(node)):
            return []
        rule = self.options.rule_for(node_type(node))
        if rule is None:
            return []
        return [tag for tag in rule.image_tags if node.get(tag) is not None]

    async def on_create_node(self, node: dict[str, Any]) -> dict[str, Any]:
        """
        Resolve the node's image fields and add the foreign keys in place.

        Returns the same node. Nodes that are excluded, of an unknown type or
        without image values are returned untouched.
        """
        tags = self.image_tags(node)
        if not tags:
            return node

        ntype = node_type(node)
        jobs = []
        for tag in tags:
            url = normalize_image_url(str(node[tag]))
            if self.options.verbose:
                log.info("%s/%s/%s/%s", ntype, tag, node.get("slug"), url)
            jobs.append(self._submit(url, node))

        try:
            refs: list[MediaReference] = await asyncio.gather(*jobs)
        except MediaRefError as e:
            where = f"image ref {node['url']}" if node.get("url") else f"in node {node.get('id')}"
            raise BuildError(f"Error processing images {where}:\n {e}", url=e.url) from e

        for tag, ref in zip(tags, refs):
            node[foreign_key_for(tag)] = ref.id
        return node

    async def run(self, nodes: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """Transform many nodes concurrently; the session dedups shared URLs."""
        out = await asyncio.gather(*(self.on_create_node(n) for n in nodes))
        await self.session.join()
        return list(out)

    async def _submit(self, url: str, node: Mapping[str, Any]) -> MediaReference:
        task = ResolveTask(
            url=url,
            parent_id=node.get("id"),
            target=self.options.target,
            fail_on_missing=self.options.fail_on_missing,
        )
        return await self.session.submit(task)


__all__ = [
    "MediaRefTransformer",
    "camel_case",
    "foreign_key_for",
    "normalize_image_url",
    "node_type",
    "FOREIGN_KEY_SUFFIX",
]
