# media_refs/tools/schema.py
from __future__ import annotations

from collections.abc import Callable
from typing import Any

MEDIA_REF_TYPE = "MediaRef"

# field -> GraphQL scalar; everything but id may be inferred
MEDIA_REF_FIELDS: dict[str, str] = {
    "id": "String",
    "url": "String",
    "name": "String",
    "ext": "String",
    "extension": "String",
    "mediaType": "String",
    "origin": "String",
    "path": "String",
    "sourceInstanceName": "String",
    "imageFormat": "String",
    "imageHeight": "Int",
    "imageWidth": "Int",
    "targetURL": "String",
}


def media_ref_type_defs() -> str:
    body = "\n".join(f"    {field}: {scalar}" for field, scalar in MEDIA_REF_FIELDS.items())
    return f"  type {MEDIA_REF_TYPE} implements Node @infer {{\n{body}\n  }}\n"


MEDIA_REF_TYPE_DEFS = media_ref_type_defs()


def create_schema_customization(create_types: Callable[[str], Any]) -> None:
    """Declare the MediaRef record shape to the host's schema layer."""
    create_types(MEDIA_REF_TYPE_DEFS)


__all__ = [
    "MEDIA_REF_TYPE",
    "MEDIA_REF_FIELDS",
    "MEDIA_REF_TYPE_DEFS",
    "media_ref_type_defs",
    "create_schema_customization",
]
