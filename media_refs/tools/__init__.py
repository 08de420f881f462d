# media_refs/tools/__init__.py
"""
media-refs - tools package

Exports only modules that live under `media_refs/tools`:
  - MediaRefTransformer, camel_case, foreign_key_for   (from .transformer)
  - MEDIA_REF_TYPE_DEFS, create_schema_customization   (from .schema)

Resolver/session internals should be imported from `media_refs.core.media`.
"""

from __future__ import annotations

from .schema import MEDIA_REF_TYPE_DEFS, create_schema_customization
from .transformer import MediaRefTransformer, camel_case, foreign_key_for

__all__ = [
    "MediaRefTransformer",
    "camel_case",
    "foreign_key_for",
    "MEDIA_REF_TYPE_DEFS",
    "create_schema_customization",
]
