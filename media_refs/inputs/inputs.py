# media_refs/inputs/inputs.py
"""
Options loader for media-refs runs.

Goals
-----
- File-first options with validation via Pydantic.
- Accept the flat plugin-options shape used in site configs as well as a
  structured shape that also carries the resolver policy.
- Environment-variable overrides for the resolver policy (CI/CLI convenience).

Supported JSON shapes
---------------------
1) Flat (root = TransformerOptions)
   {
     "lookup": [{"nodeType": "GhostPost", "imageTags": ["feature_image"]}],
     "target": {"path": "/static"},
     "failOnMissing": false,
     "verbose": true
   }

2) Structured (root = RunConfig)
   {
     "options": { ... TransformerOptions ... },
     "policy":  { "concurrency": 50, "cache_dir": ".cache/media-refs" }
   }

Environment overrides (optional)
--------------------------------
- MEDIA_REFS_CONCURRENT_DOWNLOAD -> policy.concurrency (int)
- MEDIA_REFS_CONNECTION_TIMEOUT  -> policy.connection_timeout_s (milliseconds)
- MEDIA_REFS_VERIFY_TIMEOUT      -> policy.verify_timeout_s (milliseconds)
- MEDIA_REFS_STALL_RETRY_LIMIT   -> policy.stall_retry_limit (int)
- MEDIA_REFS_CACHE_DIR           -> policy.cache_dir
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from media_refs.core.fetch.errors import ValidationError
from media_refs.core.log import get_logger
from media_refs.schemas.models import ResolverPolicy, TransformerOptions

log = get_logger(__name__)


class RunConfig(BaseModel):
    """Transformer options plus the resolver policy for one build."""

    options: TransformerOptions = Field(default_factory=TransformerOptions)
    policy: ResolverPolicy = Field(default_factory=ResolverPolicy)


@dataclass(frozen=True)
class OptionsLoader:
    """
    File-first options loader with light env overrides.

    Default search (when path=None):
        1) ./media-refs.json
        2) no file → defaults (empty lookup, nothing is resolved)
    """

    env_prefix: str = "MEDIA_REFS_"

    # ---------- Public API ----------

    def load(self, path: str | Path | None = None) -> RunConfig:
        p = self._resolve_path(path)
        raw = self._read_json_file(p) if p is not None else {}
        cfg = self._parse_root(self._maybe_wrap_flat(raw))
        return self._apply_env_overrides(cfg)

    def load_json(self, text: str) -> RunConfig:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON payload: {e}") from e
        cfg = self._parse_root(self._maybe_wrap_flat(raw))
        return self._apply_env_overrides(cfg)

    # ---------- Internals ----------

    def _resolve_path(self, path: str | Path | None) -> Path | None:
        if path is not None:
            p = Path(path)
            if not p.exists():
                raise FileNotFoundError(f"Options file not found: {p}")
            return p
        default = Path("media-refs.json")
        return default if default.exists() else None

    def _read_json_file(self, p: Path) -> dict[str, Any]:
        if p.suffix.lower() != ".json":
            raise ValidationError(f"Unsupported options format for {p.name}; only .json is supported.")
        try:
            return cast(dict[str, Any], json.loads(p.read_text(encoding="utf-8")))
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {p}: {e}") from e

    def _maybe_wrap_flat(self, raw: Any) -> dict[str, Any]:
        if not isinstance(raw, dict):
            raise ValidationError(f"Options root must be a JSON object, got {type(raw).__name__}")
        if "options" in raw or "policy" in raw:
            return raw
        return {"options": raw}

    def _parse_root(self, data: dict[str, Any]) -> RunConfig:
        try:
            return RunConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Options validation failed:\n{e}") from e

    def _apply_env_overrides(self, cfg: RunConfig) -> RunConfig:
        prefix = self.env_prefix
        updates: dict[str, Any] = {}

        ints = {"CONCURRENT_DOWNLOAD": "concurrency", "STALL_RETRY_LIMIT": "stall_retry_limit"}
        for env, field in ints.items():
            val = os.getenv(f"{prefix}{env}")
            if val:
                try:
                    updates[field] = int(val)
                except ValueError:
                    log.warning("ignoring %s%s=%r (not an integer)", prefix, env, val)

        millis = {"CONNECTION_TIMEOUT": "connection_timeout_s", "VERIFY_TIMEOUT": "verify_timeout_s"}
        for env, field in millis.items():
            val = os.getenv(f"{prefix}{env}")
            if val:
                try:
                    updates[field] = float(val) / 1000.0
                except ValueError:
                    log.warning("ignoring %s%s=%r (not a number of milliseconds)", prefix, env, val)

        cache_dir = os.getenv(f"{prefix}CACHE_DIR")
        if cache_dir:
            updates["cache_dir"] = Path(cache_dir)

        if not updates:
            return cfg

        try:
            policy = ResolverPolicy.model_validate({**cfg.policy.model_dump(), **updates})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid environment override:\n{e}") from e
        return cfg.model_copy(update={"policy": policy})


def load_options(path: str | Path | None = None) -> RunConfig:
    """Convenience wrapper for one-shot callers."""
    return OptionsLoader().load(path)


__all__ = ["RunConfig", "OptionsLoader", "load_options"]
