# media_refs/schemas/models.py

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_WEB_SCHEMES = {"http", "https"}


def is_web_uri(url: Any) -> bool:
    """True for absolute http(s) URLs with a host and no whitespace."""
    if not isinstance(url, str) or not url or any(c.isspace() for c in url):
        return False
    try:
        parsed = urlparse(url)
        _ = parsed.port  # raises on a malformed port
    except ValueError:
        return False
    return parsed.scheme.lower() in _WEB_SCHEMES and bool(parsed.hostname)


# =========================
# Policy (configuration)
# =========================


class ResolverPolicy(BaseModel):
    """
    Deterministic policy for the media resolver and its queue.

    Controls concurrency, transport timeouts, retry behaviour for stalled
    transfers, digest algorithm and the on-disk cache location. Env overrides
    are applied by `media_refs.inputs.inputs.OptionsLoader`.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="ignore")

    concurrency: int = Field(
        200,
        ge=1,
        description="Maximum number of resolutions (fetch + verification) running at once.",
    )
    connection_timeout_s: float = Field(
        30.0,
        gt=0,
        description="HTTP timeout in seconds for each request issued by the fetcher.",
    )
    verify_timeout_s: float = Field(
        30.0,
        gt=0,
        description="Upper bound in seconds for the fail-on-missing verification fetch.",
    )
    stall_retry_limit: int = Field(
        3,
        ge=0,
        description="Extra attempts after a transport failure (connection reset, timeout). 0 disables retries.",
    )
    user_agent: str = Field(
        "media-refs/0.1 (+build)",
        description="User-Agent string used in HTTP requests.",
    )
    digest_algorithm: Literal["sha1", "sha256"] = Field(
        "sha1",
        description="hashlib algorithm used for the content digest that addresses the target URL.",
    )
    cache_dir: Path = Field(
        default=Path(".cache/media-refs"),
        description="Directory where cached response headers, extensions and digests are stored.",
    )


# =========================
# Plugin options (inputs from the content pipeline)
# =========================


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", alias_generator=to_camel, populate_by_name=True)


class TargetConfig(_CamelModel):
    """Base of the computed target URL. Both parts optional."""

    host: str | None = Field(None, description="Scheme + host of the public location, e.g. 'https://cdn.example.com'.")
    path: str | None = Field(None, description="Path prefix under the host, e.g. '/static'.")

    @field_validator("host")
    @classmethod
    def _absolute_host(cls, v: str | None) -> str | None:
        if not v:
            return None
        if not is_web_uri(v):
            # urljoin would silently drop a scheme-less host
            raise ValueError(f"target.host must be an absolute http(s) URL, got {v!r}")
        return v


class LookupRule(_CamelModel):
    """Which fields of which node type may hold image URLs."""

    node_type: str = Field(..., description="Node type tag, e.g. 'GhostPost'.")
    image_tags: list[str] = Field(default_factory=list, description="Field names that may hold an image URL.")


class AuthConfig(BaseModel):
    """htaccess-style basic auth credentials."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    htaccess_user: str | None = None
    htaccess_pass: str | None = None

    def as_tuple(self) -> tuple[str, str] | None:
        if not (self.htaccess_user or self.htaccess_pass):
            return None
        return (self.htaccess_user or "", self.htaccess_pass or "")


def _never_exclude(node: dict[str, Any]) -> bool:
    return False


class TransformerOptions(_CamelModel):
    """
    Options of the node transformer, merged over defaults.

    Accepts both snake_case and the camelCase keys used in site configs
    (`failOnMissing`, `nodeType`, `imageTags`).
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    lookup: list[LookupRule] = Field(default_factory=list)
    target: TargetConfig = Field(default_factory=TargetConfig)
    exclude: Callable[[dict[str, Any]], bool] = Field(default=_never_exclude, exclude=True)
    fail_on_missing: bool = False
    verbose: bool = False

    def rule_for(self, node_type: str | None) -> LookupRule | None:
        """First lookup rule matching `node_type`, if any."""
        for rule in self.lookup:
            if rule.node_type == node_type:
                return rule
        return None


# =========================
# Resolution (queue tasks, transport, results)
# =========================


class ResolveTask(BaseModel):
    """One queued resolution request. Identity is the URL."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str
    parent_id: str | None = None
    target: TargetConfig = Field(default_factory=TargetConfig)
    fail_on_missing: bool = False
    auth: AuthConfig = Field(default_factory=AuthConfig)
    http_headers: dict[str, str] = Field(default_factory=dict)
    ext: str | None = Field(None, description="Fallback extension (with dot) when neither sniffing nor the URL yield one.")
    name: str | None = Field(None, description="Override for the file name stem.")


class FetchResponse(BaseModel):
    """Fully buffered HTTP response."""

    model_config = ConfigDict(frozen=True)

    status: int
    headers: dict[str, str] = Field(default_factory=dict, description="Response headers with lowercased names.")
    body: bytes = b""

    @field_validator("headers", mode="before")
    @classmethod
    def _lower_header_names(cls, v: Any) -> dict[str, str]:
        return {str(k).lower(): str(val) for k, val in dict(v or {}).items()}


class ImageMeta(BaseModel):
    """Decoded image properties."""

    model_config = ConfigDict(frozen=True)

    format: str | None = None
    width: int | None = Field(None, ge=1)
    height: int | None = Field(None, ge=1)


class MediaReference(BaseModel):
    """
    A resolved remote media asset.

    One per distinct URL per build. Immutable once returned; `to_node()` is the
    persisted shape handed to the node store.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Deterministic identifier derived from the URL.")
    url: str = Field(..., description="Original remote address (absolute, http/https).")
    origin: str = Field(..., description="Scheme + host of `url`.")
    path: str = Field(..., description="Path component of `url`.")
    name: str = Field(..., description="File name without extension.")
    ext: str = Field("", description="Extension with leading dot; sniffed type wins over the URL's.")
    extension: str = Field("", description="Lowercase extension without dot.")
    media_type: str | None = Field(None, description="MIME type derived from the extension.")
    digest: str | None = Field(None, description="Hex digest of the fetched bytes.")

    image_format: str | None = None
    image_width: int | None = Field(None, ge=1)
    image_height: int | None = Field(None, ge=1)

    target_url: str = Field(..., alias="targetURL", description="<base>/<digest>/<name><ext>")
    parent_id: str | None = Field(None, alias="parent", description="Identifier of the referencing content node.")
    source_instance_name: str = "__PROGRAMMATIC__"

    def to_node(self) -> dict[str, Any]:
        """Content node representation (MediaRef type)."""
        node = self.model_dump(by_alias=True, exclude={"digest", "parent_id"})
        node.update(
            {
                "parent": self.parent_id,
                "children": [],
                "internal": {
                    "type": "MediaRef",
                    "description": f"Media Reference to {self.url}",
                    "contentDigest": self.digest,
                },
            }
        )
        return node


__all__ = [
    "is_web_uri",
    "ResolverPolicy",
    "TargetConfig",
    "LookupRule",
    "AuthConfig",
    "TransformerOptions",
    "ResolveTask",
    "FetchResponse",
    "ImageMeta",
    "MediaReference",
]
