# resolve_cli.py
"""
Run one media-refs build over a JSON file of content nodes.

Usage
-----
    python resolve_cli.py --nodes content/nodes.json --config media-refs.json --out public/nodes.json
    python resolve_cli.py --nodes nodes.json --concurrency 50 --progress log --verbose 1
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from media_refs.core.fetch.errors import MediaRefError, ValidationError
from media_refs.core.media.base import InMemoryNodeStore
from media_refs.core.media.pipeline import build_session, collect_media_refs
from media_refs.inputs.inputs import OptionsLoader, RunConfig
from media_refs.schemas.models import ResolverPolicy


def _read_nodes(path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {path}: {e}") from e
    if isinstance(data, dict):
        data = data.get("nodes", [])
    if not isinstance(data, list):
        raise ValidationError(f"{path}: expected a list of nodes or {{'nodes': [...]}}")
    return [n for n in data if isinstance(n, dict)]


def _apply_cli_overrides(cfg: RunConfig, args: argparse.Namespace) -> RunConfig:
    policy_updates: dict[str, Any] = {}
    if args.cache_dir:
        policy_updates["cache_dir"] = Path(args.cache_dir)
    if args.concurrency is not None:
        policy_updates["concurrency"] = int(args.concurrency)

    option_updates: dict[str, Any] = {}
    if args.fail_on_missing is not None:
        option_updates["fail_on_missing"] = bool(args.fail_on_missing)
    if args.verbose is not None:
        option_updates["verbose"] = bool(args.verbose)

    if not (policy_updates or option_updates):
        return cfg

    # model_copy(update=...) skips validation; rebuild so bounds are enforced
    try:
        policy = ResolverPolicy.model_validate({**cfg.policy.model_dump(), **policy_updates})
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid command-line override:\n{e}") from e
    return cfg.model_copy(update={"policy": policy, "options": cfg.options.model_copy(update=option_updates)})


async def _run(nodes: list[dict[str, Any]], cfg: RunConfig, progress: str) -> tuple[list[dict[str, Any]], InMemoryNodeStore]:
    store = InMemoryNodeStore()
    session = build_session(policy=cfg.policy, emitter=store, progress=progress)  # type: ignore[arg-type]
    try:
        linked = await collect_media_refs(nodes, options=cfg.options, session=session)
    finally:
        session.close()
    return linked, store


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Resolve remote media references for content nodes")
    p.add_argument("--nodes", type=str, required=True, help="JSON file: list of nodes or {'nodes': [...]}")
    p.add_argument("--config", type=str, default=None, help="Options JSON (flat plugin options or {options, policy})")
    p.add_argument("--out", type=str, default=None, help="Write linked nodes + MediaRef nodes here (default: stdout)")
    p.add_argument("--cache-dir", type=str, default=None)
    p.add_argument("--concurrency", type=int, default=None)
    p.add_argument("--fail-on-missing", type=int, choices=(0, 1), default=None)
    p.add_argument("--verbose", type=int, choices=(0, 1), default=None)
    p.add_argument("--progress", choices=("tqdm", "log", "none"), default="tqdm")

    args = p.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")

    try:
        cfg = _apply_cli_overrides(OptionsLoader().load(args.config), args)
        nodes = _read_nodes(Path(args.nodes))
        linked, store = asyncio.run(_run(nodes, cfg, args.progress))
    except (MediaRefError, FileNotFoundError) as e:
        print(f"media-refs: {e}", file=sys.stderr)
        return 1

    payload = {"nodes": linked, "mediaRefs": list(store.nodes.values())}
    text = json.dumps(payload, indent=2, sort_keys=True)
    if args.out:
        Path(args.out).write_text(text, encoding="utf-8")
    else:
        print(text)

    # Minimal console summary
    print(f"media refs: {len(store)} (nodes: {len(linked)})", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
