# tests/test_resolve_cli.py
from __future__ import annotations

import json
from pathlib import Path

import pytest

import resolve_cli
from media_refs.core.media.pipeline import build_session
from media_refs.schemas.models import FetchResponse
from tests.utils import FakeFetcher, make_node


def _patch_fetcher(monkeypatch, fetcher: FakeFetcher) -> None:
    def _build(**kw):
        return build_session(fetcher=fetcher, **kw)

    monkeypatch.setattr(resolve_cli, "build_session", _build)


def _write_inputs(tmp_path: Path, image_url: str) -> tuple[Path, Path]:
    nodes = tmp_path / "nodes.json"
    nodes.write_text(json.dumps({"nodes": [make_node(feature_image=image_url)]}), encoding="utf-8")
    config = tmp_path / "media-refs.json"
    config.write_text(
        json.dumps({"lookup": [{"nodeType": "Post", "imageTags": ["feature_image"]}], "target": {"path": "/static"}}),
        encoding="utf-8",
    )
    return nodes, config


def test_cli_writes_linked_nodes_and_media_refs(tmp_path: Path, monkeypatch, png_bytes, capsys) -> None:
    url = "https://cdn.example.com/a.png"
    _patch_fetcher(monkeypatch, FakeFetcher({url: FetchResponse(status=200, body=png_bytes())}))
    nodes, config = _write_inputs(tmp_path, url)
    out = tmp_path / "out.json"

    rc = resolve_cli.main(
        [
            "--nodes", str(nodes),
            "--config", str(config),
            "--out", str(out),
            "--cache-dir", str(tmp_path / "cache"),
            "--progress", "none",
        ]
    )

    assert rc == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    (node,) = payload["nodes"]
    (ref,) = payload["mediaRefs"]
    assert node["featureImageMediaRef___NODE"] == ref["id"]
    assert ref["targetURL"].startswith("/static/")
    assert "media refs: 1 (nodes: 1)" in capsys.readouterr().err
    # DiskCache populated under --cache-dir
    assert any((tmp_path / "cache").rglob("*.json"))


def test_cli_reports_build_errors(tmp_path: Path, monkeypatch, capsys) -> None:
    _patch_fetcher(monkeypatch, FakeFetcher())
    nodes, config = _write_inputs(tmp_path, "https://cdn.example.com/missing.png")

    rc = resolve_cli.main(
        ["--nodes", str(nodes), "--config", str(config), "--cache-dir", str(tmp_path / "cache"), "--progress", "none"]
    )

    err = capsys.readouterr().err
    assert rc == 1
    assert "Error processing images in node post-1" in err


class _ClosingFetcher(FakeFetcher):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


def test_cli_bad_options_file_exits_1(tmp_path: Path, monkeypatch, capsys) -> None:
    _patch_fetcher(monkeypatch, FakeFetcher())
    nodes, config = _write_inputs(tmp_path, "https://cdn.example.com/a.png")
    config.write_text(json.dumps({"lookup": "nope"}), encoding="utf-8")

    rc = resolve_cli.main(["--nodes", str(nodes), "--config", str(config), "--progress", "none"])

    assert rc == 1
    assert "Options validation failed" in capsys.readouterr().err


def test_cli_bad_target_host_exits_1(tmp_path: Path, monkeypatch, capsys) -> None:
    _patch_fetcher(monkeypatch, FakeFetcher())
    nodes, config = _write_inputs(tmp_path, "https://cdn.example.com/a.png")
    config.write_text(json.dumps({"target": {"host": "media.example.org"}}), encoding="utf-8")

    rc = resolve_cli.main(["--nodes", str(nodes), "--config", str(config), "--progress", "none"])

    assert rc == 1
    assert "target.host must be an absolute http" in capsys.readouterr().err


def test_cli_missing_or_malformed_nodes_file_exits_1(tmp_path: Path, monkeypatch, capsys) -> None:
    _patch_fetcher(monkeypatch, FakeFetcher())
    _, config = _write_inputs(tmp_path, "https://cdn.example.com/a.png")

    rc = resolve_cli.main(["--nodes", str(tmp_path / "absent.json"), "--config", str(config), "--progress", "none"])
    assert rc == 1
    assert "absent.json" in capsys.readouterr().err

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    rc = resolve_cli.main(["--nodes", str(broken), "--config", str(config), "--progress", "none"])
    assert rc == 1
    assert "Invalid JSON" in capsys.readouterr().err

    scalar = tmp_path / "scalar.json"
    scalar.write_text("42", encoding="utf-8")
    rc = resolve_cli.main(["--nodes", str(scalar), "--config", str(config), "--progress", "none"])
    assert rc == 1
    assert "expected a list of nodes" in capsys.readouterr().err


def test_cli_missing_config_file_exits_1(tmp_path: Path, monkeypatch, capsys) -> None:
    _patch_fetcher(monkeypatch, FakeFetcher())
    nodes, _ = _write_inputs(tmp_path, "https://cdn.example.com/a.png")

    rc = resolve_cli.main(["--nodes", str(nodes), "--config", str(tmp_path / "nope.json"), "--progress", "none"])

    assert rc == 1
    assert "Options file not found" in capsys.readouterr().err


@pytest.mark.parametrize("value", ["0", "-2"])
def test_cli_concurrency_override_is_validated(tmp_path: Path, monkeypatch, capsys, value: str) -> None:
    fetcher = FakeFetcher()
    _patch_fetcher(monkeypatch, fetcher)
    nodes, config = _write_inputs(tmp_path, "https://cdn.example.com/a.png")

    rc = resolve_cli.main(
        ["--nodes", str(nodes), "--config", str(config), "--concurrency", value, "--progress", "none"]
    )

    assert rc == 1
    assert "Invalid command-line override" in capsys.readouterr().err
    assert fetcher.calls == []


def test_cli_concurrency_override_is_applied(tmp_path: Path, monkeypatch, png_bytes) -> None:
    url = "https://cdn.example.com/a.png"
    seen: dict = {}

    def _build(**kw):
        seen["policy"] = kw["policy"]
        return build_session(fetcher=FakeFetcher({url: FetchResponse(status=200, body=png_bytes())}), **kw)

    monkeypatch.setattr(resolve_cli, "build_session", _build)
    nodes, config = _write_inputs(tmp_path, url)

    rc = resolve_cli.main(
        [
            "--nodes", str(nodes),
            "--config", str(config),
            "--out", str(tmp_path / "out.json"),
            "--cache-dir", str(tmp_path / "cache"),
            "--concurrency", "3",
            "--progress", "none",
        ]
    )

    assert rc == 0
    assert seen["policy"].concurrency == 3
    assert seen["policy"].cache_dir == tmp_path / "cache"


@pytest.mark.parametrize("routed", [True, False])
def test_cli_closes_fetcher_after_build(tmp_path: Path, monkeypatch, png_bytes, routed: bool) -> None:
    url = "https://cdn.example.com/a.png"
    fetcher = _ClosingFetcher({url: FetchResponse(status=200, body=png_bytes())} if routed else None)
    _patch_fetcher(monkeypatch, fetcher)
    nodes, config = _write_inputs(tmp_path, url)

    rc = resolve_cli.main(
        [
            "--nodes", str(nodes),
            "--config", str(config),
            "--out", str(tmp_path / "out.json"),
            "--cache-dir", str(tmp_path / "cache"),
            "--progress", "none",
        ]
    )

    assert rc == (0 if routed else 1)
    assert fetcher.closed == 1
