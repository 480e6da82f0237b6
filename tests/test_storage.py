from __future__ import annotations

import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sitepreview.core.models import LivePreviewSnapshot
from sitepreview.core.storage import (
    FileSnapshotStore,
    MemorySnapshotStore,
    build_live_preview_path,
    normalize_project_id,
    publish_live_preview_snapshot,
)


def test_normalize_project_id() -> None:
    assert normalize_project_id("  abc  ") == "abc"
    assert normalize_project_id("/live-preview/abc/") == "abc"
    assert normalize_project_id("https://host.test/live-preview/my%20app?x=1") == "my app"
    assert normalize_project_id("abc?tab=2#frag") == "abc"
    assert normalize_project_id("") == ""
    assert normalize_project_id(None) == ""


def test_build_live_preview_path() -> None:
    assert build_live_preview_path("my app") == "/live-preview/my%20app"
    assert build_live_preview_path("") == "/live-preview"


def test_snapshot_dict_round_trip_uses_camel_case() -> None:
    snapshot = LivePreviewSnapshot(project_id="p", html="<p>x</p>", updated_at=5, meta={"mode": "html"})
    data = snapshot.to_dict()
    assert data == {"projectId": "p", "html": "<p>x</p>", "updatedAt": 5, "meta": {"mode": "html"}}
    assert LivePreviewSnapshot.from_dict({"projectId": "p", "updatedAt": "bad"}).updated_at == 0


def test_memory_store_notifies_subscribers() -> None:
    store = MemorySnapshotStore()
    seen: list[str] = []
    unsubscribe = store.subscribe("proj", lambda snap: seen.append(snap.html))
    store.subscribe("other", lambda snap: seen.append("wrong"))

    publish_live_preview_snapshot(store, "proj", "<p>1</p>")
    unsubscribe()
    publish_live_preview_snapshot(store, "proj", "<p>2</p>")

    assert seen == ["<p>1</p>"]
    assert store.read("/live-preview/proj").html == "<p>2</p>"
    assert store.read("missing") is None


def test_listener_failure_does_not_block_publish() -> None:
    store = MemorySnapshotStore()

    def broken(snapshot: LivePreviewSnapshot) -> None:
        raise RuntimeError("listener down")

    store.subscribe("proj", broken)
    publish_live_preview_snapshot(store, "proj", "<p>ok</p>")
    assert store.read("proj").html == "<p>ok</p>"


def test_publish_swallows_store_errors() -> None:
    class BrokenStore:
        def publish(self, snapshot: LivePreviewSnapshot) -> None:
            raise OSError("disk full")

        def read(self, project_id: str):
            return None

    snapshot = publish_live_preview_snapshot(BrokenStore(), "proj", "<p>x</p>", {"mode": "html"})
    assert snapshot is not None
    assert snapshot.project_id == "proj"
    assert snapshot.updated_at > 0
    assert publish_live_preview_snapshot(BrokenStore(), "  ", "<p>x</p>") is None


def test_file_store_round_trip(tmp_path: Path) -> None:
    store = FileSnapshotStore(tmp_path / "snapshots")
    publish_live_preview_snapshot(store, "team/app", "<p>saved</p>", {"entryFile": "index.html"})

    snapshot = store.read("app")
    assert snapshot is not None
    assert snapshot.html == "<p>saved</p>"
    assert snapshot.meta == {"entryFile": "index.html"}
    raw = json.loads((tmp_path / "snapshots" / "app.json").read_text(encoding="utf-8"))
    assert raw["projectId"] == "app"


def test_file_store_ignores_bad_documents(tmp_path: Path) -> None:
    store = FileSnapshotStore(tmp_path)
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "wrong.json").write_text(json.dumps({"projectId": "other", "html": "x"}), encoding="utf-8")
    (tmp_path / "nohtml.json").write_text(json.dumps({"projectId": "nohtml", "html": 3}), encoding="utf-8")
    assert store.read("broken") is None
    assert store.read("wrong") is None
    assert store.read("nohtml") is None
    assert store.read("absent") is None
