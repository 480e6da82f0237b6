from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sitepreview.core.models import PreviewResult, ProjectFile
from sitepreview.core.storage import MemorySnapshotStore
from sitepreview.pipeline import build_preview
from sitepreview.scheduler import PreviewScheduler, quick_hash, snapshot_hash


class FakeTimer:
    created: list["FakeTimer"] = []

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function(*self.args)


def _scheduler(**kwargs) -> tuple[PreviewScheduler, list[PreviewResult]]:
    FakeTimer.created = []
    results: list[PreviewResult] = []
    scheduler = PreviewScheduler(results.append, timer_factory=FakeTimer, **kwargs)
    return scheduler, results


def _page(text: str) -> list[ProjectFile]:
    return [ProjectFile(path="index.html", content=f"<p>{text}</p>")]


def test_quick_hash_is_stable() -> None:
    assert quick_hash("") == "811c9dc5"
    assert quick_hash("abc") == quick_hash("abc")
    assert quick_hash("abc") != quick_hash("abd")


def test_snapshot_hash_is_order_sensitive() -> None:
    a = ProjectFile(path="a.html", content="x")
    b = ProjectFile(path="./b.html", content="yy")
    assert snapshot_hash([a, b]) == f"a.html:1:{quick_hash('x')}|b.html:2:{quick_hash('yy')}"
    assert snapshot_hash([a, b]) != snapshot_hash([b, a])


def test_submit_debounces_and_builds_latest() -> None:
    scheduler, results = _scheduler()
    assert scheduler.submit(_page("one"))
    assert scheduler.submit(_page("two"))
    first, second = FakeTimer.created
    assert first.cancelled and not second.cancelled
    assert second.started and second.daemon
    assert second.interval == scheduler.options.debounce_seconds

    first.fire()
    assert results == []
    second.fire()
    assert len(results) == 1
    assert "<p>two</p>" in results[0].html
    assert not scheduler.pending


def test_unchanged_snapshot_is_not_rebuilt() -> None:
    scheduler, results = _scheduler()
    scheduler.submit(_page("same"))
    FakeTimer.created[-1].fire()
    assert not scheduler.submit(_page("same"))
    assert len(FakeTimer.created) == 1
    assert len(results) == 1


def test_flush_runs_pending_immediately() -> None:
    scheduler, results = _scheduler()
    assert scheduler.flush() is None
    scheduler.submit(_page("now"))
    result = scheduler.flush()
    assert result is not None and result is scheduler.last_result
    assert FakeTimer.created[-1].cancelled
    FakeTimer.created[-1].fire()
    assert len(results) == 1


def test_cancel_drops_pending_snapshot() -> None:
    scheduler, results = _scheduler()
    scheduler.submit(_page("gone"))
    scheduler.cancel()
    assert not scheduler.pending
    FakeTimer.created[-1].fire()
    assert results == []
    assert scheduler.submit(_page("gone"))


def test_retry_rebuilds_last_snapshot() -> None:
    scheduler, results = _scheduler()
    scheduler.submit(_page("again"))
    scheduler.flush()
    retried = scheduler.retry()
    assert retried.html == results[0].html
    assert len(results) == 2


def test_callback_errors_do_not_escape() -> None:
    def explode(result: PreviewResult) -> None:
        raise RuntimeError("ui gone")

    FakeTimer.created = []
    scheduler = PreviewScheduler(explode, timer_factory=FakeTimer)
    scheduler.submit(_page("x"))
    assert scheduler.flush() is not None


def test_results_are_published_to_store() -> None:
    store = MemorySnapshotStore()
    scheduler, _ = _scheduler(store=store, project_id="https://app.test/live-preview/proj-1")
    scheduler.submit(_page("shared"))
    scheduler.flush()
    snapshot = store.read("proj-1")
    assert snapshot is not None
    assert "<p>shared</p>" in snapshot.html
    assert snapshot.meta["entryFile"] == "index.html"


def test_slow_older_build_does_not_overwrite_newer(monkeypatch: pytest.MonkeyPatch) -> None:
    started = threading.Event()
    release = threading.Event()

    def slow_build(files, options=None):
        if "old" in files[0].content:
            started.set()
            release.wait(5)
        return build_preview(files, options)

    monkeypatch.setattr("sitepreview.scheduler.build_preview", slow_build)
    store = MemorySnapshotStore()
    scheduler, results = _scheduler(store=store, project_id="proj")

    scheduler.submit(_page("old"))
    worker = threading.Thread(target=FakeTimer.created[-1].fire)
    worker.start()
    assert started.wait(5)

    scheduler.submit(_page("new"))
    scheduler.flush()
    release.set()
    worker.join(5)

    assert not worker.is_alive()
    assert "<p>new</p>" in scheduler.last_result.html
    assert len(results) == 1 and "<p>new</p>" in results[0].html
    assert "<p>new</p>" in store.read("proj").html
