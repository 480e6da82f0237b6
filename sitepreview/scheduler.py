"""Debounced recomputation of the preview as files stream in."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional, Sequence

from .core.models import PreviewOptions, PreviewResult, ProjectFile
from .core.paths import normalize_path
from .core.storage import SnapshotStore, publish_live_preview_snapshot
from .pipeline import FileLike, build_preview, coerce_files

logger = logging.getLogger(__name__)

ResultCallback = Callable[[PreviewResult], None]
TimerFactory = Callable[..., threading.Timer]


def quick_hash(value: str) -> str:
    digest = 2166136261
    for char in value:
        digest ^= ord(char)
        digest = (
            digest + (digest << 1) + (digest << 4) + (digest << 7) + (digest << 8) + (digest << 24)
        ) & 0xFFFFFFFF
    return format(digest, "x")


def snapshot_hash(files: Sequence[ProjectFile]) -> str:
    """Order-preserving fingerprint of a file snapshot."""

    parts = []
    for project_file in files:
        path = normalize_path(project_file.raw_path) or "untitled"
        content = str(project_file.content or "")
        parts.append(f"{path}:{len(content)}:{quick_hash(content)}")
    return "|".join(parts)


class PreviewScheduler:
    """Runs :func:`build_preview` once per distinct snapshot, debounced.

    A submit with a new fingerprint (re)starts the debounce timer; only the
    latest pending snapshot is ever built. Results go to ``on_result`` and,
    when a store and project id are configured, to the live-preview store.
    A build that finishes after a newer one has started is discarded.
    """

    def __init__(
        self,
        on_result: ResultCallback,
        options: PreviewOptions | None = None,
        store: SnapshotStore | None = None,
        project_id: str | None = None,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.on_result = on_result
        self.options = options or PreviewOptions()
        self.store = store
        self.project_id = project_id
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._commit_lock = threading.RLock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._latest_run = 0
        self._pending: Optional[tuple[list[ProjectFile], str]] = None
        self._last_files: list[ProjectFile] = []
        self.last_hash = ""
        self.last_result: Optional[PreviewResult] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def submit(self, files: Iterable[FileLike]) -> bool:
        snapshot = coerce_files(files)
        digest = snapshot_hash(snapshot)
        with self._lock:
            self._cancel_locked()
            if digest == self.last_hash:
                return False
            self._pending = (snapshot, digest)
            timer = self._timer_factory(
                self.options.debounce_seconds, self._fire, args=(self._generation,)
            )
            timer.daemon = True
            self._timer = timer
        timer.start()
        return True

    def flush(self) -> Optional[PreviewResult]:
        with self._lock:
            pending = self._take_pending_locked()
        if pending is None:
            return None
        return self._run(*pending)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def retry(self) -> PreviewResult:
        with self._lock:
            files = list(self._last_files)
            token = self._start_run_locked(files)
        return self._run(files, token)

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            pending = self._take_pending_locked()
        if pending is not None:
            self._run(*pending)

    def _take_pending_locked(self) -> Optional[tuple[list[ProjectFile], int]]:
        if self._pending is None:
            return None
        files, digest = self._pending
        self._cancel_locked()
        self.last_hash = digest
        return files, self._start_run_locked(files)

    def _start_run_locked(self, files: list[ProjectFile]) -> int:
        self._last_files = files
        self._latest_run += 1
        return self._latest_run

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        self._generation += 1

    def _run(self, files: list[ProjectFile], token: int) -> PreviewResult:
        result = build_preview(files, self.options)
        # commits are serialized so a slow, older build never lands last
        with self._commit_lock:
            with self._lock:
                if token != self._latest_run:
                    logger.debug("Dropping stale preview build %d (latest %d)", token, self._latest_run)
                    return result
                self.last_result = result
            try:
                self.on_result(result)
            except Exception:
                logger.exception("Preview result callback failed")
            if self.store is not None and self.project_id and result.ok:
                publish_live_preview_snapshot(
                    self.store, self.project_id, result.html, result.metadata.to_dict()
                )
        return result
