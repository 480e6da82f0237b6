"""Shareable live-preview snapshots."""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol
from urllib.parse import quote, unquote, urlparse

from .models import LivePreviewSnapshot

logger = logging.getLogger(__name__)

LIVE_PREVIEW_ROUTE = "/live-preview"

SnapshotListener = Callable[[LivePreviewSnapshot], None]


def normalize_project_id(value: str | None) -> str:
    raw = str(value or "").strip()
    if not raw:
        return ""

    def unwrap(candidate: str) -> str:
        parts = [part for part in candidate.strip().strip("/").split("/") if part]
        return parts[-1] if parts else ""

    if raw.startswith(("http://", "https://")):
        return unquote(unwrap(urlparse(raw).path))

    without_query = re.split(r"[?#]", raw, maxsplit=1)[0] or raw
    candidate = unwrap(without_query)
    if not candidate:
        return ""
    return unquote(candidate).strip()


def build_live_preview_path(project_id: str) -> str:
    clean_id = normalize_project_id(project_id)
    if not clean_id:
        return LIVE_PREVIEW_ROUTE
    return f"{LIVE_PREVIEW_ROUTE}/{quote(clean_id, safe='')}"


def _coerce_snapshot(project_id: str, data: object) -> Optional[LivePreviewSnapshot]:
    if not isinstance(data, dict):
        return None
    snapshot = LivePreviewSnapshot.from_dict(data)
    if normalize_project_id(snapshot.project_id) != project_id:
        return None
    if not isinstance(data.get("html"), str):
        return None
    snapshot.project_id = project_id
    return snapshot


class SnapshotStore(Protocol):
    def publish(self, snapshot: LivePreviewSnapshot) -> None: ...

    def read(self, project_id: str) -> Optional[LivePreviewSnapshot]: ...


class MemorySnapshotStore:
    """In-process store that also fans snapshots out to subscribers."""

    def __init__(self) -> None:
        self._snapshots: Dict[str, dict] = {}
        self._listeners: List[tuple[str, SnapshotListener]] = []
        self._lock = threading.Lock()

    def publish(self, snapshot: LivePreviewSnapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.project_id] = snapshot.to_dict()
            listeners = [cb for pid, cb in self._listeners if pid == snapshot.project_id]
        for callback in listeners:
            try:
                callback(snapshot)
            except Exception:
                logger.warning("Snapshot listener failed for %s", snapshot.project_id, exc_info=True)

    def read(self, project_id: str) -> Optional[LivePreviewSnapshot]:
        clean_id = normalize_project_id(project_id)
        if not clean_id:
            return None
        with self._lock:
            data = self._snapshots.get(clean_id)
        return _coerce_snapshot(clean_id, data)

    def subscribe(self, project_id: str, callback: SnapshotListener) -> Callable[[], None]:
        clean_id = normalize_project_id(project_id)
        if not clean_id:
            return lambda: None
        entry = (clean_id, callback)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe


class FileSnapshotStore:
    """One JSON document per project under ``directory``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path_for(self, project_id: str) -> Path:
        return self.directory / f"{quote(project_id, safe='')}.json"

    def publish(self, snapshot: LivePreviewSnapshot) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        save_snapshot(self._path_for(snapshot.project_id), snapshot)

    def read(self, project_id: str) -> Optional[LivePreviewSnapshot]:
        clean_id = normalize_project_id(project_id)
        if not clean_id:
            return None
        path = self._path_for(clean_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return _coerce_snapshot(clean_id, data)


def save_snapshot(path: str | Path, snapshot: LivePreviewSnapshot) -> None:
    path = Path(path)
    path.write_text(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")


def publish_live_preview_snapshot(
    store: SnapshotStore,
    project_id: str,
    html: str,
    meta: Optional[dict] = None,
) -> Optional[LivePreviewSnapshot]:
    """Publish ``html`` for ``project_id``; store failures are only logged."""

    clean_id = normalize_project_id(project_id)
    if not clean_id:
        return None
    snapshot = LivePreviewSnapshot(
        project_id=clean_id,
        html=str(html or ""),
        updated_at=int(time.time() * 1000),
        meta=dict(meta or {}),
    )
    try:
        store.publish(snapshot)
    except Exception:
        logger.warning("Failed to publish live preview for %s", clean_id, exc_info=True)
    return snapshot
