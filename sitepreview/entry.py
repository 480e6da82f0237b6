"""Choose the HTML document that becomes the preview root."""

from __future__ import annotations

import logging
import math
import re

from .core.paths import basename, dirname, normalize_path, path_depth
from .resolver import FileIndex

logger = logging.getLogger(__name__)

_HTML_RE = re.compile(r"\.html?$", re.IGNORECASE)
_DOCTYPE_RE = re.compile(r"<!doctype", re.IGNORECASE)
_STRUCTURE_SIGNALS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"<html", re.IGNORECASE), 10),
    (re.compile(r"<head", re.IGNORECASE), 6),
    (re.compile(r"<body", re.IGNORECASE), 10),
    (re.compile(r"<main", re.IGNORECASE), 6),
)
_PARTIAL_DIRS = {"components", "partials"}


def html_candidates(index: FileIndex) -> list[str]:
    candidates = [path for path in index.paths if _HTML_RE.search(path)]
    index_pages = [path for path in candidates if path.lower().endswith("index.html")]
    return index_pages or candidates


def score_entry_candidate(index: FileIndex, path: str) -> float:
    clean = normalize_path(path)
    lowered = clean.lower()
    content = index.content_of(clean) or ""
    score = 0.0

    if basename(lowered) == "index.html":
        score += 40
    if lowered == "index.html":
        score += 35

    parent = dirname(lowered)
    if parent.rsplit("/", 1)[-1] in _PARTIAL_DIRS:
        score -= 30
    elif "/components/" in f"/{lowered}":
        score -= 20

    if _DOCTYPE_RE.search(content):
        score += 18
    for pattern, weight in _STRUCTURE_SIGNALS:
        if pattern.search(content):
            score += weight
    score += min(25.0, math.log10(len(content) + 1) * 10)

    sibling_dir = dirname(clean)
    for sibling in ("style.css", "script.js"):
        sibling_path = f"{sibling_dir}/{sibling}" if sibling_dir else sibling
        if sibling_path in index:
            score += 12

    score -= 2 * path_depth(clean)
    return score


def select_entry_file(index: FileIndex) -> str | None:
    candidates = html_candidates(index)
    if not candidates:
        return None
    ranked = sorted(
        enumerate(candidates),
        key=lambda item: (-score_entry_candidate(index, item[1]), path_depth(item[1]), item[0]),
    )
    entry = ranked[0][1]
    logger.debug("Selected entry %s from %d candidates", entry, len(candidates))
    return entry
