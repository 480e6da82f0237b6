"""Path helpers shared by the preview pipeline."""

from __future__ import annotations

import re


MIME_TYPES: dict[str, str] = {
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "text/javascript",
    "mjs": "text/javascript",
    "cjs": "text/javascript",
    "jsx": "text/javascript",
    "json": "application/json",
    "webmanifest": "application/manifest+json",
    "xml": "application/xml",
    "txt": "text/plain",
    "md": "text/markdown",
    "svg": "image/svg+xml",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "avif": "image/avif",
    "ico": "image/x-icon",
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "otf": "font/otf",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
}

_EXTERNAL_SCHEME_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:)?//", re.IGNORECASE)
_EXTERNAL_PREFIXES = ("data:", "blob:", "mailto:", "tel:", "javascript:", "about:", "#")


def normalize_path(value: str | None) -> str:
    cleaned = str(value or "").replace("\\", "/")
    cleaned = re.sub(r"^\./", "", cleaned)
    cleaned = re.sub(r"/+", "/", cleaned)
    cleaned = re.sub(r"^/", "", cleaned)
    return cleaned.strip()


def dirname(value: str) -> str:
    clean = normalize_path(value)
    idx = clean.rfind("/")
    if idx == -1:
        return ""
    return clean[:idx]


def basename(value: str) -> str:
    clean = normalize_path(value)
    return clean.rsplit("/", 1)[-1]


def join_path(base_dir: str, relative_path: str) -> str:
    """Join ``relative_path`` onto ``base_dir``, resolving ``.`` and ``..``.

    A ``..`` that would climb above the root is dropped, so the result never
    escapes the project.
    """

    base = normalize_path(base_dir)
    rel = normalize_path(relative_path)
    if not rel:
        return base
    stack: list[str] = []
    for part in [*(base.split("/") if base else []), *rel.split("/")]:
        if not part or part == ".":
            continue
        if part == "..":
            if stack:
                stack.pop()
            continue
        stack.append(part)
    return "/".join(stack)


def extension_of(value: str) -> str:
    clean = normalize_path(value)
    idx = clean.rfind(".")
    if idx == -1 or "/" in clean[idx:]:
        return ""
    return clean[idx + 1 :].lower()


def mime_type_from_path(value: str) -> str:
    return MIME_TYPES.get(extension_of(value), "text/plain")


def split_reference(value: str) -> tuple[str, str]:
    """Split ``path?query#hash`` into the path and the untouched suffix."""

    match = re.search(r"[?#]", value)
    if match is None:
        return value, ""
    return value[: match.start()], value[match.start() :]


def is_external_reference(value: str | None) -> bool:
    trimmed = str(value or "").strip()
    if not trimmed:
        return False
    if _EXTERNAL_SCHEME_RE.match(trimmed):
        return True
    return trimmed.lower().startswith(_EXTERNAL_PREFIXES)


def strip_parent_segments(value: str) -> str:
    return re.sub(r"^(?:\.{1,2}/)+", "", normalize_path(value))


def path_depth(value: str) -> int:
    clean = normalize_path(value)
    return clean.count("/") if clean else 0
