"""File index and reference resolution for generated projects."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping

from .core.models import PreviewOptions, ProjectFile, ResolvedReference
from .core.paths import (
    basename,
    dirname,
    extension_of,
    is_external_reference,
    join_path,
    normalize_path,
    split_reference,
    strip_parent_segments,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileIndex:
    """Immutable lookup tables over one file snapshot."""

    files: Mapping[str, ProjectFile] = field(default_factory=dict)
    by_basename: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    folders: frozenset[str] = frozenset()

    @classmethod
    def from_files(cls, files: Iterable[ProjectFile]) -> "FileIndex":
        path_to_file: Dict[str, ProjectFile] = {}
        for project_file in files:
            path = normalize_path(project_file.raw_path)
            if not path:
                continue
            path_to_file[path] = project_file

        names: Dict[str, List[str]] = {}
        folders: set[str] = set()
        for path in path_to_file:
            names.setdefault(basename(path), []).append(path)
            parent = dirname(path)
            if parent:
                folders.add(parent)
        return cls(
            files=path_to_file,
            by_basename={name: tuple(paths) for name, paths in names.items()},
            folders=frozenset(folders),
        )

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(self.files)

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)

    def content_of(self, path: str) -> str | None:
        project_file = self.files.get(path)
        if project_file is None:
            return None
        return str(project_file.content or "")


class ReferenceResolver:
    """Map raw references to files, falling back to fuzzy matching.

    Exact candidates are tried first (joined against the referencing file,
    root-relative, alternate roots). When none exist the reference is
    matched by path suffix or basename and the best scoring path wins; such
    hits are remembered in :attr:`auto_mapped`.
    """

    def __init__(self, index: FileIndex, options: PreviewOptions | None = None) -> None:
        self.index = index
        self.options = options or PreviewOptions()
        self.auto_mapped: Dict[str, None] = {}

    def resolve(self, from_path: str, reference: str) -> ResolvedReference:
        raw = str(reference or "")
        if not raw.strip() or is_external_reference(raw):
            return ResolvedReference(from_path, raw, external=bool(raw.strip()))

        path_part, _ = split_reference(raw.strip())
        clean = normalize_path(path_part)
        if not clean:
            return ResolvedReference(from_path, raw)

        for candidate in self._candidates(from_path, path_part.strip(), clean):
            if candidate in self.index:
                return ResolvedReference(from_path, raw, candidate)

        winner = self._fuzzy_match(from_path, clean)
        if winner is None:
            logger.debug("Unresolved reference %s -> %s", from_path, raw)
            return ResolvedReference(from_path, raw)
        self.auto_mapped.setdefault(f"{from_path} -> {raw} => {winner}", None)
        logger.debug("Auto-mapped %s -> %s to %s", from_path, raw, winner)
        return ResolvedReference(from_path, raw, winner, auto_mapped=True)

    def _candidates(self, from_path: str, reference: str, clean: str) -> list[str]:
        candidates: list[str] = []

        def push(value: str) -> None:
            normalized = normalize_path(value)
            if normalized and normalized not in candidates:
                candidates.append(normalized)

        def push_src_fallbacks(value: str) -> None:
            normalized = normalize_path(value)
            if not normalized.startswith("src/"):
                return
            rest = normalized[len("src/") :]
            for root in self.options.src_fallback_roots:
                push(f"{root}/{rest}")

        if reference.replace("\\", "/").startswith("/"):
            push(clean)
            for root in self.options.alternate_roots:
                push(f"{root}/{clean}")
            push_src_fallbacks(clean)
        else:
            joined = join_path(dirname(from_path), clean)
            push(joined)
            push(strip_parent_segments(clean))
            push_src_fallbacks(clean)
            push_src_fallbacks(joined)

        if not extension_of(clean):
            for candidate in list(candidates):
                for suffix in self.options.script_extensions:
                    push(candidate + suffix)
        return candidates

    def _fuzzy_match(self, from_path: str, clean: str) -> str | None:
        key = strip_parent_segments(clean)
        if not key:
            return None
        suffix_matches = [
            path for path in self.index.paths if path == key or path.endswith(f"/{key}")
        ]
        pool = suffix_matches or list(self.index.by_basename.get(basename(key), ()))
        if not pool:
            return None

        scored = sorted(pool, key=lambda path: -self.score_candidate(from_path, key, path))
        return scored[0]

    def score_candidate(self, from_path: str, reference: str, path: str) -> float:
        weights = self.options.weights
        score = 0.0
        from_root = _top_level_root(from_path)
        if from_root and path.startswith(f"{from_root}/"):
            score += weights.same_root
        if path.endswith(f"/{reference}"):
            score += weights.suffix
        reference_ext = extension_of(reference)
        if reference_ext and extension_of(path) == reference_ext:
            score += weights.extension
        wrapped = f"/{path}"
        if "/assets/icons/" in wrapped:
            score += weights.icons_dir
        if "/assets/" in wrapped:
            score += weights.assets_dir
        if "/src/" in wrapped:
            score += weights.src_dir
        return score - len(path) * weights.length_penalty


def _top_level_root(path: str) -> str:
    clean = normalize_path(path)
    if "/" not in clean:
        return ""
    return clean.split("/", 1)[0]
