"""Data models for the preview engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional


PreviewMode = Literal["html", "fallback"]


@dataclass
class ProjectFile:
    path: str
    content: str = ""
    name: str = ""

    @property
    def raw_path(self) -> str:
        return self.path or self.name or ""

    def to_dict(self) -> dict:
        return {"path": self.path, "name": self.name, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectFile":
        return cls(
            path=str(data.get("path") or ""),
            name=str(data.get("name") or ""),
            content=str(data.get("content") or ""),
        )


@dataclass(frozen=True, slots=True)
class ResolvedReference:
    from_path: str
    raw_reference: str
    resolved_path: Optional[str] = None
    auto_mapped: bool = False
    external: bool = False

    @property
    def unresolved(self) -> bool:
        return not self.external and self.resolved_path is None


@dataclass(frozen=True, slots=True)
class ResolverWeights:
    """Fuzzy-match scoring constants, tuned against generated projects."""

    same_root: float = 22
    suffix: float = 14
    extension: float = 10
    icons_dir: float = 16
    assets_dir: float = 10
    src_dir: float = 4
    length_penalty: float = 0.001


@dataclass(frozen=True, slots=True)
class ExternalRule:
    """Remaps a known-broken CDN URL. ``None`` drops the resource."""

    pattern: str
    script_url: Optional[str] = None
    style_url: Optional[str] = None


DEFAULT_EXTERNAL_RULES: tuple[ExternalRule, ...] = (
    # cdnjs never shipped the lucide builds models like to reference
    ExternalRule(
        pattern=r"cdnjs\.cloudflare\.com/ajax/libs/lucide/",
        script_url="https://unpkg.com/lucide@latest/dist/umd/lucide.min.js",
        style_url=None,
    ),
)


@dataclass(slots=True)
class PreviewOptions:
    weights: ResolverWeights = field(default_factory=ResolverWeights)
    alternate_roots: tuple[str, ...] = ("frontend", "frontend/src")
    src_fallback_roots: tuple[str, ...] = (
        "frontend/src",
        "frontend/src/assets",
        "frontend/assets",
    )
    script_extensions: tuple[str, ...] = (".js", ".mjs", ".jsx")
    external_rules: tuple[ExternalRule, ...] = DEFAULT_EXTERNAL_RULES
    max_unresolved_refs: int = 8
    debounce_seconds: float = 0.24
    inline_script_placeholder: str = "/* Preview skipped malformed inline script. */"
    file_script_placeholder: str = "/* Preview skipped malformed JS file. */"


@dataclass(frozen=True, slots=True)
class PreviewMetadata:
    mode: PreviewMode = "fallback"
    entry_file: Optional[str] = None
    file_count: int = 0
    folder_count: int = 0
    resolved_refs: int = 0
    auto_mapped_refs: int = 0
    sanitized_svg_paths: int = 0
    sanitized_svg_view_boxes: int = 0
    sanitized_scripts: int = 0
    unresolved_refs: tuple[str, ...] = ()
    note: str = "Waiting for files"

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "entryFile": self.entry_file,
            "fileCount": self.file_count,
            "folderCount": self.folder_count,
            "resolvedRefs": self.resolved_refs,
            "autoMappedRefs": self.auto_mapped_refs,
            "sanitizedSvgPaths": self.sanitized_svg_paths,
            "sanitizedSvgViewBoxes": self.sanitized_svg_view_boxes,
            "sanitizedScripts": self.sanitized_scripts,
            "unresolvedRefs": list(self.unresolved_refs),
            "note": self.note,
        }


@dataclass(slots=True)
class PreviewReport:
    """Mutable per-run accumulator, frozen into :class:`PreviewMetadata`."""

    resolved: Dict[str, None] = field(default_factory=dict)
    unresolved: Dict[str, None] = field(default_factory=dict)
    auto_mapped: Dict[str, None] = field(default_factory=dict)
    sanitized_svg_paths: int = 0
    sanitized_svg_view_boxes: int = 0
    sanitized_scripts: int = 0

    def add_resolved(self, entry: str) -> None:
        self.resolved.setdefault(entry, None)

    def add_unresolved(self, entry: str) -> None:
        self.unresolved.setdefault(entry, None)

    def add_auto_mapped(self, entry: str) -> None:
        self.auto_mapped.setdefault(entry, None)

    def build_note(self) -> str:
        parts: List[str] = []
        if not self.unresolved:
            if self.auto_mapped:
                parts.append(f"All linked resources resolved ({len(self.auto_mapped)} auto-mapped)")
            else:
                parts.append("All linked resources resolved")
        else:
            parts.append("Some referenced resources could not be resolved")
        if self.sanitized_svg_paths:
            parts.append(f"sanitized {self.sanitized_svg_paths} SVG path values")
        if self.sanitized_svg_view_boxes:
            parts.append(f"sanitized {self.sanitized_svg_view_boxes} SVG viewBox values")
        if self.sanitized_scripts:
            parts.append(f"skipped {self.sanitized_scripts} malformed scripts")
        return " • ".join(parts)

    def to_metadata(
        self,
        entry_file: str,
        file_count: int,
        folder_count: int,
        max_unresolved: int,
    ) -> PreviewMetadata:
        return PreviewMetadata(
            mode="html",
            entry_file=entry_file,
            file_count=file_count,
            folder_count=folder_count,
            resolved_refs=len(self.resolved),
            auto_mapped_refs=len(self.auto_mapped),
            sanitized_svg_paths=self.sanitized_svg_paths,
            sanitized_svg_view_boxes=self.sanitized_svg_view_boxes,
            sanitized_scripts=self.sanitized_scripts,
            unresolved_refs=tuple(list(self.unresolved)[:max_unresolved]),
            note=self.build_note(),
        )


@dataclass(frozen=True, slots=True)
class PreviewResult:
    html: str
    metadata: PreviewMetadata
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class LivePreviewSnapshot:
    project_id: str
    html: str
    updated_at: int
    meta: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "projectId": self.project_id,
            "html": self.html,
            "updatedAt": self.updated_at,
            "meta": self.meta,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LivePreviewSnapshot":
        meta = data.get("meta")
        try:
            updated_at = int(data.get("updatedAt") or 0)
        except (TypeError, ValueError):
            updated_at = 0
        return cls(
            project_id=str(data.get("projectId", "")),
            html=str(data.get("html", "")),
            updated_at=updated_at,
            meta=meta if isinstance(meta, dict) else {},
        )
