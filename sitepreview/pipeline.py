"""Top-level preview build: file snapshot in, self-contained document out."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Union

from .assembler import assemble_document
from .core.generator import render_fallback_page
from .core.models import (
    PreviewMetadata,
    PreviewOptions,
    PreviewReport,
    PreviewResult,
    ProjectFile,
)
from .core.paths import normalize_path
from .entry import select_entry_file
from .inliner import ResourceInliner
from .resolver import FileIndex, ReferenceResolver

logger = logging.getLogger(__name__)

FileLike = Union[ProjectFile, Mapping[str, object]]


def coerce_files(files: Iterable[FileLike] | None) -> list[ProjectFile]:
    coerced: list[ProjectFile] = []
    for item in files or ():
        if isinstance(item, ProjectFile):
            coerced.append(item)
        else:
            coerced.append(ProjectFile.from_dict(dict(item)))
    return coerced


def _fallback_result(files: list[ProjectFile], index: FileIndex, note: str) -> PreviewResult:
    paths = [normalize_path(f.raw_path) or "untitled" for f in files]
    html = render_fallback_page(paths, len(files), len(index.folders))
    metadata = PreviewMetadata(
        mode="fallback",
        entry_file=None,
        file_count=len(files),
        folder_count=len(index.folders),
        note=note,
    )
    return PreviewResult(html=html, metadata=metadata)


def _build(files: list[ProjectFile], options: PreviewOptions) -> PreviewResult:
    index = FileIndex.from_files(files)
    if not files:
        return _fallback_result(files, index, "No files in workspace")

    entry = select_entry_file(index)
    if entry is None:
        logger.info("No HTML entry among %d files; rendering status page", len(files))
        return _fallback_result(files, index, "No HTML entry file detected")

    report = PreviewReport()
    resolver = ReferenceResolver(index, options)
    inliner = ResourceInliner(index, resolver, report, options)
    html = assemble_document(entry, index.content_of(entry) or "", inliner, report, options)
    for mapping in resolver.auto_mapped:
        report.add_auto_mapped(mapping)

    metadata = report.to_metadata(
        entry_file=entry,
        file_count=len(files),
        folder_count=len(index.folders),
        max_unresolved=options.max_unresolved_refs,
    )
    logger.info(
        "Preview built from %s: %d resolved, %d auto-mapped, %d unresolved",
        entry,
        metadata.resolved_refs,
        metadata.auto_mapped_refs,
        len(report.unresolved),
    )
    return PreviewResult(html=html, metadata=metadata)


def build_preview(
    files: Iterable[FileLike] | None,
    options: PreviewOptions | None = None,
) -> PreviewResult:
    """Build the preview document for ``files``. Never raises.

    A failure anywhere in the run is reported through
    :attr:`PreviewResult.error` with empty HTML so the caller can show an
    error state and offer a retry.
    """

    options = options or PreviewOptions()
    try:
        return _build(coerce_files(files), options)
    except Exception as exc:
        logger.exception("Preview build failed")
        message = f"Failed to generate preview: {exc}"
        return PreviewResult(html="", metadata=PreviewMetadata(note=message), error=message)
