"""Turn project files into self-contained data URLs."""

from __future__ import annotations

import base64
import logging
import re
from typing import Callable, Dict, Optional

from bs4 import BeautifulSoup

from .core.models import PreviewOptions, PreviewReport
from .core.paths import extension_of, is_external_reference, mime_type_from_path
from .resolver import FileIndex, ReferenceResolver
from .sanitizers import is_valid_classic_script, sanitize_svg_tree

logger = logging.getLogger(__name__)

Rewriter = Callable[[str], Optional[str]]

SCRIPT_EXTENSIONS = {"js", "jsx", "mjs", "cjs"}

_CSS_URL_RE = re.compile(r"url\(\s*(['\"]?)([^'\"]+?)\1\s*\)", re.IGNORECASE)
_CSS_IMPORT_RE = re.compile(r"(@import\s+)(['\"])([^'\"]+)\2", re.IGNORECASE)
_JS_FROM_RE = re.compile(r"(\b(?:import|export)\s+[^;'\"()]*?\bfrom\s*)(['\"])([^'\"\n]+)\2")
_JS_SIDE_EFFECT_RE = re.compile(r"(\bimport\s*)(['\"])([^'\"\n]+)\2")
_JS_DYNAMIC_RE = re.compile(r"(\bimport\(\s*)(['\"])([^'\"\n]+)\2(\s*\))")
_JS_WORKER_RE = re.compile(r"(\bnew\s+Worker\(\s*)(['\"])([^'\"\n]+)\2(\s*[,)}])")
_ESM_HINT_RE = re.compile(r"\bimport\s+|\bexport\s+")


def build_data_url(content: str, mime_type: str) -> str:
    encoded = base64.b64encode(str(content or "").encode("utf-8")).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def rewrite_css_urls(css: str, rewriter: Rewriter) -> str:
    def repl(match: re.Match[str]) -> str:
        value = match.group(2).strip()
        if not value or is_external_reference(value):
            return match.group(0)
        new_value = rewriter(value)
        if not new_value:
            return match.group(0)
        return f'url("{new_value}")'

    def repl_import(match: re.Match[str]) -> str:
        value = match.group(3).strip()
        if not value or is_external_reference(value):
            return match.group(0)
        new_value = rewriter(value)
        if not new_value:
            return match.group(0)
        return f"{match.group(1)}{match.group(2)}{new_value}{match.group(2)}"

    css = _CSS_URL_RE.sub(repl, str(css or ""))
    return _CSS_IMPORT_RE.sub(repl_import, css)


def _is_bare_specifier(value: str) -> bool:
    return not value.startswith((".", "/")) and not extension_of(value)


def rewrite_javascript_imports(source: str, rewriter: Rewriter) -> str:
    """Point import/export/worker specifiers at inlined resources.

    Package imports such as ``react`` are left for an import map or CDN.
    """

    def replace(match: re.Match[str]) -> str:
        ref = match.group(3)
        if is_external_reference(ref) or _is_bare_specifier(ref):
            return match.group(0)
        new_value = rewriter(ref)
        if not new_value:
            return match.group(0)
        tail = match.group(4) if match.re.groups >= 4 else ""
        return f"{match.group(1)}{match.group(2)}{new_value}{match.group(2)}{tail}"

    output = str(source or "")
    for pattern in (_JS_FROM_RE, _JS_SIDE_EFFECT_RE, _JS_DYNAMIC_RE, _JS_WORKER_RE):
        output = pattern.sub(replace, output)
    return output


def looks_like_module(source: str) -> bool:
    return bool(_ESM_HINT_RE.search(source))


class ResourceInliner:
    """Per-run data URL builder with cycle protection.

    Each resolved path is encoded once. A path that is requested again
    while it is still being built (``a.css`` importing ``b.css`` importing
    ``a.css``) yields whatever is cached, usually ``None``, instead of
    recursing.
    """

    def __init__(
        self,
        index: FileIndex,
        resolver: ReferenceResolver,
        report: PreviewReport,
        options: PreviewOptions | None = None,
    ) -> None:
        self.index = index
        self.resolver = resolver
        self.report = report
        self.options = options or PreviewOptions()
        self._cache: Dict[str, str] = {}
        self._in_progress: set[str] = set()

    def resolve_to_url(self, from_path: str, reference: str) -> Optional[str]:
        reference = str(reference or "").strip()
        if not reference or is_external_reference(reference):
            return None
        entry = f"{from_path} -> {reference}"
        resolved = self.resolver.resolve(from_path, reference)
        if resolved.resolved_path is None:
            self.report.add_unresolved(entry)
            return None
        url = self.to_data_url(resolved.resolved_path)
        if url is None:
            self.report.add_unresolved(entry)
            return None
        self.report.add_resolved(entry)
        return url

    def to_data_url(self, path: str) -> Optional[str]:
        if path in self._cache:
            return self._cache[path]
        if path in self._in_progress:
            logger.debug("Reference cycle through %s", path)
            return self._cache.get(path)
        content = self.index.content_of(path)
        if content is None:
            return None

        self._in_progress.add(path)
        try:
            content = self._transform(path, content)
            url = build_data_url(content, mime_type_from_path(path))
            self._cache[path] = url
        finally:
            self._in_progress.discard(path)
        return url

    def _transform(self, path: str, content: str) -> str:
        ext = extension_of(path)
        rewriter: Rewriter = lambda ref: self.resolve_to_url(path, ref)
        try:
            if ext == "css":
                return rewrite_css_urls(content, rewriter)
            if ext in SCRIPT_EXTENSIONS:
                return self._transform_script(content, rewriter)
            if ext == "svg":
                return self._transform_svg(path, content)
        except Exception:
            logger.warning("Failed to transform %s; inlining it unchanged", path, exc_info=True)
        return content

    def _transform_script(self, content: str, rewriter: Rewriter) -> str:
        content = rewrite_javascript_imports(content, rewriter)
        if looks_like_module(content) or is_valid_classic_script(content):
            return content
        self.report.sanitized_scripts += 1
        return self.options.file_script_placeholder

    def _transform_svg(self, path: str, content: str) -> str:
        soup = BeautifulSoup(content, "xml")
        root = soup.find("svg")
        if root is None:
            logger.debug("No <svg> root in %s", path)
            return content
        counts = sanitize_svg_tree(root)
        self.report.sanitized_svg_paths += counts.paths
        self.report.sanitized_svg_view_boxes += counts.view_boxes
        if not (counts.paths or counts.view_boxes):
            return content
        return str(soup)
