"""Rewrite the entry document into a single self-contained page."""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from bs4 import BeautifulSoup
from bs4.element import Doctype, NavigableString, Tag

from .core.models import PreviewOptions, PreviewReport
from .core.paths import is_external_reference, normalize_path, split_reference
from .inliner import ResourceInliner, rewrite_css_urls, rewrite_javascript_imports
from .repair import repair_truncated_html, validate_preview_content
from .sanitizers import (
    is_javascript_type,
    is_valid_classic_script,
    normalize_external_resource,
    sanitize_svg_tree,
)

logger = logging.getLogger(__name__)

EMPTY_MANIFEST_URL = "data:application/manifest+json;base64,e30="

_LINK_RELS = {"stylesheet", "icon", "apple-touch-icon", "manifest", "preload", "modulepreload"}
_META_URL_RE = re.compile(r"image|url|icon|logo|thumbnail", re.IGNORECASE)
# og:image:alt and siblings describe the image; their content is not a URL
_META_DESCRIPTOR_RE = re.compile(r":(?:alt|width|height|type)$", re.IGNORECASE)
_SRCSET_ENTRY_RE = re.compile(r"\s*(data:\S+|[^\s,]+)(?:\s+([^,]*))?,?")


def _attr_text(tag: Tag, name: str) -> str:
    value = tag.get(name)
    if isinstance(value, list):
        return " ".join(value)
    return str(value or "")


def parse_srcset(value: str) -> list[tuple[str, str]]:
    entries: list[tuple[str, str]] = []
    for match in _SRCSET_ENTRY_RE.finditer(value or ""):
        url = match.group(1).rstrip(",")
        if url:
            entries.append((url, (match.group(2) or "").strip()))
    return entries


class DocumentAssembler:
    """Rewrites one parsed entry document in place.

    Every element is handled on its own: a failure while rewriting one
    reference is logged and degrades only that element.
    """

    def __init__(
        self,
        entry_path: str,
        html: str,
        inliner: ResourceInliner,
        report: PreviewReport,
        options: PreviewOptions | None = None,
    ) -> None:
        self.entry_path = entry_path
        self.inliner = inliner
        self.report = report
        self.options = options or PreviewOptions()
        self.soup = BeautifulSoup(html or "", "html.parser")

    def assemble(self) -> str:
        root, head = self._ensure_skeleton()
        self._ensure_head_meta(head)

        self._rewrite_attr(("img", "src"), ("video", "poster"), ("video", "src"), on_failure="blank")
        self._rewrite_attr(("source", "src"), ("audio", "src"), ("object", "data"), on_failure="remove")
        self._each("a", self._rewrite_anchor, attr="href")
        self._each("script", self._rewrite_script_src, attr="src")
        self._each("link", self._rewrite_link, attr="href")
        self._each("source", lambda tag: self._rewrite_srcset(tag, remove_element=True), attr="srcset")
        self._each("img", lambda tag: self._rewrite_srcset(tag, remove_element=False), attr="srcset")
        self._each("style", self._rewrite_style)
        self._each("meta", self._rewrite_meta, attr="content")
        self._each("script", self._rewrite_inline_script, attr=None, without="src")

        counts = sanitize_svg_tree(root)
        self.report.sanitized_svg_paths += counts.paths
        self.report.sanitized_svg_view_boxes += counts.view_boxes

        output = f"<!doctype html>\n{root}"
        valid, error = validate_preview_content(output)
        if not valid:
            logger.info("Repairing assembled preview for %s: %s", self.entry_path, error)
            output = repair_truncated_html(output)
        return output

    # -- structure ---------------------------------------------------------

    def _ensure_skeleton(self) -> tuple[Tag, Tag]:
        soup = self.soup
        root = soup.find("html")
        if root is None:
            root = soup.new_tag("html")
            for node in list(soup.contents):
                if isinstance(node, Doctype):
                    continue
                root.append(node.extract())
            soup.append(root)
        else:
            for node in list(soup.contents):
                if node is root or isinstance(node, Doctype):
                    continue
                if isinstance(node, NavigableString) and not node.strip():
                    continue
                target = root.find("body") or root
                target.append(node.extract())

        head = root.find("head")
        if head is None:
            head = soup.new_tag("head")
            root.insert(0, head)
        return root, head

    def _ensure_head_meta(self, head: Tag) -> None:
        soup = self.soup
        charset = soup.find("meta", attrs={"charset": True})
        if charset is None:
            charset = soup.new_tag("meta", attrs={"charset": "UTF-8"})
            head.insert(0, charset)
        if soup.find("meta", attrs={"name": re.compile(r"^viewport$", re.IGNORECASE)}) is None:
            head.append(
                soup.new_tag(
                    "meta",
                    attrs={"name": "viewport", "content": "width=device-width, initial-scale=1.0"},
                )
            )
        if soup.find("base") is None:
            # missed references must fail closed instead of hitting the host page
            charset.insert_after(soup.new_tag("base", attrs={"href": "about:blank"}))

    # -- iteration helpers ---------------------------------------------------

    def _each(
        self,
        name: str,
        handler: Callable[[Tag], None],
        attr: Optional[str] = None,
        without: Optional[str] = None,
    ) -> None:
        kwargs: dict = {}
        if attr:
            kwargs[attr] = True
        for tag in list(self.soup.find_all(name, attrs=kwargs)):
            if without and tag.has_attr(without):
                continue
            if tag.decomposed:
                continue
            try:
                handler(tag)
            except Exception:
                logger.warning("Failed to rewrite <%s> in %s", name, self.entry_path, exc_info=True)

    def _resolve(self, reference: str) -> Optional[str]:
        return self.inliner.resolve_to_url(self.entry_path, reference)

    # -- element rewrites ----------------------------------------------------

    def _rewrite_attr(self, *targets: tuple[str, str], on_failure: str) -> None:
        for name, attr in targets:

            def handler(tag: Tag, attr: str = attr) -> None:
                value = _attr_text(tag, attr).strip()
                if not value or is_external_reference(value):
                    return
                url = self._resolve(value)
                if url:
                    tag[attr] = url
                elif on_failure == "blank":
                    tag[attr] = ""
                else:
                    tag.decompose()

            self._each(name, handler, attr=attr)

    def _rewrite_anchor(self, tag: Tag) -> None:
        href = _attr_text(tag, "href").strip()
        if is_external_reference(href):
            return
        path, suffix = split_reference(href)
        target = path.strip()
        if target in ("", "."):
            url = self.inliner.to_data_url(self.entry_path)
        elif target == "/":
            root_page = "index.html" if "index.html" in self.inliner.index else self.entry_path
            url = self.inliner.to_data_url(root_page)
        else:
            url = self._resolve(target)
        tag["href"] = f"{url}{suffix}" if url else "#"

    def _rewrite_script_src(self, tag: Tag) -> None:
        value = _attr_text(tag, "src").strip()
        if not value:
            return
        if is_external_reference(value):
            normalized = normalize_external_resource(value, "script", self.options.external_rules)
            if not normalized:
                tag.decompose()
                self.report.add_unresolved(
                    f"{self.entry_path} -> removed unsupported external script: {value}"
                )
                return
            if normalized != value:
                tag["src"] = normalized
                if tag.has_attr("integrity"):
                    del tag["integrity"]
                self.report.add_resolved(f"{self.entry_path} -> {value}")
            return
        url = self._resolve(value)
        if url:
            tag["src"] = url
        else:
            tag.decompose()

    def _rewrite_link(self, tag: Tag) -> None:
        rels = set(_attr_text(tag, "rel").lower().split())
        if not rels & _LINK_RELS:
            return
        value = _attr_text(tag, "href").strip()
        if not value:
            return
        if is_external_reference(value):
            if "stylesheet" not in rels:
                return
            normalized = normalize_external_resource(value, "style", self.options.external_rules)
            if not normalized:
                tag.decompose()
                self.report.add_unresolved(
                    f"{self.entry_path} -> removed unsupported external stylesheet: {value}"
                )
                return
            if normalized != value:
                tag["href"] = normalized
                if tag.has_attr("integrity"):
                    del tag["integrity"]
                self.report.add_resolved(f"{self.entry_path} -> {value}")
            return
        url = self._resolve(value)
        if url:
            tag["href"] = url
        elif "manifest" in rels:
            tag["href"] = EMPTY_MANIFEST_URL
        else:
            tag.decompose()

    def _rewrite_srcset(self, tag: Tag, remove_element: bool) -> None:
        entries = parse_srcset(_attr_text(tag, "srcset"))
        if not entries:
            return
        rewritten: list[str] = []
        for url, descriptor in entries:
            if not is_external_reference(url):
                url = self._resolve(url) or ""
            if url:
                rewritten.append(f"{url} {descriptor}".strip())
        if rewritten:
            tag["srcset"] = ", ".join(rewritten)
        elif remove_element:
            tag.decompose()
        else:
            del tag["srcset"]

    def _rewrite_style(self, tag: Tag) -> None:
        css = tag.string if tag.string is not None else tag.get_text()
        if not css:
            return
        rewritten = rewrite_css_urls(str(css), self._resolve)
        if rewritten != css:
            tag.string = rewritten

    def _rewrite_meta(self, tag: Tag) -> None:
        key = _attr_text(tag, "property") or _attr_text(tag, "name")
        if not key or key.lower() == "viewport" or not _META_URL_RE.search(key):
            return
        if _META_DESCRIPTOR_RE.search(key.strip()):
            return
        value = _attr_text(tag, "content").strip()
        if not value or is_external_reference(value):
            return
        url = self._resolve(value)
        if url:
            tag["content"] = url
        else:
            tag.decompose()

    def _rewrite_inline_script(self, tag: Tag) -> None:
        script_type = _attr_text(tag, "type").strip().lower()
        source = tag.string if tag.string is not None else tag.get_text()
        source = str(source or "")
        if script_type == "module":
            rewritten = rewrite_javascript_imports(source, self._resolve)
            if rewritten != source:
                tag.string = rewritten
            return
        if not is_javascript_type(script_type) or is_valid_classic_script(source):
            return
        self.report.sanitized_scripts += 1
        tag.string = self.options.inline_script_placeholder
        tag["data-preview-sanitized"] = "script"


def assemble_document(
    entry_path: str,
    html: str,
    inliner: ResourceInliner,
    report: PreviewReport,
    options: PreviewOptions | None = None,
) -> str:
    return DocumentAssembler(normalize_path(entry_path), html, inliner, report, options).assemble()
