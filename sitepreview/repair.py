"""Truncation check and repair for assembled preview documents."""

from __future__ import annotations

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

VOID_HTML_TAGS = {
    "area",
    "base",
    "br",
    "col",
    "embed",
    "hr",
    "img",
    "input",
    "link",
    "meta",
    "param",
    "source",
    "track",
    "wbr",
}

_TAG_RE = re.compile(r"<(/?)([a-zA-Z][\w:-]*)\b[^>]*?(/?)>")


def _normalize_for_tag_parsing(html: str) -> str:
    html = re.sub(r"<!--[\s\S]*?-->", "", html)
    html = re.sub(r"<!DOCTYPE[^>]*>", "", html, flags=re.IGNORECASE)
    html = re.sub(r"<script\b[^>]*>[\s\S]*?</script>", "<script></script>", html, flags=re.IGNORECASE)
    return re.sub(r"<style\b[^>]*>[\s\S]*?</style>", "<style></style>", html, flags=re.IGNORECASE)


def get_dangling_html_tags(html: str) -> list[str]:
    """Return the tags left open at the end of ``html``, outermost first."""

    stack: list[str] = []
    for match in _TAG_RE.finditer(_normalize_for_tag_parsing(html)):
        closing, name, self_closing = match.group(1), match.group(2).lower(), match.group(3)
        if closing:
            if name in stack:
                del stack[len(stack) - 1 - stack[::-1].index(name) :]
            continue
        if self_closing or name in VOID_HTML_TAGS:
            continue
        stack.append(name)
    return stack


def validate_preview_content(content: str) -> tuple[bool, Optional[str]]:
    if not content:
        return False, "Empty content"
    if not re.search(r"<\s*[a-z!/]", content, re.IGNORECASE):
        return True, None
    dangling = get_dangling_html_tags(content)
    if dangling:
        return False, (
            f"HTML structure incomplete: {len(dangling)} unclosed tag(s) "
            f"({', '.join(dangling[-3:])})"
        )
    return True, None


def repair_truncated_html(content: str) -> str:
    """Close dangling tags and rebuild the document through a real parser."""

    repaired = str(content or "").rstrip()
    if not repaired:
        return ""
    if not re.search(r"<html\b", repaired, re.IGNORECASE):
        repaired = f"<!doctype html>\n<html>\n<body>\n{repaired}\n</body>\n</html>"

    dangling = get_dangling_html_tags(repaired)
    if dangling:
        logger.info("Closing %d dangling tag(s) in preview output", len(dangling))
        repaired += "\n" + "\n".join(f"</{tag}>" for tag in reversed(dangling))

    soup = BeautifulSoup(repaired, "html.parser")
    root = soup.find("html")
    if root is None:
        return repaired
    return f"<!doctype html>\n{root}"
