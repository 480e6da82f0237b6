from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sitepreview.repair import (
    get_dangling_html_tags,
    repair_truncated_html,
    validate_preview_content,
)


def test_balanced_document_has_no_dangling_tags() -> None:
    html = "<!doctype html><html><head><meta charset='utf-8'></head><body><br><img src=x><p>a</p></body></html>"
    assert get_dangling_html_tags(html) == []
    assert validate_preview_content(html) == (True, None)


def test_script_and_comment_bodies_are_ignored() -> None:
    html = "<html><body><!-- <div> --><script>const s = '<div>';</script></body></html>"
    assert get_dangling_html_tags(html) == []


def test_truncated_document_is_reported() -> None:
    valid, error = validate_preview_content("<html><body><main><section><p>Hello")
    assert not valid
    assert error == "HTML structure incomplete: 5 unclosed tag(s) (main, section, p)"


def test_plain_text_and_empty_content() -> None:
    assert validate_preview_content("just words") == (True, None)
    assert validate_preview_content("") == (False, "Empty content")


def test_repair_closes_dangling_tags() -> None:
    repaired = repair_truncated_html("<html><body><main><p>Hello")
    assert repaired.startswith("<!doctype html>\n<html>")
    assert repaired.endswith("</html>")
    assert "<main><p>Hello" in repaired
    assert validate_preview_content(repaired) == (True, None)


def test_repair_wraps_fragments() -> None:
    repaired = repair_truncated_html("<div><span>partial")
    assert "<body>" in repaired
    assert validate_preview_content(repaired)[0]
    assert repair_truncated_html("   ") == ""
