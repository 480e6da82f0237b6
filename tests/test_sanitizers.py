from __future__ import annotations

import sys
from pathlib import Path

import pytest
from bs4 import BeautifulSoup

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sitepreview.core.models import ExternalRule
from sitepreview.sanitizers import (
    FALLBACK_VIEW_BOX,
    format_svg_number,
    is_javascript_type,
    is_valid_classic_script,
    is_valid_view_box,
    normalize_external_resource,
    repair_path_data,
    sanitize_path_data,
    sanitize_svg_tree,
    sanitize_view_box,
)
from sitepreview.svgpath import is_valid_path_data


def test_view_box_validation() -> None:
    assert is_valid_view_box("0 0 24 24")
    assert is_valid_view_box("0,0,24,24")
    assert not is_valid_view_box("0 0 0 24")
    assert not is_valid_view_box("0 0 24")
    assert not is_valid_view_box("0 0 nan 24")
    assert not is_valid_view_box("0 0 24 24 <path")
    assert not is_valid_view_box("0 0 2_4 24")
    assert is_valid_view_box("0 0 24. 1e1")


def test_view_box_digit_blob_is_split_in_half() -> None:
    assert sanitize_view_box("0 0 00123456") == "0 0 123 456"
    assert sanitize_view_box("002424") == "0 0 24 24"


def test_view_box_truncated_at_marker() -> None:
    assert sanitize_view_box("0 0 32 32&lt;/svg") == "0 0 32 32"
    assert sanitize_view_box("0 0 1.50 2.250000…") == "0 0 1.5 2.25"


def test_view_box_falls_back_to_icon_box() -> None:
    assert sanitize_view_box("auto") == FALLBACK_VIEW_BOX
    assert sanitize_view_box("0 0 -5 10") == FALLBACK_VIEW_BOX


def test_format_svg_number() -> None:
    assert format_svg_number(24.0) == "24"
    assert format_svg_number(1e-9) == "0"
    assert format_svg_number(0.1234567) == "0.123457"
    assert format_svg_number(float("inf")) == "0"


def test_path_data_sanitize_and_trim() -> None:
    assert sanitize_path_data("M10 10L…<broken") == "M 10 10 L"
    assert repair_path_data("M10 10L…<broken") == "M 10 10"
    assert repair_path_data("M10,10 L20,20 Q") == "M 10 10 L 20 20"
    assert repair_path_data("“M0 0 L5 5”") == "M 0 0 L 5 5"
    assert repair_path_data("hello") is None


def test_sanitize_svg_tree_in_html_document() -> None:
    soup = BeautifulSoup(
        '<svg viewBox="0 0 00123456">'
        '<path d="M10 10L…<broken"></path>'
        '<path d="M0 0L5 5"></path>'
        '<path d="###"></path>'
        "</svg>",
        "html.parser",
    )
    counts = sanitize_svg_tree(soup)
    assert counts.view_boxes == 1
    assert counts.paths == 2
    svg = soup.find("svg")
    assert svg["viewbox"] == "0 0 123 456"
    paths = soup.find_all("path")
    assert paths[0]["d"] == "M 10 10"
    assert paths[1]["d"] == "M0 0L5 5"
    assert not paths[2].has_attr("d")
    for path in paths:
        if path.has_attr("d"):
            assert is_valid_path_data(path["d"])


def test_sanitize_svg_tree_keeps_case_in_xml() -> None:
    soup = BeautifulSoup('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 0 0"/>', "xml")
    counts = sanitize_svg_tree(soup.find("svg"))
    assert counts.view_boxes == 1
    assert soup.find("svg")["viewBox"] == FALLBACK_VIEW_BOX


def test_classic_script_validity() -> None:
    assert is_valid_classic_script("const a = 1;\nreturn a;")
    assert is_valid_classic_script("")
    assert not is_valid_classic_script("function broken( {")
    assert not is_valid_classic_script("if (ready) {")


@pytest.mark.parametrize(
    "source",
    [
        "document.getElementById('b')?.addEventListener('click', () => {});",
        "const count = window.count ?? 0;",
        "class Counter { static total = 1; #value = 2; get value() { return this.#value; } }",
        "const big = 10n * 2n;",
        "async function drain(items) { for await (const item of items) { console.log(item); } }",
        "try { JSON.parse('x'); } catch { console.log('bad'); }",
        "const merged = { ...defaults, ...overrides };",
        "let total = 0;\ntotal ||= 1;\nconst big = 1_000_000;",
    ],
)
def test_modern_syntax_is_valid(source: str) -> None:
    assert is_valid_classic_script(source)


def test_script_cannot_close_its_wrapper() -> None:
    assert not is_valid_classic_script("}); x(); (function () {")
    assert not is_valid_classic_script("}).call(this, function () {")
    assert is_valid_classic_script("// trailing comment")


def test_javascript_type_detection() -> None:
    assert is_javascript_type(None)
    assert is_javascript_type("text/javascript")
    assert not is_javascript_type("application/ld+json")
    assert not is_javascript_type("module")


def test_external_resource_rules() -> None:
    lucide = "https://cdnjs.cloudflare.com/ajax/libs/lucide/0.263.1/lucide.min.js"
    assert normalize_external_resource(lucide, "script") == (
        "https://unpkg.com/lucide@latest/dist/umd/lucide.min.js"
    )
    assert normalize_external_resource(lucide, "style") is None
    other = "https://cdn.jsdelivr.net/npm/alpinejs@3/dist/cdn.min.js"
    assert normalize_external_resource(other, "script") == other
    assert normalize_external_resource("", "script") is None

    rules = (ExternalRule(pattern=r"bad\.cdn", script_url="https://good.cdn/x.js"),)
    assert normalize_external_resource("https://bad.cdn/x.js", "script", rules) == "https://good.cdn/x.js"
