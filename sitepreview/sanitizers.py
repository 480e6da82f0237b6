"""Best-effort repair of generated SVG, script and CDN content."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, Literal, Optional

import tree_sitter_javascript
from bs4.element import Tag
from tree_sitter import Language, Node, Parser

from .core.models import DEFAULT_EXTERNAL_RULES, ExternalRule
from .svgpath import is_valid_path_data

logger = logging.getLogger(__name__)

ResourceKind = Literal["script", "style"]

FALLBACK_VIEW_BOX = "0 0 24 24"

_HALLUCINATION_MARKER_RE = re.compile(r"(?:\\u003c|&lt;|<|…)", re.IGNORECASE)
_NUMBER_TOKEN_RE = re.compile(r"[-+]?(?:\d*\.\d+|\d+)(?:e[-+]?\d+)?", re.IGNORECASE)
_PATH_TOKEN_RE = re.compile(r"[MmLlHhVvCcSsQqTtAaZz]|[-+]?(?:\d*\.\d+|\d+)(?:e[-+]?\d+)?")
_PATH_COMMAND_RE = re.compile(r"[MmLlHhVvCcSsQqTtAaZz]")
_DIGIT_BLOB_RE = re.compile(r"^00\d{4,8}$")
# what JavaScript's Number() accepts for a plain decimal; no "_" separators
_VIEW_BOX_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:e[-+]?\d+)?", re.IGNORECASE)

_JS_LANGUAGE = Language(tree_sitter_javascript.language())
_SCRIPT_WRAP_PREFIX = "(function () {\n"
_SCRIPT_WRAP_SUFFIX = "\n});"

_JS_SCRIPT_TYPES = {
    "",
    "text/javascript",
    "application/javascript",
    "application/x-javascript",
    "application/ecmascript",
    "text/ecmascript",
    "text/jscript",
}


@dataclass(slots=True)
class SvgRepairCounts:
    paths: int = 0
    view_boxes: int = 0


def _cut_at_marker(value: str) -> str:
    match = _HALLUCINATION_MARKER_RE.search(value)
    return value[: match.start()] if match else value


def format_svg_number(value: float) -> str:
    if not math.isfinite(value):
        return "0"
    if abs(value) < 1e-7:
        value = 0.0
    if float(value).is_integer():
        return str(int(value))
    return f"{round(value, 6):.6f}".rstrip("0").rstrip(".")


def is_valid_view_box(value: str) -> bool:
    parts = [part for part in re.split(r"[\s,]+", str(value or "").strip()) if part]
    if len(parts) != 4:
        return False
    if not all(_VIEW_BOX_NUMBER_RE.fullmatch(part) for part in parts):
        return False
    try:
        numbers = [float(part) for part in parts]
    except ValueError:
        return False
    if not all(math.isfinite(number) for number in numbers):
        return False
    return numbers[2] > 0 and numbers[3] > 0


def _split_digit_blob(blob: str) -> Optional[str]:
    if not _DIGIT_BLOB_RE.match(blob):
        return None
    rest = blob[2:]
    if len(rest) % 2:
        return None
    mid = len(rest) // 2
    width, height = float(rest[:mid]), float(rest[mid:])
    if width <= 0 or height <= 0:
        return None
    return f"0 0 {format_svg_number(width)} {format_svg_number(height)}"


def sanitize_view_box(value: str) -> str:
    """Return a usable viewBox for a malformed one.

    Tries, in order: the first four numbers before any hallucination marker,
    a ``00WWHH``-style concatenated blob split in half, and finally
    :data:`FALLBACK_VIEW_BOX`.
    """

    normalized = _cut_at_marker(str(value or "")).replace(",", " ").strip()
    tokens = _NUMBER_TOKEN_RE.findall(normalized)

    if len(tokens) >= 4:
        numbers = [float(token) for token in tokens[:4]]
        if all(math.isfinite(n) for n in numbers) and numbers[2] > 0 and numbers[3] > 0:
            return " ".join(format_svg_number(n) for n in numbers)

    compact = re.sub(r"[^\d.-]", "", normalized)
    for blob in (*reversed(tokens), compact):
        repaired = _split_digit_blob(blob)
        if repaired:
            return repaired
    return FALLBACK_VIEW_BOX


def sanitize_path_data(value: str) -> Optional[str]:
    base = _cut_at_marker(str(value or ""))
    cleaned = re.sub(r"[‘’“”]", "", base)
    cleaned = re.sub(r"[^MmLlHhVvCcSsQqTtAaZz0-9eE,.\-\s]", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned.replace(",", " ")).strip()
    if not cleaned:
        return None
    tokens = _PATH_TOKEN_RE.findall(cleaned)
    if not tokens:
        return None
    normalized = re.sub(r"\s+", " ", " ".join(tokens)).strip()
    if not _PATH_COMMAND_RE.search(normalized):
        return None
    return normalized


def trim_path_data_to_valid(value: str) -> Optional[str]:
    tokens = [token for token in str(value or "").split() if token]
    for end in range(len(tokens) - 1, 1, -1):
        candidate = " ".join(tokens[:end])
        if not _PATH_COMMAND_RE.search(candidate):
            continue
        if is_valid_path_data(candidate):
            return candidate
    return None


def repair_path_data(value: str) -> Optional[str]:
    """Return valid path data derived from ``value``, or ``None`` to drop it."""

    sanitized = sanitize_path_data(value)
    if not sanitized:
        return None
    if is_valid_path_data(sanitized):
        return sanitized
    return trim_path_data_to_valid(sanitized)


def _attr_name(tag: Tag, name: str) -> Optional[str]:
    lowered = name.lower()
    for key in tag.attrs:
        if key.lower() == lowered:
            return key
    return None


def _iter_svg_nodes(root: Tag) -> Iterable[Tag]:
    if root.name and root.name.lower() == "svg":
        yield root
    yield from root.find_all(lambda tag: (tag.name or "").lower() == "svg")


def sanitize_svg_tree(root: Tag) -> SvgRepairCounts:
    """Repair ``viewBox`` and ``path[d]`` values under ``root`` in place."""

    counts = SvgRepairCounts()

    for svg_node in _iter_svg_nodes(root):
        key = _attr_name(svg_node, "viewBox")
        raw = svg_node.get(key) if key else None
        if not raw or is_valid_view_box(raw):
            continue
        repaired = sanitize_view_box(raw)
        svg_node[key] = repaired
        counts.view_boxes += 1
        logger.debug("Repaired viewBox %r -> %r", raw, repaired)

    for path_node in root.find_all(lambda tag: (tag.name or "").lower() == "path"):
        key = _attr_name(path_node, "d")
        raw = path_node.get(key) if key else None
        if not raw or is_valid_path_data(raw):
            continue
        repaired = repair_path_data(raw)
        if repaired:
            path_node[key] = repaired
        else:
            del path_node[key]
        counts.paths += 1

    return counts


def is_javascript_type(script_type: Optional[str]) -> bool:
    return (script_type or "").strip().lower() in _JS_SCRIPT_TYPES


def _wrapper_body(root: Node) -> Optional[Node]:
    statements = root.named_children
    if len(statements) != 1 or statements[0].type != "expression_statement":
        return None
    expression = statements[0].named_children[0] if statements[0].named_children else None
    if expression is None or expression.type != "parenthesized_expression":
        return None
    function = expression.named_children[0] if expression.named_children else None
    if function is None:
        return None
    return function.child_by_field_name("body")


def is_valid_classic_script(source: str) -> bool:
    """Syntax-check ``source`` as the body of a function; nothing is run.

    The text must parse without error or missing nodes and must not close
    the wrapping function early (``}); x(); (function () {``).
    """

    source = str(source or "")
    if not source.strip():
        return True
    data = f"{_SCRIPT_WRAP_PREFIX}{source}{_SCRIPT_WRAP_SUFFIX}".encode("utf-8")
    root = Parser(_JS_LANGUAGE).parse(data).root_node
    if root.has_error:
        logger.debug("Script failed to parse")
        return False
    body = _wrapper_body(root)
    # the wrapper's own closing brace sits right before ");"
    if body is None or body.end_byte != len(data) - len(");"):
        logger.debug("Script escapes its function body")
        return False
    return True


def normalize_external_resource(
    url: str,
    kind: ResourceKind,
    rules: Iterable[ExternalRule] = DEFAULT_EXTERNAL_RULES,
) -> Optional[str]:
    """Swap known-broken CDN URLs; ``None`` means the resource must go."""

    value = str(url or "").strip()
    if not value:
        return None
    for rule in rules:
        if re.search(rule.pattern, value, re.IGNORECASE):
            return rule.script_url if kind == "script" else rule.style_url
    return value
