from __future__ import annotations

import math
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from sitepreview.svgpath import (
    PathDataError,
    is_valid_path_data,
    measure_path_length,
    parse_path_data,
)


@pytest.mark.parametrize(
    "value",
    [
        "M10 10 L20 20",
        "M0,0 h10 v10 z",
        "m1 1 a5 5 0 0 1 10 0",
        "M0 0a5 5 0 0010 0",
        "M0 0 C 1 1 2 2 3 3 S 5 5 6 6 Q 7 7 8 8 T 9 9",
        "M.5.5L1e1 -2.5",
    ],
)
def test_valid_path_data(value: str) -> None:
    assert is_valid_path_data(value)


@pytest.mark.parametrize(
    "value",
    ["", "   ", "L10 10", "M10 10L", "M10 10L…<broken", "M 10", "M0 0 Z 5", "M0 0 A 1 1 0 2 0 3 3"],
)
def test_invalid_path_data(value: str) -> None:
    assert not is_valid_path_data(value)


def test_parse_reports_offending_offset() -> None:
    with pytest.raises(PathDataError):
        parse_path_data("M0 0 L x")


def test_implicit_lineto_after_moveto() -> None:
    assert parse_path_data("M0 0 3 4") == [("M", (0.0, 0.0)), ("L", (3.0, 4.0))]
    assert measure_path_length("M0 0 3 4") == pytest.approx(5.0)


def test_measure_lines_and_close() -> None:
    assert measure_path_length("M0 0 L3 4") == pytest.approx(5.0)
    assert measure_path_length("M0 0 H10 V10 Z") == pytest.approx(20 + math.hypot(10, 10))


def test_measure_straight_curve_matches_line() -> None:
    assert measure_path_length("M0 0 C 1 0 2 0 3 0") == pytest.approx(3.0)
