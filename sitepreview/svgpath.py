"""Syntax check and length measurement for SVG path data."""

from __future__ import annotations

import math
import re
from typing import List, Tuple

PathSegment = Tuple[str, Tuple[float, ...]]

ARGUMENT_COUNTS: dict[str, int] = {
    "M": 2,
    "L": 2,
    "T": 2,
    "H": 1,
    "V": 1,
    "C": 6,
    "S": 4,
    "Q": 4,
    "A": 7,
    "Z": 0,
}

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_WS = " \t\r\n\f"
_CURVE_STEPS = 16


class PathDataError(ValueError):
    pass


def _skip(text: str, pos: int, allow_comma: bool) -> int:
    while pos < len(text) and text[pos] in _WS:
        pos += 1
    if allow_comma and pos < len(text) and text[pos] == ",":
        pos += 1
        while pos < len(text) and text[pos] in _WS:
            pos += 1
    return pos


def parse_path_data(value: str) -> List[PathSegment]:
    """Parse path data into ``(command, args)`` pairs.

    Raises :class:`PathDataError` for anything a conforming renderer would
    reject: a missing initial moveto, unknown characters, incomplete
    argument groups or invalid arc flags.
    """

    text = str(value or "")
    pos = _skip(text, 0, allow_comma=False)
    if pos >= len(text):
        raise PathDataError("empty path data")
    if text[pos] not in "Mm":
        raise PathDataError("path data must start with a moveto")

    segments: List[PathSegment] = []
    command = ""
    while True:
        pos = _skip(text, pos, allow_comma=bool(segments))
        if pos >= len(text):
            break
        char = text[pos]
        if char.upper() in ARGUMENT_COUNTS and char.isalpha():
            command = char
            pos += 1
            pos = _skip(text, pos, allow_comma=False)
        elif command.upper() == "Z" or not command:
            raise PathDataError(f"unexpected {char!r} at offset {pos}")
        elif command in "Mm":
            # extra coordinate pairs after a moveto are implicit linetos
            command = "l" if command == "m" else "L"

        upper = command.upper()
        if upper == "Z":
            segments.append((command, ()))
            continue

        args: List[float] = []
        for position in range(ARGUMENT_COUNTS[upper]):
            if position:
                pos = _skip(text, pos, allow_comma=True)
            if pos >= len(text):
                raise PathDataError(f"incomplete arguments for {command!r}")
            if upper == "A" and position in (3, 4):
                if text[pos] not in "01":
                    raise PathDataError(f"invalid arc flag at offset {pos}")
                args.append(float(text[pos]))
                pos += 1
                continue
            match = _NUMBER_RE.match(text, pos)
            if match is None:
                raise PathDataError(f"expected a number at offset {pos}")
            number = float(match.group(0))
            if not math.isfinite(number):
                raise PathDataError(f"non-finite number at offset {pos}")
            args.append(number)
            pos = match.end()
        segments.append((command, tuple(args)))
    return segments


def _bezier_length(points: List[Tuple[float, float]]) -> float:
    def point_at(t: float) -> Tuple[float, float]:
        current = points
        while len(current) > 1:
            current = [
                (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)
                for a, b in zip(current, current[1:])
            ]
        return current[0]

    total = 0.0
    previous = points[0]
    for step in range(1, _CURVE_STEPS + 1):
        nxt = point_at(step / _CURVE_STEPS)
        total += math.hypot(nxt[0] - previous[0], nxt[1] - previous[1])
        previous = nxt
    return total


def measure_path_length(value: str) -> float:
    """Approximate the rendered length of a path.

    Curves are flattened, smooth-curve reflections use the current point as
    control point and arcs are measured by their chord.
    """

    x = y = 0.0
    start_x = start_y = 0.0
    total = 0.0
    for command, args in parse_path_data(value):
        upper = command.upper()
        relative = command.islower()
        ox, oy = (x, y) if relative else (0.0, 0.0)
        if upper == "Z":
            total += math.hypot(start_x - x, start_y - y)
            x, y = start_x, start_y
            continue
        if upper == "H":
            nx, ny = (x + args[0] if relative else args[0]), y
            total += abs(nx - x)
        elif upper == "V":
            nx, ny = x, (y + args[0] if relative else args[0])
            total += abs(ny - y)
        elif upper == "A":
            nx, ny = ox + args[5], oy + args[6]
            total += math.hypot(nx - x, ny - y)
        else:
            coords = [(ox + args[i], oy + args[i + 1]) for i in range(0, len(args), 2)]
            nx, ny = coords[-1]
            if upper == "M":
                start_x, start_y = nx, ny
            elif upper in ("L", "T"):
                total += math.hypot(nx - x, ny - y)
            else:
                controls = coords if upper in ("C", "Q") else [(x, y), *coords]
                total += _bezier_length([(x, y), *controls])
        x, y = nx, ny
    return total


def is_valid_path_data(value: str) -> bool:
    if not str(value or "").strip():
        return False
    try:
        return math.isfinite(measure_path_length(value))
    except PathDataError:
        return False
