"""Compression of freehand strokes before they are stored.

The canvas records far more points than are needed to redraw a stroke, so
each stroke goes through radial-distance filtering and Douglas-Peucker
simplification, then every kept coordinate is rounded to two decimals. Only
the compressed form is stored.
"""
from __future__ import annotations

import json
import logging
import math
import sys
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 2.0


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Stroke:
    points: tuple[Point, ...]
    # everything else the canvas sends along (strokeColor, strokeWidth, drawMode...)
    meta: dict[str, Any] = field(default_factory=dict, compare=False)

    def to_json(self) -> dict[str, Any]:
        return {**self.meta, "paths": [{"x": p.x, "y": p.y} for p in self.points]}


def round2(n: float) -> float:
    # half-up, matching the canvas client
    return math.floor((n + sys.float_info.epsilon) * 100 + 0.5) / 100


def _sq_dist(p1: Point, p2: Point) -> float:
    dx = p1.x - p2.x
    dy = p1.y - p2.y
    return dx * dx + dy * dy


def _sq_seg_dist(p: Point, p1: Point, p2: Point) -> float:
    x, y = p1.x, p1.y
    dx, dy = p2.x - x, p2.y - y
    if dx != 0 or dy != 0:
        t = ((p.x - x) * dx + (p.y - y) * dy) / (dx * dx + dy * dy)
        if t > 1:
            x, y = p2.x, p2.y
        elif t > 0:
            x += dx * t
            y += dy * t
    dx = p.x - x
    dy = p.y - y
    return dx * dx + dy * dy


def _simplify_radial_dist(points: list[Point], sq_tolerance: float) -> list[Point]:
    prev = points[0]
    out = [prev]
    point = prev
    for point in points[1:]:
        if _sq_dist(point, prev) > sq_tolerance:
            out.append(point)
            prev = point
    if prev is not point:
        out.append(point)
    return out


def _simplify_douglas_peucker(points: list[Point], sq_tolerance: float) -> list[Point]:
    last = len(points) - 1
    keep = {0, last}
    stack = [(0, last)]
    while stack:
        first, end = stack.pop()
        max_sq_dist = sq_tolerance
        index = -1
        for i in range(first + 1, end):
            sq_dist = _sq_seg_dist(points[i], points[first], points[end])
            if sq_dist > max_sq_dist:
                index = i
                max_sq_dist = sq_dist
        if index < 0:
            continue
        keep.add(index)
        if index - first > 1:
            stack.append((first, index))
        if end - index > 1:
            stack.append((index, end))
    return [points[i] for i in sorted(keep)]


def simplify_points(
    points: list[Point] | tuple[Point, ...],
    tolerance: float = DEFAULT_TOLERANCE,
    high_quality: bool = True,
) -> list[Point]:
    points = list(points)
    if len(points) <= 2:
        return points
    sq_tolerance = tolerance * tolerance
    if not high_quality:
        points = _simplify_radial_dist(points, sq_tolerance)
    return _simplify_douglas_peucker(points, sq_tolerance)


def compress_stroke(stroke: Stroke, tolerance: float = DEFAULT_TOLERANCE) -> Stroke:
    simplified = simplify_points(stroke.points, tolerance, high_quality=True)
    return Stroke(
        points=tuple(Point(round2(p.x), round2(p.y)) for p in simplified),
        meta=dict(stroke.meta),
    )


def compress_strokes(strokes: list[Stroke], tolerance: float = DEFAULT_TOLERANCE) -> list[Stroke]:
    return [compress_stroke(s, tolerance) for s in strokes]


def serialize_strokes(strokes: list[Stroke]) -> str:
    return json.dumps([s.to_json() for s in strokes], ensure_ascii=False)


def _coord(raw: object) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"coordinate is not a number: {raw!r}")
    value = float(raw)
    if not math.isfinite(value):
        raise ValueError(f"coordinate is not finite: {raw!r}")
    return value


def stroke_from_json(raw: object) -> Stroke:
    if not isinstance(raw, dict):
        raise ValueError("stroke is not an object")
    paths = raw.get("paths")
    if not isinstance(paths, list):
        raise ValueError("stroke has no paths list")
    points = []
    for p in paths:
        if not isinstance(p, dict):
            raise ValueError("point is not an object")
        points.append(Point(_coord(p.get("x")), _coord(p.get("y"))))
    meta = {k: v for k, v in raw.items() if k != "paths"}
    return Stroke(points=tuple(points), meta=meta)


def parse_strokes(raw: str | None, *, context: dict | None = None) -> list[Stroke]:
    """Load a stored drawing; a payload that does not parse yields no strokes."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("drawing payload is not a list")
        return [stroke_from_json(item) for item in data]
    except ValueError as exc:
        suffix = ""
        if context:
            parts = [f"{k}={v}" for k, v in context.items() if v is not None]
            if parts:
                suffix = " " + " ".join(parts)
        logger.warning("malformed_drawing_payload err=%s%s", exc, suffix)
        return []


def encode_drawing(strokes: list[Stroke], tolerance: float = DEFAULT_TOLERANCE) -> str:
    return serialize_strokes(compress_strokes(strokes, tolerance))
