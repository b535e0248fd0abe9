"""
Geometry utility helpers for axis-aligned node boxes used by the layout engine.

Provides:
- node_bounds(x, y, width, height)
- node_box(x, y, width, height)
- separation_overlap(...)
- exit_distance(...)
- layout_bounds(boxes)
- segments_intersect(p1, p2, p3, p4)
- calculate_centroid(points)
- mean_pairwise_distance(points)
- clamp_center(x, y, width, height, canvas_width, canvas_height)

Nodes are described by their center point plus width/height. All functions are
pure and depend only on numpy and shapely.
"""
from typing import List, Sequence, Tuple
import numpy as np
import math
from shapely.geometry import box, Polygon

Point = Tuple[float, float]
Bounds = Tuple[float, float, float, float]


def node_bounds(x: float, y: float, width: float, height: float) -> Bounds:
    """Return (min_x, min_y, max_x, max_y) of a box centered at (x, y)."""
    half_w = width / 2.0
    half_h = height / 2.0
    return (x - half_w, y - half_h, x + half_w, y + half_h)


def node_box(x: float, y: float, width: float, height: float, inflate: float = 0.0) -> Polygon:
    """Shapely box for a node, optionally inflated on every side."""
    min_x, min_y, max_x, max_y = node_bounds(x, y, width, height)
    return box(min_x - inflate, min_y - inflate, max_x + inflate, max_y + inflate)


def separation_overlap(x1: float, y1: float, w1: float, h1: float,
                       x2: float, y2: float, w2: float, h2: float,
                       separation: float) -> float:
    """Overlap area of two boxes when the required gap is counted as part of them.

    Returns 0.0 when the centers are at least half the summed sizes plus
    `separation` apart along either axis.
    """
    dx = abs(x1 - x2)
    dy = abs(y1 - y2)
    min_dx = (w1 + w2) / 2.0 + separation
    min_dy = (h1 + h2) / 2.0 + separation
    if dx >= min_dx or dy >= min_dy:
        return 0.0
    return (min_dx - dx) * (min_dy - dy)


def exit_distance(x1: float, y1: float, w1: float, h1: float,
                  x2: float, y2: float, w2: float, h2: float,
                  separation: float, ux: float, uy: float) -> float:
    """How far the two boxes must move apart along the unit direction (ux, uy)
    before they stop overlapping (0.0 if already apart).

    The direction is taken to point away from the first box, so moving along
    it grows the center gap on every axis with a non-zero component.
    """
    dx = abs(x1 - x2)
    dy = abs(y1 - y2)
    over_x = (w1 + w2) / 2.0 + separation - dx
    over_y = (h1 + h2) / 2.0 + separation - dy
    if over_x <= 0 or over_y <= 0:
        return 0.0
    candidates = [over / abs(u) for over, u in ((over_x, ux), (over_y, uy)) if abs(u) > 1e-12]
    return min(candidates) if candidates else 0.0


def layout_bounds(boxes: Sequence[Bounds]) -> Bounds:
    """Bounding box enclosing all given (min_x, min_y, max_x, max_y) tuples."""
    if not boxes:
        return (0.0, 0.0, 0.0, 0.0)
    arr = np.asarray(boxes, dtype=float)
    return (float(arr[:, 0].min()), float(arr[:, 1].min()),
            float(arr[:, 2].max()), float(arr[:, 3].max()))


def _ccw(a: Point, b: Point, c: Point) -> float:
    return (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])


def segments_intersect(p1: Point, p2: Point, p3: Point, p4: Point) -> bool:
    """True if segment p1-p2 properly crosses segment p3-p4.

    Uses strict orientation tests, so touching endpoints and collinear
    overlaps are not counted as crossings.
    """
    d1 = _ccw(p3, p4, p1)
    d2 = _ccw(p3, p4, p2)
    d3 = _ccw(p1, p2, p3)
    d4 = _ccw(p1, p2, p4)
    return ((d1 > 0 and d2 < 0) or (d1 < 0 and d2 > 0)) and \
        ((d3 > 0 and d4 < 0) or (d3 < 0 and d4 > 0))


def distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def calculate_centroid(points: Sequence[Point]) -> Point:
    """Arithmetic mean of the points; (0, 0) for an empty sequence."""
    if len(points) == 0:
        return (0.0, 0.0)
    pts = np.asarray(points, dtype=float)
    c = pts.mean(axis=0)
    return (float(c[0]), float(c[1]))


def pairwise_distances(points: Sequence[Point]) -> np.ndarray:
    """Condensed vector of distances for every unordered pair i < j."""
    pts = np.asarray(points, dtype=float)
    n = len(pts)
    if n < 2:
        return np.zeros(0)
    i, j = np.triu_indices(n, k=1)
    diff = pts[i] - pts[j]
    return np.hypot(diff[:, 0], diff[:, 1])


def mean_pairwise_distance(points: Sequence[Point]) -> float:
    dists = pairwise_distances(points)
    if dists.size == 0:
        return 0.0
    return float(dists.mean())


def clamp_center(x: float, y: float, width: float, height: float,
                 canvas_width: float, canvas_height: float) -> Point:
    """Clamp a node center so the node lies inside the canvas.

    A node larger than the canvas along an axis is centered on that axis.
    """
    half_w = width / 2.0
    half_h = height / 2.0
    if width >= canvas_width:
        cx = canvas_width / 2.0
    else:
        cx = min(max(x, half_w), canvas_width - half_w)
    if height >= canvas_height:
        cy = canvas_height / 2.0
    else:
        cy = min(max(y, half_h), canvas_height - half_h)
    return (float(cx), float(cy))


def spiral_offsets(step: float, max_radius: float, angle_step: float) -> List[Point]:
    """Candidate (dx, dy) offsets on rings of growing radius around a point."""
    offsets = []
    n_angles = max(1, int(round(2 * math.pi / angle_step)))
    radius = step
    while radius <= max_radius + 1e-9:
        for k in range(n_angles):
            angle = k * angle_step
            offsets.append((radius * math.cos(angle), radius * math.sin(angle)))
        radius += step
    return offsets
