"""
Vectrace geometry helpers.

Point-sequence operations shared by the edge detector and the vectorizer:
- Ramer-Douglas-Peucker simplification with a pluggable distance function
- Contour length, bounds, signed area and orientation
- Moving-average smoothing and duplicate removal

Usage:
    from vectrace.geometry import douglas_peucker, segment_distance

    simplified = douglas_peucker(points, tolerance=1.5)
    simplified = douglas_peucker(points, 1.5, distance=segment_distance)
"""

import math
from typing import Callable, List, Sequence

from vectrace.types import Bounds, Point


DistanceFn = Callable[[Point, Point, Point], float]


# ============================================================================
# DISTANCES
# ============================================================================

def euclidean(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def perpendicular_distance(point: Point, line_start: Point, line_end: Point) -> float:
    """Distance from ``point`` to the infinite line through the two endpoints."""
    dx = line_end[0] - line_start[0]
    dy = line_end[1] - line_start[1]
    if dx == 0 and dy == 0:
        return euclidean(point, line_start)
    numerator = abs(dy * point[0] - dx * point[1] + line_end[0] * line_start[1] - line_end[1] * line_start[0])
    return numerator / math.hypot(dx, dy)


def segment_distance(point: Point, line_start: Point, line_end: Point) -> float:
    """Distance from ``point`` to the closed segment between the endpoints."""
    dx = line_end[0] - line_start[0]
    dy = line_end[1] - line_start[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return euclidean(point, line_start)
    t = ((point[0] - line_start[0]) * dx + (point[1] - line_start[1]) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return euclidean(point, (line_start[0] + t * dx, line_start[1] + t * dy))


# ============================================================================
# SIMPLIFICATION
# ============================================================================

def douglas_peucker(points: Sequence[Point], tolerance: float,
                    distance: DistanceFn = perpendicular_distance) -> List[Point]:
    """
    Simplify a polyline with the Ramer-Douglas-Peucker algorithm.

    The farthest point (by ``distance``) of each span splits it when it lies
    more than ``tolerance`` away. Endpoints are always kept, and a larger
    tolerance never yields more points. Uses an explicit stack so long
    contours do not hit the recursion limit.

    Args:
        points: Ordered (x, y) points
        tolerance: Maximum allowed deviation
        distance: Point-to-line distance function

    Returns:
        Simplified list of points (the input itself when it has <= 2 points)
    """
    n = len(points)
    if n <= 2:
        return points if isinstance(points, list) else list(points)

    keep = [False] * n
    keep[0] = keep[n - 1] = True
    stack = [(0, n - 1)]

    while stack:
        start, end = stack.pop()
        max_distance = 0.0
        index = start
        for i in range(start + 1, end):
            d = distance(points[i], points[start], points[end])
            if d > max_distance:
                max_distance = d
                index = i
        if max_distance > tolerance:
            keep[index] = True
            stack.append((index, end))
            stack.append((start, index))

    return [p for p, k in zip(points, keep) if k]


# ============================================================================
# CONTOUR MEASURES
# ============================================================================

def contour_length(points: Sequence[Point], closed: bool = False) -> float:
    if len(points) < 2:
        return 0.0
    total = sum(euclidean(points[i], points[i + 1]) for i in range(len(points) - 1))
    if closed:
        total += euclidean(points[-1], points[0])
    return total


def contour_bounds(points: Sequence[Point]) -> Bounds:
    if not points:
        return Bounds(0.0, 0.0, 0.0, 0.0)
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return Bounds(min(xs), min(ys), max(xs), max(ys))


def polygon_area(points: Sequence[Point]) -> float:
    """Signed shoelace area; positive for clockwise order in SVG (y-down) space."""
    if len(points) < 3:
        return 0.0
    area = 0.0
    for i in range(len(points)):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % len(points)]
        area += x1 * y2 - x2 * y1
    return area / 2.0


def is_clockwise(points: Sequence[Point]) -> bool:
    return polygon_area(points) > 0


# ============================================================================
# CLEANUP
# ============================================================================

def smooth_points(points: Sequence[Point], window: int = 3, closed: bool = False) -> List[Point]:
    """
    Moving-average smoothing.

    Open contours keep their endpoints fixed; closed contours wrap around.
    """
    n = len(points)
    if window <= 1 or n < 3:
        return list(points)
    half = window // 2
    smoothed = []
    for i in range(n):
        if not closed and (i == 0 or i == n - 1):
            smoothed.append(points[i])
            continue
        sx = sy = 0.0
        count = 0
        for j in range(i - half, i + half + 1):
            if closed:
                p = points[j % n]
            elif 0 <= j < n:
                p = points[j]
            else:
                continue
            sx += p[0]
            sy += p[1]
            count += 1
        smoothed.append((sx / count, sy / count))
    return smoothed


def remove_duplicate_points(points: Sequence[Point], tolerance: float = 0.1) -> List[Point]:
    """Drop points closer than ``tolerance`` to the previously kept point."""
    if len(points) <= 1:
        return list(points)
    result = [points[0]]
    for p in points[1:]:
        if euclidean(p, result[-1]) > tolerance:
            result.append(p)
    return result
