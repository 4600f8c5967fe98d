"""
Vectrace Vectorizer.

Turns an edge map into SVG path data:
1. Moore-neighborhood boundary tracing from a row-major scan
2. Optional moving-average smoothing
3. Douglas-Peucker simplification
4. Closed-form Bezier fitting (cubic / quadratic / line windows)
5. Path emission ``M x y (L|C|Q ...)* [Z]`` with a complexity score

Usage:
    from vectrace.vectorizer import Vectorizer

    vectorizer = Vectorizer(simplification_tolerance=1.5, enable_curves=True)
    paths = vectorizer.vectorize_edges(edge_map, color_source=quantized)
"""

import logging
from collections import Counter
from typing import List, Optional, Sequence

import numpy as np

from vectrace.geometry import douglas_peucker, perpendicular_distance, smooth_points
from vectrace.paths import build_path, format_number
from vectrace.types import (
    CancellationToken, Contour, EdgeMap, Point, RasterImage, VectorPath,
    is_cancelled, rgb_to_hex,
)


logger = logging.getLogger(__name__)

# Moore neighborhood, clockwise from north-west (dx, dy)
DIRECTIONS = [(-1, -1), (0, -1), (1, -1), (1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0)]

MAX_TRACE_STEPS = 10000
COORD_PRECISION = 4


def _fmt(value: float) -> str:
    return format_number(value, COORD_PRECISION)


def _pt(point: Point) -> str:
    return f"{_fmt(point[0])} {_fmt(point[1])}"


class Vectorizer:
    """
    Edge map to SVG path conversion.

    Args:
        simplification_tolerance: Douglas-Peucker tolerance in pixels
        enable_curves: Fit Bezier curves instead of straight segments
        min_contour_length: Traced contours with fewer points are dropped
        edge_threshold: Minimum magnitude for a pixel to be traced
        max_steps: Safety bound on a single trace
    """

    def __init__(self, simplification_tolerance: float = 1.0, enable_curves: bool = True,
                 min_contour_length: int = 4, edge_threshold: float = 0.1,
                 max_steps: int = MAX_TRACE_STEPS):
        self.simplification_tolerance = simplification_tolerance
        self.enable_curves = enable_curves
        self.min_contour_length = min_contour_length
        self.edge_threshold = edge_threshold
        self.max_steps = max_steps

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    def trace_contours(self, edge_map: EdgeMap,
                       cancel: Optional[CancellationToken] = None) -> List[Contour]:
        """
        Trace boundaries with Moore-neighborhood following.

        Start pixels come from a row-major scan of interior pixels with
        magnitude >= ``edge_threshold`` that no earlier trace has visited.
        Visited pixels are never entered again, so every pixel appears in
        at most one contour and at most once. A trace ends when the start
        pixel is a neighbor again (closed), when no unvisited neighbor is
        left, or when it runs out of steps (open).
        """
        width, height = edge_map.width, edge_map.height
        if width < 3 or height < 3:
            return []

        strong = edge_map.magnitude >= self.edge_threshold
        visited = np.zeros(width * height, dtype=bool)
        interior = np.zeros_like(strong)
        interior[1:-1, 1:-1] = strong[1:-1, 1:-1]

        contours = []
        for start_y, start_x in np.argwhere(interior):
            if is_cancelled(cancel):
                logger.warning(f"Tracing cancelled with {len(contours)} contours")
                break
            if visited[start_y * width + start_x]:
                continue
            contour = self._follow(strong, visited, int(start_x), int(start_y), cancel)
            if len(contour) >= self.min_contour_length:
                contours.append(contour)

        logger.debug(f"Traced {len(contours)} contours from {width}x{height} edge map")
        return contours

    def _follow(self, strong: np.ndarray, visited: np.ndarray, start_x: int, start_y: int,
                cancel: Optional[CancellationToken]) -> Contour:
        height, width = strong.shape
        points = []
        x, y = start_x, start_y
        direction = 0
        closed = False

        for _ in range(self.max_steps):
            if is_cancelled(cancel):
                break
            points.append((x, y))
            visited[y * width + x] = True

            found = False
            for i in range(8):
                check = (direction + i) % 8
                dx, dy = DIRECTIONS[check]
                nx, ny = x + dx, y + dy
                if not (0 <= nx < width and 0 <= ny < height and strong[ny, nx]):
                    continue
                if nx == start_x and ny == start_y:
                    if len(points) > 2:
                        closed = True
                        break
                    continue
                # Each pixel belongs to at most one contour
                if visited[ny * width + nx]:
                    continue
                x, y = nx, ny
                direction = (check + 6) % 8
                found = True
                break
            if closed or not found:
                break

        return Contour.from_points(points, closed)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @staticmethod
    def simplify(points: Sequence[Point], tolerance: float) -> List[Point]:
        """Douglas-Peucker against perpendicular line distance."""
        return douglas_peucker(points, tolerance, distance=perpendicular_distance)

    @staticmethod
    def fit_curves(points: Sequence[Point]) -> List[str]:
        """
        Path segments for the points after the first.

        Windows start every third point: four points give a cubic with
        control points at 1/3 and 2/3 of the chord, three give a quadratic
        through the middle point, two give a line.
        """
        segments = []
        n = len(points)
        i = 0
        while i < n - 1:
            window = points[i:min(i + 3, n - 1) + 1]
            start, end = window[0], window[-1]
            if len(window) == 4:
                cp1 = (start[0] + (end[0] - start[0]) / 3, start[1] + (end[1] - start[1]) / 3)
                cp2 = (start[0] + 2 * (end[0] - start[0]) / 3, start[1] + 2 * (end[1] - start[1]) / 3)
                segments.append(f"C {_pt(cp1)} {_pt(cp2)} {_pt(end)}")
            elif len(window) == 3:
                mid = window[1]
                cp = (2 * mid[0] - 0.5 * (start[0] + end[0]), 2 * mid[1] - 0.5 * (start[1] + end[1]))
                segments.append(f"Q {_pt(cp)} {_pt(end)}")
            else:
                segments.append(f"L {_pt(end)}")
            i += 3
        return segments

    def points_to_path_data(self, points: Sequence[Point], closed: bool) -> str:
        if not points:
            return ""
        parts = [f"M {_pt(points[0])}"]
        if self.enable_curves and len(points) > 2:
            parts.extend(self.fit_curves(points))
        else:
            parts.extend(f"L {_pt(p)}" for p in points[1:])
        if closed:
            parts.append("Z")
        return " ".join(parts)

    def contour_to_path(self, contour: Contour, fill_color: str,
                        smoothing_window: int = 1) -> Optional[VectorPath]:
        """Smooth, simplify and emit one contour; None when nothing is left."""
        points = contour.points
        if smoothing_window > 1:
            points = smooth_points(points, smoothing_window, closed=contour.closed)
        points = self.simplify(points, self.simplification_tolerance)
        if len(points) < 2:
            return None
        return build_path(self.points_to_path_data(points, contour.closed), fill_color)

    # ------------------------------------------------------------------
    # Color
    # ------------------------------------------------------------------

    @staticmethod
    def contour_color(contour: Contour, color_source: RasterImage) -> Optional[str]:
        """
        Most common color under the contour points.

        Returns None when every sampled pixel is fully transparent.
        """
        pixels = color_source.pixels
        counts = Counter()
        for x, y in contour.points:
            r, g, b, a = pixels[int(y), int(x)]
            if a == 0:
                continue
            counts[(int(r), int(g), int(b))] += 1
        if not counts:
            return None
        return rgb_to_hex(counts.most_common(1)[0][0])

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def vectorize_edges(self, edge_map: EdgeMap, color_source: Optional[RasterImage] = None,
                        default_color: str = "#000000", skip_transparent: bool = False,
                        smoothing_window: int = 1,
                        cancel: Optional[CancellationToken] = None) -> List[VectorPath]:
        """
        Trace, simplify and emit paths for an edge map.

        Args:
            edge_map: Source edges
            color_source: Image sampled for fill colors (usually the quantized image)
            default_color: Fill used without a color source
            skip_transparent: Drop contours lying only on transparent pixels
            smoothing_window: Moving-average window applied before simplification
            cancel: Optional cancellation token

        Returns:
            List of VectorPath
        """
        paths = []
        for contour in self.trace_contours(edge_map, cancel):
            if is_cancelled(cancel):
                break
            fill = default_color
            if color_source is not None:
                fill = self.contour_color(contour, color_source)
                if fill is None:
                    if skip_transparent:
                        continue
                    fill = default_color
            path = self.contour_to_path(contour, fill, smoothing_window)
            if path is not None:
                paths.append(path)

        if not paths:
            logger.warning("No contours survived vectorization")
        return paths
