"""
Vectrace Edge Detection Module.

Gradient fields and boundary extraction over RGBA images:
- Luminance conversion (0.299R + 0.587G + 0.114B)
- Sobel magnitude/direction with a magnitude threshold
- Canny: Gaussian blur, non-maximum suppression, hysteresis
- Connected-pixel contour following and contour simplification
- The one-sided gradient probe used for image classification

Everything here is deterministic.

Usage:
    from vectrace.edges import EdgeDetector

    detector = EdgeDetector()
    edges = detector.detect_edges_canny(image, low_threshold=50, high_threshold=150)
    contours = detector.follow_contours(edges, min_length=10)
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np
from scipy import ndimage

from vectrace.geometry import douglas_peucker, segment_distance
from vectrace.types import EdgeMap, Point, RasterImage


logger = logging.getLogger(__name__)

LUMINANCE_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)

# One-sided probe thresholds on the 0..255 luminance scale
PROBE_EDGE_THRESHOLD = 10.0
PROBE_SHARP_THRESHOLD = 50.0

EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)


def luminance(image: RasterImage) -> np.ndarray:
    """Grayscale float32 array of the image's RGB channels."""
    return image.pixels[:, :, :3].astype(np.float32) @ LUMINANCE_WEIGHTS


def sobel_gradients(gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    3x3 Sobel derivatives with the one-pixel border forced to zero.

    Returns:
        (gx, gy) float32 arrays shaped like ``gray``
    """
    gray = np.ascontiguousarray(gray, dtype=np.float32)
    height, width = gray.shape
    if height < 3 or width < 3:
        zeros = np.zeros_like(gray)
        return zeros, zeros.copy()

    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    for g in (gx, gy):
        g[0, :] = 0
        g[-1, :] = 0
        g[:, 0] = 0
        g[:, -1] = 0
    return gx, gy


def non_maximum_suppression(magnitude: np.ndarray, direction: np.ndarray) -> np.ndarray:
    """
    Thin edges to local maxima across the gradient direction.

    Angles fold into [0, 180) and fall into four buckets split at 22.5,
    67.5, 112.5 and 157.5 degrees. With y pointing down, 45 degrees
    compares the up-left and down-right neighbors. Border pixels are dropped.
    """
    height, width = magnitude.shape
    out = np.zeros_like(magnitude)
    if height < 3 or width < 3:
        return out

    angle = np.mod(np.degrees(direction[1:-1, 1:-1]), 180.0)
    center = magnitude[1:-1, 1:-1]

    horizontal = (angle < 22.5) | (angle >= 157.5)
    diagonal = (angle >= 22.5) & (angle < 67.5)
    vertical = (angle >= 67.5) & (angle < 112.5)
    anti_diagonal = ~(horizontal | diagonal | vertical)
    buckets = [horizontal, diagonal, vertical, anti_diagonal]

    before = np.select(buckets, [
        magnitude[1:-1, :-2],   # left
        magnitude[:-2, :-2],    # up-left
        magnitude[:-2, 1:-1],   # up
        magnitude[:-2, 2:],     # up-right
    ])
    after = np.select(buckets, [
        magnitude[1:-1, 2:],    # right
        magnitude[2:, 2:],      # down-right
        magnitude[2:, 1:-1],    # down
        magnitude[2:, :-2],     # down-left
    ])

    keep = (center >= before) & (center >= after)
    out[1:-1, 1:-1] = np.where(keep, center, 0)
    return out


def hysteresis(magnitude: np.ndarray, low: float, high: float) -> np.ndarray:
    """
    Keep strong pixels and the weak pixels 8-connected to them.

    Strong pixels have magnitude >= ``high``; weak ones >= ``low``.
    """
    strong = (magnitude >= high) & (magnitude > 0)
    if not strong.any():
        return np.zeros_like(magnitude)

    candidates = (magnitude >= low) | strong
    labels, _ = ndimage.label(candidates, structure=EIGHT_CONNECTED)
    seeded = np.unique(labels[strong])
    seeded = seeded[seeded > 0]
    keep = np.isin(labels, seeded)
    return np.where(keep, magnitude, 0).astype(magnitude.dtype)


class EdgeDetector:
    """Gradient-based edge detection and contour extraction."""

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    @staticmethod
    def gaussian_blur(image: RasterImage, kernel_size: int = 5) -> RasterImage:
        """
        Gaussian blur with sigma = kernel_size / 3 and replicated borders.

        Even kernel sizes are rounded up to the next odd size; sizes of 1
        or less return the image unchanged.
        """
        if kernel_size <= 1:
            return image
        if kernel_size % 2 == 0:
            kernel_size += 1
        sigma = kernel_size / 3.0
        blurred = cv2.GaussianBlur(
            image.pixels.copy(), (kernel_size, kernel_size),
            sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REPLICATE,
        )
        return RasterImage(image.width, image.height, blurred)

    # ------------------------------------------------------------------
    # Detectors
    # ------------------------------------------------------------------

    def detect_edges_sobel(self, image: RasterImage, threshold: float = 50.0) -> EdgeMap:
        """
        Sobel edge map on the 0..255 luminance scale.

        Args:
            image: Source image
            threshold: Magnitudes at or below this are zeroed

        Returns:
            EdgeMap tagged 'sobel'
        """
        gx, gy = sobel_gradients(luminance(image))
        magnitude = np.hypot(gx, gy)
        magnitude[magnitude <= threshold] = 0
        direction = np.arctan2(gy, gx)
        return EdgeMap(magnitude, direction, image.width, image.height, "sobel",
                       {"threshold": threshold})

    def detect_edges_canny(self, image: RasterImage, low_threshold: float = 50.0,
                           high_threshold: float = 150.0, kernel_size: int = 5) -> EdgeMap:
        """
        Canny edge map on the 0..255 luminance scale.

        Args:
            image: Source image
            low_threshold: Weak edge threshold for hysteresis
            high_threshold: Strong edge threshold for hysteresis
            kernel_size: Gaussian kernel size (sigma = kernel_size / 3)

        Returns:
            EdgeMap tagged 'canny'; direction is the full gradient field
        """
        gx, gy = sobel_gradients(luminance(self.gaussian_blur(image, kernel_size)))
        magnitude = np.hypot(gx, gy)
        direction = np.arctan2(gy, gx)
        suppressed = non_maximum_suppression(magnitude, direction)
        edges = hysteresis(suppressed, low_threshold, high_threshold)
        return EdgeMap(edges, direction, image.width, image.height, "canny", {
            "low_threshold": low_threshold,
            "high_threshold": high_threshold,
            "kernel_size": kernel_size,
        })

    def detect_edges(self, image: RasterImage, algorithm: str = "sobel",
                     threshold: float = 0.3, low_threshold: float = 0.1,
                     high_threshold: float = 0.2, blur: bool = False,
                     kernel_size: int = 3) -> EdgeMap:
        """
        Edge map with thresholds relative to the image's strongest gradient.

        Magnitudes come back normalized to [0, 1] so one set of thresholds
        works for faint and high-contrast images alike. Sobel uses
        ``threshold``; Canny uses ``low_threshold``/``high_threshold`` and
        always blurs with ``kernel_size``.
        """
        if algorithm not in ("sobel", "canny"):
            raise ValueError(f"Unknown edge algorithm '{algorithm}'")

        source = image
        if blur or algorithm == "canny":
            source = self.gaussian_blur(image, kernel_size)
        gx, gy = sobel_gradients(luminance(source))
        magnitude = np.hypot(gx, gy)
        direction = np.arctan2(gy, gx)
        peak = float(magnitude.max())

        parameters: Dict[str, Any] = {"normalized": True, "blur": blur, "kernel_size": kernel_size}
        if peak <= 0:
            logger.debug("Flat image: no gradients")
            normalized = np.zeros_like(magnitude)
        elif algorithm == "sobel":
            normalized = magnitude / peak
            normalized[normalized <= threshold] = 0
            parameters["threshold"] = threshold
        else:
            suppressed = non_maximum_suppression(magnitude / peak, direction)
            normalized = hysteresis(suppressed, low_threshold, high_threshold)
            parameters.update(low_threshold=low_threshold, high_threshold=high_threshold)

        return EdgeMap(normalized, direction, image.width, image.height, algorithm, parameters)

    # ------------------------------------------------------------------
    # Contours
    # ------------------------------------------------------------------

    def follow_contours(self, edge_map: EdgeMap, min_length: int = 10) -> List[List[Point]]:
        """
        Group nonzero pixels into 8-connected point lists.

        Each group is collected depth-first starting from the first pixel
        found in row-major order; groups with fewer than ``min_length``
        points are dropped.
        """
        width, height = edge_map.width, edge_map.height
        active = (edge_map.magnitude > 0).reshape(-1)
        visited = np.zeros(width * height, dtype=bool)
        contours = []

        for start in np.flatnonzero(active):
            if visited[start]:
                continue
            points = []
            stack = [int(start)]
            while stack:
                index = stack.pop()
                if visited[index] or not active[index]:
                    continue
                visited[index] = True
                y, x = divmod(index, width)
                points.append((x, y))
                for dy in (-1, 0, 1):
                    for dx in (-1, 0, 1):
                        if dx == 0 and dy == 0:
                            continue
                        nx, ny = x + dx, y + dy
                        if 0 <= nx < width and 0 <= ny < height:
                            neighbor = ny * width + nx
                            if not visited[neighbor] and active[neighbor]:
                                stack.append(neighbor)
            if len(points) >= min_length:
                contours.append(points)

        logger.debug(f"Followed {len(contours)} contours")
        return contours

    @staticmethod
    def simplify_contour(points: List[Point], tolerance: float = 1.0) -> List[Point]:
        """Douglas-Peucker against segment distance; 0-2 points come back as-is."""
        if len(points) <= 2:
            return points
        return douglas_peucker(points, tolerance, distance=segment_distance)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def edge_statistics(edge_map: EdgeMap) -> Dict[str, float]:
        magnitude = edge_map.magnitude
        edge_pixels = magnitude[magnitude > 0]
        total = magnitude.size
        return {
            "total_edge_pixels": int(edge_pixels.size),
            "average_magnitude": float(edge_pixels.mean()) if edge_pixels.size else 0.0,
            "max_magnitude": float(edge_pixels.max()) if edge_pixels.size else 0.0,
            "edge_pixel_ratio": edge_pixels.size / total if total else 0.0,
        }

    @staticmethod
    def to_binary_edge_map(edge_map: EdgeMap, threshold: float = 0.0) -> RasterImage:
        """White edges on an opaque black background."""
        mask = edge_map.magnitude > threshold
        pixels = np.zeros((edge_map.height, edge_map.width, 4), dtype=np.uint8)
        pixels[mask, :3] = 255
        pixels[:, :, 3] = 255
        return RasterImage(edge_map.width, edge_map.height, pixels)

    @staticmethod
    def gradient_probe(image: RasterImage,
                       gray: Optional[np.ndarray] = None) -> Tuple[float, float, float]:
        """
        Cheap edge measure used to classify images.

        Differences to the right and bottom neighbor over interior pixels;
        a pixel is an edge above 10 and a sharp edge above 50.

        Returns:
            (edge_density, sharp_edge_ratio, average_edge_strength) where the
            density is relative to all pixels and the ratio to edge pixels
        """
        if gray is None:
            gray = luminance(image)
        height, width = gray.shape
        if height < 3 or width < 3:
            return 0.0, 0.0, 0.0

        center = gray[1:-1, 1:-1]
        gx = gray[1:-1, 2:] - center
        gy = gray[2:, 1:-1] - center
        magnitude = np.hypot(gx, gy)

        edges = magnitude > PROBE_EDGE_THRESHOLD
        edge_count = int(edges.sum())
        if edge_count == 0:
            return 0.0, 0.0, 0.0
        sharp_count = int((magnitude > PROBE_SHARP_THRESHOLD).sum())
        return (
            edge_count / (width * height),
            sharp_count / edge_count,
            float(magnitude[edges].mean()),
        )
