"""
Vectrace Algorithm Processors.

One processor, three parameter sets. Each variant picks its quantizer,
edge detector tuning, edge enhancement and path post-processing:

- shapes:  frequency palette, Sobel, cardinal-direction boost, rectangle snapping
- photo:   K-means + Floyd-Steinberg, Canny, local-contrast boost
- lineart: median cut, sigmoid contrast, Sobel, stroke-continuity boost

Usage:
    from vectrace.processors import create_processor

    processor = create_processor("shapes")
    output = processor.process(image, config)
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from scipy import ndimage

from vectrace.edges import EdgeDetector, luminance
from vectrace.paths import (
    build_path, format_number, path_complexity, path_endpoints, remove_redundant_commands,
)
from vectrace.quantize import LUMA_WEIGHTS, ColorQuantizer
from vectrace.types import (
    Algorithm, CancellationToken, ColorPalette, EdgeMap, RasterImage,
    VectorizationConfig, VectorPath, is_cancelled,
)
from vectrace.vectorizer import Vectorizer


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


# ============================================================================
# PARAMETER TABLE
# ============================================================================

@dataclass(frozen=True)
class ProcessorParams:
    """Stage settings for one processing variant."""
    palette_cap: Optional[int]          # None: use the requested color count
    quantizer: str                      # frequency | kmeans | median_cut
    edge_algorithm: str                 # sobel | canny
    threshold: float = 0.3
    low_threshold: float = 0.1
    high_threshold: float = 0.2
    blur: bool = False
    kernel_size: int = 3
    simplify_tolerance: float = 1.0
    curves: bool = True
    min_contour_length: int = 4
    dither: bool = False
    channel_weights: Optional[Tuple[float, float, float]] = None


ALGORITHM_PARAMS: Dict[Algorithm, ProcessorParams] = {
    Algorithm.SHAPES: ProcessorParams(
        palette_cap=16,
        quantizer="frequency",
        edge_algorithm="sobel",
        threshold=0.3,
        blur=False,
        simplify_tolerance=2.0,
        curves=False,
        min_contour_length=8,
    ),
    Algorithm.PHOTO: ProcessorParams(
        palette_cap=None,
        quantizer="kmeans",
        edge_algorithm="canny",
        low_threshold=0.1,
        high_threshold=0.2,
        blur=True,
        kernel_size=3,
        simplify_tolerance=0.5,
        curves=True,
        min_contour_length=3,
        dither=True,
        channel_weights=LUMA_WEIGHTS,
    ),
    Algorithm.LINEART: ProcessorParams(
        palette_cap=32,
        quantizer="median_cut",
        edge_algorithm="sobel",
        threshold=0.2,
        blur=True,
        kernel_size=1,
        simplify_tolerance=1.5,
        curves=True,
        min_contour_length=6,
    ),
}

# Moving-average window per smoothing level (curve-fitting variants only)
SMOOTHING_WINDOWS = {"low": 1, "medium": 3, "high": 5}

CARDINAL_TOLERANCE = np.radians(15)
SIGMOID_GAIN = 12.0
CONTINUITY_THRESHOLD = 0.1


@dataclass
class ProcessorOutput:
    palette: ColorPalette
    quantized: Optional[RasterImage]
    edges: EdgeMap
    paths: List[VectorPath]
    cancelled: bool = False


# ============================================================================
# EDGE ENHANCEMENT
# ============================================================================

def _interior(magnitude: np.ndarray, enhanced: np.ndarray) -> np.ndarray:
    out = magnitude.copy()
    out[1:-1, 1:-1] = enhanced[1:-1, 1:-1]
    return out


def enhance_shape_edges(edges: EdgeMap, image: RasterImage) -> np.ndarray:
    """Favor horizontal and vertical edges: x1.2 (capped at 1) near 0/90/180/270 degrees, x0.8 elsewhere."""
    angle = np.mod(edges.direction, np.pi / 2)
    cardinal = (angle <= CARDINAL_TOLERANCE) | (angle >= np.pi / 2 - CARDINAL_TOLERANCE)
    boosted = np.where(cardinal, np.minimum(edges.magnitude * 1.2, 1.0), edges.magnitude * 0.8)
    return _interior(edges.magnitude, boosted)


def enhance_photo_edges(edges: EdgeMap, image: RasterImage) -> np.ndarray:
    """Scale by 1 + 0.5 * local 3x3 contrast of the quantized image."""
    gray = image.pixels[:, :, :3].astype(np.float32).mean(axis=2)
    local_max = ndimage.maximum_filter(gray, size=3, mode="nearest")
    local_min = ndimage.minimum_filter(gray, size=3, mode="nearest")
    contrast = (local_max - local_min) / 255.0
    return _interior(edges.magnitude, edges.magnitude * (1 + 0.5 * contrast))


def enhance_lineart_edges(edges: EdgeMap, image: RasterImage) -> np.ndarray:
    """Scale by 1 + 0.3 * share of the 8 neighbors that are edges."""
    neighbors = np.ones((3, 3), dtype=np.float32)
    neighbors[1, 1] = 0
    active = (edges.magnitude > CONTINUITY_THRESHOLD).astype(np.float32)
    continuity = ndimage.convolve(active, neighbors, mode="constant", cval=0.0) / 8.0
    return _interior(edges.magnitude, edges.magnitude * (1 + 0.3 * continuity))


# ============================================================================
# PREPROCESSING
# ============================================================================

def sigmoid_contrast(image: RasterImage, gain: float = SIGMOID_GAIN) -> RasterImage:
    """Grayscale S-curve around mid gray; alpha is kept."""
    gray = luminance(image) / 255.0
    value = np.rint(255.0 / (1.0 + np.exp(-gain * (gray - 0.5))))
    pixels = image.pixels.copy()
    pixels[:, :, :3] = np.clip(value, 0, 255).astype(np.uint8)[:, :, None]
    return RasterImage(image.width, image.height, pixels)


# ============================================================================
# PATH POST-PROCESSING
# ============================================================================

def snap_rectangles(paths: List[VectorPath]) -> List[VectorPath]:
    """Replace four-corner paths with an exact axis-aligned rectangle."""
    snapped = []
    for path in paths:
        commands = re.findall(r"[MLCQZ]", path.path_data)
        points = path_endpoints(path.path_data)
        if 4 <= len(commands) <= 5 and len(points) == 4:
            xs = [p[0] for p in points]
            ys = [p[1] for p in points]
            min_x, max_x = format_number(min(xs)), format_number(max(xs))
            min_y, max_y = format_number(min(ys)), format_number(max(ys))
            data = f"M {min_x} {min_y} L {max_x} {min_y} L {max_x} {max_y} L {min_x} {max_y} Z"
            path = build_path(data, path.fill_color, path.stroke_color, path.stroke_width)
        snapped.append(path)
    return snapped


_LINE_PAIR = re.compile(r"L ([-\d.]+) ([-\d.]+) L ([-\d.]+) ([-\d.]+)")


def lines_to_quadratics(paths: List[VectorPath]) -> List[VectorPath]:
    """Turn each ``L a L b`` pair into ``Q a b`` for smoother strokes."""
    result = []
    for path in paths:
        data = _LINE_PAIR.sub(r"Q \1 \2 \3 \4", path.path_data)
        result.append(replace(path, path_data=data, complexity=path_complexity(data)))
    return result


def drop_redundant(paths: List[VectorPath]) -> List[VectorPath]:
    result = []
    for path in paths:
        data = remove_redundant_commands(path.path_data)
        result.append(replace(path, path_data=data, complexity=path_complexity(data)))
    return result


EDGE_ENHANCERS = {
    Algorithm.SHAPES: enhance_shape_edges,
    Algorithm.PHOTO: enhance_photo_edges,
    Algorithm.LINEART: enhance_lineart_edges,
}

PATH_POSTPROCESSORS = {
    Algorithm.SHAPES: snap_rectangles,
    Algorithm.PHOTO: drop_redundant,
    Algorithm.LINEART: lines_to_quadratics,
}


# ============================================================================
# PROCESSOR
# ============================================================================

class Processor:
    """
    Runs quantize -> preprocess -> detect edges -> vectorize -> post-process
    with the parameters of one algorithm variant.
    """

    def __init__(self, algorithm: Algorithm, seed: Optional[int] = 42,
                 params: Optional[ProcessorParams] = None):
        algorithm = Algorithm(algorithm)
        if algorithm == Algorithm.AUTO:
            raise ValueError("Resolve 'auto' with AlgorithmSelector before creating a processor")
        self.algorithm = algorithm
        self.params = params or ALGORITHM_PARAMS[algorithm]
        self.quantizer = ColorQuantizer(seed=seed)
        self.edge_detector = EdgeDetector()

    def palette_cap(self, config: VectorizationConfig) -> int:
        if self.params.palette_cap is None:
            return config.color_count
        return min(self.params.palette_cap, config.color_count)

    def quantize(self, image: RasterImage, config: VectorizationConfig,
                 cancel: Optional[CancellationToken] = None) -> Tuple[ColorPalette, RasterImage]:
        params = self.params
        cap = self.palette_cap(config)
        visible_only = config.preserve_transparency

        if params.quantizer == "kmeans":
            palette = self.quantizer.quantize_kmeans(image, cap, visible_only=visible_only, cancel=cancel)
        else:
            palette = self.quantizer.quantize(image, params.quantizer, cap, visible_only=visible_only)
            palette = palette.truncate(cap)

        source = image
        if self.algorithm == Algorithm.LINEART:
            source = sigmoid_contrast(image)

        keep_alpha = config.preserve_transparency
        if params.dither:
            quantized = self.quantizer.dither_floyd_steinberg(
                source, palette, channel_weights=params.channel_weights,
                keep_alpha=keep_alpha, cancel=cancel,
            )
        else:
            quantized = self.quantizer.map_to_quantized_palette(
                source, palette, channel_weights=params.channel_weights, keep_alpha=keep_alpha,
            )
        logger.debug(f"{self.algorithm.value}: palette of {len(palette)} colors (cap {cap})")
        return palette, quantized

    def detect_edges(self, quantized: RasterImage) -> EdgeMap:
        params = self.params
        edges = self.edge_detector.detect_edges(
            quantized,
            algorithm=params.edge_algorithm,
            threshold=params.threshold,
            low_threshold=params.low_threshold,
            high_threshold=params.high_threshold,
            blur=params.blur,
            kernel_size=params.kernel_size,
        )
        enhanced = EDGE_ENHANCERS[self.algorithm](edges, quantized)
        return EdgeMap(enhanced, edges.direction, edges.width, edges.height, edges.algorithm,
                       dict(edges.parameters, enhanced=self.algorithm.value))

    def vectorizer(self, config: VectorizationConfig) -> Vectorizer:
        return Vectorizer(
            simplification_tolerance=self.params.simplify_tolerance * config.path_simplification,
            enable_curves=self.params.curves,
            min_contour_length=self.params.min_contour_length,
        )

    def process(self, image: RasterImage, config: VectorizationConfig,
                cancel: Optional[CancellationToken] = None,
                progress: Optional[ProgressCallback] = None) -> ProcessorOutput:
        """
        Vectorize an image with this variant.

        Args:
            image: Source image
            config: Validated request config
            cancel: Optional cancellation token, checked between stages
            progress: Called with 'quantize-done', 'edges-done', 'vectorize-done'

        Returns:
            ProcessorOutput; on cancellation the stages not yet run are empty
        """
        def report(stage: str):
            if progress is not None:
                progress(stage)

        palette, quantized = self.quantize(image, config, cancel)
        report("quantize-done")
        if is_cancelled(cancel):
            return ProcessorOutput(palette, quantized, EdgeMap.empty(image.width, image.height), [], True)

        edges = self.detect_edges(quantized)
        report("edges-done")
        if is_cancelled(cancel):
            return ProcessorOutput(palette, quantized, edges, [], True)

        window = SMOOTHING_WINDOWS[config.smoothing_level] if self.params.curves else 1
        paths = self.vectorizer(config).vectorize_edges(
            edges,
            color_source=quantized,
            skip_transparent=config.preserve_transparency,
            smoothing_window=window,
            cancel=cancel,
        )
        paths = PATH_POSTPROCESSORS[self.algorithm](paths)
        report("vectorize-done")

        logger.debug(f"{self.algorithm.value}: {len(paths)} paths")
        return ProcessorOutput(palette, quantized, edges, paths, is_cancelled(cancel))


def create_processor(algorithm, seed: Optional[int] = 42) -> Processor:
    """Processor for a concrete algorithm ('shapes', 'photo' or 'lineart')."""
    return Processor(Algorithm(algorithm), seed=seed)
