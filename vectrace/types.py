"""
Vectrace data model.

Images, palettes, edge maps, contours and paths that flow between the
quantizer, edge detector, vectorizer and SVG generator. Stages never
mutate their inputs: pixel and magnitude arrays are exposed as read-only
views and every stage returns new objects.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

from vectrace.errors import ConfigurationError, InvalidInputError


Point = Tuple[float, float]
Color = Tuple[int, int, int, int]


class Algorithm(str, Enum):
    """Vectorization strategy."""
    AUTO = "auto"
    SHAPES = "shapes"
    PHOTO = "photo"
    LINEART = "lineart"


class SmoothingLevel(str, Enum):
    """Contour smoothing applied before curve fitting."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


# ============================================================================
# RASTER IMAGE
# ============================================================================

@dataclass(frozen=True, eq=False)
class RasterImage:
    """
    RGBA8 pixel grid.

    ``pixels`` has shape ``(height, width, 4)`` and dtype ``uint8``. It is
    stored as a read-only view; copy it before modifying.
    """
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self):
        if not isinstance(self.width, (int, np.integer)) or not isinstance(self.height, (int, np.integer)):
            raise InvalidInputError("Image dimensions must be integers")
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputError(f"Image dimensions must be positive, got {self.width}x{self.height}")
        if not isinstance(self.pixels, np.ndarray):
            raise InvalidInputError("Pixel buffer must be a numpy array")
        if self.pixels.dtype != np.uint8:
            raise InvalidInputError(f"Pixel buffer must be uint8, got {self.pixels.dtype}")
        if self.pixels.shape != (self.height, self.width, 4):
            raise InvalidInputError(
                f"Pixel buffer shape {self.pixels.shape} does not match "
                f"{self.width}x{self.height} RGBA"
            )
        object.__setattr__(self, "width", int(self.width))
        object.__setattr__(self, "height", int(self.height))
        object.__setattr__(self, "pixels", _read_only(np.ascontiguousarray(self.pixels)))

    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterImage":
        """Build an image from an HxW, HxWx3 or HxWx4 array of 0..255 values."""
        array = np.asarray(array)
        if array.ndim == 2:
            array = np.stack([array, array, array], axis=-1)
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise InvalidInputError(f"Unsupported array shape {array.shape}")
        if not np.issubdtype(array.dtype, np.number):
            raise InvalidInputError(f"Unsupported array dtype {array.dtype}")
        if array.dtype != np.uint8:
            if array.size and (np.nanmin(array) < 0 or np.nanmax(array) > 255 or not np.all(np.isfinite(array))):
                raise InvalidInputError("Pixel values must be finite and within 0..255")
            array = array.astype(np.uint8)
        if array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array, alpha], axis=2)
        height, width = array.shape[:2]
        return cls(width, height, array.copy())

    @classmethod
    def from_buffer(cls, width: int, height: int, data: Union[bytes, bytearray, Sequence[int]]) -> "RasterImage":
        """Build an image from a flat row-major RGBA8 buffer."""
        if width <= 0 or height <= 0:
            raise InvalidInputError(f"Image dimensions must be positive, got {width}x{height}")
        expected = width * height * 4
        if isinstance(data, (bytes, bytearray, memoryview)):
            flat = np.frombuffer(bytes(data), dtype=np.uint8)
        else:
            flat = np.asarray(data)
            if flat.ndim != 1:
                raise InvalidInputError("Pixel buffer must be flat")
            if flat.size and (flat.min() < 0 or flat.max() > 255):
                raise InvalidInputError("Pixel values must be within 0..255")
            flat = flat.astype(np.uint8)
        if flat.size != expected:
            raise InvalidInputError(
                f"Pixel buffer length {flat.size} does not match {width}x{height}x4 = {expected}"
            )
        return cls(width, height, flat.reshape(height, width, 4).copy())

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        return cls.from_array(np.array(image.convert("RGBA")))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels.copy(), mode="RGBA")

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def has_transparency(self) -> bool:
        return bool(np.any(self.pixels[:, :, 3] < 255))

    def with_pixels(self, pixels: np.ndarray) -> "RasterImage":
        """Return a new image of the same size with the given pixel array."""
        if not np.issubdtype(pixels.dtype, np.integer):
            pixels = np.rint(pixels)
        return RasterImage(self.width, self.height, np.clip(pixels, 0, 255).astype(np.uint8))


# ============================================================================
# PALETTE
# ============================================================================

@dataclass
class ColorPalette:
    """Ordered representative colors with optional usage weights."""
    colors: List[Color]
    weights: Optional[List[int]] = None

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self):
        return iter(self.colors)

    def to_array(self) -> np.ndarray:
        if not self.colors:
            return np.zeros((0, 4), dtype=np.float64)
        return np.array(self.colors, dtype=np.float64)

    def hex_colors(self) -> List[str]:
        return [rgb_to_hex(c) for c in self.colors]

    def truncate(self, n: int) -> "ColorPalette":
        """Keep the ``n`` heaviest entries, heaviest first."""
        if len(self.colors) <= n:
            return self
        weights = self.weights or [1] * len(self.colors)
        order = sorted(range(len(self.colors)), key=lambda i: -weights[i])[:n]
        return ColorPalette(
            [self.colors[i] for i in order],
            [weights[i] for i in order] if self.weights else None,
        )


def rgb_to_hex(color: Sequence[int]) -> str:
    r, g, b = (int(c) for c in color[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


def hex_to_rgb(value: str) -> Optional[Tuple[int, int, int]]:
    value = value.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) != 6:
        return None
    try:
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    except ValueError:
        return None


# ============================================================================
# EDGES, CONTOURS, PATHS
# ============================================================================

@dataclass(frozen=True, eq=False)
class EdgeMap:
    """Per-pixel gradient magnitude and direction (radians)."""
    magnitude: np.ndarray
    direction: np.ndarray
    width: int
    height: int
    algorithm: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        shape = (self.height, self.width)
        if self.magnitude.shape != shape or self.direction.shape != shape:
            raise InvalidInputError(
                f"Edge map arrays {self.magnitude.shape}/{self.direction.shape} "
                f"do not match {self.width}x{self.height}"
            )
        object.__setattr__(self, "magnitude", _read_only(self.magnitude.astype(np.float32)))
        object.__setattr__(self, "direction", _read_only(self.direction.astype(np.float32)))
        object.__setattr__(self, "parameters", dict(self.parameters))

    @classmethod
    def empty(cls, width: int, height: int, algorithm: str = "none") -> "EdgeMap":
        zeros = np.zeros((height, width), dtype=np.float32)
        return cls(zeros, zeros.copy(), width, height, algorithm)

    @property
    def edge_pixel_count(self) -> int:
        return int(np.count_nonzero(self.magnitude))


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


@dataclass
class Contour:
    """Ordered boundary points traced from an edge map."""
    points: List[Point]
    closed: bool
    length: float
    bounds: Bounds

    @classmethod
    def from_points(cls, points: Sequence[Point], closed: bool) -> "Contour":
        from vectrace.geometry import contour_bounds, contour_length

        points = list(points)
        return cls(points, closed, contour_length(points, closed), contour_bounds(points))

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class VectorPath:
    """A single SVG path: data string plus paint attributes."""
    path_data: str
    fill_color: str
    stroke_color: Optional[str] = None
    stroke_width: Optional[float] = None
    complexity: float = 0.0


# ============================================================================
# CONFIGURATION
# ============================================================================

COLOR_COUNT_RANGE = (2, 256)
PATH_SIMPLIFICATION_RANGE = (0.1, 10.0)

CONFIG_PRESETS = {
    "logo": {
        "color_count": 8,
        "smoothing_level": "low",
        "path_simplification": 1.0,
        "algorithm": "shapes",
    },
    "illustration": {
        "color_count": 24,
        "smoothing_level": "medium",
        "path_simplification": 1.0,
        "algorithm": "auto",
    },
    "photo": {
        "color_count": 32,
        "smoothing_level": "high",
        "path_simplification": 0.5,
        "algorithm": "photo",
    },
    "sketch": {
        "color_count": 4,
        "smoothing_level": "medium",
        "path_simplification": 1.5,
        "algorithm": "lineart",
    },
}


@dataclass
class VectorizationConfig:
    """Per-request vectorization settings."""
    color_count: int = 16
    smoothing_level: str = SmoothingLevel.MEDIUM.value
    path_simplification: float = 1.0
    preserve_transparency: bool = True
    algorithm: str = Algorithm.AUTO.value

    def __post_init__(self):
        # Accept enum members as well as their string values
        if isinstance(self.smoothing_level, SmoothingLevel):
            self.smoothing_level = self.smoothing_level.value
        if isinstance(self.algorithm, Algorithm):
            self.algorithm = self.algorithm.value

    @classmethod
    def from_preset(cls, name: str, **overrides) -> "VectorizationConfig":
        if name not in CONFIG_PRESETS:
            raise ConfigurationError([f"Unknown preset '{name}'. Available: {', '.join(CONFIG_PRESETS)}"])
        values = dict(CONFIG_PRESETS[name])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> List[str]:
        """Return a list of validation errors (empty when valid)."""
        errors = []
        lo, hi = COLOR_COUNT_RANGE
        if isinstance(self.color_count, bool) or not isinstance(self.color_count, (int, np.integer)):
            errors.append("Color count must be an integer")
        elif not lo <= self.color_count <= hi:
            errors.append(f"Color count must be between {lo} and {hi}")

        lo, hi = PATH_SIMPLIFICATION_RANGE
        try:
            simplification = float(self.path_simplification)
        except (TypeError, ValueError):
            simplification = float("nan")
        if not lo <= simplification <= hi:
            errors.append(f"Path simplification must be between {lo} and {hi}")

        if self.smoothing_level not in {s.value for s in SmoothingLevel}:
            errors.append("Smoothing level must be low, medium, or high")
        if self.algorithm not in {a.value for a in Algorithm}:
            errors.append("Algorithm must be auto, shapes, photo, or lineart")
        return errors

    def ensure_valid(self) -> "VectorizationConfig":
        errors = self.validate()
        if errors:
            raise ConfigurationError(errors)
        return self


# ============================================================================
# SELECTION AND RESULTS
# ============================================================================

@dataclass
class ImageCharacteristics:
    unique_colors: int
    dominant_color_ratio: float
    monochromatic_ratio: float
    edge_density: float
    sharp_edge_ratio: float
    average_edge_strength: float
    contrast_level: float
    has_transparency: bool
    is_simple_graphic: bool = False
    is_line_art: bool = False
    is_photo: bool = False


@dataclass
class AlgorithmAlternative:
    algorithm: Algorithm
    confidence: float
    reason: str


@dataclass
class AlgorithmRecommendation:
    recommended: Algorithm
    confidence: float
    analysis: ImageCharacteristics
    alternatives: List[AlgorithmAlternative] = field(default_factory=list)


@dataclass
class ProcessingResult:
    """Final SVG plus size statistics and the intermediates that produced it."""
    svg_content: str
    original_size: int
    vector_size: int
    color_count: int
    path_count: int
    processing_time_ms: float = 0.0
    palette: Optional[ColorPalette] = None
    edges: Optional[EdgeMap] = None
    paths: List[VectorPath] = field(default_factory=list)
    algorithm: Optional[Algorithm] = None
    cancelled: bool = False

    @property
    def compression_ratio(self) -> float:
        if self.vector_size == 0:
            return 0.0
        return self.original_size / self.vector_size

    @property
    def is_empty(self) -> bool:
        return self.path_count == 0


class CancellationToken:
    """
    Cooperative cancellation flag.

    Long loops poll ``cancelled`` and stop early with a partial result.
    Safe to cancel from another thread.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def is_cancelled(cancel: Optional[CancellationToken]) -> bool:
    return cancel is not None and cancel.cancelled
