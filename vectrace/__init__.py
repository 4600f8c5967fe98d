"""
vectrace - Heuristic raster to SVG vectorization

vectrace converts raster images into compact, editable SVG by quantizing
colors, detecting edges, tracing and simplifying contours, and picking
one of three processing strategies (shapes, photo, lineart) per image.
"""

from .errors import (
    VectraceError,
    InvalidInputError,
    ConfigurationError,
    ResourceExceededError,
)
from .types import (
    Algorithm,
    SmoothingLevel,
    RasterImage,
    ColorPalette,
    EdgeMap,
    Contour,
    VectorPath,
    VectorizationConfig,
    AlgorithmRecommendation,
    ProcessingResult,
    CancellationToken,
    CONFIG_PRESETS,
)
from .quantize import ColorQuantizer
from .edges import EdgeDetector
from .vectorizer import Vectorizer
from .processors import Processor, create_processor, ALGORITHM_PARAMS
from .selector import AlgorithmSelector
from .svg import SvgGenerator
from .pipeline import VectorizationPipeline, vectorize

__version__ = "0.1.0"
__author__ = "vectrace contributors"

__all__ = [
    # Errors
    'VectraceError',
    'InvalidInputError',
    'ConfigurationError',
    'ResourceExceededError',

    # Data model
    'Algorithm',
    'SmoothingLevel',
    'RasterImage',
    'ColorPalette',
    'EdgeMap',
    'Contour',
    'VectorPath',
    'VectorizationConfig',
    'AlgorithmRecommendation',
    'ProcessingResult',
    'CancellationToken',
    'CONFIG_PRESETS',

    # Components
    'ColorQuantizer',
    'EdgeDetector',
    'Vectorizer',
    'Processor',
    'create_processor',
    'ALGORITHM_PARAMS',
    'AlgorithmSelector',
    'SvgGenerator',

    # Pipeline
    'VectorizationPipeline',
    'vectorize',
]
