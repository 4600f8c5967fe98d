"""
Vectrace Vectorization Pipeline.

End-to-end raster to SVG conversion:
1. Validate the config
2. Pick an algorithm (auto-detect unless configured)
3. Flatten alpha, downscale, normalize channels
4. Run the processor (quantize, edges, vectorize)
5. Generate the SVG

Usage:
    from vectrace.pipeline import vectorize

    result = vectorize(image, VectorizationConfig(color_count=8))
    Path("out.svg").write_text(result.svg_content)
"""

import logging
import time
from typing import Any, Dict, Optional

from vectrace.preprocess import MAX_DIMENSION, flatten_alpha, normalize_channels, resize_to_fit
from vectrace.processors import ProgressCallback, create_processor
from vectrace.selector import AlgorithmSelector
from vectrace.svg import SvgGenerator
from vectrace.types import (
    CancellationToken, ProcessingResult, RasterImage, VectorizationConfig, is_cancelled,
)


logger = logging.getLogger(__name__)


class VectorizationPipeline:
    """
    Reusable conversion pipeline; one instance may serve many images.

    Args:
        config: Vectorization settings (defaults when omitted)
        seed: K-means seed, fixed for reproducible output
        max_dimension: Images larger than this on either side are downscaled
        normalize: Stretch narrow color channels before processing
        svg_options: Keyword arguments for SvgGenerator
    """

    def __init__(self, config: Optional[VectorizationConfig] = None, seed: Optional[int] = 42,
                 max_dimension: int = MAX_DIMENSION, normalize: bool = True,
                 svg_options: Optional[Dict[str, Any]] = None):
        self.config = (config or VectorizationConfig()).ensure_valid()
        self.seed = seed
        self.max_dimension = max_dimension
        self.normalize = normalize
        self.selector = AlgorithmSelector(seed=seed)
        self.svg_generator = SvgGenerator(**(svg_options or {}))

    def preprocess(self, image: RasterImage,
                   cancel: Optional[CancellationToken] = None) -> RasterImage:
        if not self.config.preserve_transparency:
            image = flatten_alpha(image)
        image = resize_to_fit(image, self.max_dimension, self.max_dimension)
        if self.normalize:
            image = normalize_channels(image, cancel=cancel)
        return image

    def run(self, image: RasterImage, progress: Optional[ProgressCallback] = None,
            cancel: Optional[CancellationToken] = None,
            original_size: Optional[int] = None) -> ProcessingResult:
        """
        Convert one image.

        Args:
            image: Source image
            progress: Called with the name of each finished stage
            cancel: Optional cancellation token
            original_size: Source file size in bytes, for compression stats

        Returns:
            ProcessingResult; empty but valid when nothing could be traced
        """
        def report(stage: str):
            if progress is not None:
                progress(stage)

        start = time.perf_counter()
        algorithm = self.selector.resolve_algorithm(image, self.config)

        working = self.preprocess(image, cancel)
        report("preprocess-done")

        output = create_processor(algorithm, seed=self.seed).process(
            working, self.config, cancel=cancel, progress=progress,
        )

        result = self.svg_generator.generate_svg(
            output.paths,
            image.width,
            image.height,
            palette=output.palette,
            original_size=original_size if original_size is not None else image.pixel_count * 4,
            view_box=(working.width, working.height),
        )
        report("generate-done")

        result.edges = output.edges
        result.algorithm = algorithm
        result.cancelled = output.cancelled or is_cancelled(cancel)
        result.processing_time_ms = (time.perf_counter() - start) * 1000.0

        if result.is_empty:
            logger.warning(f"'{algorithm.value}' produced no paths; try another algorithm")
        logger.info(
            f"Vectorized {image.width}x{image.height} with '{algorithm.value}': "
            f"{result.path_count} paths, {result.color_count} colors, "
            f"{result.vector_size} bytes in {result.processing_time_ms:.1f} ms"
        )
        return result


def vectorize(image: RasterImage, config: Optional[VectorizationConfig] = None,
              **kwargs) -> ProcessingResult:
    """Convert an image with a one-off pipeline. Extra kwargs go to ``VectorizationPipeline``."""
    progress = kwargs.pop("progress", None)
    cancel = kwargs.pop("cancel", None)
    return VectorizationPipeline(config, **kwargs).run(image, progress=progress, cancel=cancel)
