"""
Vectrace Algorithm Selector.

Classifies an image as line art, flat shapes or photographic content and
picks the matching processor.

Usage:
    from vectrace.selector import AlgorithmSelector

    selector = AlgorithmSelector()
    recommendation = selector.get_algorithm_recommendations(image)
    print(recommendation.recommended, recommendation.confidence)
"""

import logging
from typing import Optional

import numpy as np

from vectrace.edges import EdgeDetector, luminance
from vectrace.processors import ProcessorOutput, ProgressCallback, create_processor
from vectrace.types import (
    Algorithm, AlgorithmAlternative, AlgorithmRecommendation, CancellationToken,
    ImageCharacteristics, RasterImage, VectorizationConfig,
)


logger = logging.getLogger(__name__)

# Decision thresholds
LINEART_CRITERIA = {
    "max_unique_colors": 32,
    "min_edge_density": 0.05,
    "max_edge_density": 0.6,
    "min_contrast": 0.3,
    "min_monochromatic_ratio": 0.6,
}

SHAPES_CRITERIA = {
    "max_unique_colors": 16,
    "min_sharp_edge_ratio": 0.7,
    "min_contrast": 0.6,
    "max_monochromatic_ratio": 0.8,
}

MONOCHROME_CHANNEL_DIFF = 20

CONFIDENCE = {
    Algorithm.SHAPES: 0.9,
    Algorithm.LINEART: 0.8,
    Algorithm.PHOTO: 0.7,
}
DEFAULT_CONFIDENCE = 0.5


class AlgorithmSelector:
    """Image classification and processor dispatch."""

    def __init__(self, seed: Optional[int] = 42):
        self.seed = seed

    def analyze_image_characteristics(self, image: RasterImage) -> ImageCharacteristics:
        """
        Measure the features used for algorithm selection.

        Args:
            image: Source image

        Returns:
            ImageCharacteristics with the derived line-art / shapes / photo flags set
        """
        pixels = image.pixels.reshape(-1, 4)
        total = len(pixels)

        buckets = (pixels[:, :3] // 8).astype(np.int32)
        packed = (buckets[:, 0] << 10) | (buckets[:, 1] << 5) | buckets[:, 2]
        _, counts = np.unique(packed, return_counts=True)
        unique_colors = len(counts)
        dominant_color_ratio = counts.max() / total

        rgb = pixels[:, :3].astype(np.int32)
        spread = np.max(np.abs(np.stack([
            rgb[:, 0] - rgb[:, 1],
            rgb[:, 1] - rgb[:, 2],
            rgb[:, 0] - rgb[:, 2],
        ])), axis=0)
        monochromatic_ratio = float(np.count_nonzero(spread < MONOCHROME_CHANNEL_DIFF)) / total

        gray = luminance(image)
        edge_density, sharp_edge_ratio, average_edge_strength = EdgeDetector.gradient_probe(image, gray)
        contrast_level = float(gray.max() - gray.min()) / 255.0

        characteristics = ImageCharacteristics(
            unique_colors=unique_colors,
            dominant_color_ratio=float(dominant_color_ratio),
            monochromatic_ratio=monochromatic_ratio,
            edge_density=edge_density,
            sharp_edge_ratio=sharp_edge_ratio,
            average_edge_strength=average_edge_strength,
            contrast_level=contrast_level,
            has_transparency=image.has_transparency,
        )
        characteristics.is_line_art = self._is_line_art(characteristics)
        characteristics.is_simple_graphic = self._is_simple_graphic(characteristics)
        characteristics.is_photo = not (characteristics.is_line_art or characteristics.is_simple_graphic)
        return characteristics

    @staticmethod
    def _is_line_art(c: ImageCharacteristics) -> bool:
        t = LINEART_CRITERIA
        return (
            c.unique_colors <= t["max_unique_colors"]
            and t["min_edge_density"] < c.edge_density < t["max_edge_density"]
            and c.contrast_level > t["min_contrast"]
            and c.monochromatic_ratio > t["min_monochromatic_ratio"]
        )

    @staticmethod
    def _is_simple_graphic(c: ImageCharacteristics) -> bool:
        t = SHAPES_CRITERIA
        return (
            c.unique_colors <= t["max_unique_colors"]
            and c.sharp_edge_ratio > t["min_sharp_edge_ratio"]
            and c.contrast_level > t["min_contrast"]
            and c.monochromatic_ratio < t["max_monochromatic_ratio"]
        )

    @staticmethod
    def _choose(c: ImageCharacteristics) -> Algorithm:
        # Line art wins over shapes, shapes over photo
        if c.is_line_art:
            return Algorithm.LINEART
        if c.is_simple_graphic:
            return Algorithm.SHAPES
        return Algorithm.PHOTO

    def detect_best_algorithm(self, image: RasterImage) -> Algorithm:
        algorithm = self._choose(self.analyze_image_characteristics(image))
        logger.debug(f"Detected algorithm: {algorithm.value}")
        return algorithm

    def get_algorithm_recommendations(self, image: RasterImage) -> AlgorithmRecommendation:
        """Recommended algorithm, its confidence and up to two ranked alternatives."""
        c = self.analyze_image_characteristics(image)
        recommended = self._choose(c)
        confidence = CONFIDENCE.get(recommended, DEFAULT_CONFIDENCE)

        candidates = [
            AlgorithmAlternative(
                Algorithm.SHAPES,
                0.6 if c.is_simple_graphic else 0.3,
                "Low color count suggests simple graphics" if c.unique_colors <= 16
                else "May work for geometric elements",
            ),
            AlgorithmAlternative(
                Algorithm.LINEART,
                0.6 if c.is_line_art else 0.3,
                "High monochromatic ratio suggests line art" if c.monochromatic_ratio > 0.5
                else "May work for sketches",
            ),
            AlgorithmAlternative(
                Algorithm.PHOTO,
                0.6 if c.is_photo else 0.4,
                "Complex color gradients suggest photographic content",
            ),
        ]
        alternatives = sorted(
            (a for a in candidates if a.algorithm != recommended),
            key=lambda a: a.confidence,
            reverse=True,
        )[:2]

        return AlgorithmRecommendation(recommended, confidence, c, alternatives)

    def resolve_algorithm(self, image: RasterImage, config: VectorizationConfig) -> Algorithm:
        algorithm = Algorithm(config.algorithm)
        if algorithm == Algorithm.AUTO:
            return self.detect_best_algorithm(image)
        return algorithm

    def process_with_algorithm(self, image: RasterImage, config: VectorizationConfig,
                               cancel: Optional[CancellationToken] = None,
                               progress: Optional[ProgressCallback] = None) -> ProcessorOutput:
        """Resolve the configured algorithm and run its processor."""
        algorithm = self.resolve_algorithm(image, config)
        logger.info(f"Processing with '{algorithm.value}' algorithm")
        return create_processor(algorithm, seed=self.seed).process(image, config, cancel, progress)
