#!/usr/bin/env python3
"""
Example: vectorize a synthetic image with vectrace.

Draws a few flat shapes with OpenCV, lets vectrace pick an algorithm,
and writes the SVG next to this script.
"""

import sys
from pathlib import Path

# Add parent to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

import cv2
import numpy as np

from vectrace import AlgorithmSelector, RasterImage, SvgGenerator, VectorizationConfig, vectorize


def make_shapes_image() -> np.ndarray:
    """White canvas with a red square, green circle and blue triangle (RGB)."""
    img = np.full((256, 256, 3), 255, np.uint8)
    cv2.rectangle(img, (24, 24), (104, 104), (220, 30, 30), -1)
    cv2.circle(img, (170, 170), 50, (30, 160, 60), -1)
    pts = np.array([[190, 20], [140, 110], [240, 110]], np.int32).reshape((-1, 1, 2))
    cv2.fillPoly(img, [pts], (40, 60, 200))
    return img


def main():
    """Run the vectorization example."""
    image = RasterImage.from_array(make_shapes_image())
    output_svg = Path(__file__).parent / "output_shapes.svg"

    recommendation = AlgorithmSelector().get_algorithm_recommendations(image)
    print(f"Recommended: {recommendation.recommended.value} ({recommendation.confidence:.0%})")
    for alternative in recommendation.alternatives:
        print(f"  alt: {alternative.algorithm.value} ({alternative.confidence:.0%}) - {alternative.reason}")
    print("=" * 50)

    result = vectorize(
        image,
        VectorizationConfig(color_count=8),
        progress=lambda stage: print(f"  {stage}"),
    )
    output_svg.write_text(result.svg_content)

    validation = SvgGenerator.validate_svg(result.svg_content)

    print("\n" + "=" * 50)
    print("RESULTS:")
    print(f"  Algorithm: {result.algorithm.value}")
    print(f"  Paths: {result.path_count}  Colors: {result.color_count}")
    print(f"  SVG Size: {result.vector_size / 1024:.1f} KB ({result.compression_ratio:.1f}x smaller)")
    print(f"  Time: {result.processing_time_ms:.0f} ms")
    print(f"  Output: {output_svg}")

    if not validation.is_valid:
        print("\nValidation errors:")
        for message in validation.errors:
            print(f"  - {message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
