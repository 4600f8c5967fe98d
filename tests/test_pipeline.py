#!/usr/bin/env python3
"""
End-to-end tests for the vectorization pipeline.
"""

import numpy as np
import pytest

from vectrace import vectorize
from vectrace.errors import ConfigurationError
from vectrace.pipeline import VectorizationPipeline
from vectrace.svg import SvgGenerator
from vectrace.types import Algorithm, CancellationToken, RasterImage, VectorizationConfig


def assert_valid(result):
    validation = SvgGenerator.validate_svg(result.svg_content)
    assert validation.is_valid, validation.errors


class TestAutoDetection:
    """Test the pipeline routes reference images to the right processor."""

    def test_quadrants_use_shapes(self, quadrant_image):
        result = vectorize(quadrant_image)
        assert result.algorithm == Algorithm.SHAPES
        assert_valid(result)

    def test_cross_uses_lineart(self, cross_image):
        result = vectorize(cross_image)
        assert result.algorithm == Algorithm.LINEART
        assert_valid(result)

    def test_gradient_uses_photo(self, gradient_image):
        result = vectorize(gradient_image)
        assert result.algorithm == Algorithm.PHOTO
        assert_valid(result)


class TestResults:
    """Test result contents and options."""

    def test_deterministic(self, gradient_image):
        """Test repeated runs produce byte-identical SVG."""
        first = vectorize(gradient_image, VectorizationConfig(color_count=6))
        second = vectorize(gradient_image, VectorizationConfig(color_count=6))
        assert first.svg_content == second.svg_content

    def test_square(self, square_image):
        """Test a flat square produces paths and statistics."""
        result = vectorize(square_image, VectorizationConfig(algorithm="shapes"))
        assert result.path_count >= 1
        assert result.color_count >= 1
        assert result.original_size == 32 * 32 * 4
        assert result.vector_size == len(result.svg_content.encode("utf-8"))
        assert result.processing_time_ms >= 0
        assert result.edges is not None
        assert not result.cancelled
        assert_valid(result)

    def test_progress(self, square_image):
        """Test every stage is reported in order."""
        stages = []
        vectorize(square_image, progress=stages.append)
        assert stages == ["preprocess-done", "quantize-done", "edges-done", "vectorize-done", "generate-done"]

    def test_cancelled(self, square_image):
        """Test a cancelled run still returns a valid, empty document."""
        token = CancellationToken()
        token.cancel()
        result = vectorize(square_image, cancel=token)
        assert result.cancelled
        assert result.path_count == 0
        assert_valid(result)

    def test_invalid_config(self):
        """Test the pipeline refuses an invalid config up front."""
        with pytest.raises(ConfigurationError):
            VectorizationPipeline(VectorizationConfig(color_count=1))

    def test_downscale(self):
        """Test large images are processed at reduced size but keep their dimensions."""
        img = np.full((20, 40, 3), 255, dtype=np.uint8)
        img[5:15, 10:30] = (0, 0, 255)
        result = vectorize(RasterImage.from_array(img), max_dimension=16)
        assert 'width="40" height="20" viewBox="0 0 16 8"' in result.svg_content
        assert_valid(result)

    def test_original_size(self, square_image):
        result = VectorizationPipeline().run(square_image, original_size=999)
        assert result.original_size == 999

    def test_reusable(self, square_image, cross_image):
        """Test one pipeline can convert several images."""
        pipeline = VectorizationPipeline(VectorizationConfig(algorithm="lineart"))
        assert_valid(pipeline.run(square_image))
        assert_valid(pipeline.run(cross_image))


class TestTransparency:
    """Test transparent inputs."""

    def make_image(self):
        img = np.zeros((16, 16, 4), dtype=np.uint8)
        img[4:12, 4:12] = (0, 0, 0, 255)
        return RasterImage.from_array(img)

    @pytest.mark.parametrize("preserve", [True, False])
    def test_valid(self, preserve):
        result = vectorize(self.make_image(), VectorizationConfig(preserve_transparency=preserve, algorithm="shapes"))
        assert_valid(result)

    def test_fully_transparent(self, transparent_image):
        """Test an image with nothing visible gives an empty document."""
        result = vectorize(transparent_image, VectorizationConfig(algorithm="shapes"))
        assert result.path_count == 0
        assert_valid(result)


class TestConfigBounds:
    """Test the extremes of the accepted configuration range."""

    @pytest.mark.parametrize("algorithm", ["shapes", "photo", "lineart"])
    @pytest.mark.parametrize("color_count,simplify", [(2, 0.1), (256, 10.0)])
    def test_extremes(self, square_image, algorithm, color_count, simplify):
        config = VectorizationConfig(
            color_count=color_count, path_simplification=simplify, algorithm=algorithm,
        )
        assert_valid(vectorize(square_image, config))

    @pytest.mark.parametrize("preset", ["logo", "illustration", "photo", "sketch"])
    def test_presets(self, square_image, preset):
        assert_valid(vectorize(square_image, VectorizationConfig.from_preset(preset)))
