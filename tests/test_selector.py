#!/usr/bin/env python3
"""
Tests for image classification and algorithm selection.
"""

import pytest

from vectrace.selector import AlgorithmSelector
from vectrace.types import Algorithm, VectorizationConfig


@pytest.fixture
def selector():
    return AlgorithmSelector()


class TestCharacteristics:
    """Test measured image features."""

    def test_quadrants(self, selector, quadrant_image):
        c = selector.analyze_image_characteristics(quadrant_image)
        assert c.unique_colors == 4
        assert c.dominant_color_ratio == pytest.approx(0.25)
        assert c.monochromatic_ratio == 0.0
        assert c.sharp_edge_ratio > 0.7
        assert c.contrast_level > 0.6
        assert not c.has_transparency

    def test_cross(self, selector, cross_image):
        c = selector.analyze_image_characteristics(cross_image)
        assert c.unique_colors == 2
        assert c.monochromatic_ratio == 1.0
        assert c.contrast_level == pytest.approx(1.0, abs=1e-3)
        assert 0.05 < c.edge_density < 0.6

    def test_transparency_flag(self, selector, transparent_image):
        assert selector.analyze_image_characteristics(transparent_image).has_transparency


class TestSelection:
    """Test algorithm choice on the reference images."""

    def test_shapes(self, selector, quadrant_image):
        """Test four flat quadrants select shapes."""
        assert selector.detect_best_algorithm(quadrant_image) == Algorithm.SHAPES

    def test_lineart(self, selector, cross_image):
        """Test black strokes on white select lineart."""
        assert selector.detect_best_algorithm(cross_image) == Algorithm.LINEART

    def test_photo(self, selector, gradient_image):
        """Test a smooth gradient selects photo."""
        assert selector.detect_best_algorithm(gradient_image) == Algorithm.PHOTO

    def test_resolve_explicit(self, selector, quadrant_image):
        """Test an explicit algorithm bypasses detection."""
        config = VectorizationConfig(algorithm="photo")
        assert selector.resolve_algorithm(quadrant_image, config) == Algorithm.PHOTO

    def test_resolve_auto(self, selector, cross_image):
        assert selector.resolve_algorithm(cross_image, VectorizationConfig()) == Algorithm.LINEART


class TestRecommendations:
    """Test ranked recommendations."""

    def test_shapes_recommendation(self, selector, quadrant_image):
        rec = selector.get_algorithm_recommendations(quadrant_image)
        assert rec.recommended == Algorithm.SHAPES
        assert rec.confidence == pytest.approx(0.9)
        assert [a.algorithm for a in rec.alternatives] == [Algorithm.PHOTO, Algorithm.LINEART]
        assert [a.confidence for a in rec.alternatives] == [0.4, 0.3]
        assert rec.alternatives[1].reason == "May work for sketches"

    def test_lineart_recommendation(self, selector, cross_image):
        rec = selector.get_algorithm_recommendations(cross_image)
        assert rec.recommended == Algorithm.LINEART
        assert rec.confidence == pytest.approx(0.8)
        assert [a.algorithm for a in rec.alternatives] == [Algorithm.PHOTO, Algorithm.SHAPES]
        assert rec.alternatives[1].reason == "Low color count suggests simple graphics"

    def test_photo_recommendation(self, selector, gradient_image):
        rec = selector.get_algorithm_recommendations(gradient_image)
        assert rec.recommended == Algorithm.PHOTO
        assert rec.confidence == pytest.approx(0.7)
        assert len(rec.alternatives) == 2
        assert all(a.algorithm != Algorithm.PHOTO for a in rec.alternatives)
        assert rec.analysis.is_photo

    def test_process_with_algorithm(self, selector, square_image):
        output = selector.process_with_algorithm(square_image, VectorizationConfig(algorithm="shapes"))
        assert len(output.palette) == 2
