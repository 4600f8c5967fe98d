#!/usr/bin/env python3
"""
Tests for vectrace color quantization.
"""

import numpy as np
import pytest

from vectrace.quantize import ColorQuantizer, LUMA_WEIGHTS
from vectrace.types import CancellationToken, ColorPalette, RasterImage


@pytest.fixture
def quantizer():
    return ColorQuantizer(seed=42)


def solid(color, size=8):
    img = np.zeros((size, size, 3), dtype=np.uint8)
    img[:, :] = color
    return RasterImage.from_array(img)


class TestExtractPalette:
    """Test the frequency palette."""

    def test_quadrants(self, quantizer, quadrant_image):
        """Test equal counts keep first-appearance order."""
        palette = quantizer.extract_palette(quadrant_image)
        assert palette.colors == [
            (255, 0, 0, 255),
            (0, 255, 0, 255),
            (0, 0, 255, 255),
            (255, 255, 0, 255),
        ]
        assert palette.weights == [16, 16, 16, 16]

    def test_max_colors(self, quantizer, quadrant_image):
        """Test truncation to the most frequent buckets."""
        palette = quantizer.extract_palette(quadrant_image, max_colors=2)
        assert palette.colors == [(255, 0, 0, 255), (0, 255, 0, 255)]

    def test_frequency_order(self, quantizer):
        """Test that the most used bucket comes first."""
        img = np.full((4, 4, 3), 200, dtype=np.uint8)
        img[0, 0] = (10, 10, 10)
        palette = quantizer.extract_palette(RasterImage.from_array(img))
        assert palette.colors[0] == (200, 200, 200, 255)
        assert palette.weights == [15, 1]

    def test_visible_only_empty(self, quantizer, transparent_image):
        """Test that a fully transparent image has no visible palette."""
        assert len(quantizer.extract_palette(transparent_image, visible_only=True)) == 0


class TestKMeans:
    """Test K-means palettes."""

    @pytest.mark.parametrize("k", [2, 5, 16])
    def test_exact_length(self, quantizer, gradient_image, k):
        """Test that the palette has exactly k entries."""
        assert len(quantizer.quantize_kmeans(gradient_image, k)) == k

    def test_few_colors(self, quantizer):
        """Test a single-color image still yields k entries."""
        palette = quantizer.quantize_kmeans(solid((10, 20, 30)), 4)
        assert len(palette) == 4
        assert all(c == (10, 20, 30, 255) for c in palette)

    def test_deterministic(self, gradient_image):
        """Test that the same seed gives the same palette."""
        first = ColorQuantizer(seed=7).quantize_kmeans(gradient_image, 6)
        second = ColorQuantizer(seed=7).quantize_kmeans(gradient_image, 6)
        assert first.colors == second.colors

    def test_empty_visible(self, quantizer, transparent_image):
        """Test the transparent-image fallback."""
        palette = quantizer.quantize_kmeans(transparent_image, 3, visible_only=True)
        assert palette.colors == [(0, 0, 0, 255)] * 3

    def test_cancelled(self, quantizer, gradient_image):
        """Test that a cancelled run still returns k colors."""
        token = CancellationToken()
        token.cancel()
        assert len(quantizer.quantize_kmeans(gradient_image, 5, cancel=token)) == 5


class TestMedianCut:
    """Test median-cut palettes."""

    @pytest.mark.parametrize("k,limit", [(1, 1), (3, 4), (5, 8), (8, 8)])
    def test_power_of_two_bound(self, quantizer, gradient_image, k, limit):
        """Test the palette never exceeds the next power of two."""
        palette = quantizer.quantize_median_cut(gradient_image, k)
        assert 1 <= len(palette) <= limit

    def test_stops_when_uniform(self, quantizer):
        """Test that a single color cannot be split."""
        assert len(quantizer.quantize_median_cut(solid((1, 2, 3)), 16)) == 1

    def test_empty_visible(self, quantizer, transparent_image):
        """Test the transparent-image fallback."""
        palette = quantizer.quantize_median_cut(transparent_image, 4, visible_only=True)
        assert palette.colors == [(0, 0, 0, 255)]

    def test_unknown_method(self, quantizer, gradient_image):
        with pytest.raises(ValueError):
            quantizer.quantize(gradient_image, "octree", 4)


class TestMapping:
    """Test nearest-color remapping and dithering."""

    def test_idempotent(self, quantizer, gradient_image):
        """Test that mapping twice equals mapping once."""
        palette = quantizer.quantize_kmeans(gradient_image, 5)
        once = quantizer.map_to_quantized_palette(gradient_image, palette)
        twice = quantizer.map_to_quantized_palette(once, palette)
        assert np.array_equal(once.pixels, twice.pixels)

    def test_output_in_palette(self, quantizer, gradient_image):
        """Test every mapped pixel is a palette color."""
        palette = quantizer.quantize_median_cut(gradient_image, 4)
        mapped = quantizer.map_to_quantized_palette(gradient_image, palette, channel_weights=LUMA_WEIGHTS)
        colors = {tuple(int(v) for v in p) for p in mapped.pixels.reshape(-1, 4)}
        assert colors <= set(palette.colors)

    def test_empty_palette(self, quantizer, gradient_image):
        """Test that an empty palette leaves the image untouched."""
        assert quantizer.map_to_quantized_palette(gradient_image, ColorPalette([])) is gradient_image

    def test_keep_alpha(self, quantizer):
        """Test that alpha can be carried through."""
        img = np.zeros((2, 2, 4), dtype=np.uint8)
        img[:, :, 3] = 128
        palette = ColorPalette([(0, 0, 0, 255)])
        mapped = quantizer.map_to_quantized_palette(RasterImage.from_array(img), palette, keep_alpha=True)
        assert np.all(mapped.pixels[:, :, 3] == 128)

    def test_dither_mixes_colors(self, quantizer):
        """Test that mid gray dithers to a black and white mix."""
        palette = ColorPalette([(0, 0, 0, 255), (255, 255, 255, 255)])
        dithered = quantizer.dither_floyd_steinberg(solid((128, 128, 128)), palette)
        values = set(np.unique(dithered.pixels[:, :, 0]).tolist())
        assert values == {0, 255}

    def test_dither_error_reaches_next_row(self, quantizer):
        """Test the row below receives the diffused error."""
        img = np.zeros((2, 2, 3), dtype=np.uint8)
        img[0, 0] = 200
        img[1, 0] = 100
        img[1, 1] = 120
        palette = ColorPalette([(0, 0, 0, 255), (255, 255, 255, 255)])
        dithered = quantizer.dither_floyd_steinberg(RasterImage.from_array(img), palette)
        assert dithered.pixels[:, :, 0].tolist() == [[255, 0], [0, 255]]

    def test_dither_mean_preserved(self, quantizer):
        """Test a larger gray field keeps its average brightness."""
        palette = ColorPalette([(0, 0, 0, 255), (255, 255, 255, 255)])
        dithered = quantizer.dither_floyd_steinberg(solid((64, 64, 64), size=64), palette)
        assert dithered.pixels[:, :, 0].mean() == pytest.approx(64, abs=8)

    def test_dither_single_color(self, quantizer, gradient_image):
        """Test dithering onto one color."""
        palette = ColorPalette([(9, 9, 9, 255)])
        dithered = quantizer.dither_floyd_steinberg(gradient_image, palette)
        assert np.all(dithered.pixels[:, :, :3] == 9)

    def test_dither_does_not_mutate(self, quantizer, gradient_image):
        """Test that the input image is left unchanged."""
        before = gradient_image.pixels.copy()
        quantizer.dither_floyd_steinberg(gradient_image, quantizer.quantize_median_cut(gradient_image, 4))
        assert np.array_equal(before, gradient_image.pixels)
