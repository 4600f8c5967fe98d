#!/usr/bin/env python3
"""
Tests for raster preprocessing.
"""

import numpy as np

from vectrace.preprocess import flatten_alpha, normalize_channels, processing_stats, resize_to_fit
from vectrace.types import CancellationToken, RasterImage


def ramp(low, high, size=16):
    values = np.linspace(low, high, size).round().astype(np.uint8)
    img = np.zeros((size, size, 3), dtype=np.uint8)
    img[:, :] = values[None, :, None]
    return RasterImage.from_array(img)


class TestResize:
    """Test downscaling."""

    def test_inside_bounds(self, square_image):
        assert resize_to_fit(square_image, 64, 64) is square_image

    def test_keeps_aspect(self):
        image = RasterImage.from_array(np.zeros((50, 200, 3), dtype=np.uint8))
        resized = resize_to_fit(image, 100, 100)
        assert (resized.width, resized.height) == (100, 25)


class TestNormalize:
    """Test per-channel contrast stretching."""

    def test_stretch(self):
        """Test a narrow ramp is stretched to the full range."""
        out = normalize_channels(ramp(100, 150))
        assert out.pixels[:, :, :3].min() == 0
        assert out.pixels[:, :, :3].max() == 255

    def test_flat_channels_untouched(self):
        """Test channels with a tiny range are left alone."""
        image = ramp(100, 110)
        assert normalize_channels(image) is image

    def test_full_range_untouched(self, quadrant_image):
        assert normalize_channels(quadrant_image) is quadrant_image

    def test_cancelled(self):
        """Test cancellation returns the input unchanged."""
        image = ramp(100, 150)
        token = CancellationToken()
        token.cancel()
        assert normalize_channels(image, cancel=token) is image

    def test_alpha_kept(self):
        img = np.zeros((4, 4, 4), dtype=np.uint8)
        img[:, :, 0] = np.arange(16).reshape(4, 4) * 4 + 50
        img[:, :, 3] = 77
        out = normalize_channels(RasterImage.from_array(img))
        assert np.all(out.pixels[:, :, 3] == 77)


class TestFlatten:
    """Test alpha compositing."""

    def test_transparent_becomes_background(self, transparent_image):
        out = flatten_alpha(transparent_image)
        assert np.all(out.pixels == 255)

    def test_half_alpha(self):
        img = np.zeros((1, 1, 4), dtype=np.uint8)
        img[0, 0] = (0, 0, 0, 128)
        out = flatten_alpha(RasterImage.from_array(img), background=(255, 255, 255))
        assert 125 <= out.pixels[0, 0, 0] <= 128
        assert out.pixels[0, 0, 3] == 255

    def test_opaque_unchanged(self, quadrant_image):
        assert flatten_alpha(quadrant_image) is quadrant_image


def test_processing_stats(square_image):
    stats = processing_stats(square_image)
    assert stats["pixel_count"] == 1024
    assert stats["memory_usage"] == 4096
    assert stats["has_transparency"] is False
