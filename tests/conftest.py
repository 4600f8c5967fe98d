"""
Shared fixtures for the vectrace test suite.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import pytest

from vectrace.types import RasterImage


RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
YELLOW = (255, 255, 0)


@pytest.fixture
def quadrant_image():
    """8x8 image with solid red/green/blue/yellow quadrants."""
    img = np.zeros((8, 8, 3), dtype=np.uint8)
    img[:4, :4] = RED
    img[:4, 4:] = GREEN
    img[4:, :4] = BLUE
    img[4:, 4:] = YELLOW
    return RasterImage.from_array(img)


@pytest.fixture
def cross_image():
    """16x16 white image with a black cross and both diagonals."""
    img = np.full((16, 16, 3), 255, dtype=np.uint8)
    for y in range(16):
        for x in range(16):
            if y == 8 or x == 8 or x == y or x + y == 15:
                img[y, x] = 0
    return RasterImage.from_array(img)


@pytest.fixture
def gradient_image():
    """8x8 smooth RGB gradient."""
    img = np.zeros((8, 8, 3), dtype=np.uint8)
    for y in range(8):
        for x in range(8):
            img[y, x] = [x * 32, y * 32, (x + y) * 16]
    return RasterImage.from_array(img)


@pytest.fixture
def square_image():
    """32x32 white image with a 12x12 red square."""
    img = np.full((32, 32, 3), 255, dtype=np.uint8)
    img[10:22, 10:22] = RED
    return RasterImage.from_array(img)


@pytest.fixture
def step_image():
    """8x8 image, black left half and white right half."""
    img = np.zeros((8, 8, 3), dtype=np.uint8)
    img[:, 4:] = 255
    return RasterImage.from_array(img)


@pytest.fixture
def transparent_image():
    """16x16 fully transparent image."""
    return RasterImage.from_array(np.zeros((16, 16, 4), dtype=np.uint8))


@pytest.fixture
def ring_magnitude():
    """10x10 magnitude array with a one-pixel square ring from (2,2) to (7,7)."""
    mag = np.zeros((10, 10), dtype=np.float32)
    mag[2, 2:8] = 1.0
    mag[7, 2:8] = 1.0
    mag[2:8, 2] = 1.0
    mag[2:8, 7] = 1.0
    return mag
