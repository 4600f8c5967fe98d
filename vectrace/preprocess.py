"""
Vectrace raster preprocessing.

Prepares decoded images for vectorization: downscaling, per-channel
contrast normalization, alpha flattening and size statistics.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np

from vectrace.types import CancellationToken, RasterImage, is_cancelled


logger = logging.getLogger(__name__)

MAX_DIMENSION = 1024

NORMALIZE_RANGE_THRESHOLD = 15
NORMALIZE_MAX_SAMPLES = 50000
NORMALIZE_CHUNK_SIZE = 10000


def resize_to_fit(image: RasterImage, max_width: int = MAX_DIMENSION,
                  max_height: int = MAX_DIMENSION) -> RasterImage:
    """
    Downscale (bilinear) so the image fits in max_width x max_height.

    Aspect ratio is preserved; images already inside the bounds are
    returned unchanged.
    """
    if image.width <= max_width and image.height <= max_height:
        return image

    scale = min(max_width / image.width, max_height / image.height)
    width = max(1, int(round(image.width * scale)))
    height = max(1, int(round(image.height * scale)))
    resized = cv2.resize(image.pixels.copy(), (width, height), interpolation=cv2.INTER_LINEAR)
    logger.info(f"Resized {image.width}x{image.height} -> {width}x{height}")
    return RasterImage(width, height, resized)


def normalize_channels(image: RasterImage, range_threshold: int = NORMALIZE_RANGE_THRESHOLD,
                       max_samples: int = NORMALIZE_MAX_SAMPLES,
                       chunk_size: int = NORMALIZE_CHUNK_SIZE,
                       cancel: Optional[CancellationToken] = None) -> RasterImage:
    """
    Stretch each RGB channel to the full 0..255 range.

    Channel min/max come from a strided sample. Channels with a range of
    ``range_threshold`` or less are left alone. Work proceeds in chunks of
    pixels; if cancelled part way, the input image is returned unchanged.
    """
    flat = image.pixels.reshape(-1, 4)
    step = max(1, len(flat) // max_samples)
    sample = flat[::step, :3].astype(np.int32)
    low = sample.min(axis=0)
    high = sample.max(axis=0)
    span = high - low
    stretch = span > range_threshold

    full_range = (low == 0) & (high == 255)
    if not np.any(stretch & ~full_range):
        return image

    scale = np.where(stretch, 255.0 / np.maximum(span, 1), 1.0)
    offset = np.where(stretch, low, 0)
    out = flat.copy()

    for start in range(0, len(flat), chunk_size):
        if is_cancelled(cancel):
            logger.warning("Channel normalization cancelled; keeping original pixels")
            return image
        chunk = flat[start:start + chunk_size, :3].astype(np.float64)
        out[start:start + chunk_size, :3] = np.clip(np.rint((chunk - offset) * scale), 0, 255).astype(np.uint8)

    logger.debug(f"Normalized channels {np.flatnonzero(stretch).tolist()}")
    return RasterImage(image.width, image.height, out.reshape(image.height, image.width, 4))


def flatten_alpha(image: RasterImage, background: Tuple[int, int, int] = (255, 255, 255)) -> RasterImage:
    """Composite onto an opaque background color."""
    if not image.has_transparency:
        return image
    pixels = image.pixels.astype(np.float64)
    alpha = pixels[:, :, 3:4] / 255.0
    rgb = pixels[:, :, :3] * alpha + np.array(background, dtype=np.float64) * (1 - alpha)
    out = np.empty_like(image.pixels)
    out[:, :, :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    out[:, :, 3] = 255
    return RasterImage(image.width, image.height, out)


def processing_stats(image: RasterImage) -> Dict[str, Any]:
    """Size figures a caller can use to decide whether to process an image."""
    return {
        "width": image.width,
        "height": image.height,
        "pixel_count": image.pixel_count,
        "memory_usage": image.pixel_count * 4,
        "has_transparency": image.has_transparency,
    }
