"""
Vectrace Color Quantization Module.

Reduces an image to a bounded palette and maps pixels onto it:
- Frequency palette over 8-step RGB buckets
- Seeded K-means (Lloyd iterations on a pixel sample)
- Median cut
- Nearest-color remapping, optionally channel weighted
- Floyd-Steinberg error diffusion

None of these raise on degenerate input: a fully transparent image
quantized with ``visible_only=True`` gives an empty (or black) palette.

Usage:
    from vectrace.quantize import ColorQuantizer

    quantizer = ColorQuantizer(seed=42)
    palette = quantizer.quantize_kmeans(image, k=8)
    reduced = quantizer.map_to_quantized_palette(image, palette)
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np
from sklearn.metrics import pairwise_distances_argmin

from vectrace.types import CancellationToken, ColorPalette, RasterImage, is_cancelled


logger = logging.getLogger(__name__)

BUCKET_SIZE = 8
BLACK = (0, 0, 0, 255)

# Perceptual weights used for photographic palette matching
LUMA_WEIGHTS = (0.3, 0.59, 0.11)

QUANTIZE_METHODS = ("frequency", "kmeans", "median_cut")


def _to_colors(array: np.ndarray):
    array = np.clip(np.rint(array), 0, 255).astype(int)
    return [tuple(int(v) for v in row) for row in array]


class ColorQuantizer:
    """
    Palette extraction and pixel remapping.

    Args:
        seed: Seed for K-means centroid initialization. Fixed by default so
            repeated runs give identical palettes.
        max_samples: Upper bound on pixels fed to K-means.
    """

    def __init__(self, seed: Optional[int] = 42, max_samples: int = 10000):
        self.seed = seed
        self.max_samples = max_samples

    # ------------------------------------------------------------------
    # Pixel access
    # ------------------------------------------------------------------

    @staticmethod
    def _pixels(image: RasterImage, visible_only: bool = False) -> np.ndarray:
        pixels = image.pixels.reshape(-1, 4)
        if visible_only:
            pixels = pixels[pixels[:, 3] > 0]
        return pixels

    def _sample(self, pixels: np.ndarray) -> np.ndarray:
        if len(pixels) <= self.max_samples:
            return pixels
        step = len(pixels) // self.max_samples
        return pixels[::step][:self.max_samples]

    # ------------------------------------------------------------------
    # Palette construction
    # ------------------------------------------------------------------

    def extract_palette(self, image: RasterImage, max_colors: int = 256,
                        visible_only: bool = False) -> ColorPalette:
        """
        Most frequent colors after bucketing RGB to 8-step granularity.

        Each entry is the mean RGBA of the pixels in its bucket, weighted by
        the bucket's pixel count. Ties keep first-appearance order.
        """
        pixels = self._pixels(image, visible_only)
        if len(pixels) == 0 or max_colors <= 0:
            return ColorPalette([], [])

        keys = (pixels[:, :3] // BUCKET_SIZE).astype(np.int32)
        packed = (keys[:, 0] << 10) | (keys[:, 1] << 5) | keys[:, 2]
        _, first, inverse, counts = np.unique(
            packed, return_index=True, return_inverse=True, return_counts=True
        )
        inverse = inverse.reshape(-1)

        sums = np.zeros((len(counts), 4), dtype=np.float64)
        np.add.at(sums, inverse, pixels.astype(np.float64))
        means = sums / counts[:, None]

        order = np.lexsort((first, -counts))[:max_colors]
        palette = ColorPalette(_to_colors(means[order]), [int(c) for c in counts[order]])
        logger.debug(f"Frequency palette: {len(palette)} colors from {len(counts)} buckets")
        return palette

    def quantize_kmeans(self, image: RasterImage, k: int, max_iter: int = 10,
                        visible_only: bool = False,
                        cancel: Optional[CancellationToken] = None) -> ColorPalette:
        """
        K-means palette with exactly ``k`` entries.

        Args:
            image: Source image
            k: Palette size
            max_iter: Maximum Lloyd iterations
            visible_only: Ignore fully transparent pixels
            cancel: Optional cancellation token, polled every iteration

        Returns:
            ColorPalette of length k, weighted by cluster size
        """
        k = max(1, int(k))
        pixels = self._sample(self._pixels(image, visible_only)).astype(np.float64)
        if len(pixels) == 0:
            return ColorPalette([BLACK] * k, [1] * k)

        distinct, first = np.unique(pixels, axis=0, return_index=True)
        if len(distinct) <= k:
            # Fewer distinct colors than clusters: repeat them in order of appearance
            distinct = distinct[np.argsort(first)]
            centroids = distinct[np.arange(k) % len(distinct)].copy()
        else:
            rng = np.random.default_rng(self.seed)
            centroids = pixels[rng.choice(len(pixels), size=k, replace=False)].copy()

        labels = pairwise_distances_argmin(pixels, centroids)
        for iteration in range(max_iter):
            if is_cancelled(cancel):
                logger.warning(f"K-means cancelled after {iteration} iterations")
                break
            counts = np.bincount(labels, minlength=k)
            sums = np.zeros_like(centroids)
            np.add.at(sums, labels, pixels)
            updated = centroids.copy()
            filled = counts > 0
            updated[filled] = np.rint(sums[filled] / counts[filled, None])

            movement = np.linalg.norm(updated - centroids, axis=1).max()
            centroids = updated
            labels = pairwise_distances_argmin(pixels, centroids)
            if movement < 1.0:
                logger.debug(f"K-means converged after {iteration + 1} iterations")
                break

        weights = np.maximum(np.bincount(labels, minlength=k), 1)
        return ColorPalette(_to_colors(centroids), [int(w) for w in weights])

    def quantize_median_cut(self, image: RasterImage, k: int,
                            visible_only: bool = False) -> ColorPalette:
        """
        Median-cut palette with at most ``2 ** ceil(log2(k))`` entries.

        The bucket with the widest RGB range is split at the median of its
        longest axis until the target count is reached or nothing is left
        to split.
        """
        pixels = self._pixels(image, visible_only)
        if len(pixels) == 0:
            return ColorPalette([BLACK], [0])

        target = 1 << max(0, math.ceil(math.log2(max(1, int(k)))))
        buckets = [pixels]

        while len(buckets) < target:
            ranges = [
                (b[:, :3].max(axis=0).astype(int) - b[:, :3].min(axis=0).astype(int)) if len(b) > 1
                else np.zeros(3, dtype=int)
                for b in buckets
            ]
            widest = max(range(len(buckets)), key=lambda i: ranges[i].max())
            if ranges[widest].max() == 0:
                break
            bucket = buckets[widest]
            axis = int(np.argmax(ranges[widest]))
            ordered = bucket[np.argsort(bucket[:, axis], kind="stable")]
            middle = len(ordered) // 2
            buckets[widest:widest + 1] = [ordered[:middle], ordered[middle:]]

        means = np.array([b.astype(np.float64).mean(axis=0) for b in buckets])
        return ColorPalette(_to_colors(means), [len(b) for b in buckets])

    def quantize(self, image: RasterImage, method: str, k: int, **kwargs) -> ColorPalette:
        """Build a palette with the named method (frequency, kmeans or median_cut)."""
        if method == "frequency":
            return self.extract_palette(image, k, visible_only=kwargs.get("visible_only", False))
        if method == "kmeans":
            return self.quantize_kmeans(image, k, **kwargs)
        if method == "median_cut":
            return self.quantize_median_cut(image, k, visible_only=kwargs.get("visible_only", False))
        raise ValueError(f"Unknown quantization method '{method}'. Use one of {QUANTIZE_METHODS}")

    # ------------------------------------------------------------------
    # Remapping
    # ------------------------------------------------------------------

    @staticmethod
    def _weights(channel_weights: Optional[Sequence[float]]) -> np.ndarray:
        if channel_weights is None:
            return np.ones(3)
        return np.sqrt(np.asarray(channel_weights, dtype=np.float64))

    def map_to_quantized_palette(self, image: RasterImage, palette: ColorPalette,
                                 channel_weights: Optional[Sequence[float]] = None,
                                 keep_alpha: bool = False) -> RasterImage:
        """
        Replace every pixel with its nearest palette color.

        Distance is Euclidean over RGB, optionally weighted per channel;
        ties go to the earliest palette entry. Applying the same palette
        twice gives the same image as applying it once.
        """
        if len(palette) == 0:
            return image

        scale = self._weights(channel_weights)
        colors = palette.to_array()
        pixels = image.pixels.reshape(-1, 4)
        labels = pairwise_distances_argmin(pixels[:, :3] * scale, colors[:, :3] * scale)

        mapped = colors[labels].astype(np.uint8)
        if keep_alpha:
            mapped[:, 3] = pixels[:, 3]
        return RasterImage(image.width, image.height, mapped.reshape(image.height, image.width, 4))

    def dither_floyd_steinberg(self, image: RasterImage, palette: ColorPalette,
                               channel_weights: Optional[Sequence[float]] = None,
                               keep_alpha: bool = False,
                               cancel: Optional[CancellationToken] = None) -> RasterImage:
        """
        Map to the palette with Floyd-Steinberg error diffusion.

        Quantization error is pushed to the right (7/16), lower-left (3/16),
        below (5/16) and lower-right (1/16) neighbors, clamped to 0..255.
        When cancelled, the remaining rows are mapped without diffusion.
        """
        if len(palette) == 0:
            return image

        scale = self._weights(channel_weights)
        colors = palette.to_array()
        scaled_palette = colors[:, :3] * scale
        height, width = image.height, image.width
        buffer = image.pixels[:, :, :3].astype(np.float64)
        output = np.empty((height, width, 4), dtype=np.uint8)

        for y in range(height):
            if is_cancelled(cancel):
                logger.warning(f"Dithering cancelled at row {y}/{height}")
                rest = np.clip(buffer[y:], 0, 255).reshape(-1, 3)
                labels = pairwise_distances_argmin(rest * scale, scaled_palette)
                output[y:] = colors[labels].reshape(height - y, width, 4).astype(np.uint8)
                break
            # Only the rightward error is sequential; the next row gets the
            # rest of the row's error in one pass
            row = buffer[y]
            errors = np.empty((width, 3), dtype=np.float64)
            indices = np.empty(width, dtype=np.intp)
            for x in range(width):
                old = np.clip(row[x], 0, 255)
                index = int(np.argmin(((scaled_palette - old * scale) ** 2).sum(axis=1)))
                indices[x] = index
                errors[x] = old - colors[index, :3]
                if x + 1 < width:
                    row[x + 1] += errors[x] * (7 / 16)
            output[y] = colors[indices]

            if y + 1 < height:
                below = buffer[y + 1]
                below[:-1] += errors[1:] * (3 / 16)
                below += errors * (5 / 16)
                below[1:] += errors[:-1] * (1 / 16)

        if keep_alpha:
            output[:, :, 3] = image.pixels[:, :, 3]
        return RasterImage(width, height, output)
