"""Brightness, contrast and sharpness metrics over RGBA pixel arrays.

All functions are pure. Quality decisions are made on a centered square
sample of at most ``SAMPLE_SIZE`` pixels per side rather than the full frame;
a go/no-go verdict does not need full-resolution analysis.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from imaging.buffers import ImageBuffer


SAMPLE_SIZE = 400
SHARPNESS_NORMALIZATION = 10.0
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


@dataclass(frozen=True)
class PixelMetrics:
    """Scalar quality metrics for one sampled region."""

    brightness: float
    contrast: float
    sharpness: float


def luma(pixels: np.ndarray) -> np.ndarray:
    """Return per-pixel luma (Rec. 601 weights) as a float64 ``(h, w)`` array."""

    rgb = np.asarray(pixels)[..., :3].astype(np.float64)
    return rgb @ LUMA_WEIGHTS


def brightness(pixels: np.ndarray) -> float:
    values = luma(pixels)
    if values.size == 0:
        return 0.0
    return float(values.mean())


def contrast(pixels: np.ndarray, mean: float | None = None) -> float:
    """Population standard deviation of luma around ``mean``."""

    values = luma(pixels)
    if values.size == 0:
        return 0.0
    if mean is None:
        mean = float(values.mean())
    return float(np.sqrt(np.mean((values - mean) ** 2)))


def laplacian(gray: np.ndarray) -> np.ndarray:
    """Zero-sum 8-connected Laplacian over interior pixels.

    The result is ``(h - 2, w - 2)``; border pixels have no response.
    """

    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return np.zeros((0, 0), dtype=np.float64)
    center = gray[1:-1, 1:-1]
    neighbours = (
        gray[:-2, :-2]
        + gray[:-2, 1:-1]
        + gray[:-2, 2:]
        + gray[1:-1, :-2]
        + gray[1:-1, 2:]
        + gray[2:, :-2]
        + gray[2:, 1:-1]
        + gray[2:, 2:]
    )
    return 8.0 * center - neighbours


def sharpness(pixels: np.ndarray) -> float:
    """RMS Laplacian response divided by ``SHARPNESS_NORMALIZATION``."""

    response = laplacian(luma(pixels))
    if response.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(response**2)) / SHARPNESS_NORMALIZATION)


def sample_region(image: ImageBuffer, size: int = SAMPLE_SIZE) -> np.ndarray:
    """Return the centered square crop used for quality analysis."""

    side = min(image.width, image.height, int(size))
    top = (image.height - side) // 2
    left = (image.width - side) // 2
    return image.pixels[top : top + side, left : left + side]


def measure(image: ImageBuffer, sample_size: int = SAMPLE_SIZE) -> PixelMetrics:
    region = sample_region(image, sample_size)
    mean = brightness(region)
    return PixelMetrics(
        brightness=mean,
        contrast=contrast(region, mean),
        sharpness=sharpness(region),
    )
