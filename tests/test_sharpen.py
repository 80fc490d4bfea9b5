"""Tests for the sharpening filter and preprocessing path."""

from __future__ import annotations

import io

import numpy as np
from PIL import Image

from imaging.buffers import ImageBuffer
from imaging.compression import MAX_ITERATIONS, QUALITY_FLOOR, CompressionOptions
from imaging.sharpen import PREPROCESS_OPTIONS, preprocess_for_detection, sharpen


def _rgba(height: int, width: int, value: int = 0, alpha: int = 255) -> np.ndarray:
    pixels = np.full((height, width, 4), value, dtype=np.uint8)
    pixels[..., 3] = alpha
    return pixels


def test_uniform_image_is_unchanged_and_alpha_forced_opaque() -> None:
    source = ImageBuffer.from_pixels(_rgba(5, 5, value=100, alpha=0))

    result = sharpen(source)

    assert result.size == source.size
    assert np.all(result.pixels[..., :3] == 100)
    assert np.all(result.pixels[..., 3] == 255)


def test_isolated_bright_pixel_is_amplified_and_clamped() -> None:
    pixels = _rgba(3, 3)
    pixels[1, 1, :3] = 100

    result = sharpen(ImageBuffer.from_pixels(pixels))

    assert tuple(result.pixels[1, 1, :3]) == (255, 255, 255)
    assert np.all(result.pixels[0, :, :3] == 0)


def test_rounding_is_half_up() -> None:
    pixels = _rgba(3, 3)
    pixels[1, 1, :3] = 1
    pixels[0, 1, :3] = 5

    result = sharpen(ImageBuffer.from_pixels(pixels))

    # 3 * 1 - 0.5 * 5 = 0.5
    assert result.pixels[1, 1, 0] == 1
    assert result.pixels[0, 1, 0] == 5


def test_source_buffer_is_not_modified() -> None:
    pixels = _rgba(4, 4)
    pixels[1, 1, :3] = 80
    source = ImageBuffer.from_pixels(pixels)

    sharpen(source)

    assert source.pixels[1, 1, 0] == 80
    assert source.pixels.flags.writeable is False


def test_preprocess_fits_into_1024_box() -> None:
    rng = np.random.default_rng(5)
    buffer = io.BytesIO()
    Image.fromarray(rng.integers(0, 256, size=(1500, 2048, 3), dtype=np.uint8)).save(
        buffer, format="PNG"
    )

    result = preprocess_for_detection(buffer.getvalue())

    assert (result.width, result.height) == (1024, 750)
    with Image.open(io.BytesIO(result.data)) as image:
        assert image.format == "JPEG"


def test_preprocess_steps_quality_down_to_fit_byte_budget() -> None:
    rng = np.random.default_rng(9)
    buffer = io.BytesIO()
    Image.fromarray(rng.integers(0, 256, size=(1024, 1024, 3), dtype=np.uint8)).save(
        buffer, format="PNG"
    )
    options = CompressionOptions(max_width=1024, max_height=1024, quality=0.9, max_size_kb=50)

    result = preprocess_for_detection(buffer.getvalue(), options)

    assert 0 < result.iterations <= MAX_ITERATIONS
    assert QUALITY_FLOOR <= result.quality < 0.9


def test_preprocess_keeps_quality_when_within_budget() -> None:
    flat = ImageBuffer.from_pixels(_rgba(600, 800, value=90))

    result = preprocess_for_detection(flat)

    assert result.iterations == 0
    assert result.quality == PREPROCESS_OPTIONS.quality
