"""Resize-to-fit and byte-budgeted JPEG compression."""

from __future__ import annotations

from dataclasses import dataclass
import io
import math
from typing import Any, Mapping

from PIL import Image

from core.logging import logger
from imaging.buffers import ImageBuffer, ImageDecodeError, ensure_buffer


MIN_DIMENSION = 320
MAX_DIMENSION = 4096
QUALITY_STEP = 0.1
QUALITY_FLOOR = 0.4
MAX_ITERATIONS = 5
JPEG_FORMAT = "JPEG"


@dataclass(frozen=True)
class CompressionOptions:
    """Target bounds and byte budget for compression."""

    max_width: int = 1280
    max_height: int = 1280
    quality: float = 0.85
    max_size_kb: int = 800

    @property
    def max_size_bytes(self) -> int:
        return int(self.max_size_kb) * 1024

    @classmethod
    def from_config(cls, section: Mapping[str, Any] | None) -> "CompressionOptions":
        section = section or {}
        defaults = cls()
        return cls(
            max_width=int(section.get("max_width", defaults.max_width)),
            max_height=int(section.get("max_height", defaults.max_height)),
            quality=float(section.get("quality", defaults.quality)),
            max_size_kb=int(section.get("max_size_kb", defaults.max_size_kb)),
        )


@dataclass(frozen=True)
class CompressedImage:
    """Encoded output of a compression or preprocessing pass."""

    data: bytes
    width: int
    height: int
    quality: float
    iterations: int = 0

    @property
    def size_kb(self) -> int:
        return round(len(self.data) / 1024)


def target_dimensions(width: int, height: int, options: CompressionOptions) -> tuple[int, int]:
    """Return output dimensions for a source of ``width`` x ``height``.

    Images larger than the target box shrink uniformly to fit it; smaller ones
    keep their size. The shorter side is then raised to ``MIN_DIMENSION`` if
    needed, even when that means upscaling.

    Raises:
        ImageDecodeError: the aspect ratio is so extreme that raising the
            shorter side would push the longer one past ``MAX_DIMENSION``.
    """

    if width <= 0 or height <= 0:
        raise ValueError(f"invalid image dimensions {width}x{height}")

    if width > options.max_width or height > options.max_height:
        ratio = min(options.max_width / width, options.max_height / height)
        width = max(1, round(width * ratio))
        height = max(1, round(height * ratio))

    shorter = min(width, height)
    if shorter < MIN_DIMENSION:
        scale = MIN_DIMENSION / shorter
        width = max(MIN_DIMENSION, round(width * scale))
        height = max(MIN_DIMENSION, round(height * scale))
        if max(width, height) > MAX_DIMENSION:
            raise ImageDecodeError(
                f"aspect ratio too extreme to resize: {width}x{height} exceeds {MAX_DIMENSION}px"
            )

    return width, height


def render(image: ImageBuffer, width: int, height: int) -> Image.Image:
    """Resample ``image`` to exactly ``width`` x ``height`` as an RGB image."""

    source = image.to_pil()
    if (width, height) != source.size:
        source = source.resize((width, height), Image.Resampling.LANCZOS)
    return source.convert("RGB")


def encode_jpeg(image: Image.Image, quality: float) -> bytes:
    """Encode with a 0-1 quality setting."""

    buffer = io.BytesIO()
    pil_quality = max(1, min(95, int(round(quality * 100))))
    image.convert("RGB").save(buffer, format=JPEG_FORMAT, quality=pil_quality, optimize=True)
    return buffer.getvalue()


def encode_within_budget(
    rendered: Image.Image, options: CompressionOptions
) -> tuple[bytes, float, int]:
    """Encode ``rendered``, stepping quality down until it fits the byte budget.

    Quality drops by ``QUALITY_STEP`` per re-encode, never below
    ``QUALITY_FLOOR`` and at most ``MAX_ITERATIONS`` times, so the output can
    still exceed the budget.

    Returns:
        The encoded bytes, the final quality and the number of re-encodes.
    """

    quality = float(options.quality)
    data = encode_jpeg(rendered, quality)
    budget = options.max_size_bytes
    iterations = 0
    while len(data) > budget and quality > QUALITY_FLOOR and iterations < MAX_ITERATIONS:
        quality = max(QUALITY_FLOOR, round(quality - QUALITY_STEP, 2))
        data = encode_jpeg(rendered, quality)
        iterations += 1
    return data, quality, iterations


def compress_image(
    source: ImageBuffer | bytes | str,
    options: CompressionOptions | None = None,
) -> CompressedImage:
    """Resize ``source`` and re-encode it until it fits the byte budget.

    Raises:
        ImageDecodeError: ``source`` could not be decoded or resized.
    """

    options = options or CompressionOptions()
    image = ensure_buffer(source)
    width, height = target_dimensions(image.width, image.height, options)
    rendered = render(image, width, height)
    data, quality, iterations = encode_within_budget(rendered, options)

    result = CompressedImage(
        data=data,
        width=width,
        height=height,
        quality=quality,
        iterations=iterations,
    )
    logger.info(
        "[Compress] %sx%s -> %sx%s, %sKB, quality=%.2f, iterations=%s",
        image.width,
        image.height,
        width,
        height,
        result.size_kb,
        quality,
        iterations,
    )
    return result


def resize(source: ImageBuffer | bytes | str, options: CompressionOptions | None = None) -> bytes:
    """Return the compressed JPEG bytes for ``source``."""

    return compress_image(source, options).data


def estimate_processing_time(size_kb: float) -> str:
    """Rough upload-plus-analysis wait shown to users on mobile connections."""

    seconds = math.ceil(size_kb / 100) + 3
    if seconds < 5:
        return "~3-5 seconds"
    if seconds < 10:
        return "~5-10 seconds"
    if seconds < 20:
        return "~10-15 seconds"
    return "~15-20 seconds"
