"""Edge-enhancing convolution for the detection preprocessing path.

Sharpening amplifies sensor noise on poor captures, so it is applied only by
``preprocess_for_detection`` and never by plain compression.
"""

from __future__ import annotations

import numpy as np

from core.logging import logger
from imaging.buffers import ImageBuffer, ensure_buffer
from imaging.compression import (
    CompressedImage,
    CompressionOptions,
    encode_within_budget,
    render,
    target_dimensions,
)


CENTER_WEIGHT = 3.0
NEIGHBOUR_WEIGHT = -0.5
PREPROCESS_OPTIONS = CompressionOptions(max_width=1024, max_height=1024, quality=0.9)


def sharpen(image: ImageBuffer) -> ImageBuffer:
    """Return a sharpened copy of ``image`` with the same dimensions.

    Interior pixels get ``3 * c - 0.5 * (n + s + e + w)`` per RGB channel,
    rounded half-up and clamped. Border pixels keep their source colour.
    Alpha is fully opaque everywhere.
    """

    out = np.array(image.pixels, dtype=np.uint8, copy=True)
    if image.height >= 3 and image.width >= 3:
        rgb = image.pixels[..., :3].astype(np.float64)
        neighbours = rgb[:-2, 1:-1] + rgb[2:, 1:-1] + rgb[1:-1, :-2] + rgb[1:-1, 2:]
        response = CENTER_WEIGHT * rgb[1:-1, 1:-1] + NEIGHBOUR_WEIGHT * neighbours
        out[1:-1, 1:-1, :3] = np.clip(np.floor(response + 0.5), 0, 255).astype(np.uint8)
    out[..., 3] = 255
    return ImageBuffer.from_pixels(out)


def preprocess_for_detection(
    source: ImageBuffer | bytes | str,
    options: CompressionOptions | None = None,
) -> CompressedImage:
    """Fit, sharpen once and encode an image for the classifier.

    The sharpened frame goes through the same byte-budgeted quality loop as
    ``compress_image``.

    Raises:
        ImageDecodeError: ``source`` could not be decoded or resized.
    """

    options = options or PREPROCESS_OPTIONS
    image = ensure_buffer(source)
    width, height = target_dimensions(image.width, image.height, options)
    fitted = ImageBuffer.from_pil(render(image, width, height))
    sharpened = sharpen(fitted)
    data, quality, iterations = encode_within_budget(sharpened.to_pil(), options)
    result = CompressedImage(
        data=data,
        width=width,
        height=height,
        quality=quality,
        iterations=iterations,
    )
    logger.info(
        "[Preprocess] %sx%s, %sKB, quality=%.2f, iterations=%s",
        width,
        height,
        result.size_kb,
        quality,
        iterations,
    )
    return result
