"""Decoded image buffers and input decoding helpers."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
import io

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError


DATA_URI_PREFIX = "data:"


class ImageDecodeError(ValueError):
    """Raised when caller input cannot be turned into pixels.

    Retrying with the same source cannot succeed; a fresh source is needed.
    """


@dataclass(frozen=True)
class ImageBuffer:
    """RGBA pixels plus the encoded form they were decoded from.

    ``pixels`` has shape ``(height, width, 4)`` and dtype ``uint8`` and is
    read-only. Stages derive new buffers instead of writing into this one.
    Derived buffers carry an empty ``encoded`` payload.
    """

    pixels: np.ndarray
    encoded: bytes = b""

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @classmethod
    def from_pixels(cls, pixels: np.ndarray, encoded: bytes = b"") -> "ImageBuffer":
        array = np.asarray(pixels)
        if array.ndim != 3 or array.shape[2] != 4:
            raise ValueError(f"expected RGBA pixels with shape (h, w, 4), got {array.shape}")
        array = np.array(array, dtype=np.uint8, copy=True)
        array.setflags(write=False)
        return cls(pixels=array, encoded=encoded)

    @classmethod
    def from_pil(cls, image: Image.Image, encoded: bytes = b"") -> "ImageBuffer":
        return cls.from_pixels(np.asarray(image.convert("RGBA")), encoded=encoded)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.ascontiguousarray(self.pixels))


def decode_payload(payload: bytes | str) -> bytes:
    """Return the encoded image bytes for raw bytes, a data URI or bare base64."""

    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if not isinstance(payload, str):
        raise ImageDecodeError(f"unsupported image payload type: {type(payload).__name__}")

    text = payload.strip()
    if text.startswith(DATA_URI_PREFIX):
        header, sep, text = text.partition(",")
        if not sep or ";base64" not in header:
            raise ImageDecodeError("data URI is not base64 encoded")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError(f"invalid base64 image payload: {exc}") from exc


def decode_image(data: bytes | str) -> ImageBuffer:
    """Decode caller input into an ``ImageBuffer``.

    Raises:
        ImageDecodeError: The payload is not a readable image.
    """

    encoded = decode_payload(data)
    if not encoded:
        raise ImageDecodeError("empty image payload")
    try:
        with Image.open(io.BytesIO(encoded)) as image:
            image.load()
            upright = ImageOps.exif_transpose(image)
            return ImageBuffer.from_pil(upright, encoded=encoded)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"could not decode image: {exc}") from exc


def ensure_buffer(source: ImageBuffer | bytes | str) -> ImageBuffer:
    if isinstance(source, ImageBuffer):
        return source
    return decode_image(source)
