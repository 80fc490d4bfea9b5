"""Image quality analysis and preprocessing exports."""

from imaging.buffers import ImageBuffer, ImageDecodeError, decode_image
from imaging.compression import (
    CompressedImage,
    CompressionOptions,
    compress_image,
    estimate_processing_time,
    resize,
)
from imaging.quality import QualityReport, QualityThresholds, evaluate
from imaging.sharpen import preprocess_for_detection, sharpen
from imaging.uploads import UploadCheck, validate_upload

__all__ = [
    "ImageBuffer",
    "ImageDecodeError",
    "decode_image",
    "CompressedImage",
    "CompressionOptions",
    "compress_image",
    "estimate_processing_time",
    "resize",
    "QualityReport",
    "QualityThresholds",
    "evaluate",
    "preprocess_for_detection",
    "sharpen",
    "UploadCheck",
    "validate_upload",
]
