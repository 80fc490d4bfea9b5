"""Diagnostics routines for the imaging pipeline."""

from __future__ import annotations

import importlib.util

from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe(available_modules: set[str] | None = None) -> DiagnosticResult:
    """Run an imaging probe covering numpy, Pillow and a JPEG round trip.

    Args:
        available_modules: Optional override set for offline testing.

    Returns:
        Diagnostic result indicating imaging readiness.
    """

    name = "imaging"
    missing: list[str] = []
    for module_name in ("numpy", "PIL"):
        if available_modules is not None:
            is_available = module_name in available_modules
        else:
            is_available = importlib.util.find_spec(module_name) is not None
        if not is_available:
            missing.append(module_name)

    if missing:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Missing imaging deps: {', '.join(missing)}",
        )
    if available_modules is not None:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.PASS,
            details="Imaging dependencies available",
        )

    import numpy as np

    from imaging.buffers import ImageBuffer, ImageDecodeError, decode_image
    from imaging.compression import encode_jpeg

    pixels = np.zeros((8, 8, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    try:
        encoded = encode_jpeg(ImageBuffer.from_pixels(pixels).to_pil(), 0.85)
        decoded = decode_image(encoded)
    except (ImageDecodeError, OSError) as exc:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"JPEG round trip failed: {exc}",
        )
    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details=f"JPEG round trip ok ({decoded.width}x{decoded.height}, {len(encoded)} bytes)",
    )
