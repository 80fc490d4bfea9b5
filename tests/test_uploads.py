"""Tests for pre-decode upload checks."""

from __future__ import annotations

from imaging.uploads import validate_upload


def test_accepts_supported_photo() -> None:
    check = validate_upload("image/jpeg", 200 * 1024)

    assert check.valid is True
    assert check.error is None


def test_rejects_unsupported_type() -> None:
    assert validate_upload("image/gif", 200 * 1024).valid is False


def test_rejects_out_of_range_sizes() -> None:
    too_big = validate_upload("image/png", 16 * 1024 * 1024)
    too_small = validate_upload("image/webp", 2048)

    assert too_big.valid is False
    assert "15MB" in (too_big.error or "")
    assert too_small.valid is False
