"""Tests for shared logging helpers."""

from __future__ import annotations

import logging

from core import logging as core_logging


def test_set_level_accepts_names_and_falls_back_to_info() -> None:
    previous = core_logging.logger.level
    try:
        assert core_logging.set_level("debug") == logging.DEBUG
        assert core_logging.logger.level == logging.DEBUG
        assert core_logging.set_level("chatty") == logging.INFO
    finally:
        core_logging.logger.setLevel(previous)


def test_clip_for_log_flattens_and_caps_text() -> None:
    assert core_logging.clip_for_log(None) == ""
    assert core_logging.clip_for_log("a\n  b") == "a b"
    clipped = core_logging.clip_for_log("x" * 50, limit=10)
    assert len(clipped) == 10
    assert clipped.endswith("…")


def test_file_logging_writes_records(tmp_path) -> None:
    log_path = tmp_path / "logs" / "agri.log"
    previous = core_logging.logger.level
    core_logging.logger.setLevel(logging.INFO)
    try:
        core_logging.enable_file_logging(log_path)
        core_logging.logger.info("[Test] file sink check")
    finally:
        core_logging.disable_file_logging()
        core_logging.logger.setLevel(previous)

    assert "[Test] file sink check" in log_path.read_text(encoding="utf-8")
