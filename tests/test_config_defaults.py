"""Tests for configuration loading and defaults."""

from __future__ import annotations

from pathlib import Path

from config.controller import ConfigController


def _reset_singletons() -> None:
    ConfigController._instance = None


def test_config_controller_fills_pipeline_defaults(tmp_path: Path, monkeypatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text("logging_level: debug\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    cfg = ConfigController.get_instance().get_config()

    assert cfg["logging_level"] == "DEBUG"
    assert cfg["compression"]["max_size_kb"] == 800
    assert cfg["preprocess"]["quality"] == 0.9
    assert cfg["quality_gate"]["enabled"] is True
    assert cfg["rate_limit"]["window_s"] == 60.0
    assert cfg["rate_limit"]["surfaces"]["detect_disease"]["limit"] == 15
    assert cfg["rate_limit"]["surfaces"]["vision_detect"]["min_image_bytes"] == 10240
    assert cfg["rate_limit"]["surfaces"]["generate_lesson"]["limit"] == 20
    assert cfg["orchestrator"] == {"max_attempts": 3, "base_delay_s": 1.5, "timeout_s": 45.0}
    assert cfg["classifier"]["model"] == "gpt-4o-mini"
    assert cfg["languages"]["supported"] == ["en", "hi", "kn"]
    _reset_singletons()


def test_override_file_is_deep_merged(tmp_path: Path, monkeypatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text(
        "rate_limit:\n  surfaces:\n    detect_disease:\n      limit: 15\n",
        encoding="utf-8",
    )
    (config_dir / "override.yaml").write_text(
        "rate_limit:\n  surfaces:\n    detect_disease:\n      limit: 4\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    surface = ConfigController.get_instance().get_config()["rate_limit"]["surfaces"]["detect_disease"]

    assert surface["limit"] == 4
    assert surface["min_image_bytes"] == 5000
    _reset_singletons()


def test_missing_default_file_uses_builtin_values(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    cfg = ConfigController.get_instance().get_config()

    assert cfg["classifier"]["provider"] == "openai"
    _reset_singletons()


def test_packaged_default_config_matches_builtin_defaults() -> None:
    _reset_singletons()
    controller = ConfigController(config_dir=Path(__file__).resolve().parents[1] / "config")

    cfg = controller.get_config()

    assert cfg["rate_limit"]["surfaces"]["detect_disease"]["max_image_bytes"] == 6 * 1024 * 1024
    assert cfg["quality_gate"]["thresholds"]["min_quality_score"] == 40
    _reset_singletons()
