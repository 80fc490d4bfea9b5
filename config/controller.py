"""Configuration controller for YAML-based settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


DEFAULT_SURFACES: dict[str, dict[str, int]] = {
    "detect_disease": {"limit": 15, "min_image_bytes": 5000, "max_image_bytes": 6 * 1024 * 1024},
    "vision_detect": {"limit": 12, "min_image_bytes": 10 * 1024, "max_image_bytes": 6 * 1024 * 1024},
    "generate_lesson": {"limit": 20},
}


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for configuration files."""

    config_dir: Path
    config_file: Path
    override_file: Path


class ConfigController:
    """Singleton controller for loading configuration."""

    _instance: "ConfigController | None" = None

    def __init__(self, config_file: str = "default.yaml", config_dir: Path | None = None) -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        config_dir = config_dir if config_dir is not None else Path("config")
        self.paths = ConfigPaths(
            config_dir=config_dir,
            config_file=config_dir / config_file,
            override_file=config_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()

    @classmethod
    def get_instance(cls) -> "ConfigController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self) -> None:
        """Load default.yaml, merge override.yaml on top and fill defaults.

        A missing default.yaml is not an error; every section then falls back
        to built-in values.
        """

        config: dict[str, Any] = {}
        if self.paths.config_file.exists():
            with self.paths.config_file.open("r", encoding="utf-8") as file:
                config = yaml.safe_load(file) or {}

        if self.paths.override_file.exists():
            with self.paths.override_file.open("r", encoding="utf-8") as file:
                override_config = yaml.safe_load(file) or {}
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._apply_defaults(config)

    def get_config(self) -> dict[str, Any]:
        """Return the currently loaded configuration."""

        return dict(self.config)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        merged = dict(base)
        for key, value in override.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _apply_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        """Fill every section the pipeline reads with typed defaults."""

        normalized = dict(config)
        normalized["logging_level"] = str(normalized.get("logging_level", "INFO")).upper()
        normalized["log_file"] = normalized.get("log_file") or None

        compression_cfg = dict(normalized.get("compression") or {})
        compression_cfg["max_width"] = int(compression_cfg.get("max_width", 1280))
        compression_cfg["max_height"] = int(compression_cfg.get("max_height", 1280))
        compression_cfg["quality"] = float(compression_cfg.get("quality", 0.85))
        compression_cfg["max_size_kb"] = int(compression_cfg.get("max_size_kb", 800))
        normalized["compression"] = compression_cfg

        preprocess_cfg = dict(normalized.get("preprocess") or {})
        preprocess_cfg["enabled"] = bool(preprocess_cfg.get("enabled", True))
        preprocess_cfg["max_width"] = int(preprocess_cfg.get("max_width", 1024))
        preprocess_cfg["max_height"] = int(preprocess_cfg.get("max_height", 1024))
        preprocess_cfg["quality"] = float(preprocess_cfg.get("quality", 0.9))
        normalized["preprocess"] = preprocess_cfg

        gate_cfg = dict(normalized.get("quality_gate") or {})
        gate_cfg["enabled"] = bool(gate_cfg.get("enabled", True))
        gate_cfg["thresholds"] = dict(gate_cfg.get("thresholds") or {})
        normalized["quality_gate"] = gate_cfg

        rate_cfg = dict(normalized.get("rate_limit") or {})
        rate_cfg["window_s"] = float(rate_cfg.get("window_s", 60.0))
        surfaces = {name: dict(values) for name, values in DEFAULT_SURFACES.items()}
        for name, values in (rate_cfg.get("surfaces") or {}).items():
            surfaces[name] = {**surfaces.get(name, {}), **dict(values or {})}
        rate_cfg["surfaces"] = surfaces
        normalized["rate_limit"] = rate_cfg

        classifier_cfg = dict(normalized.get("classifier") or {})
        classifier_cfg["provider"] = str(classifier_cfg.get("provider", "openai")).lower()
        classifier_cfg["model"] = str(classifier_cfg.get("model", "gpt-4o-mini"))
        classifier_cfg["base_url"] = str(
            classifier_cfg.get("base_url", "https://api.openai.com/v1")
        )
        classifier_cfg["timeout_s"] = float(classifier_cfg.get("timeout_s", 45.0))
        classifier_cfg["temperature"] = float(classifier_cfg.get("temperature", 0.2))
        classifier_cfg["max_tokens"] = int(classifier_cfg.get("max_tokens", 1500))
        normalized["classifier"] = classifier_cfg

        orchestrator_cfg = dict(normalized.get("orchestrator") or {})
        orchestrator_cfg["max_attempts"] = int(orchestrator_cfg.get("max_attempts", 3))
        orchestrator_cfg["base_delay_s"] = float(orchestrator_cfg.get("base_delay_s", 1.5))
        orchestrator_cfg["timeout_s"] = float(orchestrator_cfg.get("timeout_s", 45.0))
        normalized["orchestrator"] = orchestrator_cfg

        languages_cfg = dict(normalized.get("languages") or {})
        languages_cfg["default"] = str(languages_cfg.get("default", "en"))
        languages_cfg["supported"] = list(languages_cfg.get("supported") or ["en", "hi", "kn"])
        normalized["languages"] = languages_cfg
        return normalized
