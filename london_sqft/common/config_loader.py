"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from london_sqft.common.errors import ConfigError
from london_sqft.common.fs import read_yaml
from london_sqft.common.schema import validate_pipeline_config, validate_sources_config


@dataclass(frozen=True)
class ConfigBundle:
    pipeline: dict
    sources: dict


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    def _overlay(name: str) -> Path | None:
        return (overlay_config_dir / name) if overlay_config_dir is not None else None

    pipeline = validate_pipeline_config(
        _load_yaml_with_overlay(config_dir / "pipeline.yml", _overlay("pipeline.yml")),
        allow_unknown=allow_unknown,
    )
    sources = validate_sources_config(
        _load_yaml_with_overlay(config_dir / "sources.yml", _overlay("sources.yml")),
        allow_unknown=allow_unknown,
    )
    return ConfigBundle(pipeline=pipeline, sources=sources)
