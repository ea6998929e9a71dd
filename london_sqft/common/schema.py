"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from london_sqft.common.errors import ConfigError


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive(value, ctx: str) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_pipeline_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {
        "baseline_district",
        "london_areas",
        "matching",
        "filters",
        "aggregation",
        "output",
    }
    _assert_required_keys(cfg, top_required, "pipeline config")
    _assert_no_unknown_keys(cfg, top_required, "pipeline config", allow_unknown)

    if not isinstance(cfg["london_areas"], list) or not cfg["london_areas"]:
        raise ConfigError("pipeline.london_areas must be a non-empty list")

    _assert_required_keys(
        cfg["matching"],
        {"accept_score", "min_substring_length", "fallback_match_rate", "fallback_min_substring_length"},
        "matching",
    )
    if cfg["matching"]["fallback_min_substring_length"] >= cfg["matching"]["min_substring_length"]:
        raise ConfigError("matching.fallback_min_substring_length must be below matching.min_substring_length")
    if not 0 <= cfg["matching"]["fallback_match_rate"] <= 1:
        raise ConfigError("matching.fallback_match_rate must be within [0, 1]")

    filters = cfg["filters"]
    _assert_required_keys(
        filters,
        {"max_floor_area_sqm", "min_price_per_sqft", "max_price_per_sqft"},
        "filters",
    )
    for key in ("max_floor_area_sqm", "min_price_per_sqft", "max_price_per_sqft"):
        _assert_positive(filters[key], f"filters.{key}")
    if filters["min_price_per_sqft"] >= filters["max_price_per_sqft"]:
        raise ConfigError("filters.min_price_per_sqft must be below filters.max_price_per_sqft")

    _assert_required_keys(cfg["aggregation"], {"min_sample_size", "min_category_sample_size"}, "aggregation")
    _assert_positive(cfg["aggregation"]["min_sample_size"], "aggregation.min_sample_size")
    _assert_positive(cfg["aggregation"]["min_category_sample_size"], "aggregation.min_category_sample_size")

    _assert_required_keys(cfg["output"], {"filename"}, "output")
    return cfg


def validate_sources_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, {"transactions", "buildings"}, "sources config")
    _assert_no_unknown_keys(cfg, {"transactions", "buildings"}, "sources config", allow_unknown)

    _assert_required_keys(cfg["transactions"], {"years", "filename_template", "url_template"}, "transactions")
    if not isinstance(cfg["transactions"]["years"], list) or not cfg["transactions"]["years"]:
        raise ConfigError("transactions.years must be a non-empty list")

    _assert_required_keys(
        cfg["buildings"],
        {"directory", "url_template", "auth_env_var", "boroughs"},
        "buildings",
    )
    for idx, borough in enumerate(cfg["buildings"]["boroughs"] or []):
        _assert_required_keys(borough, {"code", "name"}, f"buildings.boroughs[{idx}]")
    return cfg
