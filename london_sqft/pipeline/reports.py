"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from london_sqft.common.config_loader import ConfigBundle
from london_sqft.common.constants import STAGES
from london_sqft.common.fs import read_json, write_json
from london_sqft.common.stages import StageTracker
from london_sqft.pipeline.aggregate import district_stats_artifact
from london_sqft.pipeline.export import export_artifact
from london_sqft.pipeline.match import matched_artifact
from london_sqft.pipeline.parse_buildings import buildings_artifact
from london_sqft.pipeline.parse_transactions import transactions_artifact

_PARSE_COUNT_KEYS = ("rows_read", "rows_accepted", "rows_skipped", "rows_filtered", "skip_reasons", "filter_reasons")
_MATCH_COUNT_KEYS = (
    "transactions_total",
    "no_building_for_postcode",
    "no_address_match",
    "outliers_discarded",
    "first_pass_matched",
    "first_pass_match_rate",
    "fallback_ran",
    "fallback_matched",
    "matched_total",
    "match_rate",
)


def _artifact_stats(path: Path) -> dict | None:
    if not path.exists():
        return None
    return read_json(path).get("stats", {})


def _pick(stats: dict | None, keys: tuple[str, ...]) -> dict | None:
    if stats is None:
        return None
    return {key: stats.get(key) for key in keys}


def write_run_summary(
    bundle: ConfigBundle,
    data_dir: Path,
    *,
    run_id: str,
    run_date: str,
    outcomes: dict[str, dict],
) -> Path:
    tracker = StageTracker.for_data_dir(data_dir)

    counts = {
        "transactions": _pick(_artifact_stats(transactions_artifact(data_dir)), _PARSE_COUNT_KEYS),
        "buildings": _pick(_artifact_stats(buildings_artifact(data_dir)), _PARSE_COUNT_KEYS),
        "matching": _pick(_artifact_stats(matched_artifact(data_dir)), _MATCH_COUNT_KEYS),
        "aggregation": _artifact_stats(district_stats_artifact(data_dir)),
    }

    output_path = export_artifact(bundle, data_dir)
    districts_emitted = None
    if tracker.is_complete("export"):
        districts_emitted = len(read_json(output_path))

    errors = [
        {"stage": stage, "error_code": outcome.get("error_code"), "message": outcome.get("message")}
        for stage, outcome in outcomes.items()
        if outcome.get("outcome") == "failed"
    ]
    blocked = sorted(stage for stage, outcome in outcomes.items() if outcome.get("outcome") == "blocked")

    status = "success"
    if errors and len(errors) + len(blocked) == len(outcomes):
        status = "error"
    elif errors or blocked:
        status = "partial"

    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    payload = {
        "run_id": run_id,
        "run_date": run_date,
        "status": status,
        "stages": {stage: outcomes.get(stage, {"outcome": "not_requested"}) for stage in STAGES},
        "stage_status": tracker.snapshot(),
        "counts": counts,
        "districts_emitted": districts_emitted,
        "output": str(output_path) if districts_emitted is not None else None,
        "errors": errors,
    }
    write_json(summary_path, payload)
    return summary_path
