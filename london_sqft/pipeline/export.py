"""District statistics JSON export."""

from __future__ import annotations

import logging
from pathlib import Path

from london_sqft.common.config_loader import ConfigBundle
from london_sqft.common.errors import MissingInputFile
from london_sqft.common.fs import write_json
from london_sqft.common.models import DistrictStatistic
from london_sqft.pipeline.aggregate import district_stats_artifact, load_district_statistics

OUTPUT_FIELDS = {
    "district": "district",
    "median_price_per_sqft": "medianPricePerSqFt",
    "median_houses_price_per_sqft": "medianHousesPricePerSqFt",
    "median_flats_price_per_sqft": "medianFlatsPricePerSqFt",
    "sample_size": "sampleSize",
    "houses_sample_size": "housesSampleSize",
    "flats_sample_size": "flatsSampleSize",
    "median_floor_area_sqm": "medianFloorAreaSqM",
    "percent_diff": "percentDiff",
    "percent_diff_houses": "percentDiffHouses",
    "percent_diff_flats": "percentDiffFlats",
    "transaction_count": "transactionCount",
    "match_rate": "matchRate",
}


def export_artifact(bundle: ConfigBundle, data_dir: Path) -> Path:
    return data_dir / "out" / bundle.pipeline["output"]["filename"]


def _serialize_statistic(stat: DistrictStatistic) -> dict:
    row = stat.to_dict()
    return {public: row[name] for name, public in OUTPUT_FIELDS.items()}


def write_district_json(path: Path, statistics: list[DistrictStatistic]) -> Path:
    ordered = sorted(statistics, key=lambda stat: stat.district)
    write_json(path, [_serialize_statistic(stat) for stat in ordered])
    return path


def run_export(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
) -> dict:
    source = district_stats_artifact(data_dir)
    if not source.exists():
        raise MissingInputFile(source)
    statistics = load_district_statistics(source)
    out_path = write_district_json(export_artifact(bundle, data_dir), statistics)
    return {"run_id": run_id, "stats": {"path": str(out_path), "districts": len(statistics)}}
