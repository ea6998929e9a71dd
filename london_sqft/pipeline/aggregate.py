"""Per-district price-per-sqft medians relative to a baseline district."""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Mapping

from london_sqft.common.config_loader import ConfigBundle
from london_sqft.common.errors import MissingInputFile, NoBaselineStatistic
from london_sqft.common.fs import read_json, write_json
from london_sqft.common.logging import log_event
from london_sqft.common.models import DistrictStatistic, MatchedObservation
from london_sqft.common.stats import median, percent_diff, round_whole
from london_sqft.pipeline.match import load_observations, matched_artifact

STAGE = "aggregate"


def district_stats_artifact(data_dir: Path) -> Path:
    return data_dir / "intermediate" / "district_stats.json"


class _DistrictSamples:
    def __init__(self) -> None:
        self.all: list[float] = []
        self.houses: list[float] = []
        self.flats: list[float] = []
        self.floor_areas: list[float] = []

    def add(self, observation: MatchedObservation) -> None:
        self.all.append(observation.price_per_sqft)
        self.floor_areas.append(observation.floor_area_sqm)
        category = observation.transaction_property_category
        if category.is_house:
            self.houses.append(observation.price_per_sqft)
        elif category.is_flat:
            self.flats.append(observation.price_per_sqft)


def _category_median(values: list[float], min_category_sample_size: int) -> int | None:
    if len(values) < min_category_sample_size:
        return None
    return round_whole(median(values))


def aggregate_districts(
    observations: Iterable[MatchedObservation],
    *,
    baseline_district: str,
    min_sample_size: int,
    min_category_sample_size: int,
    transactions_by_district: Mapping[str, int] | None = None,
) -> list[DistrictStatistic]:
    """Build one statistic per district with enough matches, sorted by district.

    Raises ``NoBaselineStatistic`` when the baseline district does not qualify.
    """
    samples: dict[str, _DistrictSamples] = defaultdict(_DistrictSamples)
    for observation in observations:
        if observation.district:
            samples[observation.district].add(observation)

    medians: dict[str, dict] = {}
    for district in sorted(samples):
        bucket = samples[district]
        if len(bucket.all) < min_sample_size:
            continue
        medians[district] = {
            "all": round_whole(median(bucket.all)),
            "houses": _category_median(bucket.houses, min_category_sample_size),
            "flats": _category_median(bucket.flats, min_category_sample_size),
            "floor_area": round_whole(median(bucket.floor_areas)),
        }

    baseline = medians.get(baseline_district)
    if baseline is None:
        raise NoBaselineStatistic(baseline_district)

    transactions_by_district = transactions_by_district or {}
    out: list[DistrictStatistic] = []
    for district, values in medians.items():
        bucket = samples[district]
        transaction_count = int(transactions_by_district.get(district, 0))
        out.append(
            DistrictStatistic(
                district=district,
                median_price_per_sqft=values["all"],
                median_houses_price_per_sqft=values["houses"],
                median_flats_price_per_sqft=values["flats"],
                sample_size=len(bucket.all),
                houses_sample_size=len(bucket.houses),
                flats_sample_size=len(bucket.flats),
                median_floor_area_sqm=values["floor_area"],
                percent_diff=percent_diff(values["all"], baseline["all"]),
                percent_diff_houses=percent_diff(values["houses"], baseline["houses"]),
                percent_diff_flats=percent_diff(values["flats"], baseline["flats"]),
                transaction_count=transaction_count,
                match_rate=round(len(bucket.all) / transaction_count, 2) if transaction_count else None,
            )
        )
    return sorted(out, key=lambda stat: stat.district)


def run_aggregate(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
) -> dict:
    source = matched_artifact(data_dir)
    if not source.exists():
        raise MissingInputFile(source)

    observations, match_stats = load_observations(source)
    cfg = bundle.pipeline
    statistics = aggregate_districts(
        observations,
        baseline_district=cfg["baseline_district"],
        min_sample_size=cfg["aggregation"]["min_sample_size"],
        min_category_sample_size=cfg["aggregation"]["min_category_sample_size"],
        transactions_by_district=match_stats.get("transactions_by_district"),
    )

    observed_districts = {observation.district for observation in observations if observation.district}
    baseline = next(stat for stat in statistics if stat.district == cfg["baseline_district"])
    stats = {
        "baseline_district": baseline.district,
        "baseline_median_price_per_sqft": baseline.median_price_per_sqft,
        "districts_observed": len(observed_districts),
        "districts_emitted": len(statistics),
        "districts_below_min_sample": len(observed_districts) - len(statistics),
    }
    log_event(
        logger,
        f"baseline {baseline.district} at {baseline.median_price_per_sqft}/sqft",
        run_id=run_id,
        stage=STAGE,
        event="BASELINE",
        status="ok",
        rows_in=len(observations),
        rows_out=len(statistics),
    )

    payload = {
        "run_id": run_id,
        "stats": stats,
        "rows": [stat.to_dict() for stat in statistics],
    }
    write_json(district_stats_artifact(data_dir), payload)
    return payload


def load_district_statistics(path: Path) -> list[DistrictStatistic]:
    return [DistrictStatistic.from_dict(row) for row in read_json(path)["rows"]]
