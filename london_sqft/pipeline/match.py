"""Link transactions to building records at the same postcode."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from london_sqft.common.config_loader import ConfigBundle
from london_sqft.common.constants import SQM_TO_SQFT
from london_sqft.common.errors import MissingInputFile
from london_sqft.common.fs import read_json, write_json
from london_sqft.common.logging import log_event
from london_sqft.common.models import BuildingRecord, MatchedObservation, TransactionRecord
from london_sqft.common.postcode import extract_district
from london_sqft.common.stats import round_half_up
from london_sqft.common.time_utils import date_ordinal
from london_sqft.pipeline.index import BuildingIndex
from london_sqft.pipeline.parse_buildings import buildings_artifact, load_buildings
from london_sqft.pipeline.parse_transactions import load_transactions, transactions_artifact

STAGE = "match"
EXACT_SCORE = 1.0
CONTAINMENT_SCORE = 0.9
PRIMARY_PASS = "primary"
RELAXED_PASS = "relaxed"


def matched_artifact(data_dir: Path) -> Path:
    return data_dir / "intermediate" / "matched.json"


def score_addresses(left: str, right: str, *, min_substring_length: int) -> float:
    if not left or not right:
        return 0.0
    if left == right:
        return EXACT_SCORE
    shorter, longer = sorted((left, right), key=len)
    if len(shorter) > min_substring_length and shorter in longer:
        return CONTAINMENT_SCORE
    return 0.0


def _rank_key(scored: tuple[float, BuildingRecord]):
    score, building = scored
    return (
        -score,
        -date_ordinal(building.certificate_date),
        building.external_id is None,
        building.external_id or "",
        building.normalized_address,
        building.floor_area_sqm,
    )


def best_candidate(
    address: str,
    candidates: Sequence[BuildingRecord],
    *,
    min_substring_length: int,
) -> tuple[BuildingRecord | None, float]:
    """Highest score wins, then the newest certificate, then the smallest identifier."""
    scored = [
        (score_addresses(address, building.normalized_address, min_substring_length=min_substring_length), building)
        for building in candidates
    ]
    scored = [item for item in scored if item[0] > 0]
    if not scored:
        return None, 0.0
    score, building = min(scored, key=_rank_key)
    return building, score


def price_per_sqft(price: int, floor_area_sqm: float) -> float:
    return price / (floor_area_sqm * SQM_TO_SQFT)


@dataclass
class MatchResult:
    observations: list[MatchedObservation] = field(default_factory=list)
    stats: dict = field(default_factory=dict)


class Matcher:
    def __init__(
        self,
        index: BuildingIndex,
        *,
        accept_score: float,
        min_substring_length: int,
        fallback_match_rate: float,
        fallback_min_substring_length: int,
        min_price_per_sqft: float,
        max_price_per_sqft: float,
    ) -> None:
        self.index = index
        self.accept_score = accept_score
        self.min_substring_length = min_substring_length
        self.fallback_match_rate = fallback_match_rate
        self.fallback_min_substring_length = fallback_min_substring_length
        self.min_price_per_sqft = min_price_per_sqft
        self.max_price_per_sqft = max_price_per_sqft

    @classmethod
    def from_config(cls, index: BuildingIndex, pipeline_cfg: dict) -> "Matcher":
        matching = pipeline_cfg["matching"]
        filters = pipeline_cfg["filters"]
        return cls(
            index,
            accept_score=matching["accept_score"],
            min_substring_length=matching["min_substring_length"],
            fallback_match_rate=matching["fallback_match_rate"],
            fallback_min_substring_length=matching["fallback_min_substring_length"],
            min_price_per_sqft=filters["min_price_per_sqft"],
            max_price_per_sqft=filters["max_price_per_sqft"],
        )

    def _observe(
        self,
        transaction: TransactionRecord,
        building: BuildingRecord,
        score: float,
        match_pass: str,
    ) -> MatchedObservation | None:
        raw = price_per_sqft(transaction.price, building.floor_area_sqm)
        if not self.min_price_per_sqft <= raw <= self.max_price_per_sqft:
            return None
        value = round_half_up(raw, 2)
        return MatchedObservation(
            price=transaction.price,
            floor_area_sqm=building.floor_area_sqm,
            price_per_sqft=value,
            district=extract_district(transaction.postcode) or "",
            transaction_property_category=transaction.property_category,
            building_property_category=building.property_category,
            postcode=transaction.postcode,
            match_score=score,
            match_pass=match_pass,
            certificate_date=building.certificate_date,
        )

    def _link(
        self,
        transactions: Iterable[TransactionRecord],
        *,
        min_substring_length: int,
        match_pass: str,
        result: MatchResult,
        counts: Counter,
    ) -> list[TransactionRecord]:
        """Run one pass and return the transactions it left without a confident link."""
        unlinked: list[TransactionRecord] = []
        for transaction in transactions:
            candidates = self.index.candidates(transaction.postcode)
            if not candidates:
                counts["no_building_for_postcode"] += 1
                continue
            building, score = best_candidate(
                transaction.normalized_address,
                candidates,
                min_substring_length=min_substring_length,
            )
            if building is None or score < self.accept_score:
                unlinked.append(transaction)
                continue
            observation = self._observe(transaction, building, score, match_pass)
            if observation is None:
                counts["outliers_discarded"] += 1
                continue
            result.observations.append(observation)
            counts[f"{match_pass}_matched"] += 1
        return unlinked

    def run(
        self,
        transactions: Sequence[TransactionRecord],
        *,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ) -> MatchResult:
        result = MatchResult()
        counts: Counter = Counter()
        total = len(transactions)

        unlinked = self._link(
            transactions,
            min_substring_length=self.min_substring_length,
            match_pass=PRIMARY_PASS,
            result=result,
            counts=counts,
        )
        first_pass_matched = len(result.observations)
        first_pass_rate = first_pass_matched / total if total else 0.0

        fallback_ran = bool(total) and first_pass_rate < self.fallback_match_rate
        if fallback_ran:
            log_event(
                logger,
                f"match rate {first_pass_rate:.1%} below {self.fallback_match_rate:.0%}, running relaxed pass",
                level=logging.WARNING,
                run_id=run_id,
                stage=STAGE,
                event="LOW_MATCH_RATE",
                rows_in=len(unlinked),
            )
            unlinked = self._link(
                unlinked,
                min_substring_length=self.fallback_min_substring_length,
                match_pass=RELAXED_PASS,
                result=result,
                counts=counts,
            )

        matched = len(result.observations)
        by_district = Counter(extract_district(t.postcode) or "" for t in transactions)
        result.stats = {
            "transactions_total": total,
            "building_postcodes": len(self.index),
            "building_records": self.index.record_count,
            "no_building_for_postcode": counts["no_building_for_postcode"],
            "no_address_match": len(unlinked),
            "outliers_discarded": counts["outliers_discarded"],
            "first_pass_matched": first_pass_matched,
            "first_pass_match_rate": round(first_pass_rate, 4),
            "fallback_ran": fallback_ran,
            "fallback_matched": counts[f"{RELAXED_PASS}_matched"],
            "matched_total": matched,
            "match_rate": round(matched / total, 4) if total else 0.0,
            "transactions_by_district": dict(sorted(by_district.items())),
        }
        return result


def run_match(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
) -> dict:
    for path in (transactions_artifact(data_dir), buildings_artifact(data_dir)):
        if not path.exists():
            raise MissingInputFile(path)

    transactions = load_transactions(transactions_artifact(data_dir))
    index = BuildingIndex(load_buildings(buildings_artifact(data_dir)))
    result = Matcher.from_config(index, bundle.pipeline).run(transactions, logger=logger, run_id=run_id)

    payload = {
        "run_id": run_id,
        "stats": result.stats,
        "rows": [observation.to_dict() for observation in result.observations],
    }
    write_json(matched_artifact(data_dir), payload)
    return payload


def load_observations(path: Path) -> tuple[list[MatchedObservation], dict]:
    payload = read_json(path)
    return [MatchedObservation.from_dict(row) for row in payload["rows"]], payload.get("stats", {})
