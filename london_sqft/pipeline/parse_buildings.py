"""Parse energy certificate exports into building records keyed by postcode."""

from __future__ import annotations

import logging
from pathlib import Path

from london_sqft.common.address import join_address_parts, normalise_address
from london_sqft.common.config_loader import ConfigBundle
from london_sqft.common.constants import EPC_OPTIONAL_COLUMNS, EPC_REQUIRED_COLUMNS
from london_sqft.common.errors import MalformedRow, MissingInputFile, StageError
from london_sqft.common.fs import read_json, write_json
from london_sqft.common.logging import log_event
from london_sqft.common.models import BuildingRecord
from london_sqft.common.postcode import normalise_postcode
from london_sqft.common.time_utils import parse_source_date
from london_sqft.pipeline.delimited import RowCounter, iter_lines, open_source, resolve_columns, split_line

STAGE = "parse-buildings"
SOURCE_SUFFIXES = (".csv", ".zip")


def buildings_artifact(data_dir: Path) -> Path:
    return data_dir / "intermediate" / "buildings.json"


def building_source_dir(sources: dict, data_dir: Path) -> Path:
    return data_dir / "raw" / sources["buildings"]["directory"]


def building_source_paths(source_dir: Path) -> list[Path]:
    if not source_dir.is_dir():
        raise MissingInputFile(source_dir, detail="certificate directory not found")
    paths = sorted(
        path for path in source_dir.iterdir() if path.is_file() and path.suffix.lower() in SOURCE_SUFFIXES
    )
    if not paths:
        raise MissingInputFile(source_dir, detail="no certificate files found")
    return paths


def _optional(fields: list[str], columns: dict[str, int], name: str) -> str | None:
    idx = columns.get(name)
    if idx is None or idx >= len(fields):
        return None
    return fields[idx].strip() or None


def build_building(fields: list[str], columns: dict[str, int], max_floor_area_sqm: float) -> BuildingRecord:
    if len(fields) <= max(columns[name] for name in EPC_REQUIRED_COLUMNS):
        raise MalformedRow("too_few_fields")

    postcode = normalise_postcode(fields[columns["POSTCODE"]])
    if postcode is None:
        raise MalformedRow("invalid_postcode")

    try:
        floor_area = float(fields[columns["TOTAL_FLOOR_AREA"]].strip())
    except ValueError as exc:
        raise MalformedRow("invalid_floor_area") from exc
    if not 0 < floor_area <= max_floor_area_sqm:
        raise MalformedRow("floor_area_out_of_range")

    address = normalise_address(
        join_address_parts(fields[columns[name]] for name in ("ADDRESS1", "ADDRESS2", "ADDRESS3"))
    )
    if not address:
        raise MalformedRow("empty_address")

    return BuildingRecord(
        postcode=postcode,
        normalized_address=address,
        floor_area_sqm=floor_area,
        property_category=fields[columns["PROPERTY_TYPE"]].strip(),
        certificate_date=parse_source_date(fields[columns["LODGEMENT_DATE"]]),
        external_id=_optional(fields, columns, "UPRN"),
        built_form=_optional(fields, columns, "BUILT_FORM"),
    )


def parse_building_file(path: Path, max_floor_area_sqm: float) -> tuple[list[BuildingRecord], RowCounter]:
    counter = RowCounter()
    records: list[BuildingRecord] = []
    with open_source(path) as handle:
        lines = iter_lines(handle)
        first = next(lines, None)
        if first is None:
            raise MissingInputFile(path, detail="file is empty")
        try:
            header = split_line(first[1])
        except MalformedRow as exc:
            raise StageError(f"Unreadable header in {path}: {exc.reason}") from exc
        columns = resolve_columns(header, EPC_REQUIRED_COLUMNS, EPC_OPTIONAL_COLUMNS, source=path)

        for line_number, line in lines:
            try:
                record = build_building(split_line(line), columns, max_floor_area_sqm)
            except MalformedRow as exc:
                counter.skip(exc.reason, source=path.name, line_number=line_number)
                continue
            records.append(record)
            counter.accept()
    return records, counter


def run_parse_buildings(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
) -> dict:
    max_floor_area = bundle.pipeline["filters"]["max_floor_area_sqm"]
    paths = building_source_paths(building_source_dir(bundle.sources, data_dir))

    totals = RowCounter()
    committed: list[BuildingRecord] = []
    files: dict[str, int] = {}
    for path in paths:
        records, counter = parse_building_file(path, max_floor_area)
        committed.extend(records)
        totals.merge(counter)
        files[path.name] = len(records)
        log_event(
            logger,
            f"committed {path.name}",
            run_id=run_id,
            stage=STAGE,
            source=path.name,
            event="FILE_COMMIT",
            status="ok",
            rows_in=counter.rows_read,
            rows_out=len(records),
        )

    payload = {
        "run_id": run_id,
        "stats": {**totals.to_dict(), "files": files},
        "rows": [record.to_dict() for record in committed],
    }
    write_json(buildings_artifact(data_dir), payload)
    return payload


def load_buildings(path: Path) -> list[BuildingRecord]:
    return [BuildingRecord.from_dict(row) for row in read_json(path)["rows"]]
