"""Parse price paid transaction files into typed London transaction records."""

from __future__ import annotations

import logging
from pathlib import Path

from london_sqft.common.address import join_address_parts, normalise_address
from london_sqft.common.config_loader import ConfigBundle
from london_sqft.common.constants import PPD_COLUMNS
from london_sqft.common.errors import MalformedRow, MissingInputFile
from london_sqft.common.fs import read_json, write_json
from london_sqft.common.logging import log_event
from london_sqft.common.models import PropertyCategory, TransactionRecord
from london_sqft.common.postcode import is_london_postcode, normalise_postcode
from london_sqft.common.time_utils import parse_source_date
from london_sqft.pipeline.delimited import RowCounter, iter_lines, open_source, split_line

STAGE = "parse-transactions"
_MIN_FIELDS = max(PPD_COLUMNS.values()) + 1


def transactions_artifact(data_dir: Path) -> Path:
    return data_dir / "intermediate" / "transactions.json"


def transaction_source_paths(sources: dict, data_dir: Path) -> list[Path]:
    cfg = sources["transactions"]
    return [
        data_dir / "raw" / "ppd" / cfg["filename_template"].format(year=year)
        for year in sorted(cfg["years"])
    ]


def _field(fields: list[str], name: str) -> str:
    return fields[PPD_COLUMNS[name]].strip()


def build_transaction(fields: list[str], london_areas: list[str]) -> TransactionRecord | None:
    """Build one record from a positional row.

    Returns ``None`` for a well-formed row outside London and raises
    ``MalformedRow`` when the row cannot be interpreted.
    """
    if len(fields) < _MIN_FIELDS:
        raise MalformedRow("too_few_fields")

    try:
        price = int(_field(fields, "price"))
    except ValueError as exc:
        raise MalformedRow("invalid_price") from exc
    if price <= 0:
        raise MalformedRow("non_positive_price")

    postcode = normalise_postcode(_field(fields, "postcode"))
    if postcode is None:
        raise MalformedRow("invalid_postcode")
    if not is_london_postcode(postcode, london_areas):
        return None

    transaction_date = parse_source_date(_field(fields, "date"))
    if transaction_date is None:
        raise MalformedRow("invalid_date")

    try:
        category = PropertyCategory.from_code(_field(fields, "property_type"))
    except KeyError as exc:
        raise MalformedRow("invalid_property_type") from exc

    paon = _field(fields, "paon")
    saon = _field(fields, "saon") or None
    street = _field(fields, "street")

    return TransactionRecord(
        price=price,
        transaction_date=transaction_date,
        postcode=postcode,
        property_category=category,
        primary_address_object=paon,
        secondary_address_object=saon,
        street=street,
        normalized_address=normalise_address(join_address_parts([saon, paon, street])),
        transaction_id=_field(fields, "transaction_id").strip("{}") or None,
    )


def parse_transaction_file(path: Path, london_areas: list[str]) -> tuple[list[TransactionRecord], RowCounter]:
    """Parse a whole file; callers commit the returned rows only if this returns."""
    counter = RowCounter()
    records: list[TransactionRecord] = []
    with open_source(path) as handle:
        for line_number, line in iter_lines(handle):
            try:
                record = build_transaction(split_line(line), london_areas)
            except MalformedRow as exc:
                counter.skip(exc.reason, source=path.name, line_number=line_number)
                continue
            if record is None:
                counter.filter("out_of_area")
                continue
            records.append(record)
            counter.accept()
    return records, counter


def run_parse_transactions(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
) -> dict:
    london_areas = bundle.pipeline["london_areas"]
    paths = transaction_source_paths(bundle.sources, data_dir)
    for path in paths:
        if not path.exists():
            raise MissingInputFile(path)

    totals = RowCounter()
    committed: list[TransactionRecord] = []
    files: dict[str, int] = {}
    for path in paths:
        records, counter = parse_transaction_file(path, london_areas)
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
    write_json(transactions_artifact(data_dir), payload)
    return payload


def load_transactions(path: Path) -> list[TransactionRecord]:
    return [TransactionRecord.from_dict(row) for row in read_json(path)["rows"]]
