from __future__ import annotations

import csv
import zipfile
from pathlib import Path

import pytest

from london_sqft.common.config_loader import load_all_configs

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"

EPC_HEADER = [
    "LMK_KEY",
    "ADDRESS1",
    "ADDRESS2",
    "ADDRESS3",
    "POSTCODE",
    "PROPERTY_TYPE",
    "BUILT_FORM",
    "LODGEMENT_DATE",
    "TOTAL_FLOOR_AREA",
    "UPRN",
]


def ppd_row(
    price,
    postcode: str,
    property_type: str,
    paon: str,
    street: str,
    *,
    saon: str = "",
    date: str = "2024-03-15 00:00",
    transaction_id: str = "{00000000-0000-0000-0000-000000000000}",
) -> list[str]:
    return [
        transaction_id,
        str(price),
        date,
        postcode,
        property_type,
        "N",
        "L",
        paon,
        saon,
        street,
        "",
        "LONDON",
        "TOWER HAMLETS",
        "GREATER LONDON",
        "A",
        "A",
    ]


def epc_row(
    address1: str,
    postcode: str,
    floor_area,
    *,
    address2: str = "",
    address3: str = "",
    property_type: str = "Flat",
    lodgement_date: str = "2023-06-01",
    uprn: str = "",
) -> dict:
    return {
        "LMK_KEY": f"{postcode}-{address1}",
        "ADDRESS1": address1,
        "ADDRESS2": address2,
        "ADDRESS3": address3,
        "POSTCODE": postcode,
        "PROPERTY_TYPE": property_type,
        "BUILT_FORM": "Mid-Terrace",
        "LODGEMENT_DATE": lodgement_date,
        "TOTAL_FLOOR_AREA": str(floor_area),
        "UPRN": uprn,
    }


def write_ppd(path: Path, rows: list[list[str]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerows(rows)
    return path


def write_epc(path: Path, rows: list[dict], header: list[str] | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=header or EPC_HEADER, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)
    return path


def write_epc_zip(path: Path, rows: list[dict]) -> Path:
    staging = path.parent / f"{path.stem}.staging"
    write_epc(staging, rows)
    with zipfile.ZipFile(path, "w") as archive:
        archive.write(staging, "certificates.csv")
    staging.unlink()
    return path


@pytest.fixture
def bundle():
    return load_all_configs(CONFIG_DIR)


@pytest.fixture
def config_dir() -> Path:
    return CONFIG_DIR


def seed_pipeline_inputs(data_dir: Path, *, years: tuple[int, ...] = (2024, 2025)) -> Path:
    """Write a small London sample: six E14 flats, five SW3 houses and four N1 flats."""
    ppd_dir = data_dir / "raw" / "ppd"
    rows_by_year = {
        2024: [
            ppd_row(400000 + n * 10000, "E14 8JX", "F", "RIVERSIDE COURT", "WESTFERRY ROAD", saon=f"Flat {n}")
            for n in range(1, 7)
        ]
        + [
            ppd_row(275000, "EX1 1AA", "T", "3", "QUAY LANE"),
            ppd_row("unknown", "E14 8JX", "F", "RIVERSIDE COURT", "WESTFERRY ROAD", saon="Flat 9"),
        ],
        2025: [
            ppd_row(1000000 + n * 50000, "SW3 4AA", "T", str(n), "KINGS ROAD", date="2025-02-01 00:00")
            for n in range(1, 6)
        ]
        + [
            ppd_row(500000, "N1 9GU", "F", "CANAL HOUSE", "WHARF ROAD", saon=f"Flat {n}", date="2025-05-20 00:00")
            for n in range(1, 5)
        ],
    }
    for year in years:
        write_ppd(ppd_dir / f"pp-{year}.csv", rows_by_year[year])

    epc_dir = data_dir / "raw" / "epc"
    write_epc(
        epc_dir / "E09000030.csv",
        [epc_row(f"Flat {n}, Riverside Court", "E14 8JX", 40 + n, address2="Westferry Road") for n in range(1, 7)],
    )
    write_epc_zip(
        epc_dir / "E09000020.zip",
        [epc_row(f"{n} Kings Road", "SW3 4AA", 100, property_type="House", uprn=str(5000 + n)) for n in range(1, 6)],
    )
    write_epc(
        epc_dir / "E09000019.csv",
        [epc_row(f"Flat {n}, Canal House", "N1 9GU", 50) for n in range(1, 5)],
    )
    return data_dir
