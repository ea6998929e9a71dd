"""Delimited text parsing with header resolution and row-level fault tolerance."""

from __future__ import annotations

import csv
import io
import re
import zipfile
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterable, Iterator, Sequence

from london_sqft.common.constants import EPC_ARCHIVE_MEMBER, MAX_INVALID_SAMPLES
from london_sqft.common.errors import MalformedRow, MissingInputFile, MissingRequiredColumn

_HEADER_NOISE_RE = re.compile(r"[^A-Z0-9]+")

# Certificate exports contain very long free-text fields.
csv.field_size_limit(16 * 1024 * 1024)


def split_line(line: str, delimiter: str = ",") -> list[str]:
    """Split one line of delimited text, keeping quoted delimiters inside their field.

    Raises ``MalformedRow`` when a quote is left open at the end of the line.
    """
    text = line.rstrip("\r\n")
    if text.count('"') % 2:
        raise MalformedRow("unbalanced_quotes")
    try:
        return next(csv.reader([text], delimiter=delimiter), [])
    except csv.Error as exc:
        raise MalformedRow("unreadable_line") from exc


def normalise_header(name: str) -> str:
    return _HEADER_NOISE_RE.sub("_", name.strip().upper()).strip("_")


def resolve_columns(
    header: Sequence[str],
    required: Iterable[str],
    optional: Iterable[str] = (),
    *,
    source: Path | str = "<input>",
) -> dict[str, int]:
    positions: dict[str, int] = {}
    for idx, name in enumerate(header):
        positions.setdefault(normalise_header(name), idx)

    resolved: dict[str, int] = {}
    for column in required:
        key = normalise_header(column)
        if key not in positions:
            raise MissingRequiredColumn(column, source)
        resolved[column] = positions[key]
    for column in optional:
        key = normalise_header(column)
        if key in positions:
            resolved[column] = positions[key]
    return resolved


class RowCounter:
    """Tracks rows read and rows skipped per reason for one parse stage."""

    def __init__(self) -> None:
        self.rows_read = 0
        self.rows_accepted = 0
        self.rows_skipped = 0
        self.rows_filtered = 0
        self.skip_reasons: Counter[str] = Counter()
        self.filter_reasons: Counter[str] = Counter()
        self.samples: list[dict] = []

    def accept(self) -> None:
        self.rows_read += 1
        self.rows_accepted += 1

    def skip(self, reason: str, *, source: str, line_number: int) -> None:
        self.rows_read += 1
        self.rows_skipped += 1
        self.skip_reasons[reason] += 1
        if len(self.samples) < MAX_INVALID_SAMPLES:
            self.samples.append({"source": source, "line": line_number, "reason": reason})

    def filter(self, reason: str) -> None:
        """Count a well-formed row that falls outside the pipeline's scope."""
        self.rows_read += 1
        self.rows_filtered += 1
        self.filter_reasons[reason] += 1

    def merge(self, other: "RowCounter") -> None:
        self.rows_read += other.rows_read
        self.rows_accepted += other.rows_accepted
        self.rows_skipped += other.rows_skipped
        self.rows_filtered += other.rows_filtered
        self.skip_reasons.update(other.skip_reasons)
        self.filter_reasons.update(other.filter_reasons)
        room = MAX_INVALID_SAMPLES - len(self.samples)
        self.samples.extend(other.samples[: max(room, 0)])

    def to_dict(self) -> dict:
        return {
            "rows_read": self.rows_read,
            "rows_accepted": self.rows_accepted,
            "rows_skipped": self.rows_skipped,
            "rows_filtered": self.rows_filtered,
            "filter_reasons": dict(sorted(self.filter_reasons.items())),
            "skip_reasons": dict(sorted(self.skip_reasons.items())),
            "skip_samples": self.samples,
        }


@contextmanager
def open_source(path: Path, member: str = EPC_ARCHIVE_MEMBER) -> Iterator[IO[str]]:
    """Open a delimited source as text; zip archives are read through ``member``."""
    if not path.exists():
        raise MissingInputFile(path)
    if path.suffix.lower() == ".zip":
        with zipfile.ZipFile(path) as archive:
            if member not in archive.namelist():
                raise MissingInputFile(path, detail=f"archive has no {member}")
            with archive.open(member) as raw:
                yield io.TextIOWrapper(raw, encoding="utf-8", errors="replace", newline="")
    else:
        with path.open("r", encoding="utf-8", errors="replace", newline="") as f:
            yield f


def iter_lines(handle: IO[str], delimiter: str = ",") -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, line)`` for each physical line that holds any data.

    Records never span lines, so a damaged line cannot swallow its neighbours.
    """
    for line_number, line in enumerate(handle, 1):
        if line.strip().strip(delimiter).strip():
            yield line_number, line
