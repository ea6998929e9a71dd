"""UK unit postcode normalisation, validation and district extraction."""

from __future__ import annotations

import re
from typing import Iterable

UK_UNIT_POSTCODE_RE = re.compile(r"^([A-Z]{1,2}\d[A-Z\d]?)\s(\d[A-Z]{2})$")
_AREA_RE = re.compile(r"^([A-Z]{1,2})\d")
_DISTRICT_RE = re.compile(r"^([A-Z]{1,2}\d+)")

_PUNCTUATION_RE = re.compile(r"[\.,;:'\"`_\-/\\()\[\]{}|~!?@#$%^&*+=]")
_WHITESPACE_RE = re.compile(r"\s+")


def is_valid_uk_unit_postcode(value: str) -> bool:
    return bool(UK_UNIT_POSTCODE_RE.match(value))


def normalise_postcode(raw: str | None) -> str | None:
    if raw is None:
        return None

    cleaned = raw.strip()
    if not cleaned:
        return None

    cleaned = cleaned.upper()
    cleaned = _PUNCTUATION_RE.sub("", cleaned)
    cleaned = _WHITESPACE_RE.sub("", cleaned)

    if len(cleaned) < 5 or len(cleaned) > 7:
        return None

    cleaned = f"{cleaned[:-3]} {cleaned[-3:]}"

    if not is_valid_uk_unit_postcode(cleaned):
        return None

    return cleaned


def postcode_area(postcode: str) -> str | None:
    match = _AREA_RE.match(postcode)
    return match.group(1) if match else None


def extract_district(postcode: str) -> str | None:
    # SW1A 1AA -> SW1, E14 8JX -> E14
    match = _DISTRICT_RE.match(postcode)
    return match.group(1) if match else None


def is_london_postcode(postcode: str, london_areas: Iterable[str]) -> bool:
    area = postcode_area(postcode)
    return area is not None and area in set(london_areas)
