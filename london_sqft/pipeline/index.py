"""Postcode index over building records."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from london_sqft.common.models import BuildingRecord


class BuildingIndex:
    """Groups building records by postcode for constant-time candidate lookup.

    Built once per match pass and handed to the matcher; nothing else holds
    or mutates the grouping.
    """

    def __init__(self, records: Iterable[BuildingRecord]) -> None:
        grouped: dict[str, list[BuildingRecord]] = defaultdict(list)
        for record in records:
            grouped[record.postcode].append(record)
        self._by_postcode = {postcode: tuple(group) for postcode, group in grouped.items()}

    def candidates(self, postcode: str) -> tuple[BuildingRecord, ...]:
        return self._by_postcode.get(postcode, ())

    def __contains__(self, postcode: object) -> bool:
        return postcode in self._by_postcode

    def __len__(self) -> int:
        return len(self._by_postcode)

    @property
    def record_count(self) -> int:
        return sum(len(group) for group in self._by_postcode.values())
