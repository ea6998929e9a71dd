"""UTC-focused helpers for run metadata and source dates."""

from __future__ import annotations

from datetime import date, datetime, timezone


def utc_today_iso() -> str:
    return datetime.now(tz=timezone.utc).date().isoformat()


def parse_run_date(value: str | None) -> str:
    if not value:
        return utc_today_iso()
    parsed = date.fromisoformat(value)
    return parsed.isoformat()


def utc_timestamp_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")


def parse_source_date(value: str | None) -> str | None:
    """Reduce ``2024-03-15 00:00`` style source stamps to an ISO calendar date."""
    if not value:
        return None
    head = value.strip()[:10]
    try:
        return date.fromisoformat(head).isoformat()
    except ValueError:
        return None


def date_ordinal(value: str | None) -> int:
    if not value:
        return 0
    return date.fromisoformat(value).toordinal()
