"""Download yearly price paid files from HM Land Registry."""

from __future__ import annotations

import logging
from pathlib import Path

from london_sqft.common.http import HttpClient, HttpRequestError
from london_sqft.common.logging import log_event

SOURCE = "land_registry"


def fetch_price_paid(
    client: HttpClient,
    sources: dict,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
    *,
    force: bool = False,
) -> tuple[dict[str, int | None], list[str]]:
    """Fetch each configured year.

    Returns bytes written per file (``None`` when cached) and the file names
    that failed; one missing year does not stop the others.
    """
    cfg = sources["transactions"]
    results: dict[str, int | None] = {}
    failures: list[str] = []
    for year in sorted(cfg["years"]):
        dest = data_dir / "raw" / "ppd" / cfg["filename_template"].format(year=year)
        if dest.exists() and not force:
            results[dest.name] = None
            log_event(
                logger,
                f"using cached {dest.name}",
                run_id=run_id,
                stage="fetch",
                source=SOURCE,
                event="DOWNLOAD_CACHED",
            )
            continue
        try:
            written = client.download(cfg["url_template"].format(year=year), dest)
        except HttpRequestError as exc:
            failures.append(dest.name)
            log_event(
                logger,
                str(exc),
                level=logging.WARNING,
                run_id=run_id,
                stage="fetch",
                source=SOURCE,
                event="DOWNLOAD",
                status="error",
                error_code=exc.error_code,
            )
            continue
        results[dest.name] = written
        log_event(
            logger,
            f"downloaded {dest.name}",
            run_id=run_id,
            stage="fetch",
            source=SOURCE,
            event="DOWNLOAD",
            status="ok",
            rows_out=written,
        )
    return results, failures
