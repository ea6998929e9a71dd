"""Fetch orchestration with fail-soft semantics."""

from __future__ import annotations

import logging
from pathlib import Path

from london_sqft.common.config_loader import ConfigBundle
from london_sqft.common.errors import PipelineError, StageError
from london_sqft.common.http import HttpClient
from london_sqft.common.logging import log_event
from london_sqft.harvest.epc import fetch_certificates
from london_sqft.harvest.land_registry import fetch_price_paid


def run_fetch(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
    *,
    force: bool = False,
    client: HttpClient | None = None,
) -> dict:
    failed: list[str] = []
    results: dict[str, dict] = {}
    owned = client is None
    client = client or HttpClient()

    try:
        try:
            downloaded, year_failures = fetch_price_paid(
                client, bundle.sources, data_dir, run_id, logger, force=force
            )
            results["land_registry"] = downloaded
            failed.extend(f"land_registry:{name}" for name in year_failures)
        except PipelineError as exc:
            failed.append("land_registry")
            log_event(
                logger,
                str(exc),
                run_id=run_id,
                stage="fetch",
                source="land_registry",
                event="DOWNLOAD",
                status="error",
                error_code=exc.error_code,
            )

        try:
            downloaded, borough_failures = fetch_certificates(
                client, bundle.sources, data_dir, run_id, logger, force=force
            )
            results["epc"] = downloaded
            failed.extend(f"epc:{code}" for code in borough_failures)
        except PipelineError as exc:
            failed.append("epc")
            log_event(
                logger,
                str(exc),
                run_id=run_id,
                stage="fetch",
                source="epc",
                event="DOWNLOAD",
                status="error",
                error_code=exc.error_code,
            )
    finally:
        if owned:
            client.close()

    if not any(results.values()):
        raise StageError("All sources failed to download")

    return {"run_id": run_id, "results": results, "failed": failed}
