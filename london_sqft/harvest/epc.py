"""Download per-borough energy certificate archives."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from london_sqft.common.errors import ConfigError
from london_sqft.common.http import HttpClient, HttpRequestError
from london_sqft.common.logging import log_event

SOURCE = "epc"
# Error pages come back as tiny bodies with a 200 status.
MIN_ARCHIVE_BYTES = 1000


def auth_headers(sources: dict) -> dict[str, str]:
    env_var = sources["buildings"]["auth_env_var"]
    token = os.environ.get(env_var)
    if not token:
        raise ConfigError(f"Environment variable {env_var} is not set")
    return {"Authorization": f"Basic {token}", "Accept": "application/zip"}


def fetch_certificates(
    client: HttpClient,
    sources: dict,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
    *,
    force: bool = False,
) -> tuple[dict[str, int | None], list[str]]:
    cfg = sources["buildings"]
    target_dir = data_dir / "raw" / cfg["directory"]
    results: dict[str, int | None] = {}
    failures: list[str] = []
    headers: dict[str, str] | None = None

    for borough in cfg["boroughs"]:
        dest = target_dir / f"{borough['code']}.zip"
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

        if headers is None:
            headers = auth_headers(sources)
        url = cfg["url_template"].format(code=borough["code"], name=borough["name"])
        try:
            written = client.download(url, dest, headers=headers)
            if written < MIN_ARCHIVE_BYTES:
                dest.unlink(missing_ok=True)
                raise HttpRequestError(f"Archive for {borough['name']} too small ({written} bytes)")
        except HttpRequestError as exc:
            failures.append(borough["code"])
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
            f"downloaded {borough['name']}",
            run_id=run_id,
            stage="fetch",
            source=SOURCE,
            event="DOWNLOAD",
            status="ok",
            rows_out=written,
        )
    return results, failures
