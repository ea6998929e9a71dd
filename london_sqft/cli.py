"""CLI entrypoint for the London price-per-sqft pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from london_sqft.common.config_loader import ConfigBundle, load_all_configs
from london_sqft.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, STAGE_DEPENDENCIES, STAGES
from london_sqft.common.errors import ContractError, PipelineError
from london_sqft.common.ids import generate_run_id
from london_sqft.common.logging import build_logger, close_logger, log_event
from london_sqft.common.stages import StageTracker
from london_sqft.common.time_utils import parse_run_date
from london_sqft.harvest.runner import run_fetch
from london_sqft.pipeline.aggregate import district_stats_artifact, run_aggregate
from london_sqft.pipeline.export import export_artifact, run_export
from london_sqft.pipeline.match import matched_artifact, run_match
from london_sqft.pipeline.parse_buildings import buildings_artifact, run_parse_buildings
from london_sqft.pipeline.parse_transactions import run_parse_transactions, transactions_artifact
from london_sqft.pipeline.reports import write_run_summary

STAGE_RUNNERS = {
    "parse-transactions": run_parse_transactions,
    "parse-buildings": run_parse_buildings,
    "match": run_match,
    "aggregate": run_aggregate,
    "export": run_export,
}


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all", "fetch"])
    parser.add_argument("--run-date", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--force", action="store_true", help="re-run stages even if already completed")
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def stage_artifact(stage: str, bundle: ConfigBundle, data_dir: Path) -> Path:
    if stage == "parse-transactions":
        return transactions_artifact(data_dir)
    if stage == "parse-buildings":
        return buildings_artifact(data_dir)
    if stage == "match":
        return matched_artifact(data_dir)
    if stage == "aggregate":
        return district_stats_artifact(data_dir)
    if stage == "export":
        return export_artifact(bundle, data_dir)
    raise ValueError(f"Unknown stage: {stage}")


def execute_stage(stage: str, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> dict:
    runner = STAGE_RUNNERS.get(stage)
    if runner is None:
        raise ValueError(f"Unknown stage: {stage}")
    return runner(bundle, data_dir, run_id, logger)


def run_stages(
    stages: tuple[str, ...],
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    logger,
    *,
    force: bool = False,
    strict: bool = False,
) -> tuple[dict[str, dict], int]:
    tracker = StageTracker.for_data_dir(data_dir)
    outcomes: dict[str, dict] = {}
    exit_code = EXIT_SUCCESS

    for stage in stages:
        failed_deps = [
            dep for dep in STAGE_DEPENDENCIES[stage] if outcomes.get(dep, {}).get("outcome") in ("failed", "blocked")
        ]
        if failed_deps:
            outcomes[stage] = {"outcome": "blocked", "blocked_by": failed_deps}
            log_event(
                logger,
                f"blocked by {', '.join(failed_deps)}",
                run_id=run_id,
                stage=stage,
                event="STAGE_SKIP",
                status="blocked",
            )
            continue

        if not force and tracker.is_complete(stage):
            outcomes[stage] = {"outcome": "skipped"}
            log_event(logger, "already completed", run_id=run_id, stage=stage, event="STAGE_SKIP", status="ok")
            continue

        log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
        started = time.monotonic()
        tracker.mark_running(stage, run_id)
        tracker.invalidate_downstream(stage)
        try:
            execute_stage(stage, bundle, data_dir, run_id, logger)
        except PipelineError as exc:
            tracker.reset(stage)
            outcomes[stage] = {"outcome": "failed", "error_code": exc.error_code, "message": str(exc)}
            log_event(
                logger,
                str(exc),
                run_id=run_id,
                stage=stage,
                event="STAGE_FAIL",
                status="error",
                error_code=exc.error_code,
            )
            if isinstance(exc, ContractError) or strict:
                exit_code = EXIT_HARD_FAIL
            elif exit_code == EXIT_SUCCESS:
                exit_code = EXIT_PARTIAL
            if strict:
                break
            continue
        except Exception as exc:
            tracker.reset(stage)
            outcomes[stage] = {"outcome": "failed", "error_code": "UNEXPECTED_ERROR", "message": repr(exc)}
            log_event(
                logger,
                f"unexpected failure: {exc!r}",
                level=logging.ERROR,
                run_id=run_id,
                stage=stage,
                event="STAGE_FAIL",
                status="error",
                error_code="UNEXPECTED_ERROR",
            )
            if strict:
                exit_code = EXIT_HARD_FAIL
                break
            if exit_code == EXIT_SUCCESS:
                exit_code = EXIT_PARTIAL
            continue

        tracker.mark_completed(stage, run_id, stage_artifact(stage, bundle, data_dir))
        outcomes[stage] = {"outcome": "completed"}
        log_event(
            logger,
            "stage end",
            run_id=run_id,
            stage=stage,
            event="STAGE_END",
            status="ok",
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    return outcomes, exit_code


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    run_date = parse_run_date(args.run_date)
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    try:
        bundle = load_all_configs(config_dir, overlay_config_dir=overlay_config_dir)

        if args.command == "fetch":
            result = run_fetch(bundle, data_dir, run_id, logger, force=args.force)
            return EXIT_PARTIAL if result["failed"] else EXIT_SUCCESS

        stages = STAGES if args.command == "all" else (args.command,)
        outcomes, exit_code = run_stages(
            stages,
            bundle,
            data_dir,
            run_id,
            logger,
            force=args.force,
            strict=args.strict,
        )
        write_run_summary(bundle, data_dir, run_id=run_id, run_date=run_date, outcomes=outcomes)
        return exit_code
    finally:
        close_logger(logger)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
