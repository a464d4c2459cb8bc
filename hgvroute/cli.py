"""CLI entrypoint for the HGV batch router."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from hgvroute.batch.cache import configure_shared_cache
from hgvroute.batch.pipeline import Gateway
from hgvroute.batch.scheduler import BatchScheduler
from hgvroute.common.config_loader import load_batch_config, with_vehicle_overrides
from hgvroute.common.constants import (
    COMMANDS,
    EXIT_HARD_FAIL,
    EXIT_PARTIAL,
    EXIT_SUCCESS,
    IN_FLIGHT_STATUSES,
    STATUS_SUCCESS,
)
from hgvroute.common.errors import PipelineError
from hgvroute.common.ids import generate_run_id
from hgvroute.common.logging import build_logger, close_logger, log_event
from hgvroute.common.models import reset_for_rerun
from hgvroute.common.time_utils import parse_run_date
from hgvroute.pipeline.export import result_filename, write_results_csv
from hgvroute.pipeline.ingest import read_destinations
from hgvroute.pipeline.reports import ProgressTracker, summarize, write_run_summary
from hgvroute.provider.ors_gateway import OrsGateway


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--input", default=None)
    parser.add_argument("--output", default=None)
    parser.add_argument("--run-date", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--weight", type=float, default=None)
    parser.add_argument("--height", type=float, default=None)
    parser.add_argument("--width", type=float, default=None)
    parser.add_argument("--length", type=float, default=None)
    parser.add_argument("--axle-load", type=float, default=None)
    parser.add_argument("--hazmat", action=argparse.BooleanOptionalAction, default=None)
    return parser.parse_args(argv)


def run_command(args: argparse.Namespace, gateway: Gateway | None = None) -> int:
    run_id = args.run_id or generate_run_id()
    run_date = parse_run_date(args.run_date)
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    try:
        settings = load_batch_config(config_dir, overlay_config_dir=overlay_config_dir)
        settings = with_vehicle_overrides(
            settings,
            weight=args.weight,
            height=args.height,
            width=args.width,
            length=args.length,
            axle_load=args.axle_load,
            hazmat=args.hazmat,
        )
        log_event(logger, "config loaded", run_id=run_id, stage="config", event="CONFIG_OK", status="ok")
        if args.command == "validate-config":
            return EXIT_SUCCESS

        if not args.input:
            log_event(
                logger,
                "--input is required for route",
                run_id=run_id,
                stage="ingest",
                event="STAGE_FAIL",
                status="error",
                error_code="CONTRACT_ERROR",
            )
            return EXIT_HARD_FAIL

        records = reset_for_rerun(read_destinations(Path(args.input), max_rows=settings.max_destinations))
        log_event(
            logger,
            "destinations loaded",
            run_id=run_id,
            stage="ingest",
            event="STAGE_END",
            status="ok",
            rows_out=len(records),
        )

        def _on_progress(index, record, completed):
            if record.status in IN_FLIGHT_STATUSES:
                return
            log_event(
                logger,
                f"{completed}/{len(records)} done",
                run_id=run_id,
                stage="route",
                record_index=index,
                record_id=record.id,
                event="PROGRESS",
                status=record.status,
                rows_out=completed,
            )

        configure_shared_cache(settings.cache_max_entries)
        owns_gateway = gateway is None
        client = gateway or OrsGateway(settings.provider, logger=logger)
        try:
            scheduler = BatchScheduler(client, settings, logger=logger, run_id=run_id)
            results = asyncio.run(
                scheduler.run(records, settings.vehicle_profile, ProgressTracker(len(records), _on_progress))
            )
        finally:
            if owns_gateway:
                client.close()

        output_path = Path(args.output) if args.output else data_dir / "out" / result_filename(run_date)
        write_results_csv(output_path, results)
        write_run_summary(data_dir, run_id=run_id, run_date=run_date, records=results, output_path=output_path)

        counts = summarize(results)
        log_event(
            logger,
            "run complete",
            run_id=run_id,
            stage="export",
            event="STAGE_END",
            status="ok",
            rows_in=counts["total"],
            rows_out=counts["success"],
        )
        if all(record.status == STATUS_SUCCESS for record in results):
            return EXIT_SUCCESS
        return EXIT_PARTIAL
    except PipelineError as exc:
        log_event(
            logger,
            f"run failed: {exc}",
            run_id=run_id,
            event="STAGE_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL
    finally:
        close_logger(logger)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        return run_command(args)
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
