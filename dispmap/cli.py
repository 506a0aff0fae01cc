"""CLI entrypoint for the dispensary map data pipeline."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dispmap.common.config_loader import ConfigBundle, load_all_configs
from dispmap.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from dispmap.common.errors import PipelineError
from dispmap.common.http import HttpClient
from dispmap.common.logging import build_logger, log_event
from dispmap.common.time_utils import generate_run_id
from dispmap.pipeline.coordinates import load_coordinate_cache, write_coordinate_cache
from dispmap.pipeline.ingest import IngestionPipeline
from dispmap.pipeline.reports import write_run_summary
from dispmap.pipeline.store import JsonFileRecordStore
from dispmap.pipeline.views import filter_records, mappable_annotations, uncached_coordinates


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--max-geocodes", type=int, default=None)
    parser.add_argument("--update-cache", action="store_true", help="append newly geocoded addresses to the seed cache")
    parser.add_argument("--all-areas", action="store_true", help="list: include records outside the target area")
    parser.add_argument("--delivery-only", action="store_true", help="list: only delivery-only records")
    parser.add_argument("--mappable", action="store_true", help="list: only records that can be placed on the map")
    parser.add_argument("--output", default=None, help="export-cache: destination file (defaults to the seed path)")
    return parser.parse_args(argv)


def _store(bundle: ConfigBundle, data_dir: Path) -> JsonFileRecordStore:
    return JsonFileRecordStore(data_dir / bundle.pipeline["store"]["filename"])


def _http_client(bundle: ConfigBundle) -> HttpClient:
    return HttpClient(rates_per_sec={"geocoder": float(bundle.pipeline["geocoder"]["rate_per_sec"])})


def run_ingest(args: argparse.Namespace, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    store = _store(bundle, data_dir)
    cache = load_coordinate_cache(bundle.cache_seed_path)
    seeded = load_coordinate_cache(bundle.cache_seed_path)

    with _http_client(bundle) as client:
        pipeline = IngestionPipeline.from_config(
            bundle,
            client=client,
            store=store,
            cache=cache,
            max_geocodes=args.max_geocodes,
        )
        result = pipeline.run_ingestion(run_id=run_id)

    write_run_summary(data_dir, result)
    if result.message:
        print(result.message, file=sys.stderr)

    if args.update_cache and not result.fatal_error:
        new_entries = uncached_coordinates(store.list_all(), seeded)
        if new_entries:
            write_coordinate_cache(bundle.cache_seed_path, [*seeded.items(), *new_entries.items()])
            log_event(logger, "coordinate cache updated", stage="cache", event="CACHE_WRITE", rows_out=len(new_entries))

    if result.status == "error":
        return EXIT_HARD_FAIL
    if result.status == "partial":
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def run_list(args: argparse.Namespace, bundle: ConfigBundle, data_dir: Path) -> int:
    records = _store(bundle, data_dir).list_all()
    in_area_only = not args.all_areas
    if args.mappable:
        rows = [
            {"name": a.name, "address": a.address, **a.coordinate.to_dict()}
            for a in mappable_annotations(records, in_area_only=in_area_only)
        ]
    else:
        rows = [
            r.to_fields()
            for r in filter_records(records, in_area_only=in_area_only, delivery_only=args.delivery_only)
        ]
    json.dump(rows, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    return EXIT_SUCCESS


def run_export_cache(args: argparse.Namespace, bundle: ConfigBundle, data_dir: Path, logger) -> int:
    seeded = load_coordinate_cache(bundle.cache_seed_path)
    new_entries = uncached_coordinates(_store(bundle, data_dir).list_all(), seeded)
    output = Path(args.output) if args.output else bundle.cache_seed_path
    write_coordinate_cache(output, [*seeded.items(), *new_entries.items()])
    log_event(logger, f"exported coordinate cache to {output}", stage="cache", event="CACHE_EXPORT", rows_out=len(new_entries))
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    bundle = load_all_configs(config_dir, overlay_config_dir=overlay_config_dir)

    log_event(logger, "command start", stage=args.command, event="COMMAND_START", status="ok")
    try:
        if args.command == "run":
            return run_ingest(args, bundle, data_dir, run_id, logger)
        if args.command == "list":
            return run_list(args, bundle, data_dir)
        if args.command == "export-cache":
            return run_export_cache(args, bundle, data_dir, logger)
        if args.command == "reset":
            _store(bundle, data_dir).delete_all()
            log_event(logger, "deleted all stored records", stage="reset", event="STORE_RESET", status="ok")
            return EXIT_SUCCESS
        raise ValueError(f"Unknown command: {args.command}")
    except PipelineError as exc:
        log_event(
            logger,
            f"command failed: {exc}",
            stage=args.command,
            event="COMMAND_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL


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
