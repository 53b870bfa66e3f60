"""CLI entrypoint for the emergency facility search pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from erfinder.common.config_loader import load_all_configs
from erfinder.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from erfinder.common.errors import CandidateValidationError, PipelineError
from erfinder.common.geometry import Coordinates
from erfinder.common.ids import generate_run_id
from erfinder.common.logging import ROOT_LOGGER_NAME, build_logger, log_event
from erfinder.pipeline.orchestrator import build_pipeline
from erfinder.pipeline.views import CandidateFilters, SortOption, apply_filters, sort_candidates

logger = logging.getLogger(ROOT_LOGGER_NAME)

COMMANDS = ("search", "snapshot-status")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--lat", type=float, default=None)
    parser.add_argument("--lon", type=float, default=None)
    parser.add_argument("--sort", default=SortOption.RECOMMENDED.value, choices=[o.value for o in SortOption])
    parser.add_argument("--load-more", type=int, default=0, help="Extra route slices to enrich after the first")
    parser.add_argument("--ct", action="store_true")
    parser.add_argument("--mri", action="store_true")
    parser.add_argument("--surgery", action="store_true")
    parser.add_argument("--operating", action="store_true")
    parser.add_argument("--available-beds", action="store_true")
    parser.add_argument("--within-10km", action="store_true")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--snapshot-path", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def _filters_from_args(args: argparse.Namespace) -> CandidateFilters:
    return CandidateFilters(
        has_ct=args.ct,
        has_mri=args.mri,
        has_surgery=args.surgery,
        operating=args.operating,
        has_available_beds=args.available_beds,
        within_10km=args.within_10km,
    )


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    log_dir = Path(args.log_dir) if args.log_dir else None

    logger = build_logger(run_id, log_dir=log_dir, level=args.log_level)
    bundle = load_all_configs(config_dir, overlay_config_dir=overlay_config_dir)
    snapshot_path = Path(args.snapshot_path) if args.snapshot_path else None
    pipeline = build_pipeline(bundle, snapshot_path=snapshot_path, run_id=run_id)

    if args.command == "snapshot-status":
        print(json.dumps(pipeline.cache.status().to_dict(), ensure_ascii=False))
        return EXIT_SUCCESS

    if args.lat is None or args.lon is None:
        log_event(logger, "search requires --lat and --lon", run_id=run_id, event="ARGS_INVALID", status="error")
        return EXIT_HARD_FAIL
    try:
        origin = Coordinates(args.lat, args.lon)
    except CandidateValidationError as exc:
        log_event(logger, str(exc), run_id=run_id, event="ARGS_INVALID", status="error", error_code=exc.error_code)
        return EXIT_HARD_FAIL

    result = pipeline.search(origin)
    for _ in range(max(0, args.load_more)):
        result = pipeline.load_more(result, origin)

    candidates = sort_candidates(result.candidates, SortOption(args.sort), origin)
    candidates = apply_filters(candidates, _filters_from_args(args), origin)

    payload = result.to_dict()
    payload["run_id"] = run_id
    payload["candidates"] = [candidate.to_dict() for candidate in candidates]
    print(json.dumps(payload, ensure_ascii=False, indent=2))

    if result.warning is not None:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError as exc:
        log_event(logger, str(exc), level=logging.ERROR, event="RUN_FAIL", status="error", error_code=exc.error_code)
        return EXIT_HARD_FAIL
    except Exception as exc:
        log_event(logger, f"unexpected failure: {exc}", level=logging.ERROR, event="RUN_FAIL", status="error", error_code="UNEXPECTED_ERROR")
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
