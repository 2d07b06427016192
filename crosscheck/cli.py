"""Command line entry point: crosscheck {compare,parallel,health,readiness,pipeline}."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from .config import (
    comparable_endpoints_from_config,
    find_endpoint,
    load_config,
    probe_settings_from_config,
    readiness_scorer_from_config,
    stages_from_config,
)
from .engine import ComparisonEngine
from .exceptions import ConfigurationError, ValidationError
from .matcher import MatchConfidence, suggest_rename_map
from .models import CategoryScore, EngineConfig, ErrorResponse, ReadinessStatus
from .parallel import ParallelComparator
from .payload import ParseError, parse_payload
from .pipeline import CommandStageRunner, PipelineExecutor, categories_from_results
from .sampler import sample_endpoints

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


def _emit(result: dict, report_path: Optional[str], quiet: bool):
    if report_path:
        with open(report_path, 'w') as f:
            json.dump(result, indent=2, fp=f)
        if not quiet:
            print(f"\nReport saved to: {report_path}")
    elif not quiet:
        print(json.dumps(result, indent=2))


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return EXIT_ERROR


def _read_json(path: str) -> Any:
    decoded = parse_payload(Path(path).read_text())
    if isinstance(decoded, ParseError):
        raise ValidationError(f"{path}: {decoded.reason}")
    return decoded.value


def cmd_compare(args) -> int:
    for path in (args.v1, args.v2):
        if not Path(path).exists():
            return _error(f"File not found: {path}")

    v1 = _read_json(args.v1)
    v2 = _read_json(args.v2)

    rename_map = load_config(args.renames) if args.renames else {}
    if args.suggest_renames:
        suggestions = suggest_rename_map(v1, v2, MatchConfidence(args.min_confidence))
        if not args.quiet:
            for path, match in suggestions.matches.items():
                marker = "+" if path in suggestions.accepted else "-"
                print(f"  {marker} {path} -> {match.matched_name} "
                      f"[{match.confidence.value}] {match.reason}")
        rename_map = {**suggestions.accepted, **rename_map}

    engine = ComparisonEngine(EngineConfig(ignore_paths=args.ignore or []))
    report = engine.compare(v1, v2, rename_map)
    _emit(report.to_dict(), args.report, args.quiet)

    if isinstance(report, ErrorResponse):
        return EXIT_ERROR
    return EXIT_OK if report.structures_match else EXIT_FAILED


def cmd_parallel(args) -> int:
    config = load_config(args.config)
    endpoints = comparable_endpoints_from_config(config)
    endpoint = find_endpoint(endpoints, args.endpoint)
    if endpoint is None:
        known = ", ".join(e.id for e in endpoints) or "none"
        return _error(f"Unknown endpoint '{args.endpoint}' (configured: {known})")

    comparator = ParallelComparator(timeout_ms=args.timeout_ms)
    result = asyncio.run(comparator.compare_endpoint(endpoint, identity=args.identity))
    _emit(result.to_dict(), args.report, args.quiet)

    if not result.success:
        return EXIT_ERROR
    return EXIT_OK if result.comparison.structures_match else EXIT_FAILED


def cmd_health(args) -> int:
    settings = probe_settings_from_config(load_config(args.config))
    identity = args.identity if args.identity is not None else settings.identity

    report = sample_endpoints(settings.selected(), identity=identity, config=settings.config)
    if isinstance(report, ErrorResponse):
        _emit(report.to_dict(), args.report, args.quiet)
        return EXIT_ERROR

    if not args.quiet and args.report:
        report.print_summary()
    _emit(report.to_dict(), args.report, args.quiet)
    return EXIT_OK if report.failed == 0 else EXIT_FAILED


def _categories_from_scores(scores: dict) -> list[CategoryScore]:
    """
    Accepts {"name": pass_rate} or {"name": {"validated": n, "total": m}}
    (a `pass_rate` key in the nested form wins over the counts).
    """
    categories = []
    for name, value in scores.items():
        try:
            if isinstance(value, dict):
                pass_rate = value.get("pass_rate")
                categories.append(CategoryScore(
                    name=name,
                    validated=int(value.get("validated", 0)),
                    total=int(value.get("total", 0)),
                    pass_rate=float(pass_rate) if pass_rate is not None else None,
                ))
            else:
                categories.append(CategoryScore(name=name, pass_rate=float(value)))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid score for '{name}': {e}", {"category": name})
    return categories


def cmd_readiness(args) -> int:
    scorer = readiness_scorer_from_config(load_config(args.config))
    categories = _categories_from_scores(load_config(args.scores))

    report = scorer.score(categories)
    _emit(report.to_dict(), args.report, args.quiet)
    return EXIT_OK if report.status == ReadinessStatus.READY else EXIT_FAILED


def cmd_pipeline(args) -> int:
    config = load_config(args.config)
    stages = stages_from_config(config)
    if not stages:
        return _error("No stages configured")

    base_dir = args.base_dir or str(Path(args.config).parent)
    pipeline = PipelineExecutor(stages, CommandStageRunner(base_dir)).run()

    result = pipeline.to_dict()
    if config.get("readiness") is not None:
        scorer = readiness_scorer_from_config(config)
        categories = [
            c for c in categories_from_results(pipeline.results)
            if c.name in scorer.weights
        ]
        result["readiness"] = scorer.score(categories).to_dict()

    if not args.quiet and args.report:
        pipeline.print_summary()
    _emit(result, args.report, args.quiet)
    return EXIT_OK if pipeline.completed and pipeline.all_passed else EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crosscheck",
        description="Compare V1/V2 payloads, probe endpoints and score migration readiness",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  crosscheck compare v1.json v2.json --renames renames.yaml --ignore '$..updated_at'
  crosscheck parallel crosscheck.yaml users --identity 42
  crosscheck health crosscheck.yaml -r health.json
  crosscheck readiness crosscheck.yaml scores.json
  crosscheck pipeline crosscheck.yaml --base-dir validation/
        """
    )
    parser.add_argument("-r", "--report", help="Write the JSON report to this file")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress console output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    compare = subparsers.add_parser("compare", help="Compare two JSON payload files")
    compare.add_argument("v1", help="V1 payload (JSON)")
    compare.add_argument("v2", help="V2 payload (JSON)")
    compare.add_argument("--renames", help="YAML/JSON map of V1 path to V2 path")
    compare.add_argument("--ignore", action="append", metavar="JSONPATH",
                         help="JSONPath removed from both payloads (repeatable)")
    compare.add_argument("--suggest-renames", action="store_true",
                         help="Pair V1-only and V2-only fields by name before comparing")
    compare.add_argument("--min-confidence", default="high",
                         choices=[c.value for c in MatchConfidence],
                         help="Lowest match tier accepted by --suggest-renames")
    compare.set_defaults(func=cmd_compare)

    parallel = subparsers.add_parser("parallel", help="Call one endpoint on both systems and compare")
    parallel.add_argument("config", help="Config file with an `endpoints` section")
    parallel.add_argument("endpoint", help="Endpoint id")
    parallel.add_argument("--identity", help="Identity value for endpoints that require one")
    parallel.add_argument("--timeout-ms", type=int, default=30000)
    parallel.set_defaults(func=cmd_parallel)

    health = subparsers.add_parser("health", help="Probe the configured endpoints")
    health.add_argument("config", help="Config file with a `probes` section")
    health.add_argument("--identity", help="Overrides probes.identity")
    health.set_defaults(func=cmd_health)

    readiness = subparsers.add_parser("readiness", help="Score readiness from category results")
    readiness.add_argument("config", help="Config file with a `readiness` section")
    readiness.add_argument("scores", help="YAML/JSON map of category to pass rate or counts")
    readiness.set_defaults(func=cmd_readiness)

    pipeline = subparsers.add_parser("pipeline", help="Run the validation stages")
    pipeline.add_argument("config", help="Config file with a `stages` section")
    pipeline.add_argument("--base-dir", help="Working directory for stage commands and reports")
    pipeline.set_defaults(func=cmd_pipeline)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except FileNotFoundError as e:
        return _error(str(e))
    except (ConfigurationError, ValidationError) as e:
        return _error(e.message)


if __name__ == "__main__":
    sys.exit(main())
