#!/usr/bin/env python3
"""Command-line interface for the Hareline pipeline.

Commands:
  - hareline scrape    : Scrape every enabled source in a catalogue
  - hareline validate  : Validate every source config (no network)
  - hareline preview   : Fetch one source and show what it would extract

Typical usage:
  hareline scrape --catalogue sources.yaml --only ewh3-wordpress
  hareline validate --catalogue sources.yaml
  hareline preview ewh3-wordpress --days 30
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, List, Optional, Sequence

import yaml

from hareline.configs.config import Config
from hareline.configs.settings import Settings, get_settings
from hareline.ingestion.adapters.base_adapter import FetchOptions
from hareline.ingestion.adapters.registry import default_registry
from hareline.ingestion.config_validation import validate_catalogue
from hareline.ingestion.orchestrator import ScrapeOrchestrator
from hareline.ingestion.resolution import GroupDirectory, IdentityResolver, ResolverCache
from hareline.ingestion.runtime.http import HttpClient, HttpClientOptions
from hareline.monitoring.logging import LoggingOptions, setup_logging
from hareline.schemas.source import GroupRecord, SourceDescriptor


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="hareline", description="Hareline pipeline CLI")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    sub = p.add_subparsers(dest="cmd")

    # scrape
    ps = sub.add_parser("scrape", help="Scrape enabled sources")
    ps.add_argument("--catalogue", "--config", "-c", default=None, help="Path to sources YAML")
    ps.add_argument("--only", nargs="*", default=None, help="Scrape only these source ids")
    ps.add_argument("--days", type=int, default=None, help="Date window in days around today")
    ps.add_argument("--json-logs", action="store_true", help="Emit JSON logs")

    # validate
    pv = sub.add_parser("validate", help="Validate every source config")
    pv.add_argument("--catalogue", "--config", "-c", default=None, help="Path to sources YAML")

    # preview
    pp = sub.add_parser("preview", help="Preview what one source would extract")
    pp.add_argument("source_id", help="Id of the source to preview")
    pp.add_argument("--catalogue", "--config", "-c", default=None, help="Path to sources YAML")
    pp.add_argument("--days", type=int, default=None, help="Date window in days around today")
    pp.add_argument("--json-logs", action="store_true", help="Emit JSON logs")

    return p.parse_args(argv)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_orchestrator(
    settings: Settings,
    groups: Sequence[GroupRecord],
    *,
    http: Optional[HttpClient] = None,
    tag_patterns: Sequence[tuple[str, str]] = (),
) -> ScrapeOrchestrator:
    """Wire HTTP, adapters, identity resolution and the orchestrator from settings."""
    http = http or HttpClient(options=HttpClientOptions.from_settings(settings))
    resolver = IdentityResolver(
        GroupDirectory(groups),
        ResolverCache(ttl_s=settings.RESOLVER_CACHE_TTL_S),
        tag_patterns,
    )
    return ScrapeOrchestrator(
        default_registry(http),
        resolver,
        days=settings.SCRAPE_DAYS,
        max_workers=settings.SCRAPE_MAX_WORKERS,
    )


def _select(sources: List[SourceDescriptor], only: Optional[List[str]]) -> List[SourceDescriptor]:
    if not only:
        return sources
    wanted = set(only)
    missing = wanted - {s.id for s in sources}
    if missing:
        raise KeyError(f"Unknown source id(s): {', '.join(sorted(missing))}")
    return [s for s in sources if s.id in wanted]


def main(argv: list[str] | None = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in catalogue: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if args.version:
        from hareline import __version__

        print(f"hareline version {__version__}")
        return 0

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    settings = get_settings()
    sources, groups = Config.load_catalogue(args.catalogue)

    if args.cmd == "validate":
        problems = validate_catalogue(sources)
        if not problems:
            print(f"Catalogue is VALID ({len(sources)} source(s)).")
            return 0
        print("Catalogue is INVALID. Issues found:", file=sys.stderr)
        for source_id, errors in problems.items():
            for err in errors:
                print(f"  - {source_id}: {err}", file=sys.stderr)
        return 1

    setup_logging(
        LoggingOptions(level=settings.LOG_LEVEL, json_logs=args.json_logs or settings.JSON_LOGS)
    )
    orchestrator = build_orchestrator(settings, groups, tag_patterns=Config.load_tag_patterns(args.catalogue))

    if args.cmd == "preview":
        (source,) = _select(sources, [args.source_id])
        options = FetchOptions(days=args.days or settings.SCRAPE_DAYS)
        preview = orchestrator.preview(source, options=options)
        _print_json(preview.to_dict())
        return 0 if preview.ok else 1

    if args.cmd == "scrape":
        selected = _select(sources, args.only)
        runs = orchestrator.scrape_many(selected, days=args.days)
        _print_json([run.to_dict() for run in runs])
        return 0 if all(run.succeeded for run in runs) else 1

    print(f"Unknown command: {args.cmd}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
