"""Operator command line for the Chronologicon engine.

Each subcommand opens the configured repository, runs one operation and
prints the result as JSON on stdout. Progress and diagnostics go to stderr.
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import Any, Sequence

from pydantic import BaseModel

from chronologicon.analytics import find_overlaps, temporal_gap_report
from chronologicon.config import EngineConfig
from chronologicon.errors import EventNotFoundError, StructuralIntegrityError
from chronologicon.hierarchy import build_tree
from chronologicon.logging import PprintLogger, setup_logging
from chronologicon.parser import parse_iso_timestamp
from chronologicon.paths import event_influence
from chronologicon.pipeline import IngestionPipeline
from chronologicon.search import MAX_PAGE_SIZE, SearchQuery
from chronologicon.storage import EventRepositoryInterface, create_repository


def _timestamp(value: str) -> datetime:
    parsed = parse_iso_timestamp(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid timestamp {value!r}, expected YYYY-MM-DDTHH:MM:SS[.mmm][Z]")
    return parsed


def _page_size(value: str) -> int:
    size = int(value)
    if not 1 <= size <= MAX_PAGE_SIZE:
        raise argparse.ArgumentTypeError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return size


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chronologicon",
        description="Ingest historical event files and query their timelines",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  chronologicon ingest events.txt
  chronologicon timeline 0b2c1f4e-6d8a-4a71-9c36-5f1e2d3c4b5a
  chronologicon search --name war --sort-by duration_minutes --sort-order desc
  chronologicon gaps 2023-01-01T00:00:00Z 2023-12-31T23:59:59Z
""",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="memory:// or sqlite:///<path> (default: $CHRONOLOGICON_DATABASE_URL or sqlite:///./chronologicon.db)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Ingest a pipe-delimited event file and print the job report")
    ingest.add_argument("file", type=str, help="Path to the event file")

    timeline = sub.add_parser("timeline", help="Print the event hierarchy below an event")
    timeline.add_argument("root_id", type=str, help="Id of the root event")

    search = sub.add_parser("search", help="Filter, sort and page events")
    search.add_argument("--name", type=str, default=None, help="Case-insensitive name substring")
    search.add_argument("--start-after", type=_timestamp, default=None, help="Only events starting at or after this time")
    search.add_argument("--end-before", type=_timestamp, default=None, help="Only events ending at or before this time")
    search.add_argument("--sort-by", type=str, default="start", help="start, end, name or duration_minutes")
    search.add_argument("--sort-order", type=str, default="asc", help="asc or desc")
    search.add_argument("--page", type=int, default=1, help="1-based page number")
    search.add_argument("--limit", type=_page_size, default=None, help="Page size (default: $CHRONOLOGICON_PAGE_SIZE or 10)")

    sub.add_parser("overlaps", help="List overlapping event pairs")

    gaps = sub.add_parser("gaps", help="Find the largest uncovered gap in a time range")
    gaps.add_argument("start", type=_timestamp, help="Range start")
    gaps.add_argument("end", type=_timestamp, help="Range end")

    influence = sub.add_parser("influence", help="Find the descent path between two events")
    influence.add_argument("source_id", type=str, help="Id of the ancestor event")
    influence.add_argument("target_id", type=str, help="Id of the descendant event")
    return parser


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _to_jsonable(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list):
        return [_to_jsonable(item) for item in result]
    return result


async def _dispatch(
    args: argparse.Namespace,
    config: EngineConfig,
    repository: EventRepositoryInterface,
    log: PprintLogger,
) -> Any:
    if args.command == "ingest":
        pipeline = IngestionPipeline(repository, progress_interval=config.progress_interval)
        try:
            job = await pipeline.run(args.file)
        finally:
            await pipeline.close()
        log.info("Ingestion job %s finished %s", job.job_id, job.status.value)
        log.debug(job)
        return job.status_report()
    if args.command == "timeline":
        tree = await build_tree(repository, args.root_id)
        log.info("Timeline %s: %d events across %d levels", tree.event_id, tree.size(), tree.depth())
        return tree
    if args.command == "search":
        query = SearchQuery(
            name_contains=args.name,
            start_after=args.start_after,
            end_before=args.end_before,
            sort_field=args.sort_by,
            sort_order=args.sort_order,
            page=max(args.page, 1),
            page_size=args.limit or config.page_size,
        )
        return await repository.search(query)
    if args.command == "overlaps":
        return await find_overlaps(repository)
    if args.command == "gaps":
        return await temporal_gap_report(repository, args.start, args.end)
    if args.command == "influence":
        return await event_influence(repository, args.source_id, args.target_id)
    raise ValueError(f"Unknown command: {args.command}")


async def main(argv: Sequence[str] | None = None) -> int:
    """Parse ``argv``, run one command and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = EngineConfig.from_env()
    overrides: dict[str, Any] = {}
    if args.database_url:
        overrides["database_url"] = args.database_url
    if args.debug:
        overrides["log_level"] = "DEBUG"
    if overrides:
        config = config.model_copy(update=overrides)
    log = setup_logging(config.log_level_number)

    try:
        repository = create_repository(config.database_url)
    except ValueError as e:
        parser.error(str(e))

    try:
        result = await _dispatch(args, config, repository, log)
    except (EventNotFoundError, StructuralIntegrityError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await repository.close()

    print(json.dumps(_to_jsonable(result), indent=2, default=_json_default))
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
