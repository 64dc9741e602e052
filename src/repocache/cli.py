"""Command line for inspecting and refreshing repocache records."""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from repocache.data.config import get_settings
from repocache.data.http_client import json_fetcher
from repocache.data.storage import SQLiteStorage
from repocache.services.repository import Repository


async def _no_fetch() -> Any:
    raise RuntimeError("This command does not fetch")


def _field_pair(value: str) -> tuple[str, str]:
    """Parse one --field OUTPUT=INPUT argument."""
    target, sep, source = value.partition("=")
    if not sep or not target or not source:
        raise argparse.ArgumentTypeError(f"invalid field {value!r}, expected OUTPUT=INPUT")
    return target, source


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False, default=str))


def _build_repository(args: argparse.Namespace, fetch=_no_fetch) -> Repository:
    fields = getattr(args, "field", None)
    return Repository(
        args.name,
        fetch,
        stale_after=getattr(args, "stale_after", None),
        field_map=dict(fields) if fields else None,
        storage=SQLiteStorage(args.db),
    )


async def run_status(args: argparse.Namespace) -> None:
    """Print the status of a stored record."""
    repo = _build_repository(args)
    status = await repo.get_data_up_to_date_status()
    _print_json(status.model_dump(mode="json"))


async def run_invalidate(args: argparse.Namespace) -> None:
    """Invalidate a stored record."""
    repo = _build_repository(args)
    result = await repo.invalidate_data()
    _print_json(result.model_dump(mode="json"))


async def run_clear(args: argparse.Namespace) -> None:
    """Delete a stored record."""
    repo = _build_repository(args)
    prev = await repo.clear_data()
    _print_json(prev.model_dump(mode="json") if prev is not None else None)


async def run_fetch(args: argparse.Namespace) -> None:
    """Get data through the cache, fetching the URL if stale."""
    repo = _build_repository(args, json_fetcher(args.url))
    data = await repo.get_data()
    _print_json(data)


async def run_watch(args: argparse.Namespace) -> None:
    """Keep a record fresh until interrupted."""
    async with _build_repository(args, json_fetcher(args.url)) as repo:
        await repo.init_syncer(on_fetched=_print_json)
        # runs until the process is interrupted
        await asyncio.Event().wait()


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("name", help="Repository name (key of the stored record)")
    parser.add_argument(
        "--db",
        type=Path,
        default=get_settings().db_path,
        help="SQLite database path (default: data/repocache.db or REPOCACHE_DB_PATH env var)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_fetching(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="JSON endpoint to fetch")
    parser.add_argument(
        "--stale-after",
        type=int,
        default=None,
        help="Milliseconds after which data is stale (0 = never, default: REPOCACHE_STALE_AFTER_MS)",
    )
    parser.add_argument(
        "--field",
        action="append",
        type=_field_pair,
        metavar="OUTPUT=INPUT",
        help="Rename a response field; repeat for each kept field",
    )


COMMANDS = {
    "status": run_status,
    "invalidate": run_invalidate,
    "clear": run_clear,
    "fetch": run_fetch,
    "watch": run_watch,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repocache",
        description="Inspect and refresh repocache records stored in SQLite",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser("status", help="Show whether a record is up to date")
    _add_common(status_parser)
    status_parser.add_argument(
        "--stale-after",
        type=int,
        default=None,
        help="Milliseconds after which data is stale (0 = never)",
    )

    _add_common(subparsers.add_parser("invalidate", help="Mark a record invalid"))
    _add_common(subparsers.add_parser("clear", help="Delete a record"))

    fetch_parser = subparsers.add_parser("fetch", help="Get data, fetching the URL if stale")
    _add_common(fetch_parser)
    _add_fetching(fetch_parser)

    watch_parser = subparsers.add_parser("watch", help="Refresh a record as it goes stale")
    _add_common(watch_parser)
    _add_fetching(watch_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(COMMANDS[args.command](args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
