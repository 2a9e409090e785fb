"""
Command-line interface for the Autoimmune Reference Console.

Usage:
    autoimmune-console browse [--disease NAME] [--autoantibody NAME]
                              [--autoantigen NAME] [--epitope NAME]
                              [--search TEXT] [--search-field FIELD]
                              [--sort-by FIELD] [--desc] [--page N]
    autoimmune-console suggest TERM
    autoimmune-console stats
    autoimmune-console import FILE [--dry-run] [--batch-size N]
    autoimmune-console export [--format csv|json|xlsx] [--disease NAME] ...
    autoimmune-console users list [--role ROLE] [--search TEXT] [--page N]

The API location comes from AUTOIMMUNE_API_URL (or a .env file). A saved
session token, if present, is sent with every request; otherwise
AUTOIMMUNE_API_TOKEN is used when set.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from autoimmune_console import __version__
from autoimmune_console.browse.engine import BrowseEngine
from autoimmune_console.browse.view import ResultsView, no_results_message
from autoimmune_console.client.query_service import QueryServiceClient
from autoimmune_console.client.session import SessionContext
from autoimmune_console.client.users import UserServiceClient
from autoimmune_console.config import config
from autoimmune_console.config.constants import (
    USER_ROLES,
    FILTER_CHAIN,
    SEARCH_SCOPES,
    SORT_ASC,
    SORT_DESC,
    SUGGESTION_SECTIONS,
)
from autoimmune_console.config.logging_config import get_logger, setup_logging
from autoimmune_console.errors import NetworkFailure, ValidationFailure
from autoimmune_console.records.transfer import EntryExporter, read_entry_file, upload_entries

logger = get_logger("cli")

TABLE_COLUMNS = ["disease", "autoantibody", "autoantigen", "epitope", "uniprotId", "type"]


def _print_table(rows: List[dict], columns: Optional[List[str]] = None) -> None:
    df = pd.DataFrame(rows)
    if columns:
        df = df[[c for c in columns if c in df.columns]]
    print(df.fillna("").to_string(index=False))


async def run_browse(args: argparse.Namespace, session: SessionContext) -> int:
    """Apply the given filters one level at a time, then print a page of entries."""
    async with QueryServiceClient(session=session) as service:
        engine = BrowseEngine(service)
        engine.start()
        await engine.wait_idle()

        for field in FILTER_CHAIN:
            value = getattr(args, field)
            if value:
                getattr(engine, f"change_{field}")(value)
                await engine.wait_idle()

        if args.sort_by:
            engine.set_field("sort_by", args.sort_by)
            engine.set_field("sort_order", SORT_DESC if args.desc else SORT_ASC, apply_immediately=True)
            await engine.wait_idle()

        if args.search:
            engine.set_field("search_field", args.search_field)
            engine.type_search(args.search)
            engine.submit_search()
            await engine.wait_idle()

        if args.page > 1:
            engine.go_to_page(args.page)
            await engine.wait_idle()

        view = engine.view
        engine.close()

        if view == ResultsView.INITIAL:
            print("No filters given; pass --disease or --search to query entries.")
            return 0
        if view == ResultsView.ERROR:
            print(f"Error: {engine.results_error}", file=sys.stderr)
            return 1

        print(engine.applied.get_summary())
        if view == ResultsView.NO_RESULTS:
            print(no_results_message(engine.applied.has_active_filters))
            return 0

        _print_table([entry.to_row() for entry in engine.entries], TABLE_COLUMNS)
        page = engine.pagination
        print(f"\nPage {page.page} of {page.pages} ({page.total} entries)")
    return 0


async def run_suggest(args: argparse.Namespace, session: SessionContext) -> int:
    """Type a term into the search box and print the grouped suggestions."""
    async with QueryServiceClient(session=session) as service:
        engine = BrowseEngine(service)
        engine.type_search(args.term)
        await asyncio.sleep(config.browse.suggestion_debounce_seconds + 0.05)
        await engine.wait_idle()
        suggestions = engine.suggestions
        visible = engine.suggestions_visible
        engine.close()

    if not visible:
        print(f"No suggestions (enter at least {config.browse.min_suggestion_chars} characters).")
        return 0
    for section in SUGGESTION_SECTIONS:
        values = suggestions[section]
        if values:
            print(f"{section.capitalize()}:")
            for value in values:
                print(f"  {value}")
    if not any(suggestions.values()):
        print("No matches.")
    return 0


async def run_stats(args: argparse.Namespace, session: SessionContext) -> int:
    async with QueryServiceClient(session=session) as service:
        statistics = await service.statistics_overview()

    for name, value in statistics.overview.items():
        print(f"{name}: {value}")
    if statistics.diseaseBreakdown:
        print("\nTop diseases:")
        _print_table(statistics.diseaseBreakdown)
    return 0


async def run_import(args: argparse.Namespace, session: SessionContext) -> int:
    """Validate a spreadsheet and upload its valid rows."""
    report = read_entry_file(args.file)
    print(report.summary())
    for error in report.errors:
        print(f"  {error.describe()}")
    if report.unmapped_columns:
        print(f"  Extra columns imported as additional fields: {', '.join(report.unmapped_columns)}")

    if args.dry_run or not report.entries:
        return 0 if report.is_clean else 1

    async with QueryServiceClient(session=session) as service:
        stats = await upload_entries(service, report.entries, batch_size=args.batch_size)
    print(f"Imported {stats['imported']} entries in {stats['batches']} batch(es)")
    return 0 if report.is_clean else 1


async def run_export(args: argparse.Namespace, session: SessionContext) -> int:
    """Export entries through the service, optionally as a local workbook."""
    service_format = "json" if args.format == "xlsx" else args.format
    async with QueryServiceClient(session=session) as service:
        payload = await service.export_entries(
            format=service_format,
            disease=args.disease,
            autoantibody=args.autoantibody,
            autoantigen=args.autoantigen,
        )

    if args.format == "csv":
        if args.output:
            args.output.write_text(payload, encoding="utf-8")
            print(f"Exported to {args.output}")
        else:
            print(payload)
        return 0

    entries = payload.get("data", []) if isinstance(payload, dict) else payload
    if args.format == "xlsx":
        exporter = EntryExporter(args.output.parent if args.output else None)
        filename = args.output.name if args.output else None
        path = exporter.export_to_excel(entries, filename=filename)
        print(f"Exported {len(entries)} entries to {path}")
        return 0

    text = json.dumps(entries, indent=2)
    if args.output:
        args.output.write_text(text, encoding="utf-8")
        print(f"Exported {len(entries)} entries to {args.output}")
    else:
        print(text)
    return 0


def run_users(args: argparse.Namespace, session: SessionContext) -> int:
    client = UserServiceClient(session)
    try:
        result = client.list_users(page=args.page, limit=args.limit, role=args.role, search=args.search)
    finally:
        client.close()

    if not result.users:
        print("No users found.")
        return 0
    _print_table(
        [user.model_dump() for user in result.users],
        ["username", "name", "email", "role", "isActive"],
    )
    page = result.pagination
    print(f"\nPage {page.page} of {page.pages} ({page.total} users)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autoimmune-console",
        description="Browse and maintain the autoimmune disease reference database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=config.app.log_level.upper(),
        help="Logging level",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    browse = subparsers.add_parser("browse", help="Filter and list entries")
    for field in FILTER_CHAIN:
        browse.add_argument(f"--{field}", default="", help=f"Filter by {field}")
    browse.add_argument("--search", default="", help="Free-text search")
    browse.add_argument("--search-field", choices=SEARCH_SCOPES, default="all", help="Field to search")
    browse.add_argument("--sort-by", choices=list(FILTER_CHAIN), default=None, help="Sort column")
    browse.add_argument("--desc", action="store_true", help="Sort descending")
    browse.add_argument("--page", type=int, default=1, help="Page number")

    suggest = subparsers.add_parser("suggest", help="Show grouped search suggestions")
    suggest.add_argument("term", help="Text typed into the search box")

    subparsers.add_parser("stats", help="Show database statistics")

    importer = subparsers.add_parser("import", help="Import entries from CSV or Excel")
    importer.add_argument("file", type=Path, help="CSV, XLSX or XLS file")
    importer.add_argument("--dry-run", action="store_true", help="Validate only, do not upload")
    importer.add_argument(
        "--batch-size", type=int, default=config.data.import_batch_size, help="Entries per request"
    )

    exporter = subparsers.add_parser("export", help="Export entries")
    exporter.add_argument("--format", choices=["csv", "json", "xlsx"], default="csv")
    exporter.add_argument("--output", type=Path, default=None, help="Output file")
    for field in ("disease", "autoantibody", "autoantigen"):
        exporter.add_argument(f"--{field}", default=None, help=f"Only entries with this {field}")

    users = subparsers.add_parser("users", help="User administration")
    users_sub = users.add_subparsers(dest="users_command", required=True)
    users_list = users_sub.add_parser("list", help="List users")
    users_list.add_argument("--role", choices=USER_ROLES, default=None)
    users_list.add_argument("--search", default=None)
    users_list.add_argument("--page", type=int, default=1)
    users_list.add_argument("--limit", type=int, default=20)

    return parser


ASYNC_COMMANDS = {
    "browse": run_browse,
    "suggest": run_suggest,
    "stats": run_stats,
    "import": run_import,
    "export": run_export,
}


def load_session(session_file: Path, api_token: Optional[str] = None) -> SessionContext:
    """Saved login session, falling back to a configured API token."""
    session = SessionContext.load(session_file)
    if not session.is_active and api_token:
        session.start(api_token, {"username": "api token"})
    return session


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(log_level=args.log_level, log_file=args.log_file)
    session = load_session(config.data.session_file, config.service.api_token)

    try:
        if args.command == "users":
            return run_users(args, session)
        return asyncio.run(ASYNC_COMMANDS[args.command](args, session))
    except NetworkFailure as e:
        logger.error(f"Request failed: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except (ValidationFailure, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
