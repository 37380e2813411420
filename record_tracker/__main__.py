"""Main entry point for the record tracker CLI."""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

from record_tracker import __version__
from record_tracker.config.settings import RecordKind, Settings, StoreBackend
from record_tracker.records.errors import RecordStoreError
from record_tracker.records.models import Record, SearchFilter, SortSpec
from record_tracker.records.service import RecordService, open_store
from record_tracker.utils.logging import configure_logging

# Editable fields exposed as --options on add/edit, per record kind.
FIELD_OPTIONS = {
    RecordKind.JOB: ("company", "position", "location", "status", "date_applied"),
    RecordKind.TICKET: ("title", "description", "priority", "status"),
}


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid date {value!r} (expected YYYY-MM-DD)"
        ) from None


def _field_text(value: str) -> tuple[str, str]:
    name, sep, text = value.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(
            f"invalid filter {value!r} (expected FIELD=TEXT)"
        )
    return name.strip(), text


def _add_field_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("job application fields (--kind job)")
    group.add_argument("--company")
    group.add_argument("--position")
    group.add_argument("--location")
    group.add_argument("--date-applied", dest="date_applied", type=_iso_date)

    group = parser.add_argument_group("ticket fields (--kind ticket)")
    group.add_argument("--title")
    group.add_argument("--description")
    group.add_argument("--priority", help="LOW, MEDIUM or HIGH")

    parser.add_argument("--status", help="Status name (case-insensitive)")


def _add_sort_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--sort",
        default="id",
        help="Sort field (id or a record attribute, e.g. company, title)",
    )
    parser.add_argument(
        "--asc",
        action="store_true",
        help="Sort ascending (default is descending)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="record-tracker",
        description="Track job applications or helpdesk tickets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m record_tracker add --company Acme --position Developer --location Remote
  python -m record_tracker --kind ticket add --title "VPN down" --priority HIGH ...
  python -m record_tracker --kind ticket status 1 RESOLVED
  python -m record_tracker search acme --status APPLIED
  python -m record_tracker list --contains location=berlin --from 2026-01-01
  python -m record_tracker export data/records.csv
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set the log level (overrides settings)",
    )
    parser.add_argument(
        "--kind",
        choices=[kind.value for kind in RecordKind],
        default=None,
        help="Record kind (overrides settings)",
    )
    parser.add_argument(
        "--backend",
        choices=[backend.value for backend in StoreBackend],
        default=None,
        help="Storage backend (overrides settings)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Override database path (defaults to settings)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
    )

    add_parser = subparsers.add_parser("add", help="Add a record")
    _add_field_options(add_parser)

    list_parser = subparsers.add_parser("list", help="List records")
    list_parser.add_argument("--status", help="Only records with this status")
    list_parser.add_argument(
        "--contains",
        action="append",
        type=_field_text,
        default=[],
        metavar="FIELD=TEXT",
        help="Only records whose FIELD contains TEXT (repeatable)",
    )
    list_parser.add_argument(
        "--from", dest="date_from", type=_iso_date, help="Earliest date, inclusive"
    )
    list_parser.add_argument(
        "--to", dest="date_to", type=_iso_date, help="Latest date, inclusive"
    )
    _add_sort_options(list_parser)

    search_parser = subparsers.add_parser("search", help="Search records")
    search_parser.add_argument("text", help="Case-insensitive text to look for")
    search_parser.add_argument("--status", help="Only records with this status")
    _add_sort_options(search_parser)

    show_parser = subparsers.add_parser("show", help="Show one record")
    show_parser.add_argument("id", type=int)

    status_parser = subparsers.add_parser("status", help="Change a record's status")
    status_parser.add_argument("id", type=int)
    status_parser.add_argument("new_status")

    edit_parser = subparsers.add_parser("edit", help="Edit record fields")
    edit_parser.add_argument("id", type=int)
    _add_field_options(edit_parser)

    delete_parser = subparsers.add_parser("delete", help="Delete a record")
    delete_parser.add_argument("id", type=int)

    subparsers.add_parser("stats", help="Show record counts per status")

    export_parser = subparsers.add_parser("export", help="Export records to CSV")
    export_parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        help="CSV file to write (defaults to settings)",
    )
    _add_sort_options(export_parser)

    import_parser = subparsers.add_parser(
        "import", help="Replace all records with the content of a CSV file"
    )
    import_parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        help="CSV file to read (defaults to settings)",
    )

    return parser


def format_record(record: Record) -> str:
    """One-line rendering of a record for console output."""
    row = record.to_row()
    values = [row[column] for column in record.CSV_COLUMNS if column != "id"]
    return f"#{record.id} " + " | ".join(values)


def _field_values(parsed: argparse.Namespace, kind: RecordKind) -> dict:
    values = {}
    for name in FIELD_OPTIONS[kind]:
        value = getattr(parsed, name, None)
        if value is not None:
            values[name] = value
    return values


def _sort(parsed: argparse.Namespace) -> SortSpec:
    return SortSpec(field=parsed.sort, ascending=parsed.asc)


async def _run_command(
    parsed: argparse.Namespace, settings: Settings, kind: RecordKind
) -> int:
    backend = StoreBackend(parsed.backend or settings.store_backend)
    store = await open_store(
        kind.value,
        backend=backend.value,
        db_path=parsed.db or settings.db_path,
    )
    service = RecordService(store, csv_strict=settings.csv_strict)

    try:
        if parsed.command == "add":
            record = await service.add(**_field_values(parsed, kind))
            print(f"Added: {format_record(record)}")
            return 0

        if parsed.command == "list":
            if parsed.contains or parsed.date_from or parsed.date_to:
                criteria = SearchFilter(
                    contains=dict(parsed.contains),
                    status=parsed.status,
                    date_from=parsed.date_from,
                    date_to=parsed.date_to,
                )
                records = await service.list_matching(criteria, _sort(parsed))
            elif parsed.status:
                records = await service.list_by_status(parsed.status, _sort(parsed))
            else:
                records = await service.list_all(_sort(parsed))
            if not records:
                print("No records.")
            for record in records:
                print(format_record(record))
            return 0

        if parsed.command == "search":
            records = await service.search(parsed.text, parsed.status, _sort(parsed))
            if not records:
                print("No matching records.")
            for record in records:
                print(format_record(record))
            return 0

        if parsed.command == "show":
            print(format_record(await service.get(parsed.id)))
            return 0

        if parsed.command == "status":
            if not await service.update_status(parsed.id, parsed.new_status):
                print(f"Record {parsed.id} not found.", file=sys.stderr)
                return 1
            print(f"Updated #{parsed.id} to {parsed.new_status.upper()}.")
            return 0

        if parsed.command == "edit":
            changes = _field_values(parsed, kind)
            if not changes:
                print("Nothing to edit.", file=sys.stderr)
                return 1
            record = await service.edit(parsed.id, **changes)
            print(f"Updated: {format_record(record)}")
            return 0

        if parsed.command == "delete":
            if not await service.delete(parsed.id):
                print(f"Record {parsed.id} not found.", file=sys.stderr)
                return 1
            print(f"Deleted #{parsed.id}.")
            return 0

        if parsed.command == "stats":
            counts = await service.status_counts()
            for status, count in counts.items():
                print(f"{status.value}: {count}")
            return 0

        if parsed.command == "export":
            path = parsed.path or settings.export_path
            count = await service.export_to_path(path, _sort(parsed))
            print(f"Exported {count} records to {path}")
            return 0

        if parsed.command == "import":
            path = parsed.path or settings.export_path
            count = await service.import_from_path(path)
            print(f"Imported {count} records from {path}")
            return 0

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1
    finally:
        await store.close()


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    try:
        settings = Settings()
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    kind = RecordKind(parsed.kind or settings.record_kind)
    log_level = parsed.log_level or settings.log_level
    logger = configure_logging(level=log_level, kind=kind.value)

    if parsed.command is None:
        parser.print_help()
        return 0

    logger.debug(
        f"record-tracker v{__version__} running '{parsed.command}' "
        f"on {kind.value} records"
    )

    try:
        return asyncio.run(_run_command(parsed, settings, kind))
    except RecordStoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
