"""Command-line interface for computing and exporting rotation schedules."""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date
from typing import List, Optional

from shiftcycle.config import AppConfig, load_config
from shiftcycle.domain.db import get_session, get_session_factory, init_database
from shiftcycle.domain.repositories import SqlCycleProvider, SqlExceptionStore
from shiftcycle.domain.values import BucketKey, CacheState, ComputedDay, MonthCacheEntry, ScheduleContext
from shiftcycle.engine.base import DataAvailabilityCallback
from shiftcycle.engine.cache import ScheduleCache
from shiftcycle.io.export_csv import export_schedule_csv
from shiftcycle.io.import_csv import import_cycle_csv, import_exceptions_csv
from shiftcycle.services.calendar import parse_month


class _ConsoleReporter(DataAvailabilityCallback):
    """Print cache warnings and failures as CLI status lines."""

    def on_state_changed(self, key: BucketKey, state: CacheState, entry: MonthCacheEntry) -> None:
        if state is CacheState.ERROR:
            print(f"[ERROR] {key}: {entry.error}")

    def on_warning(self, key: BucketKey, message: str) -> None:
        print(f"[INFO] {key}: {message}")


def _db_url(args: argparse.Namespace, cfg: AppConfig) -> str:
    return args.db or cfg.database.url


def _context(args: argparse.Namespace, cfg: AppConfig) -> ScheduleContext:
    return ScheduleContext(
        user_id=args.user if args.user is not None else cfg.schedule.user_id,
        team_id=args.team or cfg.schedule.team_id,
    )


async def _load_month(cfg: AppConfig, db_url: str, key: BucketKey) -> MonthCacheEntry:
    session_factory = get_session_factory(db_url)
    provider = SqlCycleProvider(session_factory, cfg.schedule.cycle_id, cfg.schedule.anchor_date)
    store = SqlExceptionStore(session_factory)
    async with ScheduleCache(provider, store, cfg.cache) as cache:
        cache.subscribe(_ConsoleReporter())
        return await cache.request(key)


def _month_days(args: argparse.Namespace, cfg: AppConfig) -> List[ComputedDay]:
    year, month = parse_month(args.month)
    key = BucketKey(year, month, _context(args, cfg))
    entry = asyncio.run(_load_month(cfg, _db_url(args, cfg), key))
    if not entry.is_available:
        raise SystemExit(f"[ERROR] Could not load {key}: {entry.error}")
    if entry.degraded:
        print("[INFO] Exceptions unavailable, showing base schedule only")
    return list(entry.days)


def _format_day(day: ComputedDay) -> str:
    parts = []
    for shift in day.working_shifts():
        teams = ",".join(sorted(shift.teams_on_duty)) or "-"
        marker = "*" if shift.is_modified else ""
        parts.append(
            f"{shift.shift_type.name} {shift.start_time:%H:%M}-{shift.end_time:%H:%M} [{teams}]{marker}"
        )
    line = f"{day.date.isoformat()} {day.date:%a}  " + ("; ".join(parts) if parts else "rest")
    for note in day.notes:
        line += f"\n    note: {note.text}"
    return line


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database."""
    cfg = load_config(args.config)
    db_url = _db_url(args, cfg)
    init_database(db_url)
    print(f"[OK] Database initialized: {db_url}")


def _cmd_import_cycle(args: argparse.Namespace) -> None:
    """Import a custom cycle from CSV."""
    cfg = load_config(args.config)
    session = get_session(_db_url(args, cfg))
    anchor = date.fromisoformat(args.anchor) if args.anchor else None

    try:
        count = import_cycle_csv(session, args.csv, args.id, args.name, anchor_date=anchor, length_days=args.length)
        print(f"[OK] Imported cycle {args.id} with {count} slots")
    except Exception as e:
        session.rollback()
        print(f"[ERROR] Import failed: {e}")
        raise
    finally:
        session.close()


def _cmd_import_exceptions(args: argparse.Namespace) -> None:
    """Import schedule exceptions from CSV."""
    cfg = load_config(args.config)
    session = get_session(_db_url(args, cfg))

    try:
        count = import_exceptions_csv(session, args.csv)
        print(f"[OK] Imported {count} exceptions")
    except Exception as e:
        session.rollback()
        print(f"[ERROR] Import failed: {e}")
        raise
    finally:
        session.close()


def _cmd_show(args: argparse.Namespace) -> None:
    """Print the merged schedule of one month."""
    cfg = load_config(args.config)
    days = _month_days(args, cfg)
    for day in days:
        print(_format_day(day))
    print(f"[OK] {len(days)} days")


def _cmd_export(args: argparse.Namespace) -> None:
    """Export the merged schedule of one month to CSV."""
    cfg = load_config(args.config)
    days = _month_days(args, cfg)
    count = export_schedule_csv(days, args.out)
    print(f"[OK] Exported {count} rows to {args.out}")


def _add_view_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--month", required=True, help="Month (e.g., 2025-03)")
    parser.add_argument("--team", help="Team ID for a crew view (e.g., A)")
    parser.add_argument("--user", type=int, help="User ID whose exceptions are merged")


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="shiftcycle",
        description="Rotating shift schedules with per-user exceptions",
    )

    # Global options
    parser.add_argument("--db", help="Database URL (default: database.url from config)")
    parser.add_argument("--config", help="Path to config YAML")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    # init-db command
    init = sub.add_parser("init-db", help="Initialize database")
    init.set_defaults(func=_cmd_init_db)

    # import-cycle command
    cyc = sub.add_parser("import-cycle", help="Import a custom cycle from CSV")
    cyc.add_argument("--csv", required=True, help="Path to cycle CSV")
    cyc.add_argument("--id", required=True, help="Cycle ID")
    cyc.add_argument("--name", required=True, help="Cycle display name")
    cyc.add_argument("--anchor", help="Anchor date of cycle day 0 (YYYY-MM-DD)")
    cyc.add_argument("--length", type=int, help="Cycle length in days (default: last day_index + 1)")
    cyc.set_defaults(func=_cmd_import_cycle)

    # import-exceptions command
    exc = sub.add_parser("import-exceptions", help="Import schedule exceptions from CSV")
    exc.add_argument("--csv", required=True, help="Path to exceptions CSV")
    exc.set_defaults(func=_cmd_import_exceptions)

    # show command
    show = sub.add_parser("show", help="Print the schedule of a month")
    _add_view_args(show)
    show.set_defaults(func=_cmd_show)

    # export command
    exp = sub.add_parser("export", help="Export the schedule of a month to CSV")
    _add_view_args(exp)
    exp.add_argument("--out", required=True, help="Path to output CSV")
    exp.set_defaults(func=_cmd_export)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
