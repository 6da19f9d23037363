from __future__ import annotations

import argparse
import logging
import math
import stat
from datetime import datetime
from typing import Any

from ._util import _fmt_stamp, _now_local
from .heatmap import build_calendar, render_calendar
from .model import Record, format_duration
from .notify import EventBus
from .paths import describe_source, resolve_data_path
from .reconcile import HistoryList, StatsPanel
from .safety import assert_safe_data_path
from .store import JsonRecordStore, RecordNotFoundError
from .timeparse import parse_time

# -------------------------
# Parsing helpers
# -------------------------


def _parse_duration(value: str | None, arg_name: str) -> float | None:
    """
    Accepts:
      - None / "" -> None
      - "12", "12.5" -> minutes
      - "12:30" -> 12 min 30 s (M:SS)
      - "1h5m", "5m30s", "90s" -> parsed
    Returns fractional minutes, or raises SystemExit on bad format.
    """
    if value is None:
        return None

    s = str(value).strip().lower()
    if not s:
        return None

    # 1) M:SS
    if ":" in s:
        parts = s.split(":")
        if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
            m = int(parts[0])
            sec = int(parts[1])
            if sec >= 60:
                raise SystemExit(f"{arg_name}: seconds must be 0-59 in M:SS (got {value!r})")
            return m + sec / 60
        raise SystemExit(f"{arg_name} must be minutes, or M:SS like 12:30")

    # 2) plain minutes
    try:
        minutes = float(s)
    except ValueError:
        minutes = None
    if minutes is not None:
        if minutes < 0 or not math.isfinite(minutes):
            raise SystemExit(f"{arg_name} must be a non-negative number of minutes")
        return minutes

    # 3) "1h5m" / "5m30s" variants
    total = 0.0
    num = ""
    saw_unit = False
    factors = {"h": 60.0, "m": 1.0, "s": 1 / 60}

    for ch in s:
        if ch.isdigit():
            num += ch
            continue
        if ch in factors:
            if not num:
                raise SystemExit(f"{arg_name}: bad duration {value!r}")
            total += int(num) * factors[ch]
            num = ""
            saw_unit = True
            continue
        if ch == " ":
            continue
        raise SystemExit(f"{arg_name} must be minutes, M:SS, or like 5m30s (got {value!r})")

    if num or not saw_unit:
        raise SystemExit(f"{arg_name}: trailing number without unit in {value!r}")
    return total


def _short_id(record_id: str) -> str:
    return record_id[:8]


def _resolve_id(records: list[Record], prefix: str) -> str:
    """Full id from a unique prefix (list shows 8 chars)."""
    matches = [r.id for r in records if r.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise SystemExit(f"No record with id {prefix!r}.")
    raise SystemExit(f"Id prefix {prefix!r} is ambiguous ({len(matches)} records); use more characters.")


def _store(args: argparse.Namespace) -> JsonRecordStore:
    return JsonRecordStore(args.data_path, bus=EventBus())


def _record_line(r: Record) -> str:
    line = f"{_short_id(r.id)}  {_fmt_stamp(r.start_time)} — {format_duration(r.duration)}"
    if r.notes:
        line += f" ({r.notes})"
    return line


def _stat_rows(panel: StatsPanel) -> list[tuple[str, Any]]:
    s = panel.stats
    return [
        ("总次数", s.total_count),
        ("平均时长(分)", f"{s.average_duration:.1f}"),
        ("最长时长(分)", f"{s.max_duration:.1f}"),
        ("本周次数", s.frequency_per_week),
        ("本月次数", s.frequency_per_month),
        ("本年次数", s.frequency_per_year),
    ]


# -------------------------
# Commands
# -------------------------


def cmd_init(args: argparse.Namespace) -> None:
    _store(args).init()
    print(f"✅ Initialized data file: {args.data_path}")


def cmd_where(args: argparse.Namespace) -> None:
    print(args.data_path)
    print(f"↳ using {describe_source(args.data_arg, args.profile)}")


def cmd_doctor(args: argparse.Namespace) -> None:
    print("=== pulselog doctor ===")

    assert_safe_data_path(args.data_path, args.allow_repo_data_path)
    print("✅ Data path safety guard: OK")

    store = _store(args)
    raw_rows = store.load()["records"]
    records = store.get_records()
    print(f"✅ JSON readable: {len(records)} records")
    if len(raw_rows) != len(records):
        print(f"⚠️ {len(raw_rows) - len(records)} malformed rows are being ignored")

    ids = [r.id for r in records]
    if len(set(ids)) != len(ids):
        print("⚠️ Duplicate record ids found")

    try:
        perms = stat.S_IMODE(args.data_path.stat().st_mode)
        print(f"🔐 File permissions: {oct(perms)} (target 0o600)")
    except FileNotFoundError:
        print("⚠️ Data file missing (run `pl init`)")

    print("=== Done ===")


def cmd_add(args: argparse.Namespace) -> None:
    duration = _parse_duration(args.duration, "--duration")
    if duration is None:
        raise SystemExit("--duration is required")
    start = parse_time(args.time)
    rec = _store(args).add_record(start, duration, args.notes or None)
    print(f"✅ Logged {format_duration(rec.duration)} @ {_fmt_stamp(rec.start_time)} [{_short_id(rec.id)}]")


def cmd_list(args: argparse.Namespace) -> None:
    history = HistoryList(_store(args))
    history.refresh()
    if not history.records:
        print("No records yet.")
        return

    print("=== Records (newest first) ===")
    for r in history.newest_first()[: args.limit]:
        print(_record_line(r))


def cmd_edit(args: argparse.Namespace) -> None:
    store = _store(args)
    history = HistoryList(store, StatsPanel(store))
    history.refresh()
    draft = history.begin_edit(_resolve_id(history.records, args.id))

    if args.time is not None:
        draft.set_start_time(parse_time(args.time))
    if args.duration is not None:
        draft.set_duration(_parse_duration(args.duration, "--duration") or 0.0)
    if args.minutes is not None:
        draft.set_minutes(args.minutes)
    if args.seconds is not None:
        draft.set_seconds(args.seconds)
    if args.notes is not None:
        draft.set_notes(args.notes)

    try:
        rec = history.commit_edit(draft)
    except RecordNotFoundError as e:
        raise SystemExit(f"Edit failed: {e} (it may have been deleted elsewhere).") from e
    print(f"✏️ Updated: {_record_line(rec)}")


def cmd_delete(args: argparse.Namespace) -> None:
    history = HistoryList(_store(args))
    history.refresh()
    record_id = _resolve_id(history.records, args.id)
    try:
        history.delete(record_id)
    except RecordNotFoundError as e:
        raise SystemExit(f"Delete failed: {e} (it may have been deleted elsewhere).") from e
    print(f"🗑️ Deleted {_short_id(record_id)} ({len(history.records)} left).")


def cmd_clear(args: argparse.Namespace) -> None:
    if not args.yes:
        raise SystemExit("Refusing to clear without --yes (this deletes every record).")
    removed = HistoryList(_store(args)).clear_all()
    print(f"🧹 Cleared: deleted {removed} records.")


def cmd_stats(args: argparse.Namespace) -> None:
    panel = StatsPanel(_store(args))
    panel.refresh()
    print("=== 统计数据 ===")
    for label, value in _stat_rows(panel):
        print(f"- {label}: {value}")


def cmd_calendar(args: argparse.Namespace) -> None:
    store = _store(args)
    now: datetime = _now_local()
    grid = build_calendar(store.get_records(), now.date())
    print(f"=== 日历 {grid.start_date.isoformat()} … {grid.end_date.isoformat()} ===")
    for line in render_calendar(grid):
        print(line)
    if args.totals:
        print(f"\n{grid.total_minutes():.1f} minutes in window")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pl", description="pulselog personal activity log")
    p.add_argument("--data", default=None, help="Path to data JSON (overrides env/default)")
    p.add_argument("--profile", default=None, help="Profile name (e.g. dev/test)")
    p.add_argument("--allow-repo-data-path", action="store_true", help="Override safety guard (not recommended)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")

    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("init", help="Initialize data store safely").set_defaults(func=cmd_init)
    sub.add_parser("where", help="Show which data file is active and why").set_defaults(func=cmd_where)
    sub.add_parser("doctor", help="Run safety + health checks").set_defaults(func=cmd_doctor)

    add = sub.add_parser("add", help="Log a session")
    add.add_argument("--duration", required=True, help="Minutes, M:SS like 12:30, or 5m30s")
    add.add_argument("--time", default=None, help="Start time: ISO, human, or relative (e.g. yesterday 23:10)")
    add.add_argument("--notes", default=None)
    add.set_defaults(func=cmd_add)

    lst = sub.add_parser("list", help="List records, newest first")
    lst.add_argument("--limit", type=int, default=50)
    lst.set_defaults(func=cmd_list)

    edit = sub.add_parser("edit", help="Edit one record (id or unique id prefix)")
    edit.add_argument("id")
    edit.add_argument("--time", default=None)
    edit.add_argument("--duration", default=None, help="Replace the whole duration")
    edit.add_argument("--minutes", default=None, help="Whole-minute part of the duration")
    edit.add_argument("--seconds", default=None, help="Seconds part of the duration (0-59)")
    edit.add_argument("--notes", default=None, help="New notes ('' clears them)")
    edit.set_defaults(func=cmd_edit)

    delete = sub.add_parser("delete", help="Delete one record")
    delete.add_argument("id")
    delete.set_defaults(func=cmd_delete)

    clear = sub.add_parser("clear", help="Delete ALL records (requires --yes)")
    clear.add_argument("--yes", action="store_true", help="Confirm destructive clear")
    clear.set_defaults(func=cmd_clear)

    sub.add_parser("stats", help="Summary statistics").set_defaults(func=cmd_stats)

    cal = sub.add_parser("calendar", help="52-week contribution calendar")
    cal.add_argument("--totals", action="store_true", help="Also print total minutes in the window")
    cal.set_defaults(func=cmd_calendar)

    return p


def main(argv=None) -> None:
    p = build_parser()
    args = p.parse_args(argv)
    args.data_arg = args.data
    args.data_path = resolve_data_path(args.data, args.profile)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    assert_safe_data_path(args.data_path, args.allow_repo_data_path)
    args.func(args)


if __name__ == "__main__":
    main()
