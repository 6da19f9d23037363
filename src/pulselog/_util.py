"""Shared low-level time helpers used by the model, cli.py and gui.py."""

from __future__ import annotations

from datetime import datetime


def _now_local() -> datetime:
    return datetime.now().astimezone()


def _as_local(dt: datetime) -> datetime:
    # naive values are wall-clock local time (astimezone applies that date's DST offset)
    return dt.astimezone()


def _dt_from_ts(ts: str) -> datetime | None:
    try:
        return _as_local(datetime.fromisoformat(ts))
    except (TypeError, ValueError):
        return None


def _fmt_time(dt: datetime) -> str:
    # Windows-safe formatting
    try:
        return dt.strftime("%-I:%M %p")
    except ValueError:
        return dt.strftime("%I:%M %p").lstrip("0")


def _fmt_stamp(dt: datetime) -> str:
    local = dt.astimezone()
    return f"{local.date().isoformat()} {_fmt_time(local)}"
