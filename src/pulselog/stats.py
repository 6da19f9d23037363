from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Iterable

from ._util import _now_local
from .model import Record, Stats


def window_starts(now: datetime) -> tuple[datetime, datetime, datetime]:
    """
    Calendar-aligned window starts in local time:
      - week: Monday 00:00 of the current week
      - month: the 1st, 00:00
      - year: 1 January, 00:00
    """
    today = now.astimezone().date()
    # each midnight takes the UTC offset of its own date
    week = datetime.combine(today - timedelta(days=today.weekday()), time()).astimezone()
    month = datetime.combine(today.replace(day=1), time()).astimezone()
    year = datetime.combine(today.replace(month=1, day=1), time()).astimezone()
    return week, month, year


def compute_stats(records: Iterable[Record], now: datetime | None = None) -> Stats:
    now = (now or _now_local()).astimezone()
    items = list(records)
    if not items:
        return Stats()

    durations = [r.duration for r in items]
    week, month, year = window_starts(now)

    per_week = per_month = per_year = 0
    for r in items:
        ts = r.start_time
        if ts > now:
            continue
        if ts >= year:
            per_year += 1
        if ts >= month:
            per_month += 1
        if ts >= week:
            per_week += 1

    return Stats(
        total_count=len(items),
        average_duration=sum(durations) / len(durations),
        max_duration=max(durations),
        frequency_per_week=per_week,
        frequency_per_month=per_month,
        frequency_per_year=per_year,
    )
