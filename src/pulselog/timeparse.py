from __future__ import annotations

import re
from datetime import datetime, timedelta

from ._util import _as_local, _now_local

_RELATIVE = re.compile(r"(\d+)\s*(day|days|hour|hours|minute|minutes|min|mins)\s*ago")
_DAYWORD = re.compile(r"(today|yesterday)\s+(.+)")

_DATE_TIME_FORMATS = [
    "%Y-%m-%d %I:%M%p",
    "%Y-%m-%d %I:%M %p",
    "%Y-%m-%d %I%p",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
]

_TIME_FORMATS = ["%I:%M%p", "%I:%M %p", "%I%p", "%H:%M", "%H:%M:%S"]


def parse_time(value: str | None, now: datetime | None = None) -> datetime:
    """
    Parse a user-entered start time into a timezone-aware local datetime.
    Accepts:
      - None / blank / "now" -> now
      - ISO 8601 (naive assumed local)
      - "2026-10-19 21:30", "2026-10-19 9:30pm"
      - "21:30", "9:30pm" (today)
      - "today 9pm", "yesterday 23:10"
      - "3 days ago", "2 hours ago", "45 min ago"
    """
    now = now or _now_local()
    if value is None or not value.strip() or value.strip().lower() == "now":
        return now.replace(microsecond=0)

    raw = value.strip()
    s = raw.lower()

    try:
        return _as_local(datetime.fromisoformat(raw))
    except ValueError:
        pass

    m = _RELATIVE.fullmatch(s)
    if m:
        n = int(m.group(1))
        unit = m.group(2)
        if unit.startswith("day"):
            delta = timedelta(days=n)
        elif unit.startswith("hour"):
            delta = timedelta(hours=n)
        else:
            delta = timedelta(minutes=n)
        return (now - delta).replace(microsecond=0)

    m = _DAYWORD.fullmatch(s)
    if m:
        base = now - timedelta(days=1) if m.group(1) == "yesterday" else now
        return _parse_time_only(m.group(2), base)

    for fmt in _DATE_TIME_FORMATS:
        try:
            return _as_local(datetime.strptime(raw, fmt))
        except ValueError:
            continue

    try:
        return _parse_time_only(raw, now)
    except ValueError:
        pass

    raise SystemExit(
        f"Could not parse time {value!r}. Try '2026-10-19 21:30', '9:30pm', "
        f"'yesterday 23:10' or '2 hours ago'."
    )


def _parse_time_only(time_str: str, base_dt: datetime) -> datetime:
    s = time_str.strip().lower()
    for fmt in _TIME_FORMATS:
        try:
            t = datetime.strptime(s, fmt)
        except ValueError:
            continue
        return base_dt.replace(hour=t.hour, minute=t.minute, second=t.second, microsecond=0)
    raise ValueError(f"Could not parse time-only value: {time_str!r}")
