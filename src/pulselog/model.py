from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any

from ._util import _as_local, _dt_from_ts


@dataclass(frozen=True)
class Record:
    """One logged session. Edits produce a new Record with the same id."""

    id: str
    start_time: datetime
    duration: float  # minutes; the fraction carries the seconds
    notes: str | None = None

    def __post_init__(self) -> None:
        duration = float(self.duration)
        if not math.isfinite(duration) or duration < 0:
            raise ValueError(f"duration must be a non-negative number of minutes, got {self.duration!r}")
        object.__setattr__(self, "duration", duration)
        object.__setattr__(self, "start_time", _as_local(self.start_time))

    def local_date(self) -> date:
        return self.start_time.astimezone().date()

    def with_changes(self, **changes: Any) -> Record:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "ts": self.start_time.isoformat(timespec="seconds"),
            "duration_min": self.duration,
        }
        if self.notes:
            out["notes"] = self.notes
        return out

    @classmethod
    def from_dict(cls, raw: Any) -> Record | None:
        """Build a Record from a stored row; None if the row is unusable."""
        if not isinstance(raw, dict):
            return None
        rid = str(raw.get("id", "")).strip()
        dt = _dt_from_ts(str(raw.get("ts", "")))
        if not rid or dt is None:
            return None
        notes = raw.get("notes")
        try:
            return cls(
                id=rid,
                start_time=dt,
                duration=raw.get("duration_min", 0),
                notes=str(notes) if notes else None,
            )
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class Stats:
    total_count: int = 0
    average_duration: float = 0.0
    max_duration: float = 0.0
    frequency_per_week: int = 0
    frequency_per_month: int = 0
    frequency_per_year: int = 0


# -------------------------
# Duration fields
# -------------------------


def _to_number(raw: object) -> float:
    """Form input -> float. Blank or malformed input counts as 0."""
    if isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        s = str(raw if raw is not None else "").strip()
        if not s:
            return 0.0
        try:
            value = float(s)
        except ValueError:
            return 0.0
    return value if math.isfinite(value) else 0.0


def _clamp_seconds(seconds: float) -> int:
    return int(max(0, min(59, seconds)))


def split_duration(duration: float) -> tuple[int, int]:
    """Fractional minutes -> (whole minutes, seconds 0..59)."""
    minutes = math.floor(duration)
    seconds = round((duration - minutes) * 60)
    return int(minutes), _clamp_seconds(seconds)


def join_duration(minutes_raw: object, seconds_raw: object) -> float:
    minutes = max(0, math.floor(_to_number(minutes_raw)))
    seconds = _clamp_seconds(math.floor(_to_number(seconds_raw)))
    return minutes + seconds / 60


def format_duration(duration: float) -> str:
    minutes, seconds = split_duration(duration)
    return f"{minutes}分{seconds}秒"
